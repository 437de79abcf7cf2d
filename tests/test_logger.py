"""Tests for the SQLogger pipeline."""

import threading
from dataclasses import replace
from datetime import datetime

import pytest

from sqlogger.config import LoggerConfig
from sqlogger.database.dialect import DatabaseType
from sqlogger.database.mock import MockBackend
from sqlogger.errors import ConfigError, InvalidArgumentError, SQLoggerError, UnsupportedError
from sqlogger.logger import LoggerState, SQLogger, log_info, log_warning
from sqlogger.models import Filter, LogEntry, LogLevel, SourceInfo
from sqlogger.reader import LogReader
from sqlogger.writer import LogWriter

UUID_A = "123e4567-e89b-12d3-a456-426614174000"


class TestBasicLogging:
    """Seed scenarios against the Mock backend."""

    def test_round_trip(self, mock_logger):
        """Test that three records come back with their levels."""
        mock_logger.info("hi")
        mock_logger.warning("w")
        mock_logger.error("e")

        entries = mock_logger.get_all_logs()

        assert [(e.level, e.message) for e in entries] == [("INFO", "hi"), ("WARNING", "w"), ("ERROR", "e")]

    def test_round_trip_unusual_table_name(self, mock_config):
        """Test a table name containing a last-insert function name."""
        with SQLogger(replace(mock_config, database_table="last_insert_id_audit")) as lg:
            lg.info("hello")

            assert [e.message for e in lg.get_all_logs()] == ["hello"]

    def test_level_filter(self, mock_logger):
        """Test get_logs_by_level with one record per level."""
        for level in (LogLevel.TRACE, LogLevel.DEBUG, LogLevel.INFO, LogLevel.WARNING, LogLevel.ERROR, LogLevel.FATAL):
            mock_logger.log(level, f"at {level.name}")

        entries = mock_logger.get_logs_by_level(LogLevel.WARNING)

        assert len(entries) == 1
        assert entries[0].level == "WARNING"
        assert entries[0].message == "at WARNING"

    def test_timestamp_range(self, mock_logger):
        """Test an inclusive range from the epoch to now."""
        mock_logger.info("in range")

        entries = mock_logger.get_logs_by_timestamp_range("1970-01-01 00:00:00", datetime.now())

        assert any(e.message == "in range" for e in entries)
        assert mock_logger.get_logs_by_timestamp_range("1970-01-01 00:00:00", "1970-01-02 00:00:00") == []

    def test_multi_filter_and(self, mock_config):
        """Test level, file and timestamp filters combined."""
        config = replace(mock_config, only_file_names=True)
        with SQLogger(config) as lg:
            lg.info("not an error")
            lg.error("the error")
            lg.log_add(LogLevel.ERROR, "other file", "f", "elsewhere.py", 1)

            entries = lg.get_logs_by_filters([
                Filter("level", "=", "ERROR"),
                Filter("file", "=", "test_logger.py"),
                Filter("timestamp", ">=", "1970-01-01 00:00:00"),
                Filter("timestamp", "<=", datetime.now().strftime("%Y-%m-%d %H:%M:%S")),
            ])

        assert [e.message for e in entries] == ["the error"]

    def test_caller_info(self, mock_logger):
        """Test that function, file and line come from the call site."""
        mock_logger.info("where")

        entry = mock_logger.get_all_logs()[0]

        assert entry.function == "test_caller_info"
        assert entry.file.endswith("test_logger.py")
        assert entry.line > 0
        assert entry.thread_id == str(threading.get_ident())

    def test_only_file_names(self, mock_config):
        """Test that paths are reduced to their basename."""
        config = replace(mock_config, only_file_names=True)
        with SQLogger(config) as lg:
            lg.log_add(LogLevel.INFO, "posix", "f", "/src/app/main.py", 3)
            lg.log_add(LogLevel.INFO, "windows", "f", "C:\\src\\app\\win.cpp", 4)

            files = [e.file for e in lg.get_all_logs()]

        assert files == ["main.py", "win.cpp"]

    def test_convenience_reads(self, mock_logger):
        """Test reads by file, function and thread id."""
        mock_logger.log_add(LogLevel.INFO, "a", "alpha", "one.py", 1, "11")
        mock_logger.log_add(LogLevel.INFO, "b", "beta", "two.py", 2, "22")

        assert [e.message for e in mock_logger.get_logs_by_file("two.py")] == ["b"]
        assert [e.message for e in mock_logger.get_logs_by_function("alpha")] == ["a"]
        assert [e.message for e in mock_logger.get_logs_by_thread_id("22")] == ["b"]
        assert len(mock_logger.get_all_logs(limit=1)) == 1

    def test_invalid_filter(self, mock_logger):
        """Test that a bad operator raises before any read."""
        with pytest.raises(InvalidArgumentError):
            mock_logger.get_logs_by_filters([Filter("level", "==", "INFO")])


class TestStreams:
    """Tests for the builder-style stream API."""

    def test_stream_commits_on_release(self, mock_logger):
        """Test that a discarded stream expression is logged once."""
        log_info(mock_logger) << "x=" << 5

        entries = mock_logger.get_all_logs()
        assert [(e.level, e.message) for e in entries] == [("INFO", "x=5")]
        assert entries[0].function == "test_stream_commits_on_release"

    def test_stream_context_manager(self, mock_logger):
        """Test commit on leaving a with block."""
        with mock_logger.stream(LogLevel.ERROR) as stream:
            stream << "a" << 1 << "b"

        assert [e.message for e in mock_logger.get_logs_by_level("ERROR")] == ["a1b"]

    def test_stream_commits_once(self, mock_logger):
        """Test that an explicit commit is not repeated on release."""
        stream = log_warning(mock_logger) << "once"
        stream.commit()
        del stream

        assert len(mock_logger.get_all_logs()) == 1


class TestLevels:
    """Tests for the minimum level gate."""

    def test_below_min_level_is_dropped(self, mock_config):
        """Test that nothing below the minimum level is written."""
        config = replace(mock_config, min_log_level=LogLevel.WARNING)
        with SQLogger(config) as lg:
            for _ in range(20):
                lg.trace("t")
                lg.debug("d")
                lg.info("i")
            lg.warning("kept")

            assert [e.message for e in lg.get_all_logs()] == ["kept"]

    def test_set_log_level(self, mock_logger):
        """Test raising the level at runtime."""
        mock_logger.set_log_level("error")
        mock_logger.warning("dropped")
        mock_logger.fatal("kept")

        assert mock_logger.get_min_log_level() == LogLevel.ERROR
        assert [e.message for e in mock_logger.get_all_logs()] == ["kept"]
        with pytest.raises(InvalidArgumentError):
            mock_logger.set_log_level(LogLevel.UNKNOWN)


class TestBatching:
    """Tests for batch buffering (SQLite, since Mock cannot batch)."""

    def test_flush_semantics(self, sqlite_config):
        """Test that records stay buffered until flush."""
        config = replace(sqlite_config, use_batch=True, batch_size=10)
        with SQLogger(config) as lg:
            for i in range(7):
                lg.info(f"m{i}")

            assert lg.get_all_logs() == []
            assert lg.flush()
            assert len(lg.get_all_logs()) == 7

            stats = lg.get_stats()
            assert stats.flush_count == 1
            assert stats.max_batch_size == 7
            assert stats.min_batch_size == 7
            assert stats.total_logged == 7

    def test_auto_flush_at_batch_size(self, sqlite_config):
        """Test that reaching batch_size writes the buffer."""
        config = replace(sqlite_config, use_batch=True, batch_size=3)
        with SQLogger(config) as lg:
            for i in range(7):
                lg.info(f"m{i}")

            assert len(lg.get_all_logs()) == 6
            assert lg.get_stats().flush_count == 2

    def test_empty_flush(self, sqlite_config):
        """Test that flushing an empty buffer does not count."""
        config = replace(sqlite_config, use_batch=True, batch_size=5)
        with SQLogger(config) as lg:
            assert lg.flush()
            assert lg.get_stats().flush_count == 0

    def test_batch_equivalence(self, tmp_path, sqlite_config):
        """Test that batched and unbatched runs store the same rows."""
        def run(config):
            with SQLogger(config) as lg:
                for i in range(23):
                    lg.log(LogLevel(i % 6), f"record {i}")
                lg.flush()
                return [(e.level, e.message) for e in lg.get_all_logs()]

        plain = run(replace(sqlite_config, database_name=str(tmp_path / "plain.db")))
        batched = run(replace(sqlite_config, database_name=str(tmp_path / "batched.db"), use_batch=True, batch_size=4))

        assert batched == plain

    def test_set_batch_size(self, sqlite_config):
        """Test shrinking, disabling and bounds of the batch size."""
        config = replace(sqlite_config, use_batch=True, batch_size=10)
        with SQLogger(config) as lg:
            for i in range(5):
                lg.info(f"m{i}")

            lg.set_batch_size(3)
            assert len(lg.get_all_logs()) == 5

            lg.info("buffered")
            lg.set_batch_size(0)
            assert not lg.is_batch_enabled()
            assert len(lg.get_all_logs()) == 6

            lg.info("direct")
            assert len(lg.get_all_logs()) == 7

            with pytest.raises(InvalidArgumentError):
                lg.set_batch_size(-1)
            with pytest.raises(InvalidArgumentError):
                lg.set_batch_size(1001)

    def test_mock_cannot_batch(self, mock_logger, mock_config):
        """Test that batching is rejected on Mock."""
        with pytest.raises(UnsupportedError):
            mock_logger.set_batch_size(5)
        with pytest.raises(ConfigError):
            SQLogger(replace(mock_config, use_batch=True))

    def test_close_writes_pending_batch(self, sqlite_config):
        """Test that pending batch records are written on shutdown."""
        config = replace(sqlite_config, use_batch=True, batch_size=10)
        lg = SQLogger(config)
        for i in range(4):
            lg.info(f"m{i}")
        lg.shutdown()

        assert lg.get_stats().total_logged == 4
        with SQLogger(sqlite_config) as reopened:
            assert len(reopened.get_all_logs()) == 4


class TestAsync:
    """Tests for the worker pool dispatch."""

    def test_multithread_count(self, mock_config):
        """Test 10 producer threads times 100 records."""
        config = replace(mock_config, sync_mode=False, num_threads=4)
        with SQLogger(config) as lg:
            def produce(n):
                for i in range(100):
                    lg.info(f"t{n}-{i}")

            threads = [threading.Thread(target=produce, args=(n,)) for n in range(10)]
            for thread in threads:
                thread.start()
            for thread in threads:
                thread.join()

            assert lg.wait_until_empty(5.0)
            assert len(lg.get_all_logs()) == 1000

    def test_single_worker_fifo(self, mock_config):
        """Test ingress order with one worker and no batching."""
        config = replace(mock_config, sync_mode=False, num_threads=1)
        with SQLogger(config) as lg:
            for i in range(50):
                lg.info(f"m{i}")

            assert [e.message for e in lg.get_all_logs()] == [f"m{i}" for i in range(50)]

    def test_async_batching(self, sqlite_config):
        """Test async dispatch into the batch buffer."""
        config = replace(sqlite_config, sync_mode=False, num_threads=3, use_batch=True, batch_size=10)
        with SQLogger(config) as lg:
            for i in range(25):
                lg.info(f"m{i}")
            assert lg.flush()

            assert len(lg.get_all_logs()) == 25
            assert lg.get_num_threads() == 3
            assert not lg.is_sync_mode()

    def test_shutdown_drain(self, mock_config):
        """Test that every accepted record is logged or failed after shutdown."""
        config = replace(mock_config, sync_mode=False, num_threads=2)
        lg = SQLogger(config)
        for i in range(200):
            lg.info(f"m{i}")
        lg.shutdown()

        stats = lg.get_stats()
        assert stats.total_logged + stats.total_failed == 200


class TestFailures:
    """Tests for failure routing to stats and the error sink."""

    def test_write_failure_is_counted(self, mock_config):
        """Test that a failed write never raises to the producer."""
        backend = MockBackend()
        backend.connect("mock")
        with SQLogger(mock_config, backend=backend) as lg:
            backend.fail_message = "disk full"
            lg.info("lost")

            stats = lg.get_stats()
            assert stats.total_failed == 1
            assert stats.total_logged == 0
            assert any("[ERROR] Failed to write log record: disk full" in line
                       for line in lg.get_error_sink().read_lines())

    def test_read_failure_returns_empty(self, mock_config):
        """Test that a failed read yields an empty list."""
        backend = MockBackend()
        backend.connect("mock")
        with SQLogger(mock_config, backend=backend) as lg:
            lg.info("stored")
            backend.fail_message = "connection lost"

            assert lg.get_all_logs() == []
            assert any("connection lost" in line for line in lg.get_error_sink().read_lines())

    def test_invalid_config(self, tmp_path):
        """Test that construction validates the configuration."""
        with pytest.raises(ConfigError):
            SQLogger(LoggerConfig(name="x", error_log_file=str(tmp_path / "e.txt")))


class TestLifecycle:
    """Tests for shutdown and the state machine."""

    def test_shutdown_is_one_way(self, mock_config):
        """Test that a shut down logger ignores writes and refuses reads."""
        lg = SQLogger(mock_config)
        assert lg.get_state() == LoggerState.RUNNING

        lg.shutdown()
        lg.info("ignored")
        lg.shutdown()

        assert lg.get_state() == LoggerState.DESTROYED
        assert lg.get_stats().total_logged == 0
        with pytest.raises(SQLoggerError):
            lg.get_all_logs()

    def test_getters(self, mock_logger):
        """Test configuration getters."""
        assert mock_logger.get_name() == "test_logger"
        assert mock_logger.get_database_type() == DatabaseType.MOCK
        assert mock_logger.is_sync_mode()
        assert mock_logger.get_num_threads() == 0
        assert mock_logger.get_batch_size() == 0
        assert not mock_logger.is_only_file_names()
        assert mock_logger.get_config().name == "test_logger"
        assert "test_logger" in repr(mock_logger)

    def test_stats_reset_and_format(self, mock_logger):
        """Test stats snapshot, reset and formatting."""
        mock_logger.info("a")
        assert "Total entries: 1" in mock_logger.get_formatted_stats()

        mock_logger.reset_stats()
        assert mock_logger.get_stats().total_logged == 0


class TestSources:
    """Tests for source info."""

    def test_default_source(self, mock_config):
        """Test that a generated source is registered and attached."""
        config = replace(mock_config, use_source_info=True)
        with SQLogger(config) as lg:
            lg.info("tagged")

            source = lg.get_source()
            entry = lg.get_all_logs()[0]

        assert source.name == "Default"
        assert source.source_id > 0
        assert entry.source_id == source.source_id
        assert entry.source_uuid == source.uuid
        assert entry.source_name == "Default"

    def test_explicit_source_wins(self, mock_config):
        """Test that a passed SourceInfo overrides the configured one."""
        config = replace(
            mock_config,
            use_source_info=True,
            source_uuid="00000000-0000-0000-0000-000000000001",
            source_name="configured",
        )
        with SQLogger(config, source_info=SourceInfo(UUID_A, "passed")) as lg:
            lg.info("x")

            assert lg.get_source().uuid == UUID_A
            assert [e.message for e in lg.get_logs_by_source_uuid(UUID_A)] == ["x"]
            assert lg.get_source_by_name("passed").uuid == UUID_A

    def test_existing_source_is_reused(self, sqlite_config):
        """Test that a known uuid keeps its id across loggers."""
        config = replace(sqlite_config, use_source_info=True, source_uuid=UUID_A, source_name="node")
        with SQLogger(config) as first:
            first_id = first.get_source().source_id
        with SQLogger(config) as second:
            assert second.get_source().source_id == first_id
            assert len(second.get_all_sources()) == 1

    def test_add_source(self, mock_config):
        """Test registering extra sources."""
        config = replace(mock_config, use_source_info=True)
        with SQLogger(config) as lg:
            new_id = lg.add_source("other", UUID_A)

            assert lg.get_source_by_id(new_id).name == "other"
            assert len(lg.get_all_sources()) == 2
            with pytest.raises(InvalidArgumentError):
                lg.add_source("bad", "not-a-uuid")

    def test_clear_logs_with_sources(self, mock_config):
        """Test that clearing sources re-registers the logger's own source."""
        config = replace(mock_config, use_source_info=True)
        with SQLogger(config) as lg:
            lg.info("before")
            assert lg.clear_logs(clear_sources=True)
            lg.info("after")

            entries = lg.get_all_logs()
            assert [e.message for e in entries] == ["after"]
            assert entries[0].source_name == "Default"
            assert len(lg.get_all_sources()) == 1

    def test_source_info_disabled(self, mock_logger):
        """Test that source operations need source info enabled."""
        assert mock_logger.get_source() is None
        with pytest.raises(UnsupportedError):
            mock_logger.get_source_by_id(1)
        with pytest.raises(UnsupportedError):
            mock_logger.get_logs_by_source_id(1)


class TestSchemaProperties:
    """Tests for DDL idempotence and identifier quoting."""

    def test_idempotent_ddl(self, sqlite_config):
        """Test that schema creation can run repeatedly."""
        with SQLogger(sqlite_config) as lg:
            lg.info("x")
            writer = LogWriter(lg._backend, "logs")
            writer.create_logs_table()
            writer.create_indexes()
            writer.create_logs_table()
            writer.create_indexes()

            assert len(lg.get_all_logs()) == 1

    def test_hostile_table_name_round_trips(self):
        """Test that a table named like an injection is only ever an identifier."""
        table = '" or 1=1 --'
        backend = MockBackend()
        backend.connect("mock")
        writer = LogWriter(backend, table)
        reader = LogReader(backend, table)

        assert writer.write_log(LogEntry(timestamp="2024-01-01 00:00:00", level="INFO", message="m"))
        entries = reader.get_logs_by_filters()

        assert [e.message for e in entries] == ["m"]
        assert backend.get_table_data(table)[0]["message"] == "m"
        assert '""" or 1=1 --"' in backend.get_executed_queries()[0]
