"""The logger: ingress, dispatch, batching, flushing, reads and statistics."""

from __future__ import annotations

import logging
import re
import sys
import threading
import time
import uuid as uuid_lib
from dataclasses import replace
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Sequence

from sqlogger import export
from sqlogger.config import LoggerConfig, is_valid_uuid
from sqlogger.database import dialect
from sqlogger.database.base import Backend
from sqlogger.database.dialect import DatabaseType
from sqlogger.database.factory import create_backend
from sqlogger.error_sink import ErrorSink
from sqlogger.errors import (
    DriverFailureError,
    InvalidArgumentError,
    SQLoggerError,
    UnsupportedError,
)
from sqlogger.models import (
    FIELD_LOG_FILE,
    FIELD_LOG_FUNCTION,
    FIELD_LOG_LEVEL,
    FIELD_LOG_SOURCE_ID,
    FIELD_LOG_THREAD_ID,
    FIELD_LOG_TIMESTAMP,
    SOURCE_DEFAULT_NAME,
    SOURCE_NOT_FOUND,
    TIMESTAMP_FORMAT,
    Filter,
    LogEntry,
    LogLevel,
    LogTask,
    SourceInfo,
    Stats,
)
from sqlogger.reader import LogReader
from sqlogger.thread_pool import ThreadPool
from sqlogger.writer import LogWriter

logger = logging.getLogger(__name__)

DEFAULT_WAIT_TIMEOUT = 5.0
WAIT_POLL_INTERVAL = 0.005

_PATH_SEPARATORS = re.compile(r"[\\/]")


class LoggerState(str, Enum):
    CONSTRUCTED = "constructed"
    RUNNING = "running"
    SHUTTING_DOWN = "shutting_down"
    DESTROYED = "destroyed"


def _caller_info(depth: int) -> tuple[str, str, int]:
    """(function, file, line) of the frame ``depth`` levels above the caller."""
    try:
        frame = sys._getframe(depth + 1)
    except ValueError:
        return "", "", 0
    return frame.f_code.co_name, frame.f_code.co_filename, frame.f_lineno


def _format_timestamp(value: datetime | str) -> str:
    if isinstance(value, datetime):
        return value.strftime(TIMESTAMP_FORMAT)
    return value


class SQLogger:
    """Structured logger persisting each record as a row of a database table.

    Records are accepted from any thread. In sync mode they are written in
    the calling thread; in async mode a worker pool writes them. With
    batching enabled, records accumulate in a buffer that is written with
    one multi-row INSERT when it reaches ``batch_size`` or on ``flush()``.

    Producer calls never raise: write failures are counted in the stats
    and appended to the error sink file.

    Lock order: config < batch < db < stats (the sink has its own lock).

    Args:
        config: Logger configuration; validated and copied.
        backend: Already connected backend to use instead of opening one
            from the configuration.
        source_info: Source identity overriding the configured one.

    Raises:
        ConfigError: If the configuration is invalid.
        ConnectFailureError: If the database cannot be opened.
        DriverFailureError: If the schema cannot be installed.
    """

    def __init__(
        self,
        config: LoggerConfig,
        backend: Backend | None = None,
        source_info: SourceInfo | None = None,
    ):
        config.ensure_valid(source_info)
        self._config = config.copy()
        self._state = LoggerState.CONSTRUCTED

        self._config_lock = threading.Lock()
        self._batch_lock = threading.RLock()
        self._db_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._state_lock = threading.Lock()

        self._error_sink = ErrorSink(config.error_log_file, config.error_log_max_bytes)
        self._stats = Stats()
        self._batch: list[LogTask] = []
        db_type = config.database_type
        self._batch_size = config.batch_size if config.use_batch and dialect.supports_batch(db_type) else 0
        self._source: SourceInfo | None = None

        self._backend = backend or create_backend(
            db_type,
            config.to_connection_string(),
            allow_drop=config.allow_drop,
            allow_create=config.allow_create,
        )
        self._writer = LogWriter(self._backend, config.database_table, config.use_source_info)
        self._reader = LogReader(self._backend, config.database_table, config.use_source_info)

        try:
            self._install_schema()
            if config.use_source_info:
                self._source = self._resolve_source(source_info)
        except SQLoggerError:
            self._backend.disconnect()
            raise

        self._pool = None if config.sync_mode else ThreadPool(config.num_threads, name=config.name)
        self._state = LoggerState.RUNNING
        logger.info(
            f"Logger {config.name!r} started on {db_type.value} "
            f"({'sync' if config.sync_mode else f'async, {config.num_threads} threads'}, "
            f"batch size {self._batch_size})"
        )

    def _install_schema(self) -> None:
        if self._config.use_source_info:
            self._writer.create_sources_table()
        self._writer.create_logs_table()
        self._writer.create_indexes()

    def _resolve_source(self, explicit: SourceInfo | None) -> SourceInfo:
        """Pick the source identity and make sure it has a row in ``sources``."""
        if explicit is not None:
            source = SourceInfo(explicit.uuid, explicit.name or SOURCE_DEFAULT_NAME)
        elif self._config.source_uuid:
            source = SourceInfo(self._config.source_uuid, self._config.source_name or SOURCE_DEFAULT_NAME)
        else:
            source = SourceInfo(str(uuid_lib.uuid4()), self._config.source_name or SOURCE_DEFAULT_NAME)

        existing = self._reader.get_source_by_uuid(source.uuid)
        if existing is not None:
            source.source_id = existing.source_id
            return source

        source.source_id = self._writer.add_source(source.name, source.uuid)
        if source.source_id == SOURCE_NOT_FOUND:
            error = self._backend.get_last_error()
            raise DriverFailureError(
                f"Failed to register source {source.name} ({source.uuid}): {error}",
                driver_message=error,
                operation="add_source",
            )
        logger.info(f"Registered source {source.name} ({source.uuid}) with id {source.source_id}")
        return source

    # Ingress

    def log_add(
        self,
        level: LogLevel,
        message: str,
        function: str = "",
        file: str = "",
        line: int = 0,
        thread_id: str | None = None,
    ) -> None:
        """Accept one record. Never raises on behalf of the record.

        Args:
            level: Severity; records below the minimum level are dropped.
            message: Log text.
            function: Name of the emitting function.
            file: Source file of the emitting code.
            line: Source line of the emitting code.
            thread_id: Emitting thread; defaults to the current thread.
        """
        if self._state is not LoggerState.RUNNING:
            return
        with self._config_lock:
            min_level = self._config.min_log_level
            only_file_names = self._config.only_file_names
        if level < min_level:
            return
        if only_file_names and file:
            file = _PATH_SEPARATORS.split(file)[-1]

        task = LogTask(
            level=level,
            message=message,
            function=function,
            file=file,
            line=line,
            thread_id=thread_id if thread_id is not None else str(threading.get_ident()),
            source_id=self._source.source_id if self._source else None,
        )

        if self._pool is None:
            if self._batch_size > 0:
                self._append_to_batch(task)
            else:
                self.process_task(task)
            return

        work: Callable[[], Any]
        if self._batch_size > 0:
            work = lambda: self._append_to_batch(task)  # noqa: E731
        else:
            work = lambda: self.process_task(task)  # noqa: E731
        try:
            self._pool.enqueue(work)
        except RuntimeError as e:
            self._record_failure(1, 0.0, f"Log record dropped: {e}")

    def log(self, level: LogLevel | str, message: Any, stacklevel: int = 1) -> None:
        """Log ``message`` with the caller's function, file and line."""
        if isinstance(level, str):
            level = LogLevel.from_string(level)
        function, file, line = _caller_info(stacklevel)
        self.log_add(level, str(message), function, file, line)

    def trace(self, message: Any) -> None:
        """Log ``message`` at TRACE level.

        Args:
            message: Log text; non-strings are converted with ``str()``.
        """
        self.log(LogLevel.TRACE, message, stacklevel=2)

    def debug(self, message: Any) -> None:
        """Log ``message`` at DEBUG level.

        Args:
            message: Log text; non-strings are converted with ``str()``.
        """
        self.log(LogLevel.DEBUG, message, stacklevel=2)

    def info(self, message: Any) -> None:
        """Log ``message`` at INFO level.

        Args:
            message: Log text; non-strings are converted with ``str()``.
        """
        self.log(LogLevel.INFO, message, stacklevel=2)

    def warning(self, message: Any) -> None:
        """Log ``message`` at WARNING level.

        Args:
            message: Log text; non-strings are converted with ``str()``.
        """
        self.log(LogLevel.WARNING, message, stacklevel=2)

    def error(self, message: Any) -> None:
        """Log ``message`` at ERROR level.

        Args:
            message: Log text; non-strings are converted with ``str()``.
        """
        self.log(LogLevel.ERROR, message, stacklevel=2)

    def fatal(self, message: Any) -> None:
        """Log ``message`` at FATAL level.

        Args:
            message: Log text; non-strings are converted with ``str()``.
        """
        self.log(LogLevel.FATAL, message, stacklevel=2)

    def stream(self, level: LogLevel, stacklevel: int = 1) -> "LogStream":
        """Builder committing ``stream(level) << a << b`` when it goes out of scope."""
        function, file, line = _caller_info(stacklevel)
        return LogStream(self, level, function, file, line)

    # Processing

    def process_task(self, task: LogTask) -> bool:
        """Write one record and update the single-entry stats."""
        start = time.perf_counter()
        error = ""
        try:
            with self._db_lock:
                ok = self._writer.write_log(task.to_entry())
                if not ok:
                    error = self._backend.get_last_error()
        except Exception as e:
            logger.error("Unexpected error while writing log record", exc_info=True)
            ok, error = False, str(e)
        elapsed_ms = (time.perf_counter() - start) * 1000

        if ok:
            with self._stats_lock:
                self._stats.total_logged += 1
                self._add_process_time(elapsed_ms)
        else:
            self._record_failure(1, elapsed_ms, f"Failed to write log record: {error}")
        return ok

    def process_batch(self, batch: Sequence[LogTask]) -> bool:
        """Write a batch with one INSERT and update the batch stats."""
        if not batch:
            return True
        start = time.perf_counter()
        error = ""
        try:
            with self._db_lock:
                ok = self._writer.write_log_batch([task.to_entry() for task in batch])
                if not ok:
                    error = self._backend.get_last_error()
        except Exception as e:
            logger.error("Unexpected error while writing log batch", exc_info=True)
            ok, error = False, str(e)
        elapsed_ms = (time.perf_counter() - start) * 1000

        size = len(batch)
        with self._stats_lock:
            stats = self._stats
            stats.max_batch_size = max(stats.max_batch_size, size)
            stats.min_batch_size = size if stats.flush_count == 0 else min(stats.min_batch_size, size)
            stats.avg_batch_size = (stats.avg_batch_size * stats.flush_count + size) / (stats.flush_count + 1)
            stats.flush_count += 1
            if ok:
                stats.total_logged += size
                self._add_process_time(elapsed_ms)
        if not ok:
            self._record_failure(size, elapsed_ms, f"Failed to write batch of {size} log records: {error}")
        return ok

    def _add_process_time(self, elapsed_ms: float) -> None:
        # Caller holds the stats lock
        self._stats.total_process_time_ms += elapsed_ms
        self._stats.max_process_time_ms = max(self._stats.max_process_time_ms, elapsed_ms)

    def _record_failure(self, count: int, elapsed_ms: float, message: str) -> None:
        with self._stats_lock:
            self._stats.total_failed += count
            self._add_process_time(elapsed_ms)
        self._error_sink.write(message)

    def _append_to_batch(self, task: LogTask) -> None:
        with self._batch_lock:
            if self._batch_size <= 0:
                self.process_task(task)
                return
            self._batch.append(task)
            if len(self._batch) >= self._batch_size:
                batch, self._batch = self._batch, []
                self.process_batch(batch)

    def flush(self) -> bool:
        """Write the buffered batch now, regardless of its size.

        In async mode the task queue is drained first so records already
        accepted are part of the flush.

        Returns:
            True if the buffer was written (or empty).
        """
        self.wait_until_empty()
        with self._batch_lock:
            batch, self._batch = self._batch, []
            return self.process_batch(batch)

    def set_batch_size(self, size: int) -> None:
        """Change the auto-flush threshold; 0 disables batching and flushes.

        Raises:
            InvalidArgumentError: If ``size`` is negative or above the dialect cap.
            UnsupportedError: If the dialect cannot batch and ``size`` > 0.
        """
        db_type = self.get_database_type()
        if size < 0:
            raise InvalidArgumentError(f"Batch size cannot be negative ({size})", operation="set_batch_size")
        if size > 0 and not dialect.supports_batch(db_type):
            raise UnsupportedError(f"Batch insert is not supported for {db_type.value}", operation="set_batch_size")
        if size > dialect.max_batch_size(db_type):
            raise InvalidArgumentError(
                f"Batch size for {db_type.value} cannot exceed {dialect.max_batch_size(db_type)} ({size})",
                operation="set_batch_size",
            )

        with self._config_lock:
            self._config.use_batch = size > 0
            if size > 0:
                self._config.batch_size = size
        with self._batch_lock:
            if size == 0 or size < len(self._batch):
                batch, self._batch = self._batch, []
                self.process_batch(batch)
            self._batch_size = size

    def wait_until_empty(self, timeout: float = DEFAULT_WAIT_TIMEOUT) -> bool:
        """Wait for the task queue to drain.

        Returns:
            True if drained within ``timeout`` seconds (always True in sync mode).
        """
        if self._pool is None or self._pool.is_shut_down:
            return True
        deadline = time.monotonic() + timeout
        while not self._pool.is_queue_empty():
            if time.monotonic() >= deadline:
                self._error_sink.write(
                    f"Timed out after {timeout}s waiting for {self._pool.pending_count()} queued log tasks"
                )
                return False
            time.sleep(WAIT_POLL_INTERVAL)
        return True

    # Reads

    def _ensure_open(self, operation: str) -> None:
        if self._state in (LoggerState.SHUTTING_DOWN, LoggerState.DESTROYED):
            raise SQLoggerError(f"Logger {self._config.name!r} is shut down", operation=operation)

    def get_logs_by_filters(self, filters: Sequence[Filter] = (), limit: int = -1, offset: int = -1) -> list[LogEntry]:
        """Entries matching all filters, ordered by timestamp then id.

        Pending records are drained first (bounded wait). Driver failures are
        written to the error sink and yield an empty list.

        Raises:
            InvalidArgumentError: For an empty or unknown filter operator.
        """
        self._ensure_open("get_logs")
        for flt in filters:
            flt.validate()
        self.wait_until_empty()
        with self._db_lock:
            try:
                return self._reader.get_logs_by_filters(filters, limit, offset)
            except DriverFailureError as e:
                self._error_sink.write(f"Failed to read logs: {e.driver_message or e}")
                return []

    def get_all_logs(self, limit: int = -1, offset: int = -1) -> list[LogEntry]:
        """Get every stored entry.

        Args:
            limit: Maximum number of entries; negative for no limit.
            offset: Number of entries to skip; negative for none.

        Returns:
            Entries ordered by timestamp then id.
        """
        return self.get_logs_by_filters((), limit, offset)

    def get_logs_by_level(self, level: LogLevel | str, limit: int = -1, offset: int = -1) -> list[LogEntry]:
        """Get entries with exactly the given level.

        Args:
            level: Level as enum or name (case-insensitive).
            limit: Maximum number of entries; negative for no limit.
            offset: Number of entries to skip; negative for none.

        Returns:
            Matching entries ordered by timestamp then id.
        """
        if isinstance(level, str):
            level = LogLevel.from_string(level)
        return self.get_logs_by_filters([Filter(FIELD_LOG_LEVEL, "=", level.name)], limit, offset)

    def get_logs_by_file(self, file: str, limit: int = -1, offset: int = -1) -> list[LogEntry]:
        """Get entries emitted from ``file`` (as stored, see ``only_file_names``)."""
        return self.get_logs_by_filters([Filter(FIELD_LOG_FILE, "=", file)], limit, offset)

    def get_logs_by_function(self, function: str, limit: int = -1, offset: int = -1) -> list[LogEntry]:
        """Get entries emitted from the function named ``function``."""
        return self.get_logs_by_filters([Filter(FIELD_LOG_FUNCTION, "=", function)], limit, offset)

    def get_logs_by_thread_id(self, thread_id: str, limit: int = -1, offset: int = -1) -> list[LogEntry]:
        """Get entries emitted by the thread with id ``thread_id``."""
        return self.get_logs_by_filters([Filter(FIELD_LOG_THREAD_ID, "=", thread_id)], limit, offset)

    def get_logs_by_timestamp_range(
        self,
        start: datetime | str,
        end: datetime | str,
        limit: int = -1,
        offset: int = -1,
    ) -> list[LogEntry]:
        """Get entries with ``start <= timestamp <= end`` (inclusive).

        Args:
            start: Lower bound, as datetime or ``YYYY-MM-DD HH:MM:SS`` text.
            end: Upper bound, same forms as ``start``.
            limit: Maximum number of entries; negative for no limit.
            offset: Number of entries to skip; negative for none.

        Returns:
            Matching entries ordered by timestamp then id.
        """
        filters = [
            Filter(FIELD_LOG_TIMESTAMP, ">=", _format_timestamp(start)),
            Filter(FIELD_LOG_TIMESTAMP, "<=", _format_timestamp(end)),
        ]
        return self.get_logs_by_filters(filters, limit, offset)

    def get_logs_by_source_id(self, source_id: int, limit: int = -1, offset: int = -1) -> list[LogEntry]:
        """Get entries written under the source with id ``source_id``.

        Raises:
            UnsupportedError: If source info is disabled.
        """
        self._require_source_info("get_logs_by_source_id")
        return self.get_logs_by_filters([Filter(FIELD_LOG_SOURCE_ID, "=", source_id)], limit, offset)

    def get_logs_by_source_uuid(self, uuid: str, limit: int = -1, offset: int = -1) -> list[LogEntry]:
        """Get entries written under the source with ``uuid``.

        Returns:
            Matching entries, or an empty list if no such source exists.

        Raises:
            UnsupportedError: If source info is disabled.
        """
        source = self.get_source_by_uuid(uuid)
        if source is None:
            return []
        return self.get_logs_by_source_id(source.source_id, limit, offset)

    # Sources

    def _require_source_info(self, operation: str) -> None:
        if not self._config.use_source_info:
            raise UnsupportedError(f"Source info is disabled for logger {self._config.name!r}", operation=operation)

    def get_source(self) -> SourceInfo | None:
        """The source this logger writes under, if source info is enabled."""
        return replace(self._source) if self._source else None

    def add_source(self, name: str, uuid: str) -> int:
        """Register a source row.

        Returns:
            The new source id, or SOURCE_NOT_FOUND if the insert failed.

        Raises:
            InvalidArgumentError: If ``uuid`` is not a canonical UUID.
        """
        self._require_source_info("add_source")
        self._ensure_open("add_source")
        if not is_valid_uuid(uuid):
            raise InvalidArgumentError(f"UUID is not correct: {uuid}", operation="add_source")
        with self._db_lock:
            return self._writer.add_source(name, uuid)

    def get_source_by_id(self, source_id: int) -> SourceInfo | None:
        """Look up a source by id.

        Args:
            source_id: Primary key of the source row.

        Returns:
            The source, or None if there is no such row.

        Raises:
            UnsupportedError: If source info is disabled.
        """
        self._require_source_info("get_source_by_id")
        self._ensure_open("get_source_by_id")
        with self._db_lock:
            return self._reader.get_source_by_id(source_id)

    def get_source_by_uuid(self, uuid: str) -> SourceInfo | None:
        """Look up a source by uuid.

        Returns:
            The source, or None if there is no such row.
        """
        self._require_source_info("get_source_by_uuid")
        self._ensure_open("get_source_by_uuid")
        with self._db_lock:
            return self._reader.get_source_by_uuid(uuid)

    def get_source_by_name(self, name: str) -> SourceInfo | None:
        """Look up a source by name.

        Returns:
            The first source with that name, or None.
        """
        self._require_source_info("get_source_by_name")
        self._ensure_open("get_source_by_name")
        with self._db_lock:
            return self._reader.get_source_by_name(name)

    def get_all_sources(self) -> list[SourceInfo]:
        """Get every registered source.

        Returns:
            Sources ordered by id; empty if the read fails.
        """
        self._require_source_info("get_all_sources")
        self._ensure_open("get_all_sources")
        with self._db_lock:
            try:
                return self._reader.get_all_sources()
            except DriverFailureError as e:
                self._error_sink.write(f"Failed to read sources: {e.driver_message or e}")
                return []

    def clear_logs(self, clear_sources: bool = False) -> bool:
        """Delete all log rows, and optionally all sources.

        When sources are cleared, this logger's own source is registered
        again so later records keep a valid reference.
        """
        self._ensure_open("clear_logs")
        self.wait_until_empty()
        with self._db_lock:
            ok = self._writer.clear_logs()
            if ok and clear_sources and self._config.use_source_info:
                ok = self._writer.clear_sources()
                if ok and self._source is not None:
                    self._source.source_id = self._writer.add_source(self._source.name, self._source.uuid)
                    ok = self._source.source_id != SOURCE_NOT_FOUND
            if not ok:
                self._error_sink.write(f"Failed to clear logs: {self._backend.get_last_error()}")
            return ok

    # Stats

    def get_stats(self) -> Stats:
        """Get a snapshot of the write statistics.

        Returns:
            A copy; later writes do not change it.
        """
        with self._stats_lock:
            return replace(self._stats)

    def reset_stats(self) -> None:
        """Zero all counters."""
        with self._stats_lock:
            self._stats = Stats()

    def get_formatted_stats(self) -> str:
        """Statistics rendered as a multi-line report."""
        return self.get_stats().format()

    # Export

    def export_to(
        self,
        path: str | Path,
        fmt: export.ExportFormat | str,
        entries: Sequence[LogEntry] | None = None,
        delimiter: str = ",",
        include_field_names: bool = True,
    ) -> Path:
        """Export ``entries`` (all logs by default) to a file.

        Returns:
            Path of the written file.
        """
        if entries is None:
            entries = self.get_all_logs()
        return export.export_to(
            path,
            fmt,
            entries,
            delimiter=delimiter,
            include_field_names=include_field_names,
            include_source=self._config.use_source_info,
        )

    # Settings

    def set_log_level(self, level: LogLevel | str) -> None:
        """Change the minimum level of accepted records.

        Args:
            level: New minimum level, as enum or name.

        Raises:
            InvalidArgumentError: If ``level`` is UNKNOWN or not a level name.
        """
        if isinstance(level, str):
            level = LogLevel.from_string(level)
        if level == LogLevel.UNKNOWN:
            raise InvalidArgumentError("Cannot set log level to UNKNOWN", operation="set_log_level")
        with self._config_lock:
            self._config.min_log_level = level

    def get_min_log_level(self) -> LogLevel:
        """Current minimum level of accepted records."""
        with self._config_lock:
            return self._config.min_log_level

    def get_num_threads(self) -> int:
        """Number of worker threads; 0 in sync mode."""
        return self._pool.num_threads if self._pool is not None else 0

    def is_sync_mode(self) -> bool:
        """True if records are written in the calling thread."""
        return self._pool is None

    def is_only_file_names(self) -> bool:
        """True if directories are stripped from stored file paths."""
        with self._config_lock:
            return self._config.only_file_names

    def is_batch_enabled(self) -> bool:
        """True if records are buffered and written in batches."""
        return self._batch_size > 0

    def get_batch_size(self) -> int:
        """Auto-flush threshold; 0 when batching is off."""
        return self._batch_size

    def get_database_type(self) -> DatabaseType:
        """Database type of the backend in use."""
        return self._backend.get_database_type()

    def get_name(self) -> str:
        """Name the logger was configured with."""
        return self._config.name

    def get_config(self) -> LoggerConfig:
        """Get the logger's configuration.

        Returns:
            A copy reflecting runtime changes such as the log level.
        """
        with self._config_lock:
            return self._config.copy()

    def get_state(self) -> LoggerState:
        """Current lifecycle state."""
        return self._state

    def get_error_sink(self) -> ErrorSink:
        """Error sink receiving write failures."""
        return self._error_sink

    # Lifecycle

    def shutdown(self, timeout: float | None = None) -> None:
        """Drain pending records, flush the batch and release the backend.

        One-way: a shut down logger never accepts records again. Tasks still
        queued when ``timeout`` expires are discarded and counted as failed.
        """
        with self._state_lock:
            if self._state is not LoggerState.RUNNING:
                return
            self._state = LoggerState.SHUTTING_DOWN

        if self._pool is not None:
            if not self._pool.wait_for_completion(timeout):
                logger.warning(f"Logger {self._config.name!r} shutting down before the queue drained")
            discarded = self._pool.shutdown()
            if discarded:
                self._record_failure(discarded, 0.0, f"Discarded {discarded} queued log records on shutdown")

        with self._batch_lock:
            batch, self._batch = self._batch, []
            self.process_batch(batch)

        with self._db_lock:
            self._backend.disconnect()
        self._state = LoggerState.DESTROYED
        logger.info(f"Logger {self._config.name!r} shut down")

    def __enter__(self) -> "SQLogger":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.shutdown()

    def __repr__(self) -> str:
        return f"SQLogger(name={self._config.name!r}, database_type={self.get_database_type().value}, state={self._state.value})"


class LogStream:
    """Accumulates ``<<`` operands and logs them once when committed.

    Commit happens on ``commit()``, on leaving a ``with`` block, or when
    the stream object is released, so ``log_info(lg) << "x=" << x`` logs
    as a single statement.
    """

    def __init__(self, target: SQLogger, level: LogLevel, function: str = "", file: str = "", line: int = 0):
        self._target = target
        self._level = level
        self._function = function
        self._file = file
        self._line = line
        self._parts: list[str] = []
        self._committed = False

    def __lshift__(self, value: Any) -> "LogStream":
        self._parts.append(str(value))
        return self

    def getvalue(self) -> str:
        """Text accumulated so far."""
        return "".join(self._parts)

    def commit(self) -> None:
        """Log the accumulated text once; later calls do nothing."""
        if self._committed:
            return
        self._committed = True
        self._target.log_add(self._level, self.getvalue(), self._function, self._file, self._line)

    def __enter__(self) -> "LogStream":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.commit()

    def __del__(self) -> None:
        self.commit()


def _stream(target: SQLogger, level: LogLevel) -> LogStream:
    function, file, line = _caller_info(2)
    return LogStream(target, level, function, file, line)


def log_trace(target: SQLogger) -> LogStream:
    """Start a TRACE stream on ``target``: ``log_trace(lg) << "x=" << x``."""
    return _stream(target, LogLevel.TRACE)


def log_debug(target: SQLogger) -> LogStream:
    """Start a DEBUG stream on ``target``."""
    return _stream(target, LogLevel.DEBUG)


def log_info(target: SQLogger) -> LogStream:
    """Start an INFO stream on ``target``."""
    return _stream(target, LogLevel.INFO)


def log_warning(target: SQLogger) -> LogStream:
    """Start a WARNING stream on ``target``."""
    return _stream(target, LogLevel.WARNING)


def log_error(target: SQLogger) -> LogStream:
    """Start an ERROR stream on ``target``."""
    return _stream(target, LogLevel.ERROR)


def log_fatal(target: SQLogger) -> LogStream:
    """Start a FATAL stream on ``target``."""
    return _stream(target, LogLevel.FATAL)
