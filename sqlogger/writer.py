"""Writes log entries and sources through a backend."""

from __future__ import annotations

import logging
from typing import Any, Sequence

from sqlogger.database import dialect
from sqlogger.database.base import Backend
from sqlogger.database.dialect import DatabaseType
from sqlogger.database.query_builder import QueryBuilder
from sqlogger.database.schema import LOG_INDEX_COLUMNS, index_name, logs_table, sources_table
from sqlogger.errors import DriverFailureError
from sqlogger.models import (
    FIELD_LOG_FILE,
    FIELD_LOG_FUNCTION,
    FIELD_LOG_LEVEL,
    FIELD_LOG_LINE,
    FIELD_LOG_MESSAGE,
    FIELD_LOG_SOURCE_ID,
    FIELD_LOG_THREAD_ID,
    FIELD_LOG_TIMESTAMP,
    FIELD_SOURCES_ID,
    FIELD_SOURCES_NAME,
    FIELD_SOURCES_UUID,
    LOGS_TABLE_NAME,
    SOURCE_NOT_FOUND,
    SOURCES_TABLE_NAME,
    LogEntry,
)

logger = logging.getLogger(__name__)

LOG_COLUMNS = (
    FIELD_LOG_TIMESTAMP,
    FIELD_LOG_LEVEL,
    FIELD_LOG_MESSAGE,
    FIELD_LOG_FUNCTION,
    FIELD_LOG_FILE,
    FIELD_LOG_LINE,
    FIELD_LOG_THREAD_ID,
)


class LogWriter:
    """Schema installation and inserts for the logs and sources tables.

    The writer borrows the backend; the owning logger serializes access.

    Attributes:
        backend: Backend the statements run on.
        table_name: Name of the logs table.
        use_source_info: Whether the logs table carries ``source_id``.
    """

    def __init__(
        self,
        backend: Backend,
        table_name: str = LOGS_TABLE_NAME,
        use_source_info: bool = False,
        sources_table_name: str = SOURCES_TABLE_NAME,
    ):
        self.backend = backend
        self.table_name = table_name
        self.use_source_info = use_source_info
        self.sources_table_name = sources_table_name

    @property
    def db_type(self) -> DatabaseType:
        return self.backend.get_database_type()

    @property
    def columns(self) -> tuple[str, ...]:
        if self.use_source_info:
            return (FIELD_LOG_SOURCE_ID, *LOG_COLUMNS)
        return LOG_COLUMNS

    def _run_ddl(self, sql: str, what: str) -> None:
        if not sql:
            return
        if not self.backend.execute(sql):
            error = self.backend.get_last_error()
            raise DriverFailureError(
                f"Failed to create {what}: {error}", driver_message=error, operation="create_schema"
            )

    def create_logs_table(self) -> None:
        """Create the logs table if it does not exist.

        Raises:
            DriverFailureError: If the DDL is rejected.
        """
        table = logs_table(self.table_name, self.use_source_info, self.sources_table_name)
        self._run_ddl(QueryBuilder.build_create_table(table, self.db_type), f"table {self.table_name}")
        logger.debug(f"Logs table {self.table_name} ready")

    def create_sources_table(self) -> None:
        """Create the sources table if it does not exist."""
        table = sources_table(self.sources_table_name)
        self._run_ddl(QueryBuilder.build_create_table(table, self.db_type), f"table {self.sources_table_name}")

    def create_indexes(self) -> None:
        """Create one index per indexed log column.

        MySQL has no ``ADD INDEX IF NOT EXISTS``, so existing indexes are
        probed first there.
        """
        if self.db_type in (DatabaseType.MOCK, DatabaseType.MONGODB):
            return
        for column in LOG_INDEX_COLUMNS:
            name = index_name(self.table_name, column)
            if self.db_type == DatabaseType.MYSQL:
                probe = QueryBuilder.build_index_exists_query(self.db_type, name, self.table_name)
                if self.backend.query_or_raise(probe):
                    continue
            sql = QueryBuilder.build_create_index(self.db_type, self.table_name, name, [column])
            self._run_ddl(sql, f"index {name}")

    def _entry_values(self, entry: LogEntry) -> list[Any]:
        values: list[Any] = [
            entry.timestamp,
            entry.level,
            entry.message,
            entry.function,
            entry.file,
            entry.line,
            entry.thread_id,
        ]
        if self.use_source_info:
            source_id = entry.source_id
            values.insert(0, source_id if source_id is not None and source_id != SOURCE_NOT_FOUND else None)
        return values

    def write_log(self, entry: LogEntry) -> bool:
        """Insert one entry; False on driver failure (see backend last error)."""
        sql = QueryBuilder.build_insert(self.db_type, self.table_name, self.columns)
        return self.backend.execute(sql, self._entry_values(entry))

    def write_log_batch(self, entries: Sequence[LogEntry]) -> bool:
        """Insert all entries with one multi-row INSERT.

        An empty batch is a successful no-op.
        """
        if not entries:
            return True
        sql = QueryBuilder.build_batch_insert(self.db_type, self.table_name, self.columns, len(entries))
        params: list[Any] = []
        for entry in entries:
            params.extend(self._entry_values(entry))
        return self.backend.execute(sql, params)

    def clear_logs(self) -> bool:
        return self.backend.execute(QueryBuilder.build_delete(self.db_type, self.table_name))

    def clear_sources(self) -> bool:
        return self.backend.execute(QueryBuilder.build_delete(self.db_type, self.sources_table_name))

    def add_source(self, name: str, uuid: str) -> int:
        """Insert a source row and return its generated id.

        Returns:
            The new source id, or SOURCE_NOT_FOUND on failure.
        """
        sql = QueryBuilder.build_insert(self.db_type, self.sources_table_name, [FIELD_SOURCES_UUID, FIELD_SOURCES_NAME])
        if not self.backend.execute(sql, [uuid, name]):
            logger.error(f"Failed to add source {name} ({uuid}): {self.backend.get_last_error()}")
            return SOURCE_NOT_FOUND

        rows = self.backend.query(
            dialect.last_insert_id_expression(self.db_type, self.sources_table_name, FIELD_SOURCES_ID)
        )
        if not rows:
            logger.error(f"Failed to read id of source {name}: {self.backend.get_last_error()}")
            return SOURCE_NOT_FOUND
        try:
            return int(next(iter(rows[0].values())))
        except (TypeError, ValueError):
            return SOURCE_NOT_FOUND
