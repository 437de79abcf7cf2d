"""Reads log entries and sources back from a backend."""

from __future__ import annotations

import logging
from typing import Sequence

from sqlogger.database.base import Backend, Row
from sqlogger.database.dialect import DatabaseType
from sqlogger.database.query_builder import QueryBuilder
from sqlogger.errors import DriverFailureError
from sqlogger.models import (
    FIELD_LOG_FILE,
    FIELD_LOG_FUNCTION,
    FIELD_LOG_ID,
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
    SOURCES_TABLE_NAME,
    Filter,
    LogEntry,
    SourceInfo,
)

logger = logging.getLogger(__name__)

# Reads are ordered by ingress time, ties broken by insertion id
LOG_ORDER = (FIELD_LOG_TIMESTAMP, FIELD_LOG_ID)


def _to_int(value: str | None, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except ValueError:
        return default


def _timestamp_text(value: str | None) -> str:
    # Server drivers may render DATETIME with fractional seconds or a 'T'
    text = (value or "").replace("T", " ")
    return text.split(".")[0]


class LogReader:
    """Filtered reads of the logs table and source lookups.

    Attributes:
        backend: Backend the queries run on.
        table_name: Name of the logs table.
        use_source_info: Whether entries are joined with their source.
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

    def get_logs_by_filters(
        self,
        filters: Sequence[Filter] = (),
        limit: int = -1,
        offset: int = -1,
    ) -> list[LogEntry]:
        """Return entries matching all filters, ordered by timestamp.

        Args:
            filters: Conditions AND-ed together.
            limit: Maximum number of rows; negative for no limit.
            offset: Rows to skip; only honoured with a positive limit.

        Returns:
            Matching entries.

        Raises:
            InvalidArgumentError: If a filter has an empty or unknown operator
                or a non-filterable field. No SQL is issued in that case.
            DriverFailureError: If the backend rejects the query.
        """
        for flt in filters:
            flt.validate()

        sql = QueryBuilder.build_select(
            self.db_type, self.table_name, filters=filters, order_by=LOG_ORDER, limit=limit, offset=offset
        )
        rows = self.backend.query_or_raise(sql, QueryBuilder.filter_params(filters))
        entries = [self._row_to_entry(row) for row in rows]

        if self.use_source_info:
            self._attach_sources(entries)
        return entries

    def _row_to_entry(self, row: Row) -> LogEntry:
        source_id = None
        if self.use_source_info and row.get(FIELD_LOG_SOURCE_ID) is not None:
            source_id = _to_int(row.get(FIELD_LOG_SOURCE_ID))
        return LogEntry(
            id=_to_int(row.get(FIELD_LOG_ID)),
            timestamp=_timestamp_text(row.get(FIELD_LOG_TIMESTAMP)),
            level=row.get(FIELD_LOG_LEVEL) or "",
            message=row.get(FIELD_LOG_MESSAGE) or "",
            function=row.get(FIELD_LOG_FUNCTION) or "",
            file=row.get(FIELD_LOG_FILE) or "",
            line=_to_int(row.get(FIELD_LOG_LINE)),
            thread_id=row.get(FIELD_LOG_THREAD_ID) or "",
            source_id=source_id,
        )

    def _attach_sources(self, entries: list[LogEntry]) -> None:
        cache: dict[int, SourceInfo | None] = {}
        for entry in entries:
            if entry.source_id is None:
                continue
            if entry.source_id not in cache:
                cache[entry.source_id] = self.get_source_by_id(entry.source_id)
            source = cache[entry.source_id]
            # A dangling reference leaves the source fields empty
            entry.source_uuid = source.uuid if source else ""
            entry.source_name = source.name if source else ""

    def _get_source(self, field: str, value: object) -> SourceInfo | None:
        sql = QueryBuilder.build_select(
            self.db_type,
            self.sources_table_name,
            filters=[Filter(field, "=", value)],
            limit=1,
        )
        rows = self.backend.query(sql, [value])
        if not rows:
            error = self.backend.get_last_error()
            if error:
                logger.warning(f"Source lookup by {field} failed: {error}")
            return None
        return self._row_to_source(rows[0])

    @staticmethod
    def _row_to_source(row: Row) -> SourceInfo:
        return SourceInfo(
            uuid=row.get(FIELD_SOURCES_UUID) or "",
            name=row.get(FIELD_SOURCES_NAME) or "",
            source_id=_to_int(row.get(FIELD_SOURCES_ID), -1),
        )

    def get_source_by_id(self, source_id: int) -> SourceInfo | None:
        return self._get_source(FIELD_SOURCES_ID, source_id)

    def get_source_by_uuid(self, uuid: str) -> SourceInfo | None:
        return self._get_source(FIELD_SOURCES_UUID, uuid)

    def get_source_by_name(self, name: str) -> SourceInfo | None:
        return self._get_source(FIELD_SOURCES_NAME, name)

    def get_all_sources(self) -> list[SourceInfo]:
        """Return every source ordered by id.

        Raises:
            DriverFailureError: If the backend rejects the query.
        """
        sql = QueryBuilder.build_select(self.db_type, self.sources_table_name, order_by=FIELD_SOURCES_ID)
        try:
            rows = self.backend.query_or_raise(sql)
        except DriverFailureError:
            logger.error(f"Failed to read sources from {self.sources_table_name}")
            raise
        return [self._row_to_source(row) for row in rows]
