"""Data models for the sqlogger pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum
from typing import Any

from sqlogger.errors import InvalidArgumentError

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"

LOGS_TABLE_NAME = "logs"
SOURCES_TABLE_NAME = "sources"

# Column names of the logs table
FIELD_LOG_ID = "id"
FIELD_LOG_SOURCE_ID = "source_id"
FIELD_LOG_TIMESTAMP = "timestamp"
FIELD_LOG_LEVEL = "level"
FIELD_LOG_MESSAGE = "message"
FIELD_LOG_FUNCTION = "func"
FIELD_LOG_FILE = "file"
FIELD_LOG_LINE = "line"
FIELD_LOG_THREAD_ID = "thread_id"

# Column names of the sources table
FIELD_SOURCES_ID = "id"
FIELD_SOURCES_UUID = "uuid"
FIELD_SOURCES_NAME = "name"

SOURCE_NOT_FOUND = -1
SOURCE_DEFAULT_NAME = "Default"


class LogLevel(IntEnum):
    """Ordinal log severity. Names are the UPPERCASE strings stored in the database."""

    UNKNOWN = -1
    TRACE = 0
    DEBUG = 1
    INFO = 2
    WARNING = 3
    ERROR = 4
    FATAL = 5

    def __str__(self) -> str:
        return self.name

    def to_string(self) -> str:
        """Return the UPPERCASE level name."""
        return self.name

    @classmethod
    def from_string(cls, value: str) -> "LogLevel":
        """Parse a level name case-insensitively.

        Args:
            value: Level name such as ``"info"`` or ``"WARNING"``.

        Returns:
            The matching LogLevel.

        Raises:
            InvalidArgumentError: If the name is not a known level.
        """
        try:
            return cls[value.strip().upper()]
        except (KeyError, AttributeError) as e:
            raise InvalidArgumentError(
                f"Unknown log level: {value!r}", operation="parse_level"
            ) from e

    @classmethod
    def from_logging_level(cls, level: int) -> "LogLevel":
        """Convert a numeric ``logging`` level to LogLevel."""
        if level >= 50:
            return cls.FATAL
        if level >= 40:
            return cls.ERROR
        if level >= 30:
            return cls.WARNING
        if level >= 20:
            return cls.INFO
        if level >= 10:
            return cls.DEBUG
        return cls.TRACE


@dataclass
class LogEntry:
    """A persisted log record.

    ``id`` is assigned by the backend and stays 0 until the row is read back.
    The source fields are only populated when source info is enabled.
    """

    id: int = 0
    timestamp: str = ""
    level: str = ""
    message: str = ""
    function: str = ""
    file: str = ""
    line: int = 0
    thread_id: str = ""
    source_id: int | None = None
    source_uuid: str = ""
    source_name: str = ""

    def to_dict(self, include_source: bool = False) -> dict[str, Any]:
        """Convert log entry to dictionary."""
        data: dict[str, Any] = {
            "id": self.id,
            "timestamp": self.timestamp,
            "level": self.level,
            "message": self.message,
            "function": self.function,
            "file": self.file,
            "line": self.line,
            "thread_id": self.thread_id,
        }
        if include_source:
            data["source_id"] = self.source_id
            data["source_uuid"] = self.source_uuid
            data["source_name"] = self.source_name
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "LogEntry":
        """Create log entry from dictionary."""
        level = data.get("level", "")
        return cls(
            id=int(data.get("id") or 0),
            timestamp=data["timestamp"].strftime(TIMESTAMP_FORMAT)
                if isinstance(data.get("timestamp"), datetime)
                else data.get("timestamp", ""),
            level=level.name if isinstance(level, LogLevel) else level,
            message=data.get("message", ""),
            function=data.get("function", ""),
            file=data.get("file", ""),
            line=int(data.get("line") or 0),
            thread_id=data.get("thread_id", ""),
            source_id=data.get("source_id"),
            source_uuid=data.get("source_uuid", ""),
            source_name=data.get("source_name", ""),
        )


@dataclass
class SourceInfo:
    """Identity of the process or node producing logs."""

    uuid: str
    name: str
    source_id: int = SOURCE_NOT_FOUND


@dataclass
class Filter:
    """A single ``field op value`` condition of a log query.

    ``value`` is a sequence for ``IN``/``NOT IN`` and is ignored for
    ``IS NULL``/``IS NOT NULL``.
    """

    field: str
    op: str
    value: Any = None

    ALLOWED_FIELDS = frozenset({
        FIELD_LOG_LEVEL,
        FIELD_LOG_FILE,
        FIELD_LOG_FUNCTION,
        FIELD_LOG_THREAD_ID,
        FIELD_LOG_TIMESTAMP,
        FIELD_LOG_SOURCE_ID,
    })

    ALLOWED_OPS = frozenset({
        "=", ">", "<", ">=", "<=", "!=", "<>",
        "LIKE", "NOT LIKE", "IN", "NOT IN", "IS NULL", "IS NOT NULL",
    })

    @property
    def normalized_op(self) -> str:
        """Operator in canonical form (upper case, single spaces)."""
        return " ".join((self.op or "").upper().split())

    @property
    def takes_value(self) -> bool:
        return self.normalized_op not in ("IS NULL", "IS NOT NULL")

    @property
    def is_list(self) -> bool:
        return self.normalized_op in ("IN", "NOT IN")

    def params(self) -> list[Any]:
        """Positional parameters this filter contributes to a query."""
        if not self.takes_value:
            return []
        if self.is_list:
            return list(self.value) if isinstance(self.value, (list, tuple, set, frozenset)) else [self.value]
        return [self.value]

    def validate(self, check_field: bool = True) -> None:
        """Check the operator (and field) against the allowed sets.

        Raises:
            InvalidArgumentError: If the operator is empty or unknown, or
                the field is not a filterable column.
        """
        if not self.normalized_op:
            raise InvalidArgumentError("Filter operator is empty", operation="validate_filter")
        if self.normalized_op not in self.ALLOWED_OPS:
            raise InvalidArgumentError(
                f"Filter operator not allowed: {self.op!r}", operation="validate_filter"
            )
        if check_field and self.field not in self.ALLOWED_FIELDS:
            raise InvalidArgumentError(
                f"Filter field not allowed: {self.field!r}", operation="validate_filter"
            )
        if self.is_list and not self.params():
            raise InvalidArgumentError(
                f"Filter {self.normalized_op} needs at least one value", operation="validate_filter"
            )


@dataclass
class LogTask:
    """A log record accepted at ingress and not yet persisted."""

    level: LogLevel
    message: str
    function: str
    file: str
    line: int
    thread_id: str
    timestamp: datetime = field(default_factory=datetime.now)
    source_id: int | None = None

    def to_entry(self) -> LogEntry:
        """Build the LogEntry written to the backend.

        The ingress timestamp is formatted here; it stays authoritative
        for ordering regardless of when the write happens.
        """
        return LogEntry(
            id=0,
            timestamp=self.timestamp.strftime(TIMESTAMP_FORMAT),
            level=self.level.name,
            message=self.message,
            function=self.function,
            file=self.file,
            line=max(int(self.line), 0),
            thread_id=self.thread_id,
            source_id=self.source_id,
        )


@dataclass
class Stats:
    """Counters and running aggregates of a logger's write activity."""

    total_logged: int = 0
    total_failed: int = 0
    max_batch_size: int = 0
    min_batch_size: int = 0
    avg_batch_size: float = 0.0
    max_process_time_ms: float = 0.0
    total_process_time_ms: float = 0.0
    flush_count: int = 0

    @property
    def avg_process_time_ms(self) -> float:
        processed = self.total_logged + self.total_failed
        return self.total_process_time_ms / processed if processed > 0 else 0.0

    def to_dict(self) -> dict[str, Any]:
        """Convert stats to dictionary."""
        return {
            "total_logged": self.total_logged,
            "total_failed": self.total_failed,
            "max_batch_size": self.max_batch_size,
            "min_batch_size": self.min_batch_size,
            "avg_batch_size": self.avg_batch_size,
            "max_process_time_ms": self.max_process_time_ms,
            "total_process_time_ms": self.total_process_time_ms,
            "avg_process_time_ms": self.avg_process_time_ms,
            "flush_count": self.flush_count,
        }

    def format(self) -> str:
        """Render the statistics as a human-readable block."""
        return (
            "Logging statistics:\n"
            "[Entries]\n"
            f"Total entries: {self.total_logged}\n"
            f"Failed entries: {self.total_failed}\n"
            "[Batch statistics]\n"
            f"Max size: {self.max_batch_size}\n"
            f"Min size: {self.min_batch_size}\n"
            f"Avg size: {self.avg_batch_size:.2f}\n"
            f"Flush operations: {self.flush_count}\n"
            "[Performance]\n"
            f"Max process time: {self.max_process_time_ms:.2f} ms\n"
            f"Avg process time: {self.avg_process_time_ms:.2f} ms\n"
        )
