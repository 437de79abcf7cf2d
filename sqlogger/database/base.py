"""Base class for database backends."""

from __future__ import annotations

import logging
import threading
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Any, Iterator, Sequence

from sqlogger.database.dialect import DatabaseType
from sqlogger.errors import DriverFailureError

logger = logging.getLogger(__name__)

Row = dict[str, "str | None"]

ERR_MSG_DROP_NOT_ALLOWED = "Dropping databases is not allowed for this backend instance"
ERR_MSG_NOT_CONNECTED = "Database is not connected"


def row_to_text(columns: Sequence[str], values: Sequence[Any]) -> Row:
    """Map a driver row to column -> text, keeping NULL as None."""
    row: Row = {}
    for column, value in zip(columns, values):
        if value is None:
            row[column] = None
        elif isinstance(value, bytes):
            row[column] = value.decode("utf-8", errors="replace")
        else:
            row[column] = str(value)
    return row


class Backend(ABC):
    """Uniform data-access contract implemented by every backend.

    Methods report failure through their return value; the driver's last
    error text is kept verbatim and available from ``get_last_error()``.
    Driver exceptions never escape these methods.

    Attributes:
        connection_string: The string the backend was opened with.
        allow_drop: Whether ``drop_database_if_exists`` may drop anything.
    """

    database_type: DatabaseType = DatabaseType.UNKNOWN

    def __init__(self, connection_string: str = "", allow_drop: bool = False):
        self.connection_string = connection_string
        self.allow_drop = allow_drop
        self.last_affected_rows = 0
        self._last_error = ""
        self._lock = threading.RLock()

    @abstractmethod
    def connect(self, connection_string: str) -> bool:
        """Open the connection.

        Args:
            connection_string: Backend-specific connection string.

        Returns:
            True if the connection is usable.
        """
        pass

    @abstractmethod
    def disconnect(self) -> None:
        pass

    @abstractmethod
    def is_connected(self) -> bool:
        pass

    @abstractmethod
    def execute(self, sql: str, params: Sequence[Any] | None = None) -> bool:
        """Run a parameterized DDL/DML statement.

        The number of affected rows is stored in ``last_affected_rows``.

        Args:
            sql: Statement using the dialect's placeholder style.
            params: Positional parameters.

        Returns:
            True on success, False on driver failure.
        """
        pass

    @abstractmethod
    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[Row]:
        """Run a parameterized SELECT.

        Returns:
            Rows as insertion-ordered dicts of column name to text; an
            empty list on failure (see ``get_last_error()``).
        """
        pass

    @abstractmethod
    def begin_transaction(self) -> bool:
        pass

    @abstractmethod
    def commit_transaction(self) -> bool:
        pass

    @abstractmethod
    def rollback_transaction(self) -> bool:
        pass

    @abstractmethod
    def drop_database_if_exists(self, connection_string: str) -> bool:
        """Drop the database named by ``connection_string``.

        Only permitted when the backend was created with ``allow_drop``;
        otherwise returns False with a descriptive last error.
        """
        pass

    def get_last_error(self) -> str:
        return self._last_error

    def get_database_type(self) -> DatabaseType:
        return self.database_type

    def query_or_raise(self, sql: str, params: Sequence[Any] | None = None) -> list[Row]:
        """Like ``query`` but raise DriverFailureError when the driver failed."""
        self._clear_error()
        rows = self.query(sql, params)
        if self._last_error:
            raise DriverFailureError(
                f"Query failed: {self._last_error}",
                driver_message=self._last_error,
                operation="query",
            )
        return rows

    @contextmanager
    def transaction(self) -> Iterator["Backend"]:
        """Context manager wrapping begin/commit, rolling back on exception."""
        if not self.begin_transaction():
            raise DriverFailureError(
                f"Failed to begin transaction: {self._last_error}",
                driver_message=self._last_error,
                operation="begin_transaction",
            )
        try:
            yield self
        except Exception:
            self.rollback_transaction()
            raise
        if not self.commit_transaction():
            raise DriverFailureError(
                f"Failed to commit transaction: {self._last_error}",
                driver_message=self._last_error,
                operation="commit_transaction",
            )

    def _set_error(self, message: str) -> None:
        self._last_error = message
        logger.debug(f"{type(self).__name__} error: {message}")

    def _clear_error(self) -> None:
        self._last_error = ""

    def _check_drop_allowed(self) -> bool:
        if not self.allow_drop:
            self._set_error(ERR_MSG_DROP_NOT_ALLOWED)
            logger.warning(ERR_MSG_DROP_NOT_ALLOWED)
            return False
        return True

    def __enter__(self) -> "Backend":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.disconnect()
