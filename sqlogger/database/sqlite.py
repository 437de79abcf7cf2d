"""SQLite backend built on the standard library ``sqlite3`` module."""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any, Sequence

from sqlogger.database.base import ERR_MSG_NOT_CONNECTED, Backend, Row, row_to_text
from sqlogger.database.dialect import DatabaseType

logger = logging.getLogger(__name__)

MEMORY_DATABASE = ":memory:"

# Side files SQLite keeps next to a WAL-mode database
_SIDE_SUFFIXES = ("-wal", "-shm", "-journal")

# Errors after which a fresh connection may succeed
_RECONNECT_HINTS = ("closed", "disk i/o", "unable to open", "not a database")


def _is_reconnectable(error: sqlite3.Error) -> bool:
    if isinstance(error, sqlite3.ProgrammingError):
        return "closed" in str(error).lower()
    if isinstance(error, sqlite3.OperationalError):
        text = str(error).lower()
        return any(hint in text for hint in _RECONNECT_HINTS)
    return False


class SQLiteBackend(Backend):
    """Single-connection SQLite backend.

    The connection is opened in autocommit mode with WAL journaling; the
    owning logger serializes access through its database lock, so one
    connection is shared across worker threads.
    """

    database_type = DatabaseType.SQLITE

    def __init__(self, connection_string: str = "", allow_drop: bool = False):
        super().__init__(connection_string, allow_drop)
        self._connection: sqlite3.Connection | None = None

    def connect(self, connection_string: str) -> bool:
        """Open (creating if needed) the database file.

        Args:
            connection_string: Path to the database file or ``:memory:``.

        Returns:
            True on success.
        """
        with self._lock:
            if self._connection is not None:
                self.disconnect()
            self.connection_string = connection_string
            try:
                self._open()
            except (sqlite3.Error, OSError) as e:
                logger.warning(f"Failed to open SQLite database {connection_string}, retrying: {e}")
                self._close_quietly()
                try:
                    self._open()
                except (sqlite3.Error, OSError) as retry_error:
                    self._close_quietly()
                    self._set_error(str(retry_error))
                    logger.error(f"Failed to open SQLite database {connection_string}: {retry_error}")
                    return False
            self._clear_error()
            logger.debug(f"Connected to SQLite database {connection_string}")
            return True

    def _open(self) -> None:
        path = self.connection_string
        if path and path != MEMORY_DATABASE and not path.startswith("file:"):
            Path(path).parent.mkdir(parents=True, exist_ok=True)
        self._connection = sqlite3.connect(
            path or MEMORY_DATABASE,
            check_same_thread=False,
            isolation_level=None,
        )
        self._connection.execute("PRAGMA journal_mode=WAL")
        self._connection.execute("PRAGMA synchronous=NORMAL")
        self._connection.execute("PRAGMA foreign_keys=ON")

    def _close_quietly(self) -> None:
        if self._connection is not None:
            try:
                self._connection.close()
            except sqlite3.Error as e:
                logger.debug(f"Ignoring error while closing SQLite connection: {e}")
            self._connection = None

    def disconnect(self) -> None:
        with self._lock:
            if self._connection is not None and self._connection.in_transaction:
                try:
                    self._connection.execute("ROLLBACK")
                except sqlite3.Error as e:
                    logger.warning(f"Rollback on disconnect failed: {e}")
            self._close_quietly()

    def is_connected(self) -> bool:
        return self._connection is not None

    def _run(self, sql: str, params: Sequence[Any] | None) -> sqlite3.Cursor:
        """Execute once, reconnecting and retrying a single time on a dead connection."""
        if self._connection is None:
            raise sqlite3.ProgrammingError(ERR_MSG_NOT_CONNECTED)
        try:
            return self._connection.execute(sql, tuple(params or ()))
        except sqlite3.Error as e:
            if not _is_reconnectable(e) or self._connection.in_transaction:
                raise
            logger.warning(f"SQLite statement failed ({e}), reconnecting once")
            self._close_quietly()
            self._open()
            return self._connection.execute(sql, tuple(params or ()))

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> bool:
        with self._lock:
            self.last_affected_rows = 0
            try:
                cursor = self._run(sql, params)
                self.last_affected_rows = max(cursor.rowcount, 0)
                cursor.close()
            except sqlite3.Error as e:
                self._set_error(str(e))
                return False
            self._clear_error()
            return True

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[Row]:
        with self._lock:
            try:
                cursor = self._run(sql, params)
                columns = [d[0] for d in cursor.description or ()]
                rows = [row_to_text(columns, values) for values in cursor.fetchall()]
                cursor.close()
            except sqlite3.Error as e:
                self._set_error(str(e))
                return []
            self._clear_error()
            return rows

    def begin_transaction(self) -> bool:
        return self.execute("BEGIN")

    def commit_transaction(self) -> bool:
        return self.execute("COMMIT")

    def rollback_transaction(self) -> bool:
        return self.execute("ROLLBACK")

    def drop_database_if_exists(self, connection_string: str) -> bool:
        """Delete the database file and its WAL side files."""
        with self._lock:
            if not self._check_drop_allowed():
                return False
            if not connection_string or connection_string == MEMORY_DATABASE:
                self._set_error("Cannot drop an in-memory SQLite database")
                return False

            target = Path(connection_string)
            if self._connection is not None and Path(self.connection_string) == target:
                self.disconnect()
            try:
                for path in [target, *(Path(f"{target}{s}") for s in _SIDE_SUFFIXES)]:
                    path.unlink(missing_ok=True)
            except OSError as e:
                self._set_error(str(e))
                logger.error(f"Failed to drop SQLite database {target}: {e}")
                return False
            logger.info(f"Dropped SQLite database {target}")
            self._clear_error()
            return True
