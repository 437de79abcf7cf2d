"""PostgreSQL backend using psycopg 3."""

from __future__ import annotations

import logging
import re
from typing import Any, Sequence

import psycopg
from psycopg.conninfo import make_conninfo

from sqlogger.database import dialect
from sqlogger.database.base import ERR_MSG_NOT_CONNECTED, Backend, Row, row_to_text
from sqlogger.database.dialect import DatabaseType
from sqlogger.errors import ConnectFailureError

logger = logging.getLogger(__name__)

MAINTENANCE_DATABASE = "template1"

_NUMBERED_PARAM = re.compile(r"\$(\d+)")


def translate_placeholders(sql: str, params: Sequence[Any]) -> tuple[str, list[Any]]:
    """Rewrite ``$N`` placeholders into psycopg's ``%s`` style.

    Parameters are reordered to follow placeholder occurrence, so ``$2``
    before ``$1`` and repeated numbers both work. Text inside quotes is
    left alone apart from doubling ``%``.

    Returns:
        Tuple of (translated statement, parameters in occurrence order).
    """
    out = []
    ordered: list[Any] = []
    quote = ""
    i = 0
    while i < len(sql):
        ch = sql[i]
        if ch == "%":
            out.append("%%")
            i += 1
            continue
        if quote:
            if ch == quote:
                quote = ""
        elif ch in ("'", '"'):
            quote = ch
        elif ch == "$":
            match = _NUMBERED_PARAM.match(sql, i)
            if match:
                ordered.append(params[int(match.group(1)) - 1])
                out.append("%s")
                i = match.end()
                continue
        out.append(ch)
        i += 1
    return "".join(out), ordered


def build_conninfo(connection_string: str, dbname: str | None = None) -> str:
    """Normalize a key=value or URI connection string to a libpq conninfo."""
    params = dialect.parse_connection_string(connection_string, DatabaseType.POSTGRESQL)
    kwargs = {
        "host": params.get("host"),
        "port": params.get("port"),
        "user": params.get("user"),
        "password": params.get("password"),
        "dbname": dbname if dbname is not None else params.get("database"),
    }
    return make_conninfo("", **{k: v for k, v in kwargs.items() if v})


class PostgreSQLBackend(Backend):
    """Backend for PostgreSQL servers.

    The connection runs in autocommit mode and binds parameters on the
    client, so large multi-row inserts are not limited by the protocol's
    parameter count. Explicit transactions are opened with BEGIN and
    tracked so nested begins are rejected and an open transaction is
    rolled back on disconnect.

    Args:
        connection_string: ``host=h port=p user=u password=s dbname=d`` or a
            ``postgresql://`` URI. When given, the backend connects immediately.
        allow_drop: Permit ``drop_database_if_exists``.
        allow_create: Create the database through ``template1`` if missing.

    Raises:
        ConnectFailureError: If a connection string is given and the
            database cannot be created or opened.
    """

    database_type = DatabaseType.POSTGRESQL

    def __init__(self, connection_string: str = "", allow_drop: bool = False, allow_create: bool = True):
        super().__init__(connection_string, allow_drop)
        self.allow_create = allow_create
        self.transaction_in_progress = False
        self._connection: Any = None
        if connection_string:
            if allow_create and not self.create_database_if_not_exists(connection_string):
                raise ConnectFailureError(
                    f"Failed to create database: {self._last_error}", operation="postgresql_connect"
                )
            if not self.connect(connection_string):
                raise ConnectFailureError(
                    f"Failed to connect to PostgreSQL: {self._last_error}", operation="postgresql_connect"
                )

    def connect(self, connection_string: str) -> bool:
        with self._lock:
            self.disconnect()
            self.connection_string = connection_string
            try:
                # Client-side binding: server-side binding caps a statement at
                # 65535 parameters, below the largest allowed batch.
                self._connection = psycopg.connect(
                    build_conninfo(connection_string),
                    autocommit=True,
                    cursor_factory=psycopg.ClientCursor,
                )
            except (psycopg.Error, ValueError) as e:
                self._connection = None
                self._set_error(str(e))
                logger.error(f"Failed to connect to PostgreSQL: {e}")
                return False
            self._clear_error()
            logger.debug("Connected to PostgreSQL")
            return True

    def disconnect(self) -> None:
        with self._lock:
            if self._connection is None:
                return
            if self.transaction_in_progress:
                logger.warning("Rolling back open transaction on disconnect")
                self.rollback_transaction()
            try:
                self._connection.close()
            except psycopg.Error as e:
                logger.debug(f"Ignoring error while closing PostgreSQL connection: {e}")
            self._connection = None
            self.transaction_in_progress = False

    def is_connected(self) -> bool:
        return self._connection is not None and not self._connection.closed

    def _cursor_execute(self, sql: str, params: Sequence[Any] | None):
        if self._connection is None:
            raise psycopg.InterfaceError(ERR_MSG_NOT_CONNECTED)
        cursor = self._connection.cursor()
        if params:
            translated, ordered = translate_placeholders(sql, params)
            cursor.execute(translated, ordered)
        else:
            cursor.execute(sql)
        return cursor

    def execute(self, sql: str, params: Sequence[Any] | None = None) -> bool:
        with self._lock:
            self.last_affected_rows = 0
            try:
                cursor = self._cursor_execute(sql, params)
                self.last_affected_rows = max(cursor.rowcount, 0)
                cursor.close()
            except (psycopg.Error, IndexError) as e:
                self._set_error(str(e))
                return False
            self._clear_error()
            return True

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[Row]:
        with self._lock:
            try:
                cursor = self._cursor_execute(sql, params)
                columns = [d.name for d in cursor.description or ()]
                rows = [row_to_text(columns, values) for values in cursor.fetchall()]
                cursor.close()
            except (psycopg.Error, IndexError) as e:
                self._set_error(str(e))
                return []
            self._clear_error()
            return rows

    def begin_transaction(self) -> bool:
        with self._lock:
            if self.transaction_in_progress:
                self._set_error("Transaction already in progress")
                return False
            if not self.execute("BEGIN"):
                return False
            self.transaction_in_progress = True
            return True

    def commit_transaction(self) -> bool:
        with self._lock:
            if not self.transaction_in_progress:
                self._set_error("No transaction in progress")
                return False
            ok = self.execute("COMMIT")
            self.transaction_in_progress = False
            return ok

    def rollback_transaction(self) -> bool:
        with self._lock:
            if not self.transaction_in_progress:
                self._set_error("No transaction in progress")
                return False
            ok = self.execute("ROLLBACK")
            self.transaction_in_progress = False
            return ok

    def _run_on_maintenance_db(self, connection_string: str, statement: str, params: Sequence[Any] = ()) -> list[Row] | None:
        """Run one statement through ``template1``; None on failure."""
        try:
            with psycopg.connect(
                build_conninfo(connection_string, dbname=MAINTENANCE_DATABASE), autocommit=True
            ) as conn:
                with conn.cursor() as cursor:
                    cursor.execute(statement, list(params) if params else None)
                    if cursor.description is None:
                        return []
                    columns = [d.name for d in cursor.description]
                    return [row_to_text(columns, values) for values in cursor.fetchall()]
        except (psycopg.Error, ValueError) as e:
            self._set_error(str(e))
            return None

    def create_database_if_not_exists(self, connection_string: str) -> bool:
        params = dialect.parse_connection_string(connection_string, DatabaseType.POSTGRESQL)
        name = params.get("database", "")
        if not name:
            return True
        rows = self._run_on_maintenance_db(
            connection_string, "SELECT 1 FROM pg_database WHERE datname = %s", [name]
        )
        if rows is None:
            logger.error(f"Failed to check PostgreSQL database {name}: {self._last_error}")
            return False
        if rows:
            return True
        quoted = dialect.quote_identifier(DatabaseType.POSTGRESQL, name)
        if self._run_on_maintenance_db(connection_string, f"CREATE DATABASE {quoted}") is None:
            logger.error(f"Failed to create PostgreSQL database {name}: {self._last_error}")
            return False
        logger.info(f"Created PostgreSQL database {name}")
        return True

    def drop_database_if_exists(self, connection_string: str) -> bool:
        with self._lock:
            if not self._check_drop_allowed():
                return False
            params = dialect.parse_connection_string(connection_string, DatabaseType.POSTGRESQL)
            name = params.get("database", "")
            if not name:
                self._set_error("No database name in connection string")
                return False
            if self.connection_string:
                current = dialect.parse_connection_string(self.connection_string, DatabaseType.POSTGRESQL)
                if current.get("database") == name:
                    self.disconnect()
            quoted = dialect.quote_identifier(DatabaseType.POSTGRESQL, name)
            if self._run_on_maintenance_db(connection_string, f"DROP DATABASE IF EXISTS {quoted}") is None:
                logger.error(f"Failed to drop PostgreSQL database {name}: {self._last_error}")
                return False
            logger.info(f"Dropped PostgreSQL database {name}")
            return True
