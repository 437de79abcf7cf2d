"""MySQL backend using PyMySQL."""

from __future__ import annotations

import logging
from typing import Any, Sequence

import pymysql

from sqlogger.database import dialect
from sqlogger.database.base import ERR_MSG_NOT_CONNECTED, Backend, Row, row_to_text
from sqlogger.database.dialect import DatabaseType
from sqlogger.errors import ConnectFailureError

logger = logging.getLogger(__name__)


def translate_placeholders(sql: str) -> str:
    """Rewrite ``?`` placeholders into PyMySQL's ``%s`` format style.

    Placeholders inside quoted literals or identifiers are left alone;
    every literal ``%`` is doubled because PyMySQL applies ``%`` formatting
    to the whole statement.
    """
    out = []
    quote = ""
    for ch in sql:
        if ch == "%":
            out.append("%%")
            continue
        if quote:
            if ch == quote:
                quote = ""
        elif ch in ("'", '"', "`"):
            quote = ch
        elif ch == "?":
            out.append("%s")
            continue
        out.append(ch)
    return "".join(out)


class MySQLBackend(Backend):
    """Backend for MySQL/MariaDB servers.

    Args:
        connection_string: ``Host=h;Port=p;User=u;Pass=s;Database=d`` or a
            ``mysql://`` URI. When given, the backend connects immediately.
        allow_drop: Permit ``drop_database_if_exists``.
        allow_create: Create the database before connecting if it is missing.

    Raises:
        ConnectFailureError: If a connection string is given and the
            database cannot be created or opened.
    """

    database_type = DatabaseType.MYSQL

    def __init__(self, connection_string: str = "", allow_drop: bool = False, allow_create: bool = True):
        super().__init__(connection_string, allow_drop)
        self.allow_create = allow_create
        self._connection: Any = None
        if connection_string:
            if allow_create and not self.create_database_if_not_exists(connection_string):
                raise ConnectFailureError(
                    f"Failed to create database: {self._last_error}", operation="mysql_connect"
                )
            if not self.connect(connection_string):
                raise ConnectFailureError(
                    f"Failed to connect to MySQL: {self._last_error}", operation="mysql_connect"
                )

    @staticmethod
    def _connect_args(params: dict[str, str], with_database: bool = True) -> dict[str, Any]:
        args: dict[str, Any] = {
            "host": params.get("host", "localhost"),
            "port": int(params.get("port", dialect.default_port(DatabaseType.MYSQL))),
            "user": params.get("user", ""),
            "password": params.get("password", ""),
            "charset": "utf8mb4",
            "autocommit": True,
        }
        if with_database and params.get("database"):
            args["database"] = params["database"]
        return args

    def connect(self, connection_string: str) -> bool:
        with self._lock:
            self.disconnect()
            self.connection_string = connection_string
            params = dialect.parse_connection_string(connection_string, DatabaseType.MYSQL)
            try:
                self._connection = pymysql.connect(**self._connect_args(params))
            except (pymysql.MySQLError, ValueError) as e:
                self._connection = None
                self._set_error(str(e))
                logger.error(f"Failed to connect to MySQL at {params.get('host')}: {e}")
                return False
            self._clear_error()
            logger.debug(f"Connected to MySQL database {params.get('database')}")
            return True

    def disconnect(self) -> None:
        with self._lock:
            if self._connection is None:
                return
            try:
                self._connection.close()
            except pymysql.MySQLError as e:
                logger.debug(f"Ignoring error while closing MySQL connection: {e}")
            self._connection = None

    def is_connected(self) -> bool:
        if self._connection is None:
            return False
        return bool(self._connection.open)

    def _cursor_execute(self, sql: str, params: Sequence[Any] | None):
        if self._connection is None:
            raise pymysql.err.InterfaceError(ERR_MSG_NOT_CONNECTED)
        cursor = self._connection.cursor()
        if params:
            cursor.execute(translate_placeholders(sql), tuple(params))
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
            except pymysql.MySQLError as e:
                self._set_error(str(e))
                return False
            self._clear_error()
            return True

    def query(self, sql: str, params: Sequence[Any] | None = None) -> list[Row]:
        with self._lock:
            try:
                cursor = self._cursor_execute(sql, params)
                columns = [d[0] for d in cursor.description or ()]
                rows = [row_to_text(columns, values) for values in cursor.fetchall()]
                cursor.close()
            except pymysql.MySQLError as e:
                self._set_error(str(e))
                return []
            self._clear_error()
            return rows

    def begin_transaction(self) -> bool:
        with self._lock:
            if self._connection is None:
                self._set_error(ERR_MSG_NOT_CONNECTED)
                return False
            try:
                self._connection.begin()
            except pymysql.MySQLError as e:
                self._set_error(str(e))
                return False
            return True

    def commit_transaction(self) -> bool:
        with self._lock:
            if self._connection is None:
                self._set_error(ERR_MSG_NOT_CONNECTED)
                return False
            try:
                self._connection.commit()
            except pymysql.MySQLError as e:
                self._set_error(str(e))
                return False
            return True

    def rollback_transaction(self) -> bool:
        with self._lock:
            if self._connection is None:
                self._set_error(ERR_MSG_NOT_CONNECTED)
                return False
            try:
                self._connection.rollback()
            except pymysql.MySQLError as e:
                self._set_error(str(e))
                return False
            return True

    def _run_on_server(self, connection_string: str, statement: str) -> bool:
        """Run one statement on a connection opened without a default database."""
        params = dialect.parse_connection_string(connection_string, DatabaseType.MYSQL)
        try:
            conn = pymysql.connect(**self._connect_args(params, with_database=False))
            try:
                with conn.cursor() as cursor:
                    cursor.execute(statement)
            finally:
                conn.close()
        except (pymysql.MySQLError, ValueError) as e:
            self._set_error(str(e))
            return False
        return True

    def create_database_if_not_exists(self, connection_string: str) -> bool:
        params = dialect.parse_connection_string(connection_string, DatabaseType.MYSQL)
        name = params.get("database", "")
        if not name:
            return True
        quoted = dialect.quote_identifier(DatabaseType.MYSQL, name)
        if not self._run_on_server(connection_string, f"CREATE DATABASE IF NOT EXISTS {quoted}"):
            logger.error(f"Failed to create MySQL database {name}: {self._last_error}")
            return False
        return True

    def drop_database_if_exists(self, connection_string: str) -> bool:
        with self._lock:
            if not self._check_drop_allowed():
                return False
            params = dialect.parse_connection_string(connection_string, DatabaseType.MYSQL)
            name = params.get("database", "")
            if not name:
                self._set_error("No database name in connection string")
                return False
            current = dialect.parse_connection_string(self.connection_string, DatabaseType.MYSQL) \
                if self.connection_string else {}
            if current.get("database") == name:
                self.disconnect()
            quoted = dialect.quote_identifier(DatabaseType.MYSQL, name)
            if not self._run_on_server(connection_string, f"DROP DATABASE IF EXISTS {quoted}"):
                logger.error(f"Failed to drop MySQL database {name}: {self._last_error}")
                return False
            logger.info(f"Dropped MySQL database {name}")
            return True
