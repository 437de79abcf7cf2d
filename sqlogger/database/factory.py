"""Opens the backend matching a database type."""

from __future__ import annotations

import logging

from sqlogger.database.base import Backend
from sqlogger.database.dialect import DatabaseType
from sqlogger.database.mock import MockBackend
from sqlogger.errors import ConnectFailureError, UnsupportedError

logger = logging.getLogger(__name__)


def create_backend(
    db_type: DatabaseType | str,
    connection_string: str,
    allow_drop: bool = False,
    allow_create: bool = True,
) -> Backend:
    """Create and connect the backend for ``db_type``.

    Server drivers are imported lazily so that an installation without
    PyMySQL or psycopg can still use the embedded backends.

    Args:
        db_type: Database type, as enum or name.
        connection_string: Backend-specific connection string.
        allow_drop: Permit ``drop_database_if_exists`` on the backend.
        allow_create: Let server backends create a missing database.

    Returns:
        A connected backend.

    Raises:
        UnsupportedError: For MongoDB and unknown types.
        ConnectFailureError: If the connection cannot be opened.
    """
    if isinstance(db_type, str) and not isinstance(db_type, DatabaseType):
        db_type = DatabaseType.from_string(db_type)

    if db_type == DatabaseType.MOCK:
        backend: Backend = MockBackend(allow_drop=allow_drop)
        backend.connect(connection_string)
        return backend

    if db_type == DatabaseType.SQLITE:
        from sqlogger.database.sqlite import SQLiteBackend

        backend = SQLiteBackend(allow_drop=allow_drop)
        if not backend.connect(connection_string):
            raise ConnectFailureError(
                f"Failed to open SQLite database {connection_string}: {backend.get_last_error()}",
                operation="create_backend",
            )
        return backend

    if db_type == DatabaseType.MYSQL:
        from sqlogger.database.mysql import MySQLBackend

        return MySQLBackend(connection_string, allow_drop=allow_drop, allow_create=allow_create)

    if db_type == DatabaseType.POSTGRESQL:
        from sqlogger.database.postgresql import PostgreSQLBackend

        return PostgreSQLBackend(connection_string, allow_drop=allow_drop, allow_create=allow_create)

    logger.error(f"No backend available for database type {db_type}")
    raise UnsupportedError(f"Unsupported database type: {db_type}", operation="create_backend")
