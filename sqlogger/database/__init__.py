"""Database access layer: dialects, schema, SQL synthesis and backends."""

from sqlogger.database.base import Backend
from sqlogger.database.dialect import DatabaseType, FieldType
from sqlogger.database.factory import create_backend
from sqlogger.database.mock import MockBackend
from sqlogger.database.query_builder import QueryBuilder
from sqlogger.database.schema import BuiltTable, Field, TableBuilder, logs_table, sources_table

__all__ = [
    "Backend",
    "BuiltTable",
    "DatabaseType",
    "Field",
    "FieldType",
    "MockBackend",
    "QueryBuilder",
    "TableBuilder",
    "create_backend",
    "logs_table",
    "sources_table",
]
