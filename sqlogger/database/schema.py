"""Declarative table definitions consumed by the query builder."""

from __future__ import annotations

from dataclasses import dataclass, field
from functools import partial
from typing import Callable

from sqlogger.database.dialect import DatabaseType, FieldType, resolve_type
from sqlogger.errors import SchemaLogicError
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
)

TypeResolver = Callable[[DatabaseType], str]


def _long_text(db_type: DatabaseType) -> str:
    # Unbounded text on every dialect; String maps to VARCHAR on MySQL
    return "TEXT"


@dataclass(frozen=True)
class Field:
    """A column declaration."""

    name: str
    type_resolver: TypeResolver
    is_primary: bool = False
    is_nullable: bool = True
    is_autoincrement: bool = False
    is_unique: bool = False
    default_value: str = ""

    def column_type(self, db_type: DatabaseType) -> str:
        return self.type_resolver(db_type)


@dataclass(frozen=True)
class BuiltTable:
    """Immutable result of TableBuilder.build()."""

    name: str
    fields: tuple[Field, ...] = ()
    foreign_keys: dict[str, tuple[str, str]] = field(default_factory=dict)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]


class TableBuilder:
    """Fluent builder for a table definition.

    Example:
        table = (
            TableBuilder("sources")
            .add_standard_field("id", FieldType.INT64, is_primary=True,
                                is_nullable=False, is_autoincrement=True)
            .add_standard_field("name", FieldType.STRING, is_nullable=False)
            .build()
        )
    """

    def __init__(self, table_name: str):
        self.table_name = table_name
        self._fields: list[Field] = []
        self._foreign_keys: dict[str, tuple[str, str]] = {}

    def add_field(
        self,
        name: str,
        type_resolver: TypeResolver,
        is_primary: bool = False,
        is_nullable: bool = True,
        is_autoincrement: bool = False,
        is_unique: bool = False,
        default_value: str = "",
    ) -> "TableBuilder":
        """Append a column whose type is computed by ``type_resolver``."""
        self._fields.append(Field(
            name=name,
            type_resolver=type_resolver,
            is_primary=is_primary,
            is_nullable=is_nullable,
            is_autoincrement=is_autoincrement,
            is_unique=is_unique,
            default_value=default_value,
        ))
        return self

    def add_standard_field(
        self,
        name: str,
        field_type: FieldType,
        is_primary: bool = False,
        is_nullable: bool = True,
        is_autoincrement: bool = False,
        is_unique: bool = False,
        default_value: str = "",
    ) -> "TableBuilder":
        """Append a column of one of the abstract FieldTypes."""
        resolver = partial(_resolve_standard, field_type)
        return self.add_field(
            name, resolver, is_primary, is_nullable, is_autoincrement, is_unique, default_value
        )

    def add_foreign_key(self, field_name: str, reference_table: str, reference_field: str) -> "TableBuilder":
        """Declare ``field_name`` as referencing ``reference_table(reference_field)``.

        Raises:
            SchemaLogicError: If ``field_name`` has not been declared yet.
        """
        if not any(f.name == field_name for f in self._fields):
            raise SchemaLogicError(
                f"Field must be declared before adding foreign key: {field_name}",
                operation="add_foreign_key",
            )
        self._foreign_keys[field_name] = (reference_table, reference_field)
        return self

    def build(self) -> BuiltTable:
        return BuiltTable(
            name=self.table_name,
            fields=tuple(self._fields),
            foreign_keys=dict(self._foreign_keys),
        )


def _resolve_standard(field_type: FieldType, db_type: DatabaseType) -> str:
    return resolve_type(db_type, field_type)


def sources_table(table_name: str = SOURCES_TABLE_NAME) -> BuiltTable:
    """Definition of the ``sources`` table."""
    return (
        TableBuilder(table_name)
        .add_standard_field(FIELD_SOURCES_ID, FieldType.INT64,
                            is_primary=True, is_nullable=False, is_autoincrement=True)
        .add_standard_field(FIELD_SOURCES_UUID, FieldType.UUID, is_nullable=False, is_unique=True)
        .add_standard_field(FIELD_SOURCES_NAME, FieldType.STRING, is_nullable=False)
        .build()
    )


def logs_table(
    table_name: str = LOGS_TABLE_NAME,
    with_source: bool = False,
    sources_table_name: str = SOURCES_TABLE_NAME,
) -> BuiltTable:
    """Definition of the logs table, optionally with the ``source_id`` foreign key."""
    builder = TableBuilder(table_name).add_standard_field(
        FIELD_LOG_ID, FieldType.INT64, is_primary=True, is_nullable=False, is_autoincrement=True
    )
    if with_source:
        builder.add_standard_field(FIELD_LOG_SOURCE_ID, FieldType.INT64, is_nullable=True)
        builder.add_foreign_key(FIELD_LOG_SOURCE_ID, sources_table_name, FIELD_SOURCES_ID)
    return (
        builder
        .add_standard_field(FIELD_LOG_TIMESTAMP, FieldType.DATETIME, is_nullable=False)
        .add_standard_field(FIELD_LOG_LEVEL, FieldType.STRING, is_nullable=False)
        .add_field(FIELD_LOG_MESSAGE, _long_text, is_nullable=False)
        .add_standard_field(FIELD_LOG_FUNCTION, FieldType.STRING, is_nullable=False)
        .add_standard_field(FIELD_LOG_FILE, FieldType.STRING, is_nullable=False)
        .add_standard_field(FIELD_LOG_LINE, FieldType.INT32, is_nullable=False)
        .add_standard_field(FIELD_LOG_THREAD_ID, FieldType.STRING, is_nullable=False)
        .build()
    )


LOG_INDEX_COLUMNS = (
    FIELD_LOG_TIMESTAMP,
    FIELD_LOG_LEVEL,
    FIELD_LOG_FILE,
    FIELD_LOG_THREAD_ID,
    FIELD_LOG_FUNCTION,
)


def index_name(table_name: str, column: str) -> str:
    return f"idx_{table_name}_{column}"
