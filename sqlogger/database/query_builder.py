"""SQL synthesis per dialect.

Every statement is parameterized: values travel as positional parameters
and only identifiers are embedded, quoted with the dialect's quote
character. The caller supplies parameters in the same order the
placeholders appear (for filters, ``Filter.params()`` in filter order).
"""

from __future__ import annotations

from typing import Sequence

from sqlogger.database import dialect
from sqlogger.database.dialect import DatabaseType
from sqlogger.database.schema import BuiltTable
from sqlogger.errors import UnsupportedError
from sqlogger.models import Filter

_SQL_TYPES = (DatabaseType.MOCK, DatabaseType.SQLITE, DatabaseType.MYSQL, DatabaseType.POSTGRESQL)


def _require_sql(db_type: DatabaseType, operation: str) -> None:
    if db_type not in _SQL_TYPES:
        raise UnsupportedError(f"{operation} is not available for {db_type.value}", operation=operation)


class QueryBuilder:
    """Builds DDL and DML statements for a given dialect."""

    @staticmethod
    def build_insert(db_type: DatabaseType, table: str, columns: Sequence[str]) -> str:
        """``INSERT INTO t (cols) VALUES (?, ...)`` with columns in caller order."""
        return QueryBuilder.build_batch_insert(db_type, table, columns, 1)

    @staticmethod
    def build_batch_insert(db_type: DatabaseType, table: str, columns: Sequence[str], num_rows: int) -> str:
        """Multi-row INSERT with ``num_rows * len(columns)`` placeholders.

        Returns:
            The statement, or an empty string when there are no columns or rows.
        """
        _require_sql(db_type, "build_batch_insert")
        if not columns or num_rows <= 0:
            return ""

        quoted = ", ".join(dialect.quote_identifier(db_type, c) for c in columns)
        rows = []
        index = 1
        for _ in range(num_rows):
            marks = []
            for _ in columns:
                marks.append(dialect.placeholder(db_type, index))
                index += 1
            rows.append("(" + ", ".join(marks) + ")")

        return (
            f"INSERT INTO {dialect.quote_identifier(db_type, table)} ({quoted}) "
            f"VALUES {', '.join(rows)}"
        )

    @staticmethod
    def build_where_clause(
        db_type: DatabaseType,
        filters: Sequence[Filter],
        start_index: int = 1,
    ) -> tuple[str, int]:
        """AND-join the filters as ``col op placeholder``.

        Args:
            db_type: Target dialect.
            filters: Conditions in order.
            start_index: Number of the first placeholder (PostgreSQL ``$N``).

        Returns:
            Tuple of (clause without the WHERE keyword, next placeholder index).
        """
        _require_sql(db_type, "build_where_clause")
        conditions = []
        index = start_index
        for flt in filters:
            column = dialect.quote_identifier(db_type, flt.field)
            op = flt.normalized_op
            if not flt.takes_value:
                conditions.append(f"{column} {op}")
            elif flt.is_list:
                marks = []
                for _ in flt.params():
                    marks.append(dialect.placeholder(db_type, index))
                    index += 1
                conditions.append(f"{column} {op} ({', '.join(marks)})")
            else:
                conditions.append(f"{column} {op} {dialect.placeholder(db_type, index)}")
                index += 1
        return " AND ".join(conditions), index

    @staticmethod
    def build_select(
        db_type: DatabaseType,
        table: str,
        columns: Sequence[str] | None = None,
        filters: Sequence[Filter] = (),
        order_by: str | Sequence[str] = "",
        limit: int = -1,
        offset: int = -1,
    ) -> str:
        """``SELECT cols FROM t [WHERE ...] [ORDER BY ...] [LIMIT n [OFFSET m]]``.

        Negative ``limit``/``offset`` mean unset; OFFSET is only emitted
        together with a positive LIMIT.
        """
        _require_sql(db_type, "build_select")
        fields = ", ".join(dialect.quote_identifier(db_type, c) for c in columns) if columns else "*"
        sql = f"SELECT {fields} FROM {dialect.quote_identifier(db_type, table)}"

        if filters:
            where, _ = QueryBuilder.build_where_clause(db_type, filters)
            sql += f" WHERE {where}"

        order_columns = [order_by] if isinstance(order_by, str) else list(order_by)
        order_columns = [c for c in order_columns if c]
        if order_columns:
            sql += " ORDER BY " + ", ".join(dialect.quote_identifier(db_type, c) for c in order_columns)

        if limit > 0:
            sql += f" LIMIT {int(limit)}"
            if offset > 0:
                sql += f" OFFSET {int(offset)}"
        return sql

    @staticmethod
    def build_update(
        db_type: DatabaseType,
        table: str,
        set_columns: Sequence[str],
        filters: Sequence[Filter] = (),
    ) -> str:
        """``UPDATE t SET c = ? ... [WHERE ...]``; WHERE placeholders follow the SET ones."""
        _require_sql(db_type, "build_update")
        assignments = []
        index = 1
        for column in set_columns:
            assignments.append(
                f"{dialect.quote_identifier(db_type, column)} = {dialect.placeholder(db_type, index)}"
            )
            index += 1

        sql = f"UPDATE {dialect.quote_identifier(db_type, table)} SET {', '.join(assignments)}"
        if filters:
            where, _ = QueryBuilder.build_where_clause(db_type, filters, start_index=index)
            sql += f" WHERE {where}"
        return sql

    @staticmethod
    def build_delete(db_type: DatabaseType, table: str, filters: Sequence[Filter] = ()) -> str:
        _require_sql(db_type, "build_delete")
        sql = f"DELETE FROM {dialect.quote_identifier(db_type, table)}"
        if filters:
            where, _ = QueryBuilder.build_where_clause(db_type, filters)
            sql += f" WHERE {where}"
        return sql

    @staticmethod
    def build_create_table(table: BuiltTable, db_type: DatabaseType) -> str:
        """``CREATE TABLE IF NOT EXISTS`` in field-declaration order.

        Returns an empty string for Mock and MongoDB, which need no DDL.
        """
        if db_type in (DatabaseType.MOCK, DatabaseType.MONGODB):
            return ""
        _require_sql(db_type, "build_create_table")

        lines = []
        for fld in table.fields:
            column_type = fld.column_type(db_type)
            if fld.is_autoincrement and db_type == DatabaseType.POSTGRESQL:
                column_type = dialect.auto_increment(db_type, column_type)

            line = f"  {dialect.quote_identifier(db_type, fld.name)} {column_type}"
            if fld.is_primary:
                line += " PRIMARY KEY"
                if fld.is_autoincrement and db_type != DatabaseType.POSTGRESQL:
                    line += " " + dialect.auto_increment(db_type)
            if fld.is_unique:
                line += " UNIQUE"
            if not fld.is_nullable:
                line += " NOT NULL"
            if fld.default_value:
                line += f" DEFAULT {fld.default_value}"
            lines.append(line)

        for column, (ref_table, ref_column) in table.foreign_keys.items():
            lines.append(
                f"  FOREIGN KEY ({dialect.quote_identifier(db_type, column)}) "
                f"REFERENCES {dialect.quote_identifier(db_type, ref_table)} "
                f"({dialect.quote_identifier(db_type, ref_column)})"
            )

        return (
            f"CREATE TABLE IF NOT EXISTS {dialect.quote_identifier(db_type, table.name)} (\n"
            + ",\n".join(lines)
            + "\n)"
        )

    @staticmethod
    def build_create_index(
        db_type: DatabaseType,
        table: str,
        index_name: str,
        columns: Sequence[str],
    ) -> str:
        """Index DDL: ``CREATE INDEX IF NOT EXISTS`` or MySQL ``ALTER TABLE ... ADD INDEX``.

        Returns an empty string for Mock, MongoDB or an empty column list.
        """
        if not columns or db_type in (DatabaseType.MOCK, DatabaseType.MONGODB):
            return ""
        _require_sql(db_type, "build_create_index")

        cols = ", ".join(dialect.quote_identifier(db_type, c) for c in columns)
        quoted_table = dialect.quote_identifier(db_type, table)
        quoted_index = dialect.quote_identifier(db_type, index_name)
        if db_type == DatabaseType.MYSQL:
            return f"ALTER TABLE {quoted_table} ADD INDEX {quoted_index} ({cols})"
        return f"CREATE INDEX IF NOT EXISTS {quoted_index} ON {quoted_table} ({cols})"

    @staticmethod
    def build_table_exists_query(db_type: DatabaseType, table: str) -> str:
        """System-catalog probe returning a row when the table exists."""
        literal = dialect.format_value(db_type, table)
        if db_type == DatabaseType.SQLITE:
            return f"SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = {literal}"
        if db_type == DatabaseType.MYSQL:
            return (
                "SELECT 1 FROM information_schema.tables "
                f"WHERE table_schema = DATABASE() AND table_name = {literal}"
            )
        if db_type == DatabaseType.POSTGRESQL:
            return f"SELECT 1 FROM pg_tables WHERE tablename = {literal}"
        raise UnsupportedError(f"No table catalog for {db_type.value}", operation="build_table_exists_query")

    @staticmethod
    def build_index_exists_query(db_type: DatabaseType, index_name: str, table: str = "") -> str:
        """System-catalog probe returning a row when the index exists."""
        literal = dialect.format_value(db_type, index_name)
        if db_type == DatabaseType.SQLITE:
            return f"SELECT 1 FROM sqlite_master WHERE type = 'index' AND name = {literal}"
        if db_type == DatabaseType.MYSQL:
            sql = (
                "SELECT 1 FROM information_schema.statistics "
                f"WHERE table_schema = DATABASE() AND index_name = {literal}"
            )
            if table:
                sql += f" AND table_name = {dialect.format_value(db_type, table)}"
            return sql
        if db_type == DatabaseType.POSTGRESQL:
            return f"SELECT 1 FROM pg_indexes WHERE indexname = {literal}"
        raise UnsupportedError(f"No index catalog for {db_type.value}", operation="build_index_exists_query")

    @staticmethod
    def filter_params(filters: Sequence[Filter]) -> list:
        """Flatten the filters' values in placeholder order."""
        params: list = []
        for flt in filters:
            params.extend(flt.params())
        return params
