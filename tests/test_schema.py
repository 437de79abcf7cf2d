"""Tests for table declarations and DDL synthesis."""

import pytest

from sqlogger.database.dialect import DatabaseType, FieldType
from sqlogger.database.query_builder import QueryBuilder
from sqlogger.database.schema import TableBuilder, index_name, logs_table, sources_table
from sqlogger.errors import SchemaLogicError


class TestTableBuilder:
    """Tests for the fluent TableBuilder."""

    def test_fields_keep_declaration_order(self):
        """Test that fields come out in the order they were added."""
        table = (
            TableBuilder("t")
            .add_standard_field("id", FieldType.INT64, is_primary=True, is_autoincrement=True)
            .add_standard_field("b", FieldType.STRING)
            .add_standard_field("a", FieldType.INT32)
            .build()
        )
        assert table.field_names == ["id", "b", "a"]

    def test_foreign_key_requires_declared_field(self):
        """Test that a foreign key on an unknown field is rejected."""
        builder = TableBuilder("t").add_standard_field("id", FieldType.INT64)
        with pytest.raises(SchemaLogicError):
            builder.add_foreign_key("missing", "other", "id")

    def test_custom_type_resolver(self):
        """Test add_field with a callable type."""
        table = TableBuilder("t").add_field("blob", lambda db: "BLOB").build()
        assert table.fields[0].column_type(DatabaseType.SQLITE) == "BLOB"


class TestCreateTable:
    """Tests for CREATE TABLE synthesis."""

    def test_sqlite_logs_table(self):
        """Test the SQLite logs table DDL."""
        sql = QueryBuilder.build_create_table(logs_table(), DatabaseType.SQLITE)

        assert sql.startswith('CREATE TABLE IF NOT EXISTS "logs" (')
        assert '"id" INTEGER PRIMARY KEY AUTOINCREMENT NOT NULL' in sql
        assert '"timestamp" DATETIME NOT NULL' in sql
        assert '"message" TEXT NOT NULL' in sql
        assert "FOREIGN KEY" not in sql

    def test_mysql_message_is_text(self):
        """Test that message stays unbounded on MySQL."""
        sql = QueryBuilder.build_create_table(logs_table(), DatabaseType.MYSQL)

        assert "`message` TEXT NOT NULL" in sql
        assert "`level` VARCHAR(255) NOT NULL" in sql
        assert "`id` BIGINT PRIMARY KEY AUTO_INCREMENT NOT NULL" in sql

    def test_postgresql_serial(self):
        """Test that PostgreSQL replaces the type with BIGSERIAL."""
        sql = QueryBuilder.build_create_table(logs_table(), DatabaseType.POSTGRESQL)

        assert '"id" BIGSERIAL PRIMARY KEY NOT NULL' in sql
        assert '"timestamp" TIMESTAMP NOT NULL' in sql

    def test_logs_table_with_source(self):
        """Test the source_id column and its foreign key."""
        table = logs_table(with_source=True)
        sql = QueryBuilder.build_create_table(table, DatabaseType.SQLITE)

        assert table.field_names[:2] == ["id", "source_id"]
        assert 'FOREIGN KEY ("source_id") REFERENCES "sources" ("id")' in sql

    def test_sources_table(self):
        """Test the sources table DDL."""
        sql = QueryBuilder.build_create_table(sources_table(), DatabaseType.POSTGRESQL)

        assert '"uuid" UUID UNIQUE NOT NULL' in sql
        assert '"name" TEXT NOT NULL' in sql

    def test_mock_has_no_ddl(self):
        """Test that Mock needs no schema."""
        assert QueryBuilder.build_create_table(logs_table(), DatabaseType.MOCK) == ""


class TestCreateIndex:
    """Tests for index DDL."""

    def test_index_name(self):
        """Test index naming."""
        assert index_name("logs", "level") == "idx_logs_level"

    def test_sqlite_index(self):
        """Test CREATE INDEX IF NOT EXISTS."""
        sql = QueryBuilder.build_create_index(DatabaseType.SQLITE, "logs", "idx_logs_level", ["level"])
        assert sql == 'CREATE INDEX IF NOT EXISTS "idx_logs_level" ON "logs" ("level")'

    def test_mysql_index(self):
        """Test the ALTER TABLE form on MySQL."""
        sql = QueryBuilder.build_create_index(DatabaseType.MYSQL, "logs", "idx_logs_level", ["level"])
        assert sql == "ALTER TABLE `logs` ADD INDEX `idx_logs_level` (`level`)"

    def test_empty_columns(self):
        """Test that no columns produce no statement."""
        assert QueryBuilder.build_create_index(DatabaseType.SQLITE, "logs", "idx", []) == ""
