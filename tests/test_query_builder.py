"""Tests for DML synthesis."""

import pytest

from sqlogger.database.dialect import DatabaseType
from sqlogger.database.query_builder import QueryBuilder
from sqlogger.errors import UnsupportedError
from sqlogger.models import Filter


class TestInsert:
    """Tests for INSERT statements."""

    def test_single_insert(self):
        """Test one-row INSERT with columns in caller order."""
        sql = QueryBuilder.build_insert(DatabaseType.SQLITE, "logs", ["level", "message"])
        assert sql == 'INSERT INTO "logs" ("level", "message") VALUES (?, ?)'

    def test_batch_insert_postgresql_numbering(self):
        """Test that PostgreSQL placeholders are numbered across rows."""
        sql = QueryBuilder.build_batch_insert(DatabaseType.POSTGRESQL, "logs", ["a", "b"], 2)
        assert sql == 'INSERT INTO "logs" ("a", "b") VALUES ($1, $2), ($3, $4)'

    def test_batch_insert_placeholder_count(self):
        """Test rows times columns placeholders."""
        sql = QueryBuilder.build_batch_insert(DatabaseType.MYSQL, "logs", ["a", "b", "c"], 4)
        assert sql.count("?") == 12
        assert sql.startswith("INSERT INTO `logs` (`a`, `b`, `c`) VALUES")

    def test_empty_batch(self):
        """Test that no rows or no columns produce no statement."""
        assert QueryBuilder.build_batch_insert(DatabaseType.SQLITE, "logs", ["a"], 0) == ""
        assert QueryBuilder.build_batch_insert(DatabaseType.SQLITE, "logs", [], 3) == ""

    def test_mongodb_unsupported(self):
        """Test that MongoDB has no SQL."""
        with pytest.raises(UnsupportedError):
            QueryBuilder.build_insert(DatabaseType.MONGODB, "logs", ["a"])


class TestSelect:
    """Tests for SELECT statements."""

    def test_plain_select(self):
        """Test SELECT * without clauses."""
        assert QueryBuilder.build_select(DatabaseType.SQLITE, "logs") == 'SELECT * FROM "logs"'

    def test_filters_and_order(self):
        """Test WHERE and ORDER BY."""
        sql = QueryBuilder.build_select(
            DatabaseType.POSTGRESQL,
            "logs",
            filters=[Filter("level", "=", "INFO"), Filter("file", "like", "%.py")],
            order_by=["timestamp", "id"],
        )
        assert sql == (
            'SELECT * FROM "logs" WHERE "level" = $1 AND "file" LIKE $2 '
            'ORDER BY "timestamp", "id"'
        )

    def test_in_and_null_filters(self):
        """Test list and value-less operators."""
        filters = [Filter("level", "IN", ["INFO", "ERROR"]), Filter("source_id", "is null")]
        where, next_index = QueryBuilder.build_where_clause(DatabaseType.POSTGRESQL, filters)

        assert where == '"level" IN ($1, $2) AND "source_id" IS NULL'
        assert next_index == 3
        assert QueryBuilder.filter_params(filters) == ["INFO", "ERROR"]

    def test_limit_and_offset(self):
        """Test that OFFSET is only emitted with a LIMIT."""
        with_limit = QueryBuilder.build_select(DatabaseType.SQLITE, "logs", limit=10, offset=5)
        without_limit = QueryBuilder.build_select(DatabaseType.SQLITE, "logs", offset=5)

        assert with_limit.endswith("LIMIT 10 OFFSET 5")
        assert "OFFSET" not in without_limit

    def test_columns(self):
        """Test explicit column lists are quoted."""
        sql = QueryBuilder.build_select(DatabaseType.MYSQL, "sources", columns=["id", "name"])
        assert sql == "SELECT `id`, `name` FROM `sources`"


class TestUpdateDelete:
    """Tests for UPDATE and DELETE statements."""

    def test_update_numbering_continues(self):
        """Test that WHERE placeholders follow the SET ones."""
        sql = QueryBuilder.build_update(
            DatabaseType.POSTGRESQL, "sources", ["name"], [Filter("uuid", "=", "u")]
        )
        assert sql == 'UPDATE "sources" SET "name" = $1 WHERE "uuid" = $2'

    def test_delete(self):
        """Test DELETE with and without WHERE."""
        assert QueryBuilder.build_delete(DatabaseType.SQLITE, "logs") == 'DELETE FROM "logs"'
        sql = QueryBuilder.build_delete(DatabaseType.SQLITE, "logs", [Filter("level", "=", "DEBUG")])
        assert sql == 'DELETE FROM "logs" WHERE "level" = ?'


class TestCatalogProbes:
    """Tests for existence queries."""

    def test_table_exists(self):
        """Test catalog probes embed escaped literals."""
        sql = QueryBuilder.build_table_exists_query(DatabaseType.SQLITE, "lo'gs")
        assert sql == "SELECT 1 FROM sqlite_master WHERE type = 'table' AND name = 'lo''gs'"

    def test_index_exists_mysql(self):
        """Test the MySQL index probe restricted to a table."""
        sql = QueryBuilder.build_index_exists_query(DatabaseType.MYSQL, "idx_logs_level", "logs")
        assert "index_name = 'idx_logs_level'" in sql
        assert "table_name = 'logs'" in sql

    def test_mock_has_no_catalog(self):
        """Test that Mock has no system catalog."""
        with pytest.raises(UnsupportedError):
            QueryBuilder.build_table_exists_query(DatabaseType.MOCK, "logs")
