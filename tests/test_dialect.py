"""Tests for the per-backend dialect rules."""

import pytest

from sqlogger.database import dialect
from sqlogger.database.dialect import DatabaseType, FieldType
from sqlogger.errors import UnsupportedError


class TestDatabaseType:
    """Tests for DatabaseType parsing."""

    def test_from_string(self):
        """Test case-insensitive parsing."""
        assert DatabaseType.from_string("sqlite") == DatabaseType.SQLITE
        assert DatabaseType.from_string("PostgreSQL") == DatabaseType.POSTGRESQL
        assert DatabaseType.from_string(" mock ") == DatabaseType.MOCK

    def test_from_string_unknown(self):
        """Test that unknown names raise."""
        with pytest.raises(UnsupportedError):
            DatabaseType.from_string("oracle")
        with pytest.raises(UnsupportedError):
            DatabaseType.from_string("UNKNOWN")


class TestTypeMapping:
    """Tests for column type resolution."""

    def test_string_types(self):
        """Test String per dialect."""
        assert dialect.resolve_type(DatabaseType.SQLITE, FieldType.STRING) == "TEXT"
        assert dialect.resolve_type(DatabaseType.MYSQL, FieldType.STRING) == "VARCHAR(255)"
        assert dialect.resolve_type(DatabaseType.POSTGRESQL, FieldType.STRING) == "TEXT"

    def test_datetime_and_uuid(self):
        """Test DateTime and UUID per dialect."""
        assert dialect.resolve_type(DatabaseType.POSTGRESQL, FieldType.DATETIME) == "TIMESTAMP"
        assert dialect.resolve_type(DatabaseType.POSTGRESQL, FieldType.UUID) == "UUID"
        assert dialect.resolve_type(DatabaseType.MYSQL, FieldType.UUID) == "CHAR(36)"
        assert dialect.resolve_type(DatabaseType.MYSQL, FieldType.INT64) == "BIGINT"

    def test_unknown_type_raises(self):
        """Test that the UNKNOWN tag is rejected."""
        with pytest.raises(UnsupportedError):
            dialect.resolve_type(DatabaseType.UNKNOWN, FieldType.INT32)

    def test_auto_increment(self):
        """Test auto-increment syntax."""
        assert dialect.auto_increment(DatabaseType.SQLITE) == "AUTOINCREMENT"
        assert dialect.auto_increment(DatabaseType.MYSQL) == "AUTO_INCREMENT"
        assert dialect.auto_increment(DatabaseType.POSTGRESQL, "BIGINT") == "BIGSERIAL"
        assert dialect.auto_increment(DatabaseType.POSTGRESQL, "INTEGER") == "SERIAL"


class TestQuoting:
    """Tests for placeholders, identifiers and literals."""

    def test_placeholders(self):
        """Test positional vs numbered placeholders."""
        assert dialect.placeholder(DatabaseType.SQLITE, 3) == "?"
        assert dialect.placeholder(DatabaseType.MYSQL, 3) == "?"
        assert dialect.placeholder(DatabaseType.POSTGRESQL, 3) == "$3"

    def test_quote_identifier_doubles_quote(self):
        """Test that embedded quote characters are doubled."""
        assert dialect.quote_identifier(DatabaseType.MYSQL, "a`b") == "`a``b`"
        assert dialect.quote_identifier(DatabaseType.POSTGRESQL, 'x"y') == '"x""y"'
        assert dialect.quote_identifier(DatabaseType.SQLITE, "logs") == '"logs"'

    def test_escape_value(self):
        """Test literal escaping per dialect."""
        assert dialect.escape_value(DatabaseType.SQLITE, "it's") == "it''s"
        assert dialect.escape_value(DatabaseType.MYSQL, "a'b\\c") == "a\\'b\\\\c"
        assert dialect.escape_value(DatabaseType.POSTGRESQL, "a'b") == "a''b"

    def test_format_value(self):
        """Test inline literal rendering."""
        assert dialect.format_value(DatabaseType.SQLITE, None) == "NULL"
        assert dialect.format_value(DatabaseType.SQLITE, 5) == "5"
        assert dialect.format_value(DatabaseType.SQLITE, "x") == "'x'"
        assert dialect.format_value(DatabaseType.MYSQL, "CURRENT_TIMESTAMP") == "CURRENT_TIMESTAMP"
        assert dialect.format_value(DatabaseType.POSTGRESQL, "a\\b") == "E'a\\\\b'"


class TestCapabilities:
    """Tests for batch caps, ports and driver availability."""

    def test_batch_caps(self):
        """Test the rows-per-INSERT caps."""
        assert dialect.max_batch_size(DatabaseType.SQLITE) == 1000
        assert dialect.max_batch_size(DatabaseType.MYSQL) == 5000
        assert dialect.max_batch_size(DatabaseType.POSTGRESQL) == 10000
        assert not dialect.supports_batch(DatabaseType.MOCK)
        assert not dialect.supports_batch(DatabaseType.MONGODB)

    def test_default_ports(self):
        """Test default server ports."""
        assert dialect.default_port(DatabaseType.MYSQL) == 3306
        assert dialect.default_port(DatabaseType.POSTGRESQL) == 5432
        assert dialect.default_port(DatabaseType.MONGODB) == 27017
        assert dialect.default_port(DatabaseType.SQLITE) == dialect.PORT_NOT_SUPPORTED

    def test_embedded_and_server(self):
        """Test the embedded/server split."""
        assert dialect.is_embedded(DatabaseType.SQLITE)
        assert dialect.is_embedded(DatabaseType.MOCK)
        assert dialect.is_server(DatabaseType.MYSQL)

    def test_is_supported(self):
        """Test driver availability checks."""
        assert dialect.is_supported(DatabaseType.MOCK)
        assert dialect.is_supported(DatabaseType.SQLITE)
        assert not dialect.is_supported(DatabaseType.MONGODB)

    def test_last_insert_id_expression(self):
        """Test last-insert queries."""
        assert dialect.last_insert_id_expression(DatabaseType.SQLITE, "sources") == "SELECT LAST_INSERT_ROWID()"
        assert dialect.last_insert_id_expression(DatabaseType.MYSQL, "sources") == "SELECT LAST_INSERT_ID()"
        pg = dialect.last_insert_id_expression(DatabaseType.POSTGRESQL, "sources", "id")
        assert "pg_get_serial_sequence('sources', 'id')" in pg


class TestConnectionStrings:
    """Tests for connection string parsing."""

    def test_mysql_key_value(self):
        """Test the semicolon separated MySQL form."""
        params = dialect.parse_connection_string(
            "Host=db;Port=3307;User=u;Pass=p;Database=logs", DatabaseType.MYSQL
        )
        assert params == {"host": "db", "port": "3307", "user": "u", "password": "p", "database": "logs"}

    def test_postgresql_default_port(self):
        """Test that a missing port falls back to the default."""
        params = dialect.parse_connection_string("host=h user=u password=p dbname=d", DatabaseType.POSTGRESQL)
        assert params["port"] == "5432"
        assert params["database"] == "d"

    def test_uri(self):
        """Test URI connection strings."""
        params = dialect.parse_connection_string("postgresql://u:p%40x@h:6543/d", DatabaseType.POSTGRESQL)
        assert params["host"] == "h"
        assert params["port"] == "6543"
        assert params["password"] == "p@x"
        assert params["database"] == "d"

    def test_parse_key_value_string(self):
        """Test that segments without '=' are skipped."""
        assert dialect.parse_key_value_string("A=1;junk;;B=2", ";") == {"a": "1", "b": "2"}
