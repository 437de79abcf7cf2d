"""Per-backend SQL dialect rules.

Pure data and pure functions: type mapping, quoting, placeholder style,
auto-increment syntax, batch caps and default ports for every database
type. Everything here is total for the known dialects and raises
UnsupportedError for anything else.
"""

from __future__ import annotations

import importlib.util
from enum import Enum
from urllib.parse import parse_qs, unquote, urlparse

from sqlogger.errors import UnsupportedError


class DatabaseType(str, Enum):
    """Backend tag."""

    UNKNOWN = "UNKNOWN"
    MOCK = "Mock"
    SQLITE = "SQLite"
    MYSQL = "MySQL"
    POSTGRESQL = "PostgreSQL"
    MONGODB = "MongoDB"

    @classmethod
    def from_string(cls, value: str) -> "DatabaseType":
        """Parse a database type name case-insensitively.

        Raises:
            UnsupportedError: If the name does not match any known type.
        """
        wanted = (value or "").strip().lower()
        for member in cls:
            if member is not cls.UNKNOWN and member.value.lower() == wanted:
                return member
        raise UnsupportedError(f"Unsupported database type: {value!r}", operation="parse_database_type")


class FieldType(str, Enum):
    """Abstract column types resolved per dialect."""

    BOOL = "Bool"
    INT32 = "Int32"
    INT64 = "Int64"
    STRING = "String"
    DATETIME = "DateTime"
    UUID = "UUID"


KNOWN_TYPES = (
    DatabaseType.MOCK,
    DatabaseType.SQLITE,
    DatabaseType.MYSQL,
    DatabaseType.POSTGRESQL,
    DatabaseType.MONGODB,
)

BATCH_NOT_SUPPORTED = -1
MIN_BATCH_SIZE = 1
PORT_NOT_SUPPORTED = -1

# Mock and MongoDB fall back to the generic column types
_DEFAULT_TYPES = {
    FieldType.BOOL: "INTEGER",
    FieldType.INT32: "INTEGER",
    FieldType.INT64: "INTEGER",
    FieldType.STRING: "TEXT",
    FieldType.DATETIME: "TEXT",
    FieldType.UUID: "TEXT",
}

_TYPE_MAP: dict[DatabaseType, dict[FieldType, str]] = {
    DatabaseType.MOCK: _DEFAULT_TYPES,
    DatabaseType.MONGODB: _DEFAULT_TYPES,
    DatabaseType.SQLITE: {
        FieldType.BOOL: "INTEGER",
        FieldType.INT32: "INTEGER",
        FieldType.INT64: "INTEGER",
        FieldType.STRING: "TEXT",
        FieldType.DATETIME: "DATETIME",
        FieldType.UUID: "TEXT",
    },
    DatabaseType.MYSQL: {
        FieldType.BOOL: "BOOLEAN",
        FieldType.INT32: "INTEGER",
        FieldType.INT64: "BIGINT",
        FieldType.STRING: "VARCHAR(255)",
        FieldType.DATETIME: "DATETIME",
        FieldType.UUID: "CHAR(36)",
    },
    DatabaseType.POSTGRESQL: {
        FieldType.BOOL: "BOOLEAN",
        FieldType.INT32: "INTEGER",
        FieldType.INT64: "BIGINT",
        FieldType.STRING: "TEXT",
        FieldType.DATETIME: "TIMESTAMP",
        FieldType.UUID: "UUID",
    },
}

_MAX_BATCH = {
    DatabaseType.MOCK: BATCH_NOT_SUPPORTED,
    DatabaseType.SQLITE: 1000,
    DatabaseType.MYSQL: 5000,
    DatabaseType.POSTGRESQL: 10000,
    DatabaseType.MONGODB: BATCH_NOT_SUPPORTED,
}

_DEFAULT_PORT = {
    DatabaseType.MOCK: PORT_NOT_SUPPORTED,
    DatabaseType.SQLITE: PORT_NOT_SUPPORTED,
    DatabaseType.MYSQL: 3306,
    DatabaseType.POSTGRESQL: 5432,
    DatabaseType.MONGODB: 27017,
}

_PLACEHOLDER = {
    DatabaseType.MOCK: "?",
    DatabaseType.SQLITE: "?",
    DatabaseType.MYSQL: "?",
    DatabaseType.POSTGRESQL: "$",
    DatabaseType.MONGODB: "",
}

_IDENTIFIER_QUOTE = {
    DatabaseType.MOCK: '"',
    DatabaseType.SQLITE: '"',
    DatabaseType.MYSQL: "`",
    DatabaseType.POSTGRESQL: '"',
    DatabaseType.MONGODB: "",
}

# Python driver module required by each server/embedded backend
_DRIVER_MODULE = {
    DatabaseType.MOCK: None,
    DatabaseType.SQLITE: "sqlite3",
    DatabaseType.MYSQL: "pymysql",
    DatabaseType.POSTGRESQL: "psycopg",
}

_MYSQL_ESCAPES = {
    "'": "\\'",
    '"': '\\"',
    "\\": "\\\\",
    "\n": "\\n",
    "\r": "\\r",
    "\0": "\\0",
    "\x1a": "\\Z",
}


def _check(db_type: DatabaseType) -> DatabaseType:
    if db_type not in KNOWN_TYPES:
        raise UnsupportedError(f"Unsupported database type: {db_type}", operation="dialect")
    return db_type


def resolve_type(db_type: DatabaseType, field_type: FieldType) -> str:
    """Column type name for an abstract field type."""
    return _TYPE_MAP[_check(db_type)][field_type]


def auto_increment(db_type: DatabaseType, column_type: str = "") -> str:
    """Auto-increment syntax for a dialect.

    PostgreSQL returns the replacement column type (``SERIAL`` or
    ``BIGSERIAL`` depending on ``column_type``); every other dialect returns
    the keyword appended after ``PRIMARY KEY``.
    """
    _check(db_type)
    if db_type == DatabaseType.MYSQL:
        return "AUTO_INCREMENT"
    if db_type == DatabaseType.POSTGRESQL:
        return "BIGSERIAL" if column_type.upper() == "BIGINT" else "SERIAL"
    return "AUTOINCREMENT"


def placeholder(db_type: DatabaseType, index: int = 1) -> str:
    """Parameter placeholder for the ``index``-th (1-based) parameter."""
    prefix = _PLACEHOLDER[_check(db_type)]
    if db_type == DatabaseType.POSTGRESQL:
        return f"{prefix}{index}"
    return prefix


def identifier_quote(db_type: DatabaseType) -> str:
    return _IDENTIFIER_QUOTE[_check(db_type)]


def quote_identifier(db_type: DatabaseType, identifier: str) -> str:
    """Quote an identifier, doubling any embedded quote character."""
    quote = identifier_quote(db_type)
    if not identifier or not quote:
        return identifier
    return quote + identifier.replace(quote, quote * 2) + quote


def escape_value(db_type: DatabaseType, value: str) -> str:
    """Escape a string for embedding inside a quoted SQL literal."""
    _check(db_type)
    if not value:
        return value
    if db_type == DatabaseType.SQLITE:
        return value.replace("'", "''")
    if db_type == DatabaseType.MYSQL:
        return "".join(_MYSQL_ESCAPES.get(ch, ch) for ch in value)
    if db_type == DatabaseType.POSTGRESQL:
        return value.replace("\\", "\\\\").replace("'", "''")
    return value


def format_value(db_type: DatabaseType, value: object) -> str:
    """Render a value as an inline SQL literal.

    Numbers and the ``NULL``/``CURRENT_TIMESTAMP`` keywords are emitted
    bare; strings are escaped and quoted. PostgreSQL uses an ``E''``
    literal so the doubled backslashes are read back as single ones.
    """
    _check(db_type)
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, (int, float)):
        return str(value)
    text = str(value)
    if text in ("NULL", "CURRENT_TIMESTAMP"):
        return text
    escaped = escape_value(db_type, text)
    if db_type in (DatabaseType.SQLITE, DatabaseType.MYSQL):
        return f"'{escaped}'"
    if db_type == DatabaseType.POSTGRESQL:
        return f"E'{escaped}'" if "\\" in text else f"'{escaped}'"
    return escaped


def max_batch_size(db_type: DatabaseType) -> int:
    """Largest rows-per-INSERT batch, or BATCH_NOT_SUPPORTED."""
    return _MAX_BATCH[_check(db_type)]


def supports_batch(db_type: DatabaseType) -> bool:
    return max_batch_size(db_type) != BATCH_NOT_SUPPORTED


def default_port(db_type: DatabaseType) -> int:
    return _DEFAULT_PORT[_check(db_type)]


def is_embedded(db_type: DatabaseType) -> bool:
    return _check(db_type) in (DatabaseType.MOCK, DatabaseType.SQLITE)


def is_server(db_type: DatabaseType) -> bool:
    return not is_embedded(db_type)


def is_supported(db_type: DatabaseType) -> bool:
    """Whether a backend for this type can be opened in this environment."""
    if db_type not in _DRIVER_MODULE:
        return False
    module = _DRIVER_MODULE[db_type]
    return module is None or importlib.util.find_spec(module) is not None


def last_insert_id_expression(db_type: DatabaseType, table: str, column: str = "id") -> str:
    """Query returning the primary key generated by the last INSERT."""
    _check(db_type)
    if db_type == DatabaseType.SQLITE:
        return "SELECT LAST_INSERT_ROWID()"
    if db_type == DatabaseType.POSTGRESQL:
        return (
            f"SELECT currval(pg_get_serial_sequence("
            f"{format_value(db_type, table)}, {format_value(db_type, column)}))"
        )
    if db_type == DatabaseType.MONGODB:
        raise UnsupportedError("MongoDB has no last-insert expression", operation="last_insert_id")
    return "SELECT LAST_INSERT_ID()"


def parse_key_value_string(value: str, delimiter: str) -> dict[str, str]:
    """Split ``k=v<delim>k=v`` into a dict with lower-case keys.

    Empty segments and segments without ``=`` are skipped.
    """
    result: dict[str, str] = {}
    parts = value.split() if delimiter == " " else value.split(delimiter)
    for part in parts:
        if "=" not in part:
            continue
        key, _, val = part.partition("=")
        result[key.strip().lower()] = val.strip()
    return result


def is_uri(connection_string: str) -> bool:
    return "://" in connection_string


def parse_connection_string(connection_string: str, db_type: DatabaseType) -> dict[str, str]:
    """Parse a server connection string into normalized keys.

    Accepts the key=value forms produced by LoggerConfig (``;`` separated
    for MySQL, space separated for PostgreSQL) and URI forms. Returned keys
    are ``host``, ``port``, ``user``, ``password`` and ``database``.
    """
    _check(db_type)
    if is_uri(connection_string):
        parsed = urlparse(connection_string)
        raw = {
            "host": parsed.hostname or "",
            "port": str(parsed.port) if parsed.port else "",
            "user": unquote(parsed.username or ""),
            "password": unquote(parsed.password or ""),
            "database": parsed.path.lstrip("/"),
        }
        for key, values in parse_qs(parsed.query).items():
            raw.setdefault(key.lower(), values[0])
    else:
        delimiter = " " if db_type == DatabaseType.POSTGRESQL else ";"
        raw = parse_key_value_string(connection_string, delimiter)

    aliases = {
        "host": ("host", "hostaddr", "server"),
        "port": ("port",),
        "user": ("user", "username", "uid"),
        "password": ("password", "pass", "pwd"),
        "database": ("database", "dbname", "db", "name"),
    }
    result: dict[str, str] = {}
    for key, names in aliases.items():
        for name in names:
            if raw.get(name):
                result[key] = raw[name]
                break
    if not result.get("port") and default_port(db_type) != PORT_NOT_SUPPORTED:
        result["port"] = str(default_port(db_type))
    return result
