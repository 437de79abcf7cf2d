"""Logger configuration: validation, connection strings, INI and .env loading."""

from __future__ import annotations

import configparser
import logging
import os
import uuid as uuid_lib
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from sqlogger import crypto
from sqlogger.database import dialect
from sqlogger.database.dialect import DatabaseType
from sqlogger.error_sink import DEFAULT_ERROR_LOG_FILE, DEFAULT_MAX_BYTES
from sqlogger.errors import ConfigError, SQLoggerError, UnsupportedError
from sqlogger.models import LOGS_TABLE_NAME, LogLevel, SourceInfo

logger = logging.getLogger(__name__)

SECTION_LOGGER = "Logger"
SECTION_DATABASE = "Database"
SECTION_SOURCE = "Source"

KEY_NAME = "Name"
KEY_SYNC_MODE = "SyncMode"
KEY_NUM_THREADS = "NumThreads"
KEY_ONLY_FILE_NAMES = "OnlyFileNames"
KEY_MIN_LOG_LEVEL = "MinLogLevel"
KEY_USE_BATCH = "UseBatch"
KEY_BATCH_SIZE = "BatchSize"
KEY_USE_SOURCE_INFO = "UseSourceInfo"
KEY_DATABASE_TABLE = "Table"
KEY_DATABASE_HOST = "Host"
KEY_DATABASE_PORT = "Port"
KEY_DATABASE_USER = "User"
KEY_DATABASE_PASS = "Pass"
KEY_DATABASE_TYPE = "Type"
KEY_SOURCE_UUID = "Uuid"

NUM_THREADS_MIN = 1
NUM_THREADS_MAX = 256
PORT_MIN = 0
PORT_MAX = 65535

DEFAULT_NUM_THREADS = 4
DEFAULT_BATCH_SIZE = 100

DANGEROUS_SQL_PATTERNS = (
    "--", ";", '"', "'", "/*", "*/", "xp_", "exec ", "union ", "select ",
    "insert ", "update ", "delete ", "drop ", "truncate ", "alter ",
    "create ", "shutdown", "1=1", " or ",
)


def _tag(section: str, key: str) -> str:
    return f"[{section}]{key}"


def contains_sql_injection(value: str) -> bool:
    """Case-insensitive check against the dangerous SQL pattern list."""
    lowered = value.lower()
    return any(pattern in lowered for pattern in DANGEROUS_SQL_PATTERNS)


def is_valid_uuid(value: str) -> bool:
    """True for the canonical 8-4-4-4-12 hex form."""
    try:
        return str(uuid_lib.UUID(value)) == value.lower()
    except (ValueError, AttributeError, TypeError):
        return False


@dataclass
class ValidateResult:
    """Outcome of LoggerConfig.validate()."""

    missing: list[str] = field(default_factory=list)
    invalid: list[tuple[str, str]] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.missing and not self.invalid

    def add_missing(self, param: str) -> None:
        self.missing.append(param)

    def add_invalid(self, param: str, details: str) -> None:
        self.invalid.append((param, details))

    def merge(self, other: "ValidateResult") -> None:
        self.missing.extend(other.missing)
        self.invalid.extend(other.invalid)
        self.warnings.extend(other.warnings)

    def format(self) -> str:
        """Human-readable list of the problems found."""
        lines = []
        if self.missing:
            lines.append("Missing params:")
            lines.append(", ".join(self.missing))
        if self.invalid:
            lines.append("Invalid params:")
            lines.extend(f"{param}: {details}" for param, details in self.invalid)
        if self.warnings:
            lines.append("Warnings:")
            lines.extend(self.warnings)
        return "\n".join(lines)


@dataclass
class LoggerConfig:
    """Configuration bundle of one logger instance.

    Treated as immutable once a logger is built from it; the logger keeps
    its own copy.
    """

    name: str = ""
    sync_mode: bool = True
    num_threads: int = DEFAULT_NUM_THREADS
    only_file_names: bool = False
    min_log_level: LogLevel = LogLevel.TRACE
    use_batch: bool = False
    batch_size: int = DEFAULT_BATCH_SIZE
    database_type: DatabaseType | None = None
    database_name: str = ""
    database_table: str = LOGS_TABLE_NAME
    database_host: str = ""
    database_port: int | None = None
    database_user: str = ""
    database_pass: str = ""
    source_uuid: str = ""
    source_name: str = ""
    pass_key: str = ""
    use_source_info: bool = False
    allow_drop: bool = False
    allow_create: bool = True
    error_log_file: str = DEFAULT_ERROR_LOG_FILE
    error_log_max_bytes: int = DEFAULT_MAX_BYTES

    def copy(self) -> "LoggerConfig":
        return replace(self)

    def validate(self, source_info: SourceInfo | None = None) -> ValidateResult:
        """Check the configuration without raising.

        Args:
            source_info: Source handed to the logger at construction, used
                to warn when it disagrees with the configured source.

        Returns:
            ValidateResult listing missing and invalid parameters.
        """
        result = ValidateResult()
        self._validate_logger(result)
        self._validate_database(result)
        if self.use_source_info:
            self._validate_source(result, source_info)
        return result

    def ensure_valid(self, source_info: SourceInfo | None = None) -> None:
        """Raise ConfigError if ``validate()`` reports any problem."""
        result = self.validate(source_info)
        for warning in result.warnings:
            logger.warning(warning)
        if not result.ok:
            raise ConfigError(
                f"Invalid configuration:\n{result.format()}",
                operation="validate_config",
                details={"missing": result.missing, "invalid": result.invalid},
            )

    def _validate_logger(self, result: ValidateResult) -> None:
        if not self.name:
            result.add_missing(_tag(SECTION_LOGGER, KEY_NAME))
        elif contains_sql_injection(self.name):
            result.add_invalid(_tag(SECTION_LOGGER, KEY_NAME), f"Contains dangerous SQL pattern '{self.name}'")

        if self.min_log_level == LogLevel.UNKNOWN:
            result.add_invalid(_tag(SECTION_LOGGER, KEY_MIN_LOG_LEVEL), "Unknown log level")

        if not NUM_THREADS_MIN <= self.num_threads <= NUM_THREADS_MAX:
            bound = (
                f"lesser than {NUM_THREADS_MIN}"
                if self.num_threads < NUM_THREADS_MIN
                else f"bigger than {NUM_THREADS_MAX}"
            )
            result.add_invalid(
                _tag(SECTION_LOGGER, KEY_NUM_THREADS),
                f"Threads count could not be {bound} ({self.num_threads})",
            )

        if self.use_batch and self.database_type is not None:
            if not dialect.supports_batch(self.database_type):
                result.add_invalid(
                    _tag(SECTION_LOGGER, KEY_USE_BATCH),
                    f"Batch insert is not supported for {self.database_type.value}",
                )
            else:
                max_batch = dialect.max_batch_size(self.database_type)
                if not dialect.MIN_BATCH_SIZE <= self.batch_size <= max_batch:
                    bound = (
                        f"lesser than {dialect.MIN_BATCH_SIZE}"
                        if self.batch_size < dialect.MIN_BATCH_SIZE
                        else f"bigger than {max_batch}"
                    )
                    result.add_invalid(
                        _tag(SECTION_LOGGER, KEY_BATCH_SIZE),
                        f"Batch size for {self.database_type.value} could not be {bound} ({self.batch_size})",
                    )

    def _validate_database(self, result: ValidateResult) -> None:
        if self.database_type is None:
            result.add_missing(_tag(SECTION_DATABASE, KEY_DATABASE_TYPE))
        if not self.database_name:
            result.add_missing(_tag(SECTION_DATABASE, KEY_NAME))
        if not self.database_table:
            result.add_missing(_tag(SECTION_DATABASE, KEY_DATABASE_TABLE))

        if self.database_type is not None and dialect.is_server(self.database_type):
            if not self.database_host:
                result.add_missing(_tag(SECTION_DATABASE, KEY_DATABASE_HOST))
            if not self.database_user:
                result.add_missing(_tag(SECTION_DATABASE, KEY_DATABASE_USER))
            if not self.database_pass:
                result.add_missing(_tag(SECTION_DATABASE, KEY_DATABASE_PASS))
            if self.database_port is None:
                result.add_missing(_tag(SECTION_DATABASE, KEY_DATABASE_PORT))
            elif not PORT_MIN <= self.database_port <= PORT_MAX:
                bound = f"lesser than {PORT_MIN}" if self.database_port < PORT_MIN else f"bigger than {PORT_MAX}"
                result.add_invalid(_tag(SECTION_DATABASE, KEY_DATABASE_PORT), f"Port number {bound}")

        if self.database_type is not None and not dialect.is_supported(self.database_type):
            result.add_invalid(
                _tag(SECTION_DATABASE, KEY_DATABASE_TYPE),
                f"Requested database type {self.database_type.value} not supported in this build",
            )

        for key, value in (
            (KEY_NAME, self.database_name),
            (KEY_DATABASE_TABLE, self.database_table),
            (KEY_DATABASE_USER, self.database_user),
            (KEY_DATABASE_HOST, self.database_host),
        ):
            if value and contains_sql_injection(value):
                result.add_invalid(_tag(SECTION_DATABASE, key), f"Contains dangerous SQL pattern '{value}'")

    def _validate_source(self, result: ValidateResult, source_info: SourceInfo | None) -> None:
        if self.source_uuid and not is_valid_uuid(self.source_uuid):
            result.add_invalid(_tag(SECTION_SOURCE, KEY_SOURCE_UUID), f"UUID is not correct: {self.source_uuid}")
        if source_info is not None and not is_valid_uuid(source_info.uuid):
            result.add_invalid("SourceInfo.uuid", f"UUID is not correct: {source_info.uuid}")

        if source_info is not None and (self.source_uuid or self.source_name):
            if (self.source_uuid and self.source_uuid != source_info.uuid) or (
                self.source_name and self.source_name != source_info.name
            ):
                result.warnings.append(
                    f"Configured source {self.source_name!r} ({self.source_uuid}) differs from "
                    f"the source passed to the logger {source_info.name!r} ({source_info.uuid}); "
                    "the passed source is used"
                )

    def to_connection_string(self) -> str:
        """Build the connection string handed to the backend.

        Raises:
            ConfigError: If no database type is configured.
            UnsupportedError: For an unknown database type.
        """
        db_type = self.database_type
        if db_type is None:
            raise ConfigError("Database type is not specified in config", operation="connection_string")

        if db_type in (DatabaseType.MOCK, DatabaseType.SQLITE):
            return self.database_name

        if db_type == DatabaseType.MYSQL:
            parts = []
            if self.database_host:
                parts.append(f"{KEY_DATABASE_HOST}={self.database_host}")
            if self.database_port is not None:
                parts.append(f"{KEY_DATABASE_PORT}={self.database_port}")
            if self.database_user:
                parts.append(f"{KEY_DATABASE_USER}={self.database_user}")
            if self.database_pass:
                parts.append(f"{KEY_DATABASE_PASS}={self.database_pass}")
            if self.database_name:
                parts.append(f"Database={self.database_name}")
            return ";".join(parts)

        if db_type == DatabaseType.POSTGRESQL:
            parts = []
            if self.database_host:
                parts.append(f"host={self.database_host}")
            if self.database_port is not None:
                parts.append(f"port={self.database_port}")
            if self.database_user:
                parts.append(f"user={self.database_user}")
            if self.database_pass:
                parts.append(f"password={self.database_pass}")
            if self.database_name:
                parts.append(f"dbname={self.database_name}")
            return " ".join(parts)

        if db_type == DatabaseType.MONGODB:
            uri = "mongodb://"
            if self.database_user and self.database_pass:
                uri += f"{self.database_user}:{self.database_pass}@"
            uri += self.database_host or "localhost"
            if self.database_port is not None:
                uri += f":{self.database_port}"
            return uri + "/" + (self.database_name or "test")

        raise UnsupportedError(f"Unsupported database type: {db_type}", operation="connection_string")

    @classmethod
    def from_ini(cls, path: str | Path, pass_key: str | None = None) -> "LoggerConfig":
        """Load a configuration from an INI file.

        Args:
            path: INI file with ``[Logger]``, ``[Database]`` and ``[Source]`` sections.
            pass_key: Key used to decrypt ``[Database]Pass``.

        Returns:
            The loaded configuration (not yet validated).

        Raises:
            ConfigError: If the file cannot be read, a value cannot be parsed,
                or ``Pass`` is present without a pass key.
        """
        parser = configparser.ConfigParser(interpolation=None)
        try:
            if not parser.read(path, encoding="utf-8"):
                raise ConfigError(f"Cannot read config file: {path}", operation="load_ini")
        except configparser.Error as e:
            raise ConfigError(f"Cannot parse config file {path}: {e}", operation="load_ini") from e

        config = cls(pass_key=pass_key or "")
        try:
            if parser.has_section(SECTION_LOGGER):
                section = parser[SECTION_LOGGER]
                config.name = section.get(KEY_NAME, config.name)
                config.sync_mode = section.getboolean(KEY_SYNC_MODE, config.sync_mode)
                config.num_threads = section.getint(KEY_NUM_THREADS, config.num_threads)
                config.only_file_names = section.getboolean(KEY_ONLY_FILE_NAMES, config.only_file_names)
                if KEY_MIN_LOG_LEVEL in section:
                    config.min_log_level = LogLevel.from_string(section[KEY_MIN_LOG_LEVEL])
                config.use_batch = section.getboolean(KEY_USE_BATCH, config.use_batch)
                config.batch_size = section.getint(KEY_BATCH_SIZE, config.batch_size)
                config.use_source_info = section.getboolean(KEY_USE_SOURCE_INFO, config.use_source_info)

            if parser.has_section(SECTION_DATABASE):
                section = parser[SECTION_DATABASE]
                config.database_name = section.get(KEY_NAME, config.database_name)
                config.database_table = section.get(KEY_DATABASE_TABLE, config.database_table)
                config.database_host = section.get(KEY_DATABASE_HOST, config.database_host)
                if KEY_DATABASE_PORT in section:
                    config.database_port = section.getint(KEY_DATABASE_PORT)
                config.database_user = section.get(KEY_DATABASE_USER, config.database_user)
                if KEY_DATABASE_PASS in section:
                    if not pass_key:
                        raise ConfigError(crypto.ERR_MSG_PASSKEY_EMPTY, operation="load_ini")
                    config.database_pass = crypto.decrypt(section[KEY_DATABASE_PASS], pass_key)
                if KEY_DATABASE_TYPE in section:
                    config.database_type = DatabaseType.from_string(section[KEY_DATABASE_TYPE])

            if parser.has_section(SECTION_SOURCE):
                section = parser[SECTION_SOURCE]
                config.source_uuid = section.get(KEY_SOURCE_UUID, config.source_uuid)
                config.source_name = section.get(KEY_NAME, config.source_name)
        except ConfigError:
            raise
        except (ValueError, SQLoggerError) as e:
            raise ConfigError(f"Invalid value in {path}: {e}", operation="load_ini") from e

        logger.debug(f"Loaded logger config {config.name!r} from {path}")
        return config

    def save_ini(self, path: str | Path) -> None:
        """Write the configuration in the layout read by ``from_ini``.

        Raises:
            ConfigError: If a password is set but no pass key is.
        """
        parser = configparser.ConfigParser(interpolation=None)
        parser.optionxform = str
        parser[SECTION_LOGGER] = {
            KEY_NAME: self.name,
            KEY_SYNC_MODE: str(self.sync_mode).lower(),
            KEY_NUM_THREADS: str(self.num_threads),
            KEY_ONLY_FILE_NAMES: str(self.only_file_names).lower(),
            KEY_MIN_LOG_LEVEL: self.min_log_level.name,
            KEY_USE_BATCH: str(self.use_batch).lower(),
            KEY_BATCH_SIZE: str(self.batch_size),
            KEY_USE_SOURCE_INFO: str(self.use_source_info).lower(),
        }

        database: dict[str, str] = {KEY_NAME: self.database_name, KEY_DATABASE_TABLE: self.database_table}
        if self.database_host:
            database[KEY_DATABASE_HOST] = self.database_host
        if self.database_port is not None:
            database[KEY_DATABASE_PORT] = str(self.database_port)
        if self.database_user:
            database[KEY_DATABASE_USER] = self.database_user
        if self.database_pass:
            if not self.pass_key:
                raise ConfigError(crypto.ERR_MSG_PASSKEY_EMPTY, operation="save_ini")
            database[KEY_DATABASE_PASS] = crypto.encrypt(self.database_pass, self.pass_key)
        if self.database_type is not None:
            database[KEY_DATABASE_TYPE] = self.database_type.value
        parser[SECTION_DATABASE] = database

        if self.source_uuid or self.source_name:
            parser[SECTION_SOURCE] = {KEY_SOURCE_UUID: self.source_uuid, KEY_NAME: self.source_name}

        Path(path).parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            parser.write(f)

    @classmethod
    def from_env(cls, prefix: str = "SQLOGGER_", env_file: str | Path | None = None) -> "LoggerConfig":
        """Build a configuration from environment variables.

        A ``.env`` file is loaded first (``env_file`` or the nearest one);
        variables already set in the environment take precedence.

        Raises:
            ConfigError: If a value cannot be parsed.
        """
        load_dotenv(env_file)

        def get(key: str, default: str = "") -> str:
            return os.getenv(f"{prefix}{key}", default)

        def get_bool(key: str, default: bool) -> bool:
            value = get(key)
            return value.strip().lower() in ("1", "true", "yes", "on") if value else default

        try:
            db_type = get("DB_TYPE")
            port = get("DB_PORT")
            level = get("MIN_LOG_LEVEL")
            config = cls(
                name=get("NAME"),
                sync_mode=get_bool("SYNC_MODE", True),
                num_threads=int(get("NUM_THREADS", str(DEFAULT_NUM_THREADS))),
                only_file_names=get_bool("ONLY_FILE_NAMES", False),
                min_log_level=LogLevel.from_string(level) if level else LogLevel.TRACE,
                use_batch=get_bool("USE_BATCH", False),
                batch_size=int(get("BATCH_SIZE", str(DEFAULT_BATCH_SIZE))),
                database_type=DatabaseType.from_string(db_type) if db_type else None,
                database_name=get("DB_NAME"),
                database_table=get("DB_TABLE", LOGS_TABLE_NAME),
                database_host=get("DB_HOST"),
                database_port=int(port) if port else None,
                database_user=get("DB_USER"),
                database_pass=get("DB_PASS"),
                source_uuid=get("SOURCE_UUID"),
                source_name=get("SOURCE_NAME"),
                use_source_info=get_bool("USE_SOURCE_INFO", False),
                error_log_file=get("ERROR_LOG_FILE", DEFAULT_ERROR_LOG_FILE),
            )
        except (ValueError, SQLoggerError) as e:
            raise ConfigError(f"Invalid environment configuration: {e}", operation="load_env") from e
        return config

    def to_dict(self) -> dict[str, Any]:
        """Snapshot of the configuration with the password masked."""
        return {
            "name": self.name,
            "sync_mode": self.sync_mode,
            "num_threads": self.num_threads,
            "only_file_names": self.only_file_names,
            "min_log_level": self.min_log_level.name,
            "use_batch": self.use_batch,
            "batch_size": self.batch_size,
            "database_type": self.database_type.value if self.database_type else None,
            "database_name": self.database_name,
            "database_table": self.database_table,
            "database_host": self.database_host,
            "database_port": self.database_port,
            "database_user": self.database_user,
            "database_pass": "***" if self.database_pass else "",
            "source_uuid": self.source_uuid,
            "source_name": self.source_name,
            "use_source_info": self.use_source_info,
        }
