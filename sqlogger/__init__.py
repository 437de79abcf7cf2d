"""Structured logger that stores every record as a row in a database table."""

import logging

from sqlogger.config import LoggerConfig, ValidateResult
from sqlogger.database.dialect import DatabaseType
from sqlogger.errors import (
    ConfigError,
    ConnectFailureError,
    DriverFailureError,
    InvalidArgumentError,
    LoggerExistsError,
    LoggerNotFoundError,
    SchemaLogicError,
    SQLoggerError,
    UnsupportedError,
)
from sqlogger.export import ExportFormat
from sqlogger.handler import SQLoggerHandler
from sqlogger.logger import (
    LogStream,
    SQLogger,
    log_debug,
    log_error,
    log_fatal,
    log_info,
    log_trace,
    log_warning,
)
from sqlogger.models import Filter, LogEntry, LogLevel, SourceInfo, Stats
from sqlogger.registry import LoggerRegistry, get_registry


def setup_logging(
    sqlogger_instance: SQLogger,
    level: str = "INFO",
    also_console: bool = True,
) -> SQLoggerHandler:
    """Route standard ``logging`` records into a SQLogger.

    Args:
        sqlogger_instance: Logger the records are persisted through.
        level: Minimum log level (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        also_console: If True, also log to console.

    Returns:
        The configured SQLoggerHandler instance.
    """
    handler = SQLoggerHandler(sqlogger_instance)
    handler.setLevel(getattr(logging, level.upper()))
    handler.setFormatter(logging.Formatter("%(name)s - %(message)s"))

    # Configure root logger
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, level.upper()))
    root_logger.addHandler(handler)

    # Optionally add console handler
    if also_console:
        console_handler = logging.StreamHandler()
        console_handler.setLevel(getattr(logging, level.upper()))
        console_handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        ))
        root_logger.addHandler(console_handler)

    return handler


__all__ = [
    "ConfigError",
    "ConnectFailureError",
    "DatabaseType",
    "DriverFailureError",
    "ExportFormat",
    "Filter",
    "InvalidArgumentError",
    "LogEntry",
    "LogLevel",
    "LogStream",
    "LoggerConfig",
    "LoggerExistsError",
    "LoggerNotFoundError",
    "LoggerRegistry",
    "SQLogger",
    "SQLoggerError",
    "SQLoggerHandler",
    "SchemaLogicError",
    "SourceInfo",
    "Stats",
    "UnsupportedError",
    "ValidateResult",
    "get_registry",
    "log_debug",
    "log_error",
    "log_fatal",
    "log_info",
    "log_trace",
    "log_warning",
    "setup_logging",
]
