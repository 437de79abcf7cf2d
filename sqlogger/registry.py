"""Process-wide registry of named loggers."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from sqlogger.config import LoggerConfig
from sqlogger.database.factory import create_backend
from sqlogger.errors import LoggerExistsError, LoggerNotFoundError
from sqlogger.logger import SQLogger
from sqlogger.models import SourceInfo
from sqlogger.writer import LogWriter

logger = logging.getLogger(__name__)


class LoggerRegistry:
    """Name -> SQLogger map guarded by one lock.

    Removal always shuts the logger down before it leaves the map.
    """

    def __init__(self):
        self._loggers: dict[str, SQLogger] = {}
        self._lock = threading.RLock()

    def create_logger(self, config: LoggerConfig, source_info: SourceInfo | None = None) -> SQLogger:
        """Build, register and return a logger named ``config.name``.

        Raises:
            LoggerExistsError: If the name is already registered.
            ConfigError: If the configuration is invalid.
            ConnectFailureError: If the database cannot be opened.
        """
        with self._lock:
            if config.name in self._loggers:
                raise LoggerExistsError(f"Logger with name '{config.name}' already exists", operation="create_logger")
            instance = SQLogger(config, source_info=source_info)
            self._loggers[config.name] = instance
            logger.info(f"Registered logger {config.name!r}")
            return instance

    def get_logger(self, name: str) -> SQLogger:
        """Return the logger registered as ``name``.

        Raises:
            LoggerNotFoundError: With the list of registered names.
        """
        with self._lock:
            try:
                return self._loggers[name]
            except KeyError:
                available = ", ".join(sorted(self._loggers)) or "none"
                raise LoggerNotFoundError(
                    f"Logger '{name}' not found. Available loggers: {available}", operation="get_logger"
                ) from None

    def has_logger(self, name: str) -> bool:
        """True if a logger is registered as ``name``."""
        with self._lock:
            return name in self._loggers

    def remove_logger(self, name: str) -> None:
        """Shut down and unregister ``name``.

        Raises:
            LoggerNotFoundError: If ``name`` is not registered.
        """
        with self._lock:
            instance = self.get_logger(name)
            instance.shutdown()
            del self._loggers[name]
            logger.info(f"Removed logger {name!r}")

    def remove_all_loggers(self) -> int:
        """Shut down and unregister every logger; returns how many were removed."""
        with self._lock:
            count = len(self._loggers)
            for instance in self._loggers.values():
                instance.shutdown()
            self._loggers.clear()
            return count

    def remove_if(self, predicate: Callable[[SQLogger], bool]) -> int:
        """Shut down and unregister every logger matching ``predicate``."""
        with self._lock:
            names = [name for name, instance in self._loggers.items() if predicate(instance)]
            for name in names:
                self._loggers.pop(name).shutdown()
            return len(names)

    def get_logger_config(self, name: str) -> LoggerConfig | None:
        """Get the configuration of a registered logger.

        Args:
            name: Registered logger name.

        Returns:
            A copy of the logger's configuration, or None if ``name`` is unknown.
        """
        with self._lock:
            instance = self._loggers.get(name)
            return instance.get_config() if instance else None

    def get_all_loggers_configs(self) -> dict[str, LoggerConfig]:
        """Get the configurations of all registered loggers.

        Returns:
            Mapping of logger name to a copy of its configuration.
        """
        with self._lock:
            return {name: instance.get_config() for name, instance in self._loggers.items()}

    def get_count(self) -> int:
        """Number of registered loggers."""
        with self._lock:
            return len(self._loggers)

    @staticmethod
    def create_database(config: LoggerConfig) -> None:
        """Create the database and install the schema without starting a logger.

        Raises:
            ConfigError: If the configuration is invalid.
            ConnectFailureError: If the database cannot be opened or created.
            DriverFailureError: If the schema cannot be installed.
        """
        config.ensure_valid()
        backend = create_backend(
            config.database_type,
            config.to_connection_string(),
            allow_drop=config.allow_drop,
            allow_create=True,
        )
        try:
            writer = LogWriter(backend, config.database_table, config.use_source_info)
            if config.use_source_info:
                writer.create_sources_table()
            writer.create_logs_table()
            writer.create_indexes()
        finally:
            backend.disconnect()
        logger.info(f"Database for logger {config.name!r} is ready")


_registry: LoggerRegistry | None = None
_registry_lock = threading.Lock()


def get_registry() -> LoggerRegistry:
    """Return the process-wide registry, creating it on first use."""
    global _registry
    with _registry_lock:
        if _registry is None:
            _registry = LoggerRegistry()
        return _registry
