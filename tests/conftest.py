"""Shared fixtures for the sqlogger tests."""

import pytest

from sqlogger.config import LoggerConfig
from sqlogger.database.dialect import DatabaseType
from sqlogger.logger import SQLogger


@pytest.fixture
def mock_config(tmp_path):
    """Synchronous Mock configuration writing its error log into tmp_path."""
    return LoggerConfig(
        name="test_logger",
        database_type=DatabaseType.MOCK,
        database_name="mock",
        error_log_file=str(tmp_path / "error_log.txt"),
    )


@pytest.fixture
def sqlite_config(tmp_path):
    """Synchronous SQLite configuration backed by a file in tmp_path."""
    return LoggerConfig(
        name="sqlite_logger",
        database_type=DatabaseType.SQLITE,
        database_name=str(tmp_path / "logs.db"),
        error_log_file=str(tmp_path / "error_log.txt"),
    )


@pytest.fixture
def mock_logger(mock_config):
    """Running Mock logger, shut down after the test."""
    instance = SQLogger(mock_config)
    yield instance
    instance.shutdown()
