"""Exception hierarchy for the sqlogger package.

Database and pipeline code raise these domain exceptions (chained with
``from e`` to keep the driver error) and leave logging to the caller.
Producer paths never raise them: failures on behalf of an accepted log
record are counted and routed to the internal error sink instead.
"""

from __future__ import annotations

from typing import Any


class SQLoggerError(Exception):
    """Base exception for all sqlogger failures.

    Attributes:
        operation: Name of the operation that failed, if known.
        details: Extra context about the failure.
    """

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.operation = operation
        self.details = details or {}

    def __str__(self) -> str:
        if self.operation:
            return f"{self.operation}: {super().__str__()}"
        return super().__str__()


class UnsupportedError(SQLoggerError):
    """Dialect or operation is not available for this database type."""

    pass


class InvalidArgumentError(SQLoggerError, ValueError):
    """Bad filter operator, out-of-range size, bad level string or UUID."""

    pass


class ConfigError(SQLoggerError):
    """Missing or dangerous configuration values."""

    pass


class ConnectFailureError(SQLoggerError):
    """The database could not be opened or created."""

    pass


class DriverFailureError(SQLoggerError):
    """The underlying driver rejected a statement.

    Attributes:
        driver_message: The driver's error text, verbatim.
    """

    def __init__(
        self,
        message: str,
        driver_message: str = "",
        operation: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message, operation=operation, details=details)
        self.driver_message = driver_message


class SchemaLogicError(SQLoggerError):
    """Inconsistent schema declaration, e.g. a foreign key on an undeclared field."""

    pass


class LoggerExistsError(SQLoggerError):
    """A logger with the requested name is already registered."""

    pass


class LoggerNotFoundError(SQLoggerError, KeyError):
    """No logger is registered under the requested name."""

    def __str__(self) -> str:
        # KeyError would otherwise repr() the message
        return SQLoggerError.__str__(self)
