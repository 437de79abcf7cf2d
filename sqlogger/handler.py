"""Bridge from the standard ``logging`` package into a SQLogger."""

from __future__ import annotations

import logging
import traceback

from sqlogger.logger import SQLogger
from sqlogger.models import LogLevel

# Records from these loggers are never forwarded, so failures inside the
# pipeline cannot loop back into the database.
INTERNAL_LOGGER_PREFIX = "sqlogger"


class SQLoggerHandler(logging.Handler):
    """Logging handler that persists records through a SQLogger.

    Function, file and line come from the LogRecord; the thread id is the
    record's thread. Exception tracebacks are appended to the message.

    Attributes:
        target: The SQLogger receiving the records.
    """

    def __init__(self, target: SQLogger, level: int = logging.NOTSET):
        """Initialize the handler.

        Args:
            target: Logger the records are written to.
            level: Minimum ``logging`` level handled.
        """
        super().__init__(level)
        self.target = target

    def emit(self, record: logging.LogRecord) -> None:
        """Forward a log record to the SQLogger.

        Args:
            record: The log record to store.
        """
        if record.name == INTERNAL_LOGGER_PREFIX or record.name.startswith(INTERNAL_LOGGER_PREFIX + "."):
            return
        try:
            message = self.format(record)
            if record.exc_info and not record.exc_text:
                message += "\n" + "".join(traceback.format_exception(*record.exc_info))

            self.target.log_add(
                LogLevel.from_logging_level(record.levelno),
                message,
                function=record.funcName or "",
                file=record.pathname or "",
                line=record.lineno or 0,
                thread_id=str(record.thread) if record.thread is not None else None,
            )
        except Exception:
            # Don't raise exceptions from the handler
            self.handleError(record)
