"""File channel for failures that happen on behalf of accepted log records."""

from __future__ import annotations

import logging
import threading
from datetime import datetime
from pathlib import Path

from sqlogger.models import TIMESTAMP_FORMAT

logger = logging.getLogger(__name__)

DEFAULT_ERROR_LOG_FILE = "error_log.txt"
DEFAULT_MAX_BYTES = 10 * 1024 * 1024


class ErrorSink:
    """Appends ``<timestamp> [ERROR] <message>`` lines to a text file.

    When the file grows past ``max_bytes`` it is deleted and started over.
    The sink never touches a database backend. Each line is also mirrored
    to the ``sqlogger.error_sink`` logger at ERROR level.

    Attributes:
        path: Path of the error log file.
        max_bytes: Size threshold for rotation.
    """

    def __init__(self, path: str | Path = DEFAULT_ERROR_LOG_FILE, max_bytes: int = DEFAULT_MAX_BYTES):
        self.path = Path(path)
        self.max_bytes = max_bytes
        self._lock = threading.Lock()

    def write(self, message: str) -> None:
        """Record one failure. I/O problems are reported to stdlib logging only."""
        line = f"{datetime.now().strftime(TIMESTAMP_FORMAT)} [ERROR] {message}"
        logger.error(message)
        with self._lock:
            try:
                self._rotate_if_needed()
                self.path.parent.mkdir(parents=True, exist_ok=True)
                with open(self.path, "a", encoding="utf-8") as f:
                    f.write(line + "\n")
            except OSError as e:
                logger.warning(f"Could not write to error log {self.path}: {e}")

    def _rotate_if_needed(self) -> None:
        if self.path.exists() and self.path.stat().st_size > self.max_bytes:
            self.path.unlink()
            logger.info(f"Error log {self.path} exceeded {self.max_bytes} bytes and was recreated")

    def read_lines(self) -> list[str]:
        """All lines currently in the error log; empty if the file is missing."""
        with self._lock:
            if not self.path.exists():
                return []
            return self.path.read_text(encoding="utf-8").splitlines()
