"""Logging setup and an in-memory diagnostic log.

Engine components never configure logging themselves; they take a
``logging.Logger`` at construction. Applications call
:func:`configure_logging` once and may attach a :class:`DiagnosticLog` to
show recent messages in a diagnostics view.
"""

import logging
import sys
import threading
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

LOGGER_NAME = "q2_discovery"
MAX_DIAGNOSTIC_ENTRIES = 1000

_console_handler: Optional[logging.Handler] = None


@dataclass(frozen=True)
class LogEntry:
    """One captured log message."""
    timestamp: datetime
    level: str
    message: str
    details: Optional[str] = None

    @property
    def formatted_message(self) -> str:
        return f"[{self.timestamp:%H:%M:%S}.{self.timestamp.microsecond // 1000:03d}] [{self.level}] {self.message}"


class DiagnosticLog(logging.Handler):
    """Keeps the most recent log records in a bounded, thread-safe buffer."""

    def __init__(self, capacity: int = MAX_DIAGNOSTIC_ENTRIES, level: int = logging.DEBUG):
        super().__init__(level)
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._entries_lock = threading.Lock()
        self._formatter = logging.Formatter()

    def emit(self, record: logging.LogRecord) -> None:
        try:
            details = None
            if record.exc_info:
                details = self._formatter.formatException(record.exc_info)
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created),
                level=record.levelname,
                message=record.getMessage(),
                details=details,
            )
            with self._entries_lock:
                self._entries.append(entry)
        except Exception:
            self.handleError(record)

    def entries(self) -> list[LogEntry]:
        with self._entries_lock:
            return list(self._entries)

    def formatted(self) -> list[str]:
        return [entry.formatted_message for entry in self.entries()]

    def clear(self) -> None:
        with self._entries_lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._entries_lock:
            return len(self._entries)


def configure_logging(
    verbose: bool = False,
    diagnostic_log: Optional[DiagnosticLog] = None,
) -> logging.Logger:
    """Configure the package logger for command-line use.

    Args:
        verbose: Log DEBUG and up to stderr instead of WARNING and up.
        diagnostic_log: Optional in-memory handler to attach as well.

    Returns:
        The package logger.
    """
    global _console_handler

    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG)

    if _console_handler is not None and _console_handler.stream is not sys.stderr:
        # sys.stderr was replaced since the last call; the old stream may be closed
        logger.removeHandler(_console_handler)
        _console_handler.close()
        _console_handler = None

    if _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stderr)
        _console_handler.setFormatter(
            logging.Formatter("%(asctime)s [%(levelname)s] %(message)s", "%H:%M:%S")
        )
        logger.addHandler(_console_handler)
    _console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)

    if diagnostic_log is not None and diagnostic_log not in logger.handlers:
        logger.addHandler(diagnostic_log)

    return logger
