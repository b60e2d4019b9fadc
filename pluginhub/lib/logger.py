"""
Logging for PluginHub.

Store and link operations pass the filesystem path they touched as
`extra={"path": ...}`; the in-memory buffer keeps it so `GET /api/logs`
can show which object or editor folder an entry is about.
"""

import logging
import sys
from collections import deque
from datetime import datetime, timezone
from typing import Any, Optional

from pluginhub.config import get_settings

# Chatty third-party loggers capped at WARNING
_QUIET_LOGGERS = ("httpx", "httpcore", "uvicorn.access", "multipart")


class LogBuffer:
    """Bounded buffer of recent log entries, oldest dropped first."""

    def __init__(self, maxlen: int = 1000):
        self._buffer: deque[dict[str, Any]] = deque(maxlen=maxlen)

    def append(self, entry: dict[str, Any]) -> None:
        self._buffer.append(entry)

    def get_recent(self, limit: int = 100, min_level: Optional[str] = None) -> list[dict[str, Any]]:
        """Most recent entries, optionally only those at or above min_level."""
        entries = list(self._buffer)
        if min_level:
            threshold = logging.getLevelName(min_level.upper())
            if isinstance(threshold, int):
                entries = [e for e in entries if e["levelno"] >= threshold]
        return entries[-limit:] if limit < len(entries) else entries

    def clear(self) -> None:
        self._buffer.clear()

    def __len__(self) -> int:
        return len(self._buffer)


class BufferedHandler(logging.Handler):
    def __init__(self, buffer: LogBuffer, level: int = logging.NOTSET):
        super().__init__(level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = {
                "timestamp": datetime.fromtimestamp(record.created, timezone.utc).isoformat(),
                "level": record.levelname,
                "levelno": record.levelno,
                "logger": record.name,
                "message": self.format(record),
            }
            path = getattr(record, "path", None)
            if path is not None:
                entry["path"] = str(path)
            self.buffer.append(entry)
        except Exception:
            self.handleError(record)


_log_buffer = LogBuffer()


def get_log_buffer() -> LogBuffer:
    return _log_buffer


def setup_logging(
    level: Optional[str] = None,
    format_string: Optional[str] = None,
) -> None:
    """Route all logging to stdout and the shared buffer at the configured level."""
    settings = get_settings()

    log_level = getattr(logging, (level or settings.log_level).upper())
    formatter = logging.Formatter(format_string or settings.log_format)

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)
    root_logger.handlers.clear()

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    buffer_handler = BufferedHandler(_log_buffer, log_level)
    buffer_handler.setFormatter(logging.Formatter("%(message)s"))
    root_logger.addHandler(buffer_handler)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
