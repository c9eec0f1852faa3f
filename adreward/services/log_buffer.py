"""
adreward.services.log_buffer — In-Memory Log Tail for the Admin API
====================================================================

A bounded, thread-safe buffer attached to the root logger so operators
can read recent records (including swallowed competition-update failures)
through ``GET /api/admin/logs`` without shell access.  Nothing is
persisted; the buffer empties on restart.
"""

from __future__ import annotations

import logging
import threading
from collections import deque
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

DEFAULT_CAPACITY = 2000
VALID_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")

_buffer: LogBuffer | None = None
_lock = threading.Lock()


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp: str
    level: str
    logger: str
    message: str


class LogBuffer:
    """Ring buffer of :class:`LogEntry` records."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        self._entries: deque[LogEntry] = deque(maxlen=capacity)
        self._lock = threading.Lock()

    def append(self, entry: LogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def tail(
        self,
        count: int = 200,
        *,
        level: str | None = None,
        logger_prefix: str | None = None,
    ) -> list[dict[str, str]]:
        """Newest *count* entries at or above *level*, oldest first."""
        floor = logging.getLevelName(level.upper()) if level else 0
        if not isinstance(floor, int):
            floor = 0

        with self._lock:
            snapshot = list(self._entries)

        matched = [
            asdict(entry)
            for entry in snapshot
            if logging.getLevelName(entry.level) >= floor
            and (not logger_prefix or entry.logger.startswith(logger_prefix))
        ]
        return matched[-count:] if count else matched

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class BufferHandler(logging.Handler):
    """Logging handler that feeds a :class:`LogBuffer`."""

    def __init__(self, buffer: LogBuffer, level: int = logging.DEBUG) -> None:
        super().__init__(level)
        self.buffer = buffer

    def emit(self, record: logging.LogRecord) -> None:
        try:
            message = self.format(record)
            self.buffer.append(LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=UTC).isoformat(),
                level=record.levelname,
                logger=record.name,
                message=message,
            ))
        except Exception:
            self.handleError(record)


# ---------------------------------------------------------------------------
# Process-wide singleton
# ---------------------------------------------------------------------------
def get_buffer() -> LogBuffer:
    global _buffer
    if _buffer is None:
        with _lock:
            if _buffer is None:
                _buffer = LogBuffer()
    return _buffer


def _installed_handler() -> BufferHandler | None:
    for handler in logging.getLogger().handlers:
        if isinstance(handler, BufferHandler):
            return handler
    return None


def install_handler(level: int = logging.INFO) -> BufferHandler:
    """Attach the buffer handler to the root logger (once per process).

    Uvicorn turns off propagation on its own loggers, so it is switched
    back on for them; the terminal may then show those lines twice.
    """
    handler = _installed_handler()
    if handler is None:
        handler = BufferHandler(get_buffer(), level=level)
        handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(handler)

    root = logging.getLogger()
    if root.level > level or root.level == logging.NOTSET:
        root.setLevel(level)

    for name in ("uvicorn", "uvicorn.access", "uvicorn.error"):
        logging.getLogger(name).propagate = True

    return handler


def get_logs(
    tail: int = 200,
    level: str | None = None,
    logger_prefix: str | None = None,
) -> list[dict[str, str]]:
    return get_buffer().tail(tail, level=level, logger_prefix=logger_prefix)


def get_capture_level() -> str:
    handler = _installed_handler()
    if handler is None:
        return logging.getLevelName(logging.getLogger().level)
    return logging.getLevelName(handler.level)


def set_capture_level(level_name: str) -> str:
    """Change the minimum level captured into the buffer.

    Raises
    ------
    ValueError
        If *level_name* is not one of :data:`VALID_LEVELS`.
    """
    level_name = level_name.upper()
    if level_name not in VALID_LEVELS:
        raise ValueError(f"Invalid level: {level_name}. Must be one of {VALID_LEVELS}")

    numeric = logging.getLevelName(level_name)
    handler = _installed_handler() or install_handler(level=numeric)
    handler.setLevel(numeric)
    if logging.getLogger().level > numeric:
        logging.getLogger().setLevel(numeric)
    return level_name
