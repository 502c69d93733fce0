"""
Rolling buffer of recent log records.

LogBuffer is a logging.Handler, so anything logged through a server
instance's logger is captured, and /api/logs serves the buffered entries.
"""

import logging
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Deque, Dict, List

from ..protocol import format_timestamp


@dataclass(frozen=True)
class LogEntry:
    """One buffered log line."""
    timestamp: datetime
    level: str
    message: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": format_timestamp(self.timestamp),
            "level": self.level,
            "message": self.message,
        }


class LogBuffer(logging.Handler):
    """
    Bounded in-memory log handler; the oldest entry is evicted when full.

    Args:
        capacity: Maximum number of entries kept
        level: Minimum record level captured
    """

    def __init__(self, capacity: int = 500, level: int = logging.INFO):
        if capacity <= 0:
            raise ValueError("Log buffer capacity must be positive")
        super().__init__(level)
        self.capacity = capacity
        self._entries: Deque[LogEntry] = deque(maxlen=capacity)

    def emit(self, record: logging.LogRecord) -> None:
        try:
            entry = LogEntry(
                timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc),
                level=record.levelname.lower(),
                message=record.getMessage(),
            )
        except Exception:
            self.handleError(record)
            return
        # handle() already holds the handler lock here
        self._entries.append(entry)

    def get_all(self) -> List[LogEntry]:
        """All buffered entries, oldest first."""
        with self.lock:
            return list(self._entries)

    def get_since(self, since: datetime) -> List[LogEntry]:
        """Entries strictly newer than since (naive datetimes are taken as UTC)."""
        if since.tzinfo is None:
            since = since.replace(tzinfo=timezone.utc)
        with self.lock:
            return [entry for entry in self._entries if entry.timestamp > since]

    def clear(self) -> None:
        with self.lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)
