from __future__ import annotations
import logging
from collections import deque
from datetime import datetime, timezone
from functools import lru_cache
from threading import Lock
from typing import Deque, Dict, Optional
from uuid import uuid4

from app.schemas import LogEntry, LogType
from settings import get_settings

logger = logging.getLogger("pyroguard.events")

_LEVELS: Dict[LogType, int] = {
    LogType.info: logging.INFO,
    LogType.success: logging.INFO,
    LogType.warning: logging.WARNING,
    LogType.alert: logging.ERROR,
}


class EventLog:
    """Append-only operator event stream.

    Entries are never mutated. When ``max_entries`` is set the oldest entries
    fall off the front; otherwise the log grows without bound.
    """

    def __init__(self, max_entries: Optional[int] = None) -> None:
        self.max_entries = max_entries
        self._entries: Deque[LogEntry] = deque(maxlen=max_entries)
        self._lock = Lock()

    def append(self, message: str, type: LogType = LogType.info) -> LogEntry:
        entry = LogEntry(
            id=uuid4().hex,
            timestamp=datetime.now(timezone.utc),
            message=message,
            type=type,
        )
        with self._lock:
            self._entries.append(entry)
        logger.log(_LEVELS[type], message, extra={"log_type": type.value})
        return entry.model_copy()

    def entries(self, limit: Optional[int] = None) -> list[LogEntry]:
        """Return copies of the stored entries, oldest first.

        ``limit`` keeps only the most recent ``limit`` entries.
        """

        with self._lock:
            items = list(self._entries)
        if limit is not None:
            items = items[-limit:] if limit > 0 else []
        return [item.model_copy() for item in items]

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


@lru_cache
def build_default_event_log(max_entries: Optional[int] = None) -> EventLog:
    settings = get_settings()
    cap = settings.event_log_max_entries if max_entries is None else max_entries
    return EventLog(max_entries=cap)
