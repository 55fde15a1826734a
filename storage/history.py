from __future__ import annotations
from collections import deque
from functools import lru_cache
from threading import Lock
from typing import Deque, Optional

from models.records import SensorReading
from settings import get_settings


class HistoryBuffer:
    """Sliding window of the most recent readings, oldest first."""

    def __init__(self, capacity: int = 30) -> None:
        if capacity <= 0:
            raise ValueError("History capacity must be positive.")
        self.capacity = capacity
        self._readings: Deque[SensorReading] = deque(maxlen=capacity)
        self._lock = Lock()

    def append(self, reading: SensorReading) -> None:
        with self._lock:
            self._readings.append(reading)

    def latest(self) -> Optional[SensorReading]:
        with self._lock:
            if not self._readings:
                return None
            return self._readings[-1]

    def snapshot(self) -> list[SensorReading]:
        with self._lock:
            return list(self._readings)

    def __len__(self) -> int:
        with self._lock:
            return len(self._readings)


@lru_cache
def build_default_history(capacity: Optional[int] = None) -> HistoryBuffer:
    settings = get_settings()
    size = settings.history_size if capacity is None else capacity
    return HistoryBuffer(capacity=size)
