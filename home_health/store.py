import threading
from datetime import datetime
from typing import List, Optional

from .models import CanonicalReading, Liveness

DEFAULT_CAPACITY = 100
HISTORY_WINDOW = 24
RECENT_WINDOW = 5


class ReadingStore:
    """
    Thread-safe bounded history of readings:
    - ingest paths (HTTP handlers, datagram worker, demo feeder) APPEND
    - API handlers READ snapshots (copies, never a list mid-eviction)
    """
    def __init__(self, capacity: int = DEFAULT_CAPACITY):
        if capacity <= 0:
            raise ValueError(f"Store capacity must be positive, got {capacity}")
        self.capacity = capacity
        self._lock = threading.Lock()
        self._readings: List[CanonicalReading] = []
        self._latest: Optional[CanonicalReading] = None

    def append(self, reading: CanonicalReading) -> None:
        with self._lock:
            self._readings.append(reading)
            self._latest = reading
            if len(self._readings) > self.capacity:
                self._readings = self._readings[-self.capacity:]

    def latest(self) -> Optional[CanonicalReading]:
        with self._lock:
            return self._latest

    def history(self, n: int = HISTORY_WINDOW) -> List[CanonicalReading]:
        """Last min(n, len) readings, oldest first."""
        if n <= 0:
            return []
        with self._lock:
            return list(self._readings[-n:])

    def recent(self, n: int = RECENT_WINDOW) -> List[CanonicalReading]:
        return self.history(n)

    def __len__(self) -> int:
        with self._lock:
            return len(self._readings)


def evaluate_liveness(last_accepted_at: Optional[datetime], now: datetime, timeout_s: float) -> Liveness:
    if last_accepted_at is None:
        return Liveness.DISCONNECTED
    if (now - last_accepted_at).total_seconds() < timeout_s:
        return Liveness.CONNECTED
    return Liveness.DISCONNECTED
