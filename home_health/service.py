import logging
import random
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional

from .core import normalize_payload
from .models import CanonicalReading, Channel, FreeTextPayload, Liveness, RawPayload, Source
from .scoring import health_score
from .store import HISTORY_WINDOW, RECENT_WINDOW, ReadingStore, evaluate_liveness

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUTS: Dict[Channel, float] = {
    Channel.HTTP: 60.0,
    Channel.DATAGRAM: 30.0,
}


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def source_for(payload: RawPayload, channel: Channel) -> Source:
    if isinstance(payload, FreeTextPayload):
        return Source.FREE_TEXT
    if channel == Channel.HTTP:
        return Source.DEVICE_REPORTED
    return Source.STRUCTURED


class IngestionService:
    """
    Owns the reading store and everything that mutates it.

    The clock and the random source are injected so tests can pin time and
    the synthetic PM2.5 draw.
    """
    def __init__(
        self,
        store: Optional[ReadingStore] = None,
        timeouts: Optional[Mapping[Channel, float]] = None,
        clock: Callable[[], datetime] = utc_now,
        rng: Optional[random.Random] = None,
    ):
        self.store = store if store is not None else ReadingStore()
        self.timeouts: Dict[Channel, float] = dict(DEFAULT_TIMEOUTS if timeouts is None else timeouts)
        self._clock = clock
        self._rng = rng or random.Random()
        self._lock = threading.Lock()
        self._last_id = 0
        self._last_accepted: Dict[Channel, datetime] = {}
        self._total_ingested = 0

    def ingest(self, payload: RawPayload, sender: Optional[str], channel: Channel) -> CanonicalReading:
        fields = normalize_payload(payload, sender, self._rng)
        score = health_score(fields)
        source = source_for(payload, channel)

        with self._lock:
            now = self._clock()
            reading_id = max(int(now.timestamp() * 1000), self._last_id + 1)
            self._last_id = reading_id
            reading = CanonicalReading(
                pm25=fields.pm25,
                co2=fields.co2,
                voc=fields.voc,
                temperature=fields.temperature,
                humidity=fields.humidity,
                health_score=score,
                timestamp=now,
                id=reading_id,
                source=source,
                device_id=fields.device_id,
            )
            self.store.append(reading)
            self._total_ingested += 1
            if channel in self.timeouts:
                self._last_accepted[channel] = now

        logger.info(
            "Reading %s from %s via %s (%s): score=%d pm25=%.1f co2=%.0f voc=%.2f t=%.2f h=%.2f",
            reading.id, reading.device_id, channel.value, source.value, score,
            reading.pm25, reading.co2, reading.voc, reading.temperature, reading.humidity,
        )
        return reading

    # -------- query side --------
    def now(self) -> datetime:
        return self._clock()

    def latest(self) -> Optional[CanonicalReading]:
        return self.store.latest()

    def history(self, n: int = HISTORY_WINDOW) -> List[CanonicalReading]:
        return self.store.history(n)

    def recent(self, n: int = RECENT_WINDOW) -> List[CanonicalReading]:
        return self.store.recent(n)

    def chart_history(self, n: int = HISTORY_WINDOW, time_format: str = "%H:%M") -> List[Dict[str, Any]]:
        return [r.to_chart_row(time_format) for r in self.store.history(n)]

    def liveness(self, now: Optional[datetime] = None) -> Dict[str, Any]:
        """
        Connected if any tracked channel reported within its own timeout.
        lastUpdate is the latest stored reading, whatever its channel.
        """
        now = now or self._clock()
        with self._lock:
            last_accepted = dict(self._last_accepted)

        channels: Dict[str, Any] = {}
        overall = Liveness.DISCONNECTED
        for channel, timeout_s in self.timeouts.items():
            last = last_accepted.get(channel)
            status = evaluate_liveness(last, now, timeout_s)
            if status == Liveness.CONNECTED:
                overall = Liveness.CONNECTED
            channels[channel.value] = {
                "status": status.value,
                "lastUpdate": last.isoformat(timespec="milliseconds") if last else None,
                "timeoutSeconds": timeout_s,
            }

        latest = self.store.latest()
        return {
            "status": overall.value,
            "lastUpdate": latest.timestamp.isoformat(timespec="milliseconds") if latest else None,
            "channels": channels,
        }

    def seconds_since_last_reading(self, now: Optional[datetime] = None) -> Optional[float]:
        latest = self.store.latest()
        if latest is None:
            return None
        now = now or self._clock()
        return (now - latest.timestamp).total_seconds()

    def stats(self) -> Dict[str, Any]:
        with self._lock:
            total = self._total_ingested
        return {
            "totalReadings": len(self.store),
            "totalIngested": total,
            "capacity": self.store.capacity,
        }
