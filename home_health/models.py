from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Mapping, Union


class Source(str, Enum):
    STRUCTURED = "STRUCTURED"
    FREE_TEXT = "FREE_TEXT"
    DEVICE_REPORTED = "DEVICE_REPORTED"


class Channel(str, Enum):
    """Where a payload arrived from. DEMO readings never count for liveness."""
    HTTP = "http"
    DATAGRAM = "udp"
    DEMO = "demo"


class Liveness(str, Enum):
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"


# =========================
# Raw payloads (resolved at the transport boundary)
# =========================
@dataclass(frozen=True)
class StructuredPayload:
    fields: Mapping[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class FreeTextPayload:
    text: str = ""


RawPayload = Union[StructuredPayload, FreeTextPayload]


# =========================
# Readings
# =========================
@dataclass(frozen=True)
class ReadingFields:
    """Normalized sensor values, before scoring and ingestion metadata."""
    pm25: float = 0.0
    co2: float = 0.0
    voc: float = 0.0
    temperature: float = 0.0
    humidity: float = 0.0
    device_id: str = "unknown"


@dataclass(frozen=True)
class CanonicalReading:
    pm25: float
    co2: float
    voc: float
    temperature: float
    humidity: float
    health_score: int
    timestamp: datetime
    id: int
    source: Source
    device_id: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "deviceId": self.device_id,
            "source": self.source.value,
            "timestamp": self.timestamp.isoformat(timespec="milliseconds"),
            "pm25": self.pm25,
            "co2": self.co2,
            "voc": self.voc,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "healthScore": self.health_score,
        }

    def to_chart_row(self, time_format: str = "%H:%M") -> Dict[str, Any]:
        # chart labels use the server's local clock
        return {
            "time": self.timestamp.astimezone().strftime(time_format),
            "pm25": self.pm25,
            "co2": self.co2,
            "voc": self.voc,
            "healthScore": self.health_score,
            "temperature": self.temperature,
            "humidity": self.humidity,
        }
