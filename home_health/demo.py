import logging
import random
import threading
from typing import Any, Dict, Optional

from .models import Channel, StructuredPayload
from .service import IngestionService

logger = logging.getLogger(__name__)

DEMO_DEVICE_ID = "TEST_DEVICE"


def fake_reading(rng: random.Random) -> Dict[str, Any]:
    return {
        "pm25": round(rng.uniform(10.0, 30.0), 1),
        "co2": round(rng.uniform(400.0, 600.0)),
        "voc": round(rng.uniform(0.0, 2.0), 2),
        "temperature": round(rng.uniform(18.0, 26.0), 1),
        "humidity": round(rng.uniform(35.0, 65.0)),
        "deviceId": DEMO_DEVICE_ID,
    }


class IdleDataFeeder(threading.Thread):
    """Keeps the dashboard populated during development when no device reports."""
    def __init__(
        self,
        service: IngestionService,
        stop_event: threading.Event,
        interval_s: float = 30.0,
        idle_after_s: float = 80.0,
        rng: Optional[random.Random] = None,
    ):
        super().__init__(daemon=True, name="idle-feeder")
        self.service = service
        self.stop_event = stop_event
        self.interval_s = interval_s
        self.idle_after_s = idle_after_s
        self.rng = rng or random.Random()

    def tick(self) -> bool:
        """Ingest one fake reading if the store has gone quiet. Returns True if it did."""
        idle = self.service.seconds_since_last_reading()
        if idle is not None and idle <= self.idle_after_s:
            return False
        logger.info("No data for a while, adding fake data for testing")
        self.service.ingest(StructuredPayload(fake_reading(self.rng)), None, Channel.DEMO)
        return True

    def run(self):
        while not self.stop_event.wait(self.interval_s):
            self.tick()
