import argparse
import logging
import signal
import threading

from .config import DEFAULT_CONFIG_PATH, Settings, load_settings
from .demo import IdleDataFeeder
from .remote_api import ApiServerThread, create_app
from .service import IngestionService
from .store import ReadingStore
from .udp_server import DatagramServerWorker

logger = logging.getLogger(__name__)


def _setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def build_service(settings: Settings) -> IngestionService:
    return IngestionService(
        store=ReadingStore(settings.store.capacity),
        timeouts=settings.liveness.timeouts(),
    )


def run(settings: Settings) -> None:
    service = build_service(settings)
    stop_event = threading.Event()

    api_thread = ApiServerThread(
        create_app(service, settings.store), settings.api.host, settings.api.port, settings.api.log_level
    )
    api_thread.start()
    logger.info("API listening on http://%s:%s (devices POST to /api/sensors)", settings.api.host, settings.api.port)

    if settings.udp.enabled:
        DatagramServerWorker(
            service,
            settings.udp.host,
            settings.udp.port,
            stop_event,
            ack=settings.udp.ack,
            buffer_size=settings.udp.buffer_size,
        ).start()

    if settings.demo.enabled:
        IdleDataFeeder(service, stop_event, settings.demo.interval_s, settings.demo.idle_after_s).start()
        logger.info("Idle data feeder enabled (every %.0fs)", settings.demo.interval_s)

    def handle_signal(sig, frame):
        logger.info("Stopping (signal %s)...", sig)
        stop_event.set()

    signal.signal(signal.SIGINT, handle_signal)
    signal.signal(signal.SIGTERM, handle_signal)

    try:
        while not stop_event.is_set():
            stop_event.wait(timeout=0.5)
    finally:
        api_thread.stop(timeout=5.0)
        logger.info("Stopped. %s readings held in memory were discarded", service.stats()["totalReadings"])


def main():
    parser = argparse.ArgumentParser(
        description="Home health monitor - sensor ingestion and dashboard API",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument("-c", "--config", type=str, default=None,
                        help=f"YAML config file (defaults to $HOME_HEALTH_CONFIG or {DEFAULT_CONFIG_PATH})")
    args = parser.parse_args()

    settings = load_settings(args.config)
    _setup_logging(settings.log_level)
    run(settings)


if __name__ == "__main__":
    main()
