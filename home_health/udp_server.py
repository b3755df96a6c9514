import json
import logging
import socket
import threading
from typing import Optional, Tuple

from .core import decode_payload
from .models import CanonicalReading, Channel
from .service import IngestionService

logger = logging.getLogger(__name__)


class DatagramServerWorker(threading.Thread):
    """
    Devices push one reading per UDP datagram (JSON or free text):
    - bind() and recvfrom() with a short timeout so stop_event is honored
    - every datagram goes straight into the ingestion service
    - optional ack back to the sender, fire-and-forget
    """
    def __init__(
        self,
        service: IngestionService,
        bind_host: str,
        bind_port: int,
        stop_event: threading.Event,
        ack: bool = True,
        buffer_size: int = 2048,
    ):
        super().__init__(daemon=True, name="udp-ingest")
        self.service = service
        self.bind_host = bind_host
        self.bind_port = bind_port
        self.stop_event = stop_event
        self.ack = ack
        self.buffer_size = buffer_size
        self.ready = threading.Event()
        self.address: Optional[Tuple[str, int]] = None

    def handle_datagram(self, data: bytes, addr: Tuple[str, int], sock: Optional[socket.socket] = None) -> CanonicalReading:
        reading = self.service.ingest(decode_payload(data), addr[0], Channel.DATAGRAM)
        if self.ack and sock is not None:
            self._send_ack(sock, addr, reading)
        return reading

    def _send_ack(self, sock: socket.socket, addr: Tuple[str, int], reading: CanonicalReading) -> None:
        ack = {"status": "ok", "id": reading.id, "healthScore": reading.health_score}
        try:
            sock.sendto(json.dumps(ack).encode("utf-8"), addr)
        except OSError as e:
            logger.warning("Ack to %s:%s failed: %s", addr[0], addr[1], e)

    def run(self):
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)

        try:
            sock.bind((self.bind_host, self.bind_port))
            sock.settimeout(0.5)  # so we can check stop_event periodically
            self.address = sock.getsockname()
            logger.info("Listening for sensor datagrams on %s:%s", *self.address)
            self.ready.set()

            while not self.stop_event.is_set():
                try:
                    data, addr = sock.recvfrom(self.buffer_size)
                except socket.timeout:
                    continue
                except OSError as e:
                    if self.stop_event.is_set():
                        break
                    logger.warning("Datagram receive failed: %s", e)
                    continue
                try:
                    self.handle_datagram(data, addr, sock)
                except Exception:
                    # one bad datagram must not take the listener down
                    logger.exception("Dropped datagram from %s:%s", addr[0], addr[1])
        finally:
            self.ready.set()
            sock.close()
            logger.info("Datagram listener stopped")
