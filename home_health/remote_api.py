import threading
from typing import Any, Dict, List, Optional

import uvicorn
from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse

from .config import StoreSettings
from .core import decode_payload
from .models import Channel
from .scoring import air_quality_level, health_status
from .service import IngestionService


async def raw_body(request: Request) -> bytes:
    return await request.body()


def create_app(service: IngestionService, store_settings: Optional[StoreSettings] = None) -> FastAPI:
    store_settings = store_settings or StoreSettings()
    app = FastAPI(title="Home Health Monitor API", version="1.0")

    @app.post("/api/sensors")
    def ingest(request: Request, body: bytes = Depends(raw_body)):
        # Body may be JSON or the device's free-text dump; both are accepted.
        sender = request.client.host if request.client else None
        reading = service.ingest(decode_payload(body), sender, Channel.HTTP)
        return {
            "success": True,
            "message": "Data received successfully",
            "id": reading.id,
            "healthScore": reading.health_score,
        }

    @app.get("/api/sensors/latest")
    def latest():
        reading = service.latest()
        if reading is None:
            return JSONResponse(status_code=404, content={"error": "No sensor data available"})
        data = reading.to_dict()
        data["status"] = health_status(reading.health_score)
        data["airQuality"] = air_quality_level(reading.pm25)
        return data

    @app.get("/api/sensors/history")
    def history(limit: int = Query(store_settings.history_window, ge=1)) -> List[Dict[str, Any]]:
        return service.chart_history(limit, store_settings.chart_time_format)

    @app.get("/api/sensors/recent")
    def recent(limit: int = Query(store_settings.recent_window, ge=1)) -> List[Dict[str, Any]]:
        return [r.to_dict() for r in service.recent(limit)]

    @app.get("/api/health")
    def health():
        return service.liveness()

    @app.get("/api/test")
    def test():
        return {
            "message": "Backend server is running!",
            "timestamp": service.now().isoformat(timespec="milliseconds"),
            **service.stats(),
        }

    return app


class ApiServerThread(threading.Thread):
    """Runs uvicorn off the main thread, which keeps signal handling for app.run."""
    def __init__(self, app: FastAPI, host: str, port: int, log_level: str = "warning"):
        super().__init__(daemon=True, name="api-server")
        self._config = uvicorn.Config(app, host=host, port=port, log_level=log_level)
        self._server = uvicorn.Server(self._config)

    def run(self):
        self._server.run()

    def stop(self, timeout: Optional[float] = None) -> None:
        """Ask uvicorn to finish in-flight requests and exit; wait up to timeout if given."""
        self._server.should_exit = True
        if timeout is not None and self.is_alive():
            self.join(timeout)
