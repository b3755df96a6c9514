import math
import random
import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest
from fastapi.testclient import TestClient

from home_health.remote_api import create_app
from home_health.service import IngestionService

EXAMPLE = {"pm25": 15, "co2": 450, "voc": 0.5, "temperature": 30, "humidity": 65, "deviceId": "ARDUINO_01"}


def make_client():
    service = IngestionService(rng=random.Random(0))
    return service, TestClient(create_app(service))


def test_latest_empty_is_404():
    _, client = make_client()
    r = client.get("/api/sensors/latest")
    assert r.status_code == 404
    assert r.json() == {"error": "No sensor data available"}


def test_post_json_and_read_latest():
    _, client = make_client()
    r = client.post("/api/sensors", json=EXAMPLE)
    assert r.status_code == 200
    body = r.json()
    assert body["success"] is True
    assert body["healthScore"] == 61

    r = client.get("/api/sensors/latest")
    assert r.status_code == 200
    data = r.json()
    assert data["deviceId"] == "ARDUINO_01"
    assert data["healthScore"] == 61
    assert data["source"] == "DEVICE_REPORTED"
    assert data["status"] == "Good"
    assert data["airQuality"] == "Moderate"
    assert data["id"] == body["id"]


def test_post_free_text_body():
    _, client = make_client()
    r = client.post(
        "/api/sensors",
        content=b"adc reading: 20, co2: (ppm) 12, temp: 28.28, humidity: 54.25",
        headers={"Content-Type": "text/plain"},
    )
    assert r.status_code == 200

    data = client.get("/api/sensors/latest").json()
    assert data["source"] == "FREE_TEXT"
    assert data["co2"] == 12
    assert data["voc"] == 0
    assert data["deviceId"] == "testclient"


def test_post_malformed_json_is_accepted():
    _, client = make_client()
    r = client.post("/api/sensors", content=b"{bad json", headers={"Content-Type": "application/json"})
    assert r.status_code == 200
    assert r.json()["success"] is True


def test_history_chart_rows():
    _, client = make_client()
    for i in range(30):
        client.post("/api/sensors", json={"pm25": i})

    rows = client.get("/api/sensors/history").json()
    assert len(rows) == 24
    assert [row["pm25"] for row in rows] == list(range(6, 30))

    rows = client.get("/api/sensors/history", params={"limit": 3}).json()
    assert [row["pm25"] for row in rows] == [27, 28, 29]


def test_recent_debug_rows():
    _, client = make_client()
    for i in range(7):
        client.post("/api/sensors", json={"co2": 400 + i})
    rows = client.get("/api/sensors/recent").json()
    assert len(rows) == 5
    assert rows[-1]["co2"] == 406


def test_health_reports_connection():
    _, client = make_client()
    assert client.get("/api/health").json()["status"] == "disconnected"

    client.post("/api/sensors", json=EXAMPLE)
    data = client.get("/api/health").json()
    assert data["status"] == "connected"
    assert data["lastUpdate"] is not None
    assert data["channels"]["http"]["status"] == "connected"


def test_status_endpoint():
    _, client = make_client()
    client.post("/api/sensors", json=EXAMPLE)
    data = client.get("/api/test").json()
    assert data["message"] == "Backend server is running!"
    assert data["totalReadings"] == 1


HUGE_INT = "1" + "0" * 400


@pytest.mark.parametrize(
    "body",
    [
        '{"pm25": ' + HUGE_INT + "}",
        '{"pm25": ' + "1" * 5000 + "}",
        '{"co2": "1e400", "voc": "inf", "temperature": "-inf"}',
        '{"pm25": [1], "humidity": {"a": 1}, "deviceId": {"a": 1}}',
        "temp: " + HUGE_INT + ", humidity: 40",
    ],
)
def test_hostile_numeric_bodies_are_accepted(body):
    _, client = make_client()
    r = client.post("/api/sensors", content=body.encode(), headers={"Content-Type": "application/json"})
    assert r.status_code == 200
    assert r.json()["success"] is True

    data = client.get("/api/sensors/latest").json()
    for key in ("pm25", "co2", "voc", "temperature", "humidity"):
        assert math.isfinite(data[key])
    assert 0 <= data["healthScore"] <= 100
    assert data["co2"] == 0
    assert data["temperature"] == 0
