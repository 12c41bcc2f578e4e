"""Tests de la API de lectura (FastAPI TestClient).

Ejecutar:
    pytest tests/test_read_api.py -v
"""

import pytest
from fastapi.testclient import TestClient

from conftest import T0, make_settings
from telemetry_engine.bootstrap import build_service
from telemetry_engine.ingest import DemoSourceClient
from telemetry_engine.main import create_app
from telemetry_engine.storage import InMemoryStore


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def service():
    svc = build_service(
        make_settings(instance_id="api"),
        store=InMemoryStore(),
        clients={"demo": DemoSourceClient()},
        side_effects=[],
        clock=lambda: T0,
    )
    yield svc
    svc.stop()


@pytest.fixture
def client(service) -> TestClient:
    return TestClient(create_app(service))


def _add(service, now=T0, sensor_id="demo-1"):
    return service.history.add(
        type="danger",
        sensor_id=sensor_id,
        sensor_name="Sensor Sala",
        location="Planta 1 - Sala",
        value=230.0,
        message="humo",
        now=now,
    )


# =============================================================================
# TEST 1: HEALTH / STATUS / METRICS
# =============================================================================

class TestHealth:

    def test_health_before_start(self, client):
        assert client.get("/health").json() == {"status": "stopped", "role": "follower"}

    def test_health_running(self, service, client):
        service.start(T0)
        assert client.get("/health").json() == {"status": "ok", "role": "primary"}

    def test_status(self, service, client):
        service.start(T0)
        service.tick(T0)

        data = client.get("/status").json()
        assert data["instance_id"] == "api"
        assert data["lease_owner"] == "api"
        assert data["snapshot_status"] == "connected"

    def test_metrics(self, service, client):
        service.start(T0)
        service.tick(T0)

        response = client.get("/metrics")
        assert response.status_code == 200
        assert "telemetry_ingest_cycles_total" in response.text


# =============================================================================
# TEST 2: LECTURAS
# =============================================================================

class TestReadApi:

    def test_empty_engine(self, client):
        assert client.get("/fleet/series").json() == {"points": []}
        assert client.get("/locations/series").json() == {}
        assert client.get("/locations/stats").json() == {"items": []}
        assert client.get("/snapshot").json() == {"readings": [], "capturedAt": None, "status": None}
        assert client.get("/fleet/stats").json()["totalSensors"] == 0
        assert client.get("/fleet/trend").json()["trend"] == "stable"

    def test_after_one_cycle(self, service, client):
        service.start(T0)
        service.tick(T0)

        series = client.get("/fleet/series").json()["points"]
        assert len(series) == 1
        assert series[0]["timestamp"] == T0

        stats = client.get("/fleet/stats").json()
        assert stats["totalSensors"] == 5
        assert stats["status"] == "connected"

        locations = client.get("/locations/series").json()
        assert len(locations) == 5
        assert "Planta 1 - Sala" in locations

        items = client.get("/locations/stats").json()["items"]
        maxima = [i["maxValue"] for i in items]
        assert maxima == sorted(maxima, reverse=True)

        snap = client.get("/snapshot").json()
        assert [r["id"] for r in snap["readings"]][0] == "demo-1"
        assert snap["capturedAt"] == T0


# =============================================================================
# TEST 3: NOTIFICACIONES
# =============================================================================

class TestNotificationsApi:

    def test_list_and_unread(self, service, client):
        first = _add(service, T0)
        _add(service, T0 + 1)
        service.history.mark_as_read(first.id)

        data = client.get("/notifications").json()
        assert len(data["items"]) == 2
        assert data["unreadCount"] == 1

        unread = client.get("/notifications", params={"unread_only": True}).json()
        assert len(unread["items"]) == 1

    def test_mark_read(self, service, client):
        item = _add(service)

        response = client.post(f"/notifications/{item.id}/read")
        assert response.json() == {"id": item.id, "isRead": True}
        assert service.history.unread_count() == 0

    def test_mark_read_missing(self, client):
        assert client.post("/notifications/nope/read").status_code == 404

    def test_mark_all_read(self, service, client):
        _add(service)
        _add(service)
        assert client.post("/notifications/read-all").json() == {"updated": 2}

    def test_clear_all(self, service, client):
        _add(service)
        assert client.delete("/notifications").json() == {"cleared": "all"}
        assert service.history.items() == []

    def test_clear_older_than(self, service, client):
        _add(service, T0 - 10 * 86400, "old")
        _add(service, T0, "new")

        response = client.delete("/notifications", params={"older_than_days": 7})
        assert response.json() == {"cleared": 1}
        assert [n.sensor_id for n in service.history.items()] == ["new"]

    def test_clear_older_than_rejects_non_positive(self, client):
        assert client.delete("/notifications", params={"older_than_days": 0}).status_code == 422


def test_missing_service_returns_503():
    app = create_app(None)
    assert TestClient(app).get("/fleet/stats").status_code == 503
