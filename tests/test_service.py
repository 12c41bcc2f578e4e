"""Tests de integración del servicio (varias instancias en un proceso).

Las instancias comparten un InMemoryStore y un hub de broadcast en memoria,
con la fuente demo o fuentes HTTP simuladas. Sin red, sin Redis.

Ejecutar:
    pytest tests/test_service.py -v
"""

import threading
from unittest.mock import MagicMock, patch

import pytest

from conftest import T0, make_settings
from jobs.cli import _run_once
from telemetry_engine.alerts import BellSoundPlayer, LogNotifier, WebhookNotifier
from telemetry_engine.bootstrap import build_service, build_side_effects
from telemetry_engine.broadcast import InMemoryBroadcastHub
from telemetry_engine.core.domain.errors import SourceFetchError
from telemetry_engine.core.domain.reading import ConnectionStatus
from telemetry_engine.ingest import DemoSourceClient
from telemetry_engine.storage import InMemoryStore

LAB_SOURCES = '[{"id": "lab", "name": "Lab", "url": "http://lab.local/sensors"}]'


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def hub() -> InMemoryBroadcastHub:
    return InMemoryBroadcastHub()


def _instance(raw_store, hub, instance_id, *, clients=None, side_effects=None, **overrides):
    settings = make_settings(instance_id=instance_id, **overrides)
    return build_service(
        settings,
        store=raw_store,
        hub=hub,
        clients=clients if clients is not None else {"demo": DemoSourceClient()},
        side_effects=side_effects if side_effects is not None else [],
        clock=lambda: T0,
    )


def _lab_client(*items, error=None):
    client = MagicMock()
    if error is not None:
        client.fetch.side_effect = error
    else:
        client.fetch.return_value = list(items)
    return {"http": client}


# =============================================================================
# TEST 1: PRIMARIA Y SEGUIDORA
# =============================================================================

class TestPrimaryAndFollower:

    def test_only_one_instance_ingests(self, raw_store, hub):
        a = _instance(raw_store, hub, "a")
        b = _instance(raw_store, hub, "b")

        assert a.start(T0) is True
        assert b.start(T0) is False

        a.tick(T0)
        b.tick(T0)

        assert a.stats.cycles == 1
        assert b.stats.cycles == 0
        assert b.stats.absorbed == 1
        assert len(b.engine.get_current_snapshot().readings) == 5
        assert b.engine.get_fleet_stats() == a.engine.get_fleet_stats()

    def test_polling_interval_respected(self, raw_store, hub):
        a = _instance(raw_store, hub, "a")
        b = _instance(raw_store, hub, "b")
        a.start(T0)
        b.start(T0)

        for step in range(241):
            now = T0 + step * 0.5
            a.tick(now)
            b.tick(now)
            assert a.is_primary and not b.is_primary

        # Ciclos en 0, 30, 60, 90 y 120s
        assert a.stats.cycles == 5
        assert b.stats.cycles == 0
        assert b.stats.absorbed == 5

    def test_follower_sees_owner_history(self, raw_store, hub):
        a = _instance(raw_store, hub, "a")
        b = _instance(raw_store, hub, "b")
        a.start(T0)
        b.start(T0)

        a.tick(T0)
        b.tick(T0)

        assert [p.timestamp for p in b.engine.get_fleet_series()] == [T0]
        assert len(b.engine.get_location_stats()) == 5

    def test_polling_transport_without_broadcast(self, raw_store, hub):
        a = _instance(raw_store, hub, "a", broadcast_enabled=False)
        b = _instance(raw_store, hub, "b", broadcast_enabled=False)
        a.start(T0)
        b.start(T0)

        a.tick(T0)
        b.tick(T0)
        b.tick(T0 + 0.5)

        assert b.state_sync.transport == "polling"
        assert b.stats.absorbed == 1


# =============================================================================
# TEST 2: FAILOVER
# =============================================================================

class TestFailover:

    def test_follower_takes_over_and_reloads(self, raw_store, hub):
        a = _instance(raw_store, hub, "a")
        b = _instance(raw_store, hub, "b")
        a.start(T0)
        b.start(T0)
        a.tick(T0)
        b.tick(T0)

        # "a" deja de latir; el lease expira a los 3s
        b.tick(T0 + 2)
        assert b.is_primary is False
        b.tick(T0 + 4)

        assert b.is_primary is True
        assert b.stats.cycles == 1
        # Serie recargada del store: el punto de "a" sigue, el nuevo cae en el throttle
        assert [p.timestamp for p in b.engine.get_fleet_series()] == [T0]

        # "a" vuelve: pierde el lease y pasa a absorber
        a.tick(T0 + 4.5)
        assert a.is_primary is False
        assert a.stats.absorbed == 1

    def test_graceful_stop_hands_over(self, raw_store, hub):
        a = _instance(raw_store, hub, "a")
        b = _instance(raw_store, hub, "b")
        a.start(T0)
        b.start(T0)
        a.tick(T0)

        a.stop()
        assert a.coordinator.coordinator.current_lease() is None

        b.tick(T0 + 2)
        assert b.is_primary is True
        assert b.stats.cycles == 1


# =============================================================================
# TEST 3: RECUPERACIÓN Y FALLOS DE FUENTES
# =============================================================================

class TestRecoveryAndSources:

    def test_late_instance_recovers_snapshot(self, raw_store, hub):
        a = _instance(raw_store, hub, "a")
        a.start(T0)
        a.tick(T0)

        late = _instance(raw_store, hub, "late")
        late.start(T0 + 10)

        assert late.engine.get_current_snapshot() is not None
        assert late.engine.get_fleet_stats().total_count == 5
        assert late.engine.get_location_stats()[0].sample_count == 1

    def test_all_sources_failing_is_disconnected(self, raw_store, hub):
        a = _instance(
            raw_store, hub, "a",
            clients=_lab_client(error=SourceFetchError("lab", "timeout")),
            sources_json=LAB_SOURCES,
        )
        a.start(T0)

        stats = a.run_cycle(T0)

        assert stats.status is ConnectionStatus.DISCONNECTED
        assert a.stats.disconnected_cycles == 1
        assert a.status()["snapshot_status"] == "disconnected"

    def test_danger_alert_recorded_once(self, raw_store, hub):
        owner_effect = MagicMock()
        follower_effect = MagicMock()
        clients = _lab_client({"id": "s1", "value": 250})
        a = _instance(raw_store, hub, "a", clients=clients, side_effects=[owner_effect],
                      sources_json=LAB_SOURCES)
        b = _instance(raw_store, hub, "b", clients=clients, side_effects=[follower_effect],
                      sources_json=LAB_SOURCES)
        a.start(T0)
        b.start(T0)

        a.tick(T0)
        b.tick(T0)

        owner_effect.emit.assert_called_once()
        follower_effect.emit.assert_called_once()
        items = a.history.items()
        assert len(items) == 1
        assert items[0].sensor_id == "lab-s1"


# =============================================================================
# TEST 4: CICLO DE VIDA Y BOOTSTRAP
# =============================================================================

class TestLifecycle:

    def test_tick_before_start_is_noop(self, raw_store, hub):
        a = _instance(raw_store, hub, "a")
        a.tick(T0)
        assert a.stats.cycles == 0

    def test_status(self, raw_store, hub):
        a = _instance(raw_store, hub, "a")
        a.start(T0)
        a.tick(T0)

        status = a.status()
        assert status["role"] == "primary"
        assert status["lease_owner"] == "a"
        assert status["sync_transport"] == "push"
        assert status["sources"] == ["demo"]
        assert status["cycle_stats"]["cycles"] == 1

    def test_run_forever_stops_on_event(self, raw_store, hub):
        a = _instance(raw_store, hub, "a")
        stop = threading.Event()
        stop.set()

        a.run_forever(stop, tick_interval=0.01)

        assert a.started is False
        assert a.coordinator.coordinator.current_lease() is None

    def test_cli_run_once(self, raw_store, hub):
        a = _instance(raw_store, hub, "a")
        _run_once(a)

        assert a.stats.cycles == 1
        assert a.started is False

    def test_invalid_polling_interval(self, raw_store, hub):
        with pytest.raises(ValueError):
            _instance(raw_store, hub, "a", polling_interval_seconds=0)

    def test_side_effects_from_settings(self):
        effects = build_side_effects(
            make_settings(
                enable_sound_alert=True,
                enable_notification=True,
                push_webhook_url="http://push.local",
                internal_api_key="k",
            )
        )
        assert [type(e) for e in effects] == [BellSoundPlayer, LogNotifier, WebhookNotifier]
        assert build_side_effects(make_settings()) == []

    @patch("telemetry_engine.bootstrap.RedisConnection.connect", return_value=False)
    def test_redis_unavailable_falls_back_to_memory(self, _connect):
        service = build_service(make_settings(store_backend="redis"), clients={}, side_effects=[])

        assert isinstance(service.engine._store.raw, InMemoryStore)
        assert service.state_sync.transport == "polling"
