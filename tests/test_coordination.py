"""Tests del coordinador de escritor único (lease).

Ejecutar:
    pytest tests/test_coordination.py -v
"""

from unittest.mock import MagicMock

import pytest

from conftest import T0
from telemetry_engine.coordination import CoordinatorService, LeaseCoordinator
from telemetry_engine.storage import keys


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def coordinator(json_store) -> LeaseCoordinator:
    return LeaseCoordinator(json_store, lease_timeout=3.0)


def _service(json_store, instance_id: str) -> CoordinatorService:
    return CoordinatorService(
        LeaseCoordinator(json_store, lease_timeout=3.0),
        instance_id,
        heartbeat_interval=1.0,
        takeover_interval=2.0,
    )


# =============================================================================
# TEST 1: LEASE COORDINATOR
# =============================================================================

class TestLeaseCoordinator:
    """Operaciones básicas sobre el registro de lease."""

    def test_acquire_when_absent(self, coordinator):
        assert coordinator.try_acquire("a", T0) is True
        lease = coordinator.current_lease()
        assert lease.owner_id == "a"
        assert lease.heartbeat_at == T0

    def test_acquire_fails_while_owner_is_live(self, coordinator):
        coordinator.try_acquire("a", T0)

        assert coordinator.try_acquire("b", T0 + 2.9) is False
        assert coordinator.current_lease().owner_id == "a"

    def test_acquire_fails_for_live_self(self, coordinator):
        """Un dueño vivo (incluido uno mismo) no se re-adquiere: se renueva."""
        coordinator.try_acquire("a", T0)
        assert coordinator.try_acquire("a", T0 + 1) is False
        assert coordinator.current_lease().heartbeat_at == T0

    def test_acquire_after_expiry(self, coordinator):
        coordinator.try_acquire("a", T0)

        # now - heartbeat >= timeout → expirado
        assert coordinator.try_acquire("b", T0 + 3.0) is True
        assert coordinator.current_lease().owner_id == "b"

    def test_renew_only_by_owner(self, coordinator):
        coordinator.try_acquire("a", T0)

        assert coordinator.renew("b", T0 + 1) is False
        assert coordinator.renew("a", T0 + 1) is True
        assert coordinator.current_lease().heartbeat_at == T0 + 1

    def test_renew_without_lease(self, coordinator):
        assert coordinator.renew("a", T0) is False

    def test_release_only_by_owner(self, coordinator):
        coordinator.try_acquire("a", T0)

        assert coordinator.release("b") is False
        assert coordinator.current_lease() is not None
        assert coordinator.release("a") is True
        assert coordinator.current_lease() is None

    def test_garbled_lease_counts_as_absent(self, coordinator, raw_store, json_store):
        raw_store.set(json_store.key(keys.LEASE), "{not json")
        assert coordinator.current_lease() is None
        assert coordinator.try_acquire("a", T0) is True

    def test_lease_missing_fields_counts_as_absent(self, coordinator, json_store):
        json_store.save(keys.LEASE, {"owner": "x"})
        assert coordinator.current_lease() is None

    def test_invalid_timeout(self, json_store):
        with pytest.raises(ValueError):
            LeaseCoordinator(json_store, lease_timeout=0)


# =============================================================================
# TEST 2: SINGLE-WRITER INVARIANT
# =============================================================================

class TestSingleWriterInvariant:
    """N instancias compitiendo por el mismo lease."""

    def test_at_most_one_renews_per_window(self, json_store):
        coordinators = {f"i{n}": LeaseCoordinator(json_store, 3.0) for n in range(5)}

        acquired = [iid for iid, c in coordinators.items() if c.try_acquire(iid, T0)]
        assert len(acquired) == 1

        for step in range(1, 20):
            now = T0 + step * 0.5
            renewed = [iid for iid, c in coordinators.items() if c.renew(iid, now)]
            taken = [iid for iid, c in coordinators.items() if c.try_acquire(iid, now)]
            assert renewed == acquired
            assert taken == []

    def test_takeover_after_owner_disappears(self, json_store):
        a = LeaseCoordinator(json_store, 3.0)
        b = LeaseCoordinator(json_store, 3.0)
        a.try_acquire("a", T0)

        assert b.try_acquire("b", T0 + 2.0) is False
        assert b.try_acquire("b", T0 + 3.5) is True
        # El perdedor lo detecta en el siguiente renew
        assert a.renew("a", T0 + 4.0) is False


# =============================================================================
# TEST 3: COORDINATOR SERVICE
# =============================================================================

class TestCoordinatorService:
    """Máquina de estados primary / follower."""

    def test_first_instance_becomes_primary(self, json_store):
        a = _service(json_store, "a")
        b = _service(json_store, "b")

        assert a.start(T0) is True
        assert b.start(T0) is False

    def test_follower_takes_over_after_owner_stops_heartbeating(self, json_store):
        a = _service(json_store, "a")
        b = _service(json_store, "b")
        a.start(T0)
        b.start(T0)

        for now in (T0 + 1, T0 + 2):
            a.tick(now)
            b.tick(now)
        assert a.is_primary and not b.is_primary

        # "a" deja de latir (pestaña congelada)
        b.tick(T0 + 4)
        assert b.is_primary is False
        b.tick(T0 + 6)
        assert b.is_primary is True

        # "a" vuelve: su renew falla y se degrada
        a.tick(T0 + 6.5)
        assert a.is_primary is False

    def test_heartbeat_keeps_lease_alive(self, json_store):
        a = _service(json_store, "a")
        b = _service(json_store, "b")
        a.start(T0)
        b.start(T0)

        now = T0
        for _ in range(30):
            now += 0.5
            a.tick(now)
            b.tick(now)
            assert a.is_primary and not b.is_primary

    def test_listeners_notified_on_role_change(self, json_store):
        a = _service(json_store, "a")
        listener = MagicMock()
        a.add_listener(listener)

        a.start(T0)
        a.stop()

        assert [c.args[0] for c in listener.call_args_list] == [True, False]

    def test_listener_errors_are_swallowed(self, json_store):
        a = _service(json_store, "a")
        a.add_listener(MagicMock(side_effect=RuntimeError("boom")))

        assert a.start(T0) is True

    def test_stop_releases_lease(self, json_store):
        a = _service(json_store, "a")
        a.start(T0)
        a.stop()

        assert a.coordinator.current_lease() is None
        assert a.is_primary is False

    def test_stop_tolerates_release_failure(self):
        coordinator = MagicMock()
        coordinator.lease_timeout = 3.0
        coordinator.try_acquire.return_value = True
        coordinator.release.side_effect = RuntimeError("store down")

        service = CoordinatorService(coordinator, "a")
        service.start(T0)
        service.stop()

        assert service.is_primary is False

    def test_tick_before_start_is_noop(self, json_store):
        a = _service(json_store, "a")
        a.tick(T0)
        assert a.is_primary is False
        assert a.coordinator.current_lease() is None

    def test_heartbeat_must_be_shorter_than_timeout(self, json_store):
        with pytest.raises(ValueError):
            CoordinatorService(
                LeaseCoordinator(json_store, lease_timeout=3.0),
                "a",
                heartbeat_interval=3.0,
            )
