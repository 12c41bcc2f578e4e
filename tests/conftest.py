"""Fixtures compartidas de los tests del motor de telemetría."""

from __future__ import annotations

import math
from typing import Iterable, Optional

import pytest

from common.config import Settings
from telemetry_engine.core.domain.reading import FleetSnapshot, SensorReading
from telemetry_engine.storage.json_store import JsonStore
from telemetry_engine.storage.memory_store import InMemoryStore

T0 = 1_700_000_000.0


def make_settings(**overrides) -> Settings:
    """Settings deterministas para tests (sin leer el entorno)."""
    base = dict(
        redis_url="redis://localhost:6379/0",
        store_backend="memory",
        broadcast_enabled=True,
        key_prefix="test",
        instance_id="instance-a",
        lease_timeout_seconds=3.0,
        heartbeat_interval_seconds=1.0,
        takeover_poll_seconds=2.0,
        polling_interval_seconds=30.0,
        sources_json="",
        demo_bucket_seconds=10.0,
        http_timeout_seconds=5.0,
        series_update_interval_seconds=60.0,
        series_retention_seconds=1800.0,
        stats_window_seconds=86400.0,
        max_series_points=500,
        follower_accumulates_stats=False,
        warning_threshold=50.0,
        danger_threshold=200.0,
        alert_cooldown_seconds=30.0,
        enable_sound_alert=False,
        enable_notification=False,
        max_notifications=100,
        push_webhook_url="",
        internal_api_key="",
    )
    base.update(overrides)
    return Settings(**base)


def reading(
    sensor_id: str = "s1",
    value: float = 10.0,
    *,
    location_key: Optional[str] = None,
    online: bool = True,
    captured_at: float = T0,
) -> SensorReading:
    return SensorReading(
        id=sensor_id,
        display_name=f"Sensor {sensor_id}",
        location_key=location_key or f"loc-{sensor_id}",
        value=value,
        unit="ppm",
        captured_at=captured_at,
        online=online,
        location=f"Location {sensor_id}",
        source_id="test",
    )


def snapshot(readings: Iterable[SensorReading], captured_at: float = T0, **kwargs) -> FleetSnapshot:
    kwargs.setdefault("sources_total", 1)
    return FleetSnapshot.build(list(readings), captured_at, **kwargs)


def is_nan(value) -> bool:
    return isinstance(value, float) and math.isnan(value)


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def raw_store() -> InMemoryStore:
    """Store en memoria compartible entre instancias."""
    return InMemoryStore()


@pytest.fixture
def json_store(raw_store) -> JsonStore:
    return JsonStore(raw_store, prefix="test")


@pytest.fixture
def settings() -> Settings:
    return make_settings()
