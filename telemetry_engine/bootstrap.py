"""Construcción del servicio a partir de Settings.

Selección de backends con fallback, igual que la factory de brokers:
- Store: Redis si TELEMETRY_STORE_BACKEND=redis y conecta; si no, memoria
- Broadcast: Redis pub/sub, hub en memoria o ninguno (polling del store)
- Fuentes: TELEMETRY_SOURCES o la fuente demo
"""

from __future__ import annotations

import logging
import time
from typing import Callable, Dict, List, Optional

from common.config import Settings, get_settings

from .aggregation.engine import AggregationConfig, AggregationEngine
from .alerts.classification import Thresholds
from .alerts.notification_history import NotificationHistory
from .alerts.notifiers import AlertSideEffect, BellSoundPlayer, LogNotifier, WebhookNotifier
from .alerts.trigger import AlertTrigger
from .broadcast.factory import create_broadcast_channel, create_state_sync
from .broadcast.memory_channel import InMemoryBroadcastHub
from .coordination.coordinator_service import CoordinatorService
from .coordination.lease_coordinator import LeaseCoordinator
from .core.domain.store_interface import IKeyValueStore
from .core.monitoring import CycleStats
from .core.redis.connection import RedisConnection
from .ingest.client_interface import ISourceClient
from .ingest.http_source import HttpSourceClient
from .ingest.mqtt_source import MqttSourceClient
from .ingest.pipeline import IngestionPipeline
from .ingest.simulator import DemoSourceClient
from .ingest.sources import KIND_DEMO, KIND_HTTP, KIND_MQTT, load_sources
from .service import TelemetryService
from .storage.json_store import JsonStore
from .storage.memory_store import InMemoryStore
from .storage.redis_store import RedisKeyValueStore

logger = logging.getLogger(__name__)

REDIS_CONNECT_ATTEMPTS = 3


def _create_raw_store(settings: Settings):
    """Devuelve (store, redis_conn). redis_conn es None si no se usa Redis."""
    if settings.store_backend == "redis":
        conn = RedisConnection(settings.redis_url)
        if conn.connect(attempts=REDIS_CONNECT_ATTEMPTS):
            logger.info("[BOOTSTRAP] Using Redis store at %s", conn.safe_url)
            return RedisKeyValueStore(conn), conn
        logger.warning("[BOOTSTRAP] Redis unavailable, falling back to in-memory store")
    elif settings.store_backend != "memory":
        logger.warning("[BOOTSTRAP] Unknown store backend %r, using memory", settings.store_backend)
    return InMemoryStore(), None


def build_side_effects(settings: Settings) -> List[AlertSideEffect]:
    effects: List[AlertSideEffect] = []
    if settings.enable_sound_alert:
        effects.append(BellSoundPlayer())
    if settings.enable_notification:
        effects.append(LogNotifier())
        if settings.push_webhook_url:
            effects.append(
                WebhookNotifier(settings.push_webhook_url, settings.internal_api_key or None)
            )
    return effects


def build_clients(settings: Settings) -> Dict[str, ISourceClient]:
    return {
        KIND_HTTP: HttpSourceClient(timeout=settings.http_timeout_seconds),
        KIND_MQTT: MqttSourceClient(),
        KIND_DEMO: DemoSourceClient(bucket_seconds=settings.demo_bucket_seconds),
    }


def build_service(
    settings: Optional[Settings] = None,
    *,
    store: Optional[IKeyValueStore] = None,
    hub: Optional[InMemoryBroadcastHub] = None,
    clients: Optional[Dict[str, ISourceClient]] = None,
    side_effects: Optional[List[AlertSideEffect]] = None,
    clock: Callable[[], float] = time.time,
) -> TelemetryService:
    """Crea un TelemetryService listo para `start()`.

    Args:
        settings: Configuración (por defecto `get_settings()`)
        store: Store ya construido (tests / varias instancias en un proceso)
        hub: Hub de broadcast en memoria compartido entre instancias
        clients: Clientes de fuente por tipo (por defecto HTTP/MQTT/demo)
        side_effects: Efectos de alerta (por defecto según settings)
        clock: Reloj en epoch segundos
    """
    settings = settings or get_settings()

    redis_conn: Optional[RedisConnection] = None
    if store is None:
        store, redis_conn = _create_raw_store(settings)
    json_store = JsonStore(store, prefix=settings.key_prefix)

    channel = create_broadcast_channel(
        enabled=settings.broadcast_enabled,
        redis_conn=redis_conn,
        hub=hub,
        channel_name=f"{settings.key_prefix}:sync" if settings.key_prefix else None,
    )
    state_sync = create_state_sync(json_store, settings.instance_id, channel)

    coordinator = CoordinatorService(
        LeaseCoordinator(json_store, lease_timeout=settings.lease_timeout_seconds),
        settings.instance_id,
        heartbeat_interval=settings.heartbeat_interval_seconds,
        takeover_interval=settings.takeover_poll_seconds,
    )

    sources = load_sources(settings.sources_json)
    stats = CycleStats()
    pipeline = IngestionPipeline(
        clients if clients is not None else build_clients(settings),
        stats=stats,
    )
    engine = AggregationEngine(json_store, AggregationConfig.from_settings(settings))
    history = NotificationHistory(json_store, max_items=settings.max_notifications)
    trigger = AlertTrigger(
        Thresholds(warning=settings.warning_threshold, danger=settings.danger_threshold),
        cooldown=settings.alert_cooldown_seconds,
        side_effects=side_effects if side_effects is not None else build_side_effects(settings),
        history=history,
    )

    return TelemetryService(
        coordinator=coordinator,
        pipeline=pipeline,
        sources=sources,
        engine=engine,
        state_sync=state_sync,
        trigger=trigger,
        history=history,
        polling_interval=settings.polling_interval_seconds,
        stats=stats,
        clock=clock,
        on_close=[redis_conn.disconnect] if redis_conn is not None else [],
    )
