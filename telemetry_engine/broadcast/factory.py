"""Factory para el canal de broadcast y la sincronización de estado.

Centraliza la selección de transporte:
- Redis pub/sub si hay conexión
- Hub en memoria si el llamador lo provee (single-process / tests)
- Fallback automático a polling del store si no hay bus disponible
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.domain.store_interface import IBroadcastChannel, NullBroadcastChannel
from ..core.redis.connection import RedisConnection
from ..storage.json_store import JsonStore
from .memory_channel import InMemoryBroadcastHub
from .redis_channel import RedisBroadcastChannel
from .state_sync import PollingStateSync, PushStateSync, StateSync

logger = logging.getLogger(__name__)


def create_broadcast_channel(
    *,
    enabled: bool = True,
    redis_conn: Optional[RedisConnection] = None,
    hub: Optional[InMemoryBroadcastHub] = None,
    channel_name: Optional[str] = None,
) -> IBroadcastChannel:
    """Crea el canal de broadcast.

    Returns NullBroadcastChannel if broadcast is disabled or unavailable.
    """
    if not enabled:
        logger.info("[BROADCAST_FACTORY] Broadcast disabled")
        return NullBroadcastChannel()

    if redis_conn is not None and redis_conn.is_connected:
        kwargs = {"channel_name": channel_name} if channel_name else {}
        logger.info("[BROADCAST_FACTORY] Using Redis pub/sub")
        return RedisBroadcastChannel(redis_conn, **kwargs)

    if hub is not None:
        logger.info("[BROADCAST_FACTORY] Using in-process hub")
        return hub.channel()

    logger.warning("[BROADCAST_FACTORY] No bus available, using NullBroadcastChannel")
    return NullBroadcastChannel()


def create_state_sync(
    store: JsonStore,
    instance_id: str,
    channel: Optional[IBroadcastChannel] = None,
    max_snapshot_age_seconds: Optional[float] = None,
) -> StateSync:
    """Elige push (store + bus) o polling (solo store) al construir."""
    kwargs = {}
    if max_snapshot_age_seconds is not None:
        kwargs["max_snapshot_age_seconds"] = max_snapshot_age_seconds

    if channel is not None and channel.available:
        logger.info("[SYNC] Using push state sync (%s)", type(channel).__name__)
        return PushStateSync(store, instance_id, channel, **kwargs)

    logger.info("[SYNC] Broadcast unavailable, falling back to store polling")
    return PollingStateSync(store, instance_id, **kwargs)
