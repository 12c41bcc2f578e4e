"""Broadcast entre instancias y sincronización de estado.

El canal de broadcast es best-effort: si no existe, la sincronización
degrada a polling del almacenamiento compartido.
"""

from .factory import create_broadcast_channel, create_state_sync
from .memory_channel import InMemoryBroadcastChannel, InMemoryBroadcastHub
from .redis_channel import RedisBroadcastChannel
from .state_sync import PollingStateSync, PushStateSync, StateSync

__all__ = [
    "InMemoryBroadcastChannel",
    "InMemoryBroadcastHub",
    "PollingStateSync",
    "PushStateSync",
    "RedisBroadcastChannel",
    "StateSync",
    "create_broadcast_channel",
    "create_state_sync",
]
