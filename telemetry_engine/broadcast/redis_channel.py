"""Broadcast entre procesos sobre Redis pub/sub."""

from __future__ import annotations

import logging
from typing import Any, Optional

import orjson
import redis

from ..core.domain.store_interface import (
    BroadcastHandler,
    BroadcastMessage,
    IBroadcastChannel,
)
from ..core.redis.connection import RedisConnection

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "smoke-sensor:sync"


class RedisBroadcastChannel(IBroadcastChannel):
    """Canal best-effort sobre Redis pub/sub.

    Responsabilidades:
    - Publicar mensajes JSON (orjson) en un canal
    - Escuchar en un hilo de pubsub y delegar al handler

    El handler corre en el hilo de pubsub: quien se suscribe debe encolar,
    no mutar estado directamente.
    """

    def __init__(
        self,
        connection: RedisConnection,
        channel_name: str = DEFAULT_CHANNEL,
    ):
        self._conn = connection
        self._channel = channel_name
        self._handler: Optional[BroadcastHandler] = None
        self._pubsub: Optional[Any] = None
        self._thread: Optional[Any] = None

    @property
    def channel_name(self) -> str:
        return self._channel

    @property
    def available(self) -> bool:
        return self._conn.is_connected

    def publish(self, message: BroadcastMessage) -> bool:
        if not self._conn.is_connected and not self._conn.ping():
            return False

        try:
            self._conn.client.publish(self._channel, orjson.dumps(message))
            return True
        except redis.ConnectionError as e:
            self._conn.mark_lost(e)
            return False
        except redis.RedisError as e:
            logger.warning("[BROADCAST] Publish failed: %s", e)
            return False

    def subscribe(self, handler: BroadcastHandler) -> None:
        self._handler = handler
        if not self._conn.is_connected or self._pubsub is not None:
            return

        try:
            self._pubsub = self._conn.client.pubsub(ignore_subscribe_messages=True)
            self._pubsub.subscribe(**{self._channel: self._on_message})
            self._thread = self._pubsub.run_in_thread(sleep_time=0.1, daemon=True)
            logger.info("[BROADCAST] Subscribed to %s", self._channel)
        except redis.RedisError as e:
            logger.warning("[BROADCAST] Subscribe failed: %s", e)
            self._pubsub = None

    def close(self) -> None:
        if self._thread is not None:
            try:
                self._thread.stop()
            except Exception as e:
                logger.debug("[BROADCAST] Listener stop error: %s", e)
            self._thread = None
        if self._pubsub is not None:
            try:
                self._pubsub.close()
            except Exception as e:
                logger.debug("[BROADCAST] PubSub close error: %s", e)
            self._pubsub = None
        self._handler = None

    def _on_message(self, message: dict) -> None:
        """Callback del hilo pubsub - parsea y delega al handler."""
        handler = self._handler
        if handler is None:
            return
        try:
            data = orjson.loads(message.get("data") or b"null")
        except orjson.JSONDecodeError as e:
            logger.debug("[BROADCAST] Ignoring invalid message: %s", e)
            return
        if not isinstance(data, dict):
            return
        try:
            handler(data)
        except Exception as e:
            logger.warning("[BROADCAST] Handler failed: %s", e)
