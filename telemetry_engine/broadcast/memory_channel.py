"""Bus de broadcast en memoria para instancias del mismo proceso."""

from __future__ import annotations

import logging
import threading
from typing import List, Optional

from ..core.domain.store_interface import (
    BroadcastHandler,
    BroadcastMessage,
    IBroadcastChannel,
)

logger = logging.getLogger(__name__)


class InMemoryBroadcastHub:
    """Hub compartido: cada instancia obtiene su propio canal con `channel()`.

    Igual que un BroadcastChannel del navegador, un mensaje se entrega a
    todos los canales del hub excepto al que lo publicó.
    """

    def __init__(self) -> None:
        self._channels: List["InMemoryBroadcastChannel"] = []
        self._lock = threading.Lock()

    def channel(self) -> "InMemoryBroadcastChannel":
        ch = InMemoryBroadcastChannel(self)
        with self._lock:
            self._channels.append(ch)
        return ch

    def _detach(self, channel: "InMemoryBroadcastChannel") -> None:
        with self._lock:
            if channel in self._channels:
                self._channels.remove(channel)

    def _deliver(self, sender: "InMemoryBroadcastChannel", message: BroadcastMessage) -> int:
        with self._lock:
            targets = [c for c in self._channels if c is not sender]
        delivered = 0
        for target in targets:
            if target._dispatch(message):
                delivered += 1
        return delivered


class InMemoryBroadcastChannel(IBroadcastChannel):
    """Canal conectado a un InMemoryBroadcastHub."""

    def __init__(self, hub: InMemoryBroadcastHub) -> None:
        self._hub = hub
        self._handler: Optional[BroadcastHandler] = None
        self._closed = False

    def publish(self, message: BroadcastMessage) -> bool:
        if self._closed:
            return False
        self._hub._deliver(self, message)
        return True

    def subscribe(self, handler: BroadcastHandler) -> None:
        self._handler = handler

    def close(self) -> None:
        self._closed = True
        self._handler = None
        self._hub._detach(self)

    def _dispatch(self, message: BroadcastMessage) -> bool:
        handler = self._handler
        if handler is None or self._closed:
            return False
        try:
            handler(message)
            return True
        except Exception as e:
            logger.warning("[BROADCAST] Handler failed: %s", e)
            return False
