"""Sincronización de estado entre instancias.

Almacenamiento durable eventualmente consistente con dos variantes,
elegidas al construir (ver factory.create_state_sync):

- PushStateSync: escribe el snapshot en el store y además lo publica por
  broadcast; los followers lo reciben por push.
- PollingStateSync: solo store; los followers consultan la clave del
  snapshot en cada tick.

El motor de agregación nunca pregunta qué transporte hay disponible.
"""

from __future__ import annotations

import logging
import queue
from abc import ABC, abstractmethod
from typing import List, Optional

from ..core.domain.reading import FleetSnapshot
from ..core.domain.store_interface import BroadcastMessage, IBroadcastChannel
from ..storage import keys
from ..storage.json_store import JsonStore

logger = logging.getLogger(__name__)

MESSAGE_TYPE_SNAPSHOT = "snapshot"
DEFAULT_MAX_SNAPSHOT_AGE = 24 * 60 * 60


class StateSync(ABC):
    """Contrato común: publicar, drenar snapshots pendientes y recuperar el último."""

    transport = "abstract"

    def __init__(
        self,
        store: JsonStore,
        instance_id: str,
        max_snapshot_age_seconds: float = DEFAULT_MAX_SNAPSHOT_AGE,
    ) -> None:
        self._store = store
        self._instance_id = instance_id
        self._max_age = float(max_snapshot_age_seconds)
        self._last_seen_at: Optional[float] = None

    def publish(self, snapshot: FleetSnapshot) -> None:
        """Escribe el snapshot actual en el store (solo el escritor lo llama)."""
        self._store.save_quietly(keys.CURRENT_SNAPSHOT, self._envelope(snapshot))
        self._last_seen_at = snapshot.captured_at

    def latest(self, now: float) -> Optional[FleetSnapshot]:
        """Lee directamente del store el último snapshot conocido.

        Usado por un follower que arranca a mitad de sesión. Snapshots más
        viejos que `max_snapshot_age_seconds` se ignoran.
        """
        snapshot = self._parse(self._store.load(keys.CURRENT_SNAPSHOT))
        if snapshot is None:
            return None
        if now - snapshot.captured_at > self._max_age:
            logger.info("[SYNC] Ignoring cached snapshot older than %.0fs", self._max_age)
            return None
        self._mark_seen(snapshot)
        return snapshot

    @abstractmethod
    def drain(self) -> List[FleetSnapshot]:
        """Snapshots nuevos de otras instancias, en orden de llegada."""

    def close(self) -> None:
        return None

    def _envelope(self, snapshot: FleetSnapshot) -> BroadcastMessage:
        return {
            "type": MESSAGE_TYPE_SNAPSHOT,
            "sender": self._instance_id,
            "snapshot": snapshot.to_dict(),
        }

    def _parse(self, message: object) -> Optional[FleetSnapshot]:
        if not isinstance(message, dict) or message.get("type") != MESSAGE_TYPE_SNAPSHOT:
            return None
        try:
            return FleetSnapshot.from_dict(message.get("snapshot") or {})
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("[SYNC] Invalid snapshot payload: %s", e)
            return None

    def _is_newer(self, snapshot: FleetSnapshot) -> bool:
        # Sin garantía de orden entre instancias: se descartan snapshots viejos.
        return self._last_seen_at is None or snapshot.captured_at > self._last_seen_at

    def _mark_seen(self, snapshot: FleetSnapshot) -> None:
        if self._is_newer(snapshot):
            self._last_seen_at = snapshot.captured_at


class PushStateSync(StateSync):
    """Store + broadcast. Los mensajes llegan en el hilo del transporte y se
    encolan; `drain()` los entrega en el hilo del loop principal."""

    transport = "push"

    def __init__(
        self,
        store: JsonStore,
        instance_id: str,
        channel: IBroadcastChannel,
        max_snapshot_age_seconds: float = DEFAULT_MAX_SNAPSHOT_AGE,
        max_pending: int = 100,
    ) -> None:
        super().__init__(store, instance_id, max_snapshot_age_seconds)
        self._channel = channel
        self._pending: "queue.Queue[FleetSnapshot]" = queue.Queue(maxsize=max_pending)
        self._channel.subscribe(self._on_message)

    def publish(self, snapshot: FleetSnapshot) -> None:
        super().publish(snapshot)
        if not self._channel.publish(self._envelope(snapshot)):
            logger.debug("[SYNC] Broadcast not delivered, followers will rely on the store")

    def drain(self) -> List[FleetSnapshot]:
        drained: List[FleetSnapshot] = []
        while True:
            try:
                snapshot = self._pending.get_nowait()
            except queue.Empty:
                break
            if self._is_newer(snapshot):
                self._mark_seen(snapshot)
                drained.append(snapshot)
        return drained

    def close(self) -> None:
        self._channel.close()

    def _on_message(self, message: BroadcastMessage) -> None:
        if message.get("sender") == self._instance_id:
            return
        snapshot = self._parse(message)
        if snapshot is None:
            return
        try:
            self._pending.put_nowait(snapshot)
        except queue.Full:
            # Solo importa el más reciente: descartar el más viejo.
            try:
                self._pending.get_nowait()
            except queue.Empty:
                pass
            self._pending.put_nowait(snapshot)


class PollingStateSync(StateSync):
    """Solo store. Cada `drain()` relee la clave del snapshot."""

    transport = "polling"

    def drain(self) -> List[FleetSnapshot]:
        message = self._store.load(keys.CURRENT_SNAPSHOT)
        if not isinstance(message, dict) or message.get("sender") == self._instance_id:
            return []
        snapshot = self._parse(message)
        if snapshot is None or not self._is_newer(snapshot):
            return []
        self._mark_seen(snapshot)
        return [snapshot]
