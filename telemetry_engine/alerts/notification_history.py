"""Historial persistido de notificaciones (más nuevas primero).

- Máximo `max_items` entradas (100)
- Si el store rechaza por cuota se reintenta con las 50 más nuevas
- Se relee del store en cada operación: el historial lo escribe el dueño
  del lease pero lo consulta cualquier instancia
"""

from __future__ import annotations

import logging
import threading
import uuid
from dataclasses import dataclass, replace
from typing import Any, Dict, List, Optional

from ..core.domain.errors import StorageQuotaError
from ..storage import keys
from ..storage.json_store import JsonStore

logger = logging.getLogger(__name__)

DEFAULT_MAX_ITEMS = 100
QUOTA_FALLBACK_ITEMS = 50
NOTIFICATION_TYPES = ("danger", "warning", "info")


@dataclass(frozen=True)
class NotificationItem:
    id: str
    type: str
    sensor_id: str
    sensor_name: str
    location: str
    value: float
    message: str
    timestamp: float
    is_read: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "sensorId": self.sensor_id,
            "sensorName": self.sensor_name,
            "location": self.location,
            "value": self.value,
            "message": self.message,
            "timestamp": self.timestamp,
            "isRead": self.is_read,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NotificationItem":
        return cls(
            id=str(data["id"]),
            type=str(data.get("type") or "info"),
            sensor_id=str(data.get("sensorId") or ""),
            sensor_name=str(data.get("sensorName") or ""),
            location=str(data.get("location") or ""),
            value=float(data.get("value") or 0.0),
            message=str(data.get("message") or ""),
            timestamp=float(data["timestamp"]),
            is_read=bool(data.get("isRead", False)),
        )


class NotificationHistory:
    def __init__(self, store: JsonStore, max_items: int = DEFAULT_MAX_ITEMS) -> None:
        if max_items <= 0:
            raise ValueError("max_items must be positive")
        self._store = store
        self.max_items = max_items
        # Serializa load -> modificar -> save entre el loop y los handlers HTTP
        self._lock = threading.Lock()

    def items(self) -> List[NotificationItem]:
        raw = self._store.load(keys.NOTIFICATIONS, [])
        result: List[NotificationItem] = []
        for entry in raw if isinstance(raw, list) else []:
            try:
                result.append(NotificationItem.from_dict(entry))
            except (KeyError, TypeError, ValueError):
                logger.debug("[NOTIFY] Skipping unreadable notification: %r", entry)
        return result[: self.max_items]

    def unread_count(self) -> int:
        return sum(1 for n in self.items() if not n.is_read)

    def add(
        self,
        *,
        type: str,
        sensor_id: str,
        sensor_name: str,
        location: str,
        value: float,
        message: str,
        now: float,
    ) -> Optional[NotificationItem]:
        """Agrega una notificación al inicio. None si no se pudo persistir."""
        if type not in NOTIFICATION_TYPES:
            raise ValueError(f"unknown notification type: {type}")
        item = NotificationItem(
            id=f"{int(now * 1000)}-{uuid.uuid4().hex[:9]}",
            type=type,
            sensor_id=sensor_id,
            sensor_name=sensor_name,
            location=location,
            value=value,
            message=message,
            timestamp=now,
        )
        with self._lock:
            if not self._save([item] + self.items()):
                return None
        return item

    def mark_as_read(self, notification_id: str) -> bool:
        with self._lock:
            items = self.items()
            found = False
            for i, n in enumerate(items):
                if n.id == notification_id and not n.is_read:
                    items[i] = replace(n, is_read=True)
                    found = True
            if found:
                self._save(items)
            return found

    def mark_all_as_read(self) -> int:
        with self._lock:
            items = self.items()
            changed = sum(1 for n in items if not n.is_read)
            if changed:
                self._save([replace(n, is_read=True) for n in items])
            return changed

    def clear_all(self) -> None:
        with self._lock:
            self._store.remove(keys.NOTIFICATIONS)

    def clear_old(self, days: float, now: float) -> int:
        """Elimina entradas con más de `days` días. Devuelve cuántas."""
        cutoff = now - days * 86400.0
        with self._lock:
            items = self.items()
            kept = [n for n in items if n.timestamp > cutoff]
            removed = len(items) - len(kept)
            if removed:
                self._save(kept)
            return removed

    def get(self, notification_id: str) -> Optional[NotificationItem]:
        for n in self.items():
            if n.id == notification_id:
                return n
        return None

    def _save(self, items: List[NotificationItem]) -> bool:
        try:
            self._store.save(keys.NOTIFICATIONS, [n.to_dict() for n in items[: self.max_items]])
            return True
        except StorageQuotaError:
            logger.warning("[NOTIFY] Quota exceeded, keeping newest %d notifications", QUOTA_FALLBACK_ITEMS)
        try:
            self._store.save(keys.NOTIFICATIONS, [n.to_dict() for n in items[:QUOTA_FALLBACK_ITEMS]])
            return True
        except StorageQuotaError as e:
            logger.error("[NOTIFY] Cannot persist notification history: %s", e)
            return False
