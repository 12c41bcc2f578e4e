"""Lease de escritor único sobre el store compartido.

El store no es transaccional: dos instancias pueden leer "expirado" y
escribir ambas. Se tolera; la que pierde lo detecta en su próximo
`renew()` (el dueño guardado ya no es ella).
"""

from __future__ import annotations

import logging
from typing import Optional

from ..core.domain.lease import CoordinationLease
from ..storage import keys
from ..storage.json_store import JsonStore

logger = logging.getLogger(__name__)

DEFAULT_LEASE_TIMEOUT = 3.0


class LeaseCoordinator:
    """Operaciones atómicas-por-convención sobre el registro global de lease."""

    def __init__(self, store: JsonStore, lease_timeout: float = DEFAULT_LEASE_TIMEOUT) -> None:
        if lease_timeout <= 0:
            raise ValueError("lease_timeout must be positive")
        self._store = store
        self._lease_timeout = float(lease_timeout)

    @property
    def lease_timeout(self) -> float:
        return self._lease_timeout

    def current_lease(self) -> Optional[CoordinationLease]:
        """Lee el lease guardado. Un registro ilegible cuenta como ausente."""
        data = self._store.load(keys.LEASE)
        if not isinstance(data, dict):
            return None
        try:
            return CoordinationLease.from_dict(data)
        except (KeyError, TypeError, ValueError):
            logger.warning("[LEASE] Garbled lease record ignored: %r", data)
            return None

    def try_acquire(self, self_id: str, now: float) -> bool:
        """Toma el lease si no existe o expiró.

        Returns:
            True si se escribió el lease a nombre de `self_id`; False sin
            mutar nada si hay un dueño vivo (incluido uno mismo).
        """
        lease = self.current_lease()
        if lease is not None and lease.is_live(now, self._lease_timeout):
            return False

        written = self._store.save_quietly(
            keys.LEASE,
            CoordinationLease(owner_id=self_id, heartbeat_at=now).to_dict(),
        )
        if written:
            if lease is None:
                logger.info("[LEASE] Acquired by %s", self_id)
            else:
                logger.info(
                    "[LEASE] Taken over by %s (previous owner %s silent for %.1fs)",
                    self_id,
                    lease.owner_id,
                    now - lease.heartbeat_at,
                )
        return written

    def renew(self, self_id: str, now: float) -> bool:
        """Actualiza el heartbeat solo si el dueño guardado es `self_id`."""
        lease = self.current_lease()
        if lease is None or lease.owner_id != self_id:
            return False
        return self._store.save_quietly(
            keys.LEASE,
            CoordinationLease(owner_id=self_id, heartbeat_at=now).to_dict(),
        )

    def release(self, self_id: str) -> bool:
        """Borra el lease si pertenece a `self_id` (cierre ordenado)."""
        lease = self.current_lease()
        if lease is None or lease.owner_id != self_id:
            return False
        self._store.remove(keys.LEASE)
        logger.info("[LEASE] Released by %s", self_id)
        return True
