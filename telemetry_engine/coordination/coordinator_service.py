"""Servicio de coordinación "primary" por instancia.

Reemplaza el flag global de "qué pestaña es la primaria" por una instancia
construida explícitamente, con init/teardown claros y un reloj inyectable.

Máquina de estados:
- FOLLOWER: intenta `try_acquire` cada `takeover_interval`
- PRIMARY: renueva cada `heartbeat_interval`; si `renew` falla, vuelve a FOLLOWER
"""

from __future__ import annotations

import logging
from typing import Callable, List, Optional

from ..metrics import IS_PRIMARY
from .lease_coordinator import LeaseCoordinator

logger = logging.getLogger(__name__)

RoleListener = Callable[[bool], None]

DEFAULT_HEARTBEAT_INTERVAL = 1.0
DEFAULT_TAKEOVER_INTERVAL = 2.0


class CoordinatorService:
    """Decide si esta instancia puede ejecutar la ingesta.

    Se maneja con `tick(now)` desde el loop del servicio; no crea hilos.
    """

    def __init__(
        self,
        coordinator: LeaseCoordinator,
        instance_id: str,
        *,
        heartbeat_interval: float = DEFAULT_HEARTBEAT_INTERVAL,
        takeover_interval: float = DEFAULT_TAKEOVER_INTERVAL,
    ) -> None:
        if heartbeat_interval >= coordinator.lease_timeout:
            raise ValueError(
                f"heartbeat_interval ({heartbeat_interval}s) must be shorter than "
                f"lease_timeout ({coordinator.lease_timeout}s)"
            )
        self._coordinator = coordinator
        self._instance_id = instance_id
        self._heartbeat_interval = float(heartbeat_interval)
        self._takeover_interval = float(takeover_interval)

        self._is_primary = False
        self._started = False
        self._next_heartbeat_at: Optional[float] = None
        self._next_takeover_at: Optional[float] = None
        self._listeners: List[RoleListener] = []

    @property
    def instance_id(self) -> str:
        return self._instance_id

    @property
    def is_primary(self) -> bool:
        return self._is_primary

    @property
    def coordinator(self) -> LeaseCoordinator:
        return self._coordinator

    def add_listener(self, listener: RoleListener) -> None:
        """Registra un callback `listener(is_primary)` para cambios de rol."""
        self._listeners.append(listener)

    def start(self, now: float) -> bool:
        """Intenta tomar el lease de inmediato. Devuelve el rol resultante."""
        self._started = True
        self._next_takeover_at = now
        self.tick(now)
        return self._is_primary

    def tick(self, now: float) -> None:
        """Avanza los temporizadores de heartbeat / takeover."""
        if not self._started:
            return

        if self._is_primary:
            if self._next_heartbeat_at is not None and now < self._next_heartbeat_at:
                return
            if self._coordinator.renew(self._instance_id, now):
                self._next_heartbeat_at = now + self._heartbeat_interval
            else:
                # Otra instancia sobrescribió el lease (carrera o pausa larga).
                logger.warning("[LEASE] %s lost the lease, demoting to follower", self._instance_id)
                self._set_primary(False, now)
            return

        if self._next_takeover_at is not None and now < self._next_takeover_at:
            return
        self._next_takeover_at = now + self._takeover_interval
        if self._coordinator.try_acquire(self._instance_id, now):
            self._set_primary(True, now)

    def stop(self) -> None:
        """Teardown: limpia temporizadores y libera el lease (best-effort)."""
        was_primary = self._is_primary
        self._started = False
        self._next_heartbeat_at = None
        self._next_takeover_at = None
        if was_primary:
            try:
                self._coordinator.release(self._instance_id)
            except Exception as e:
                # Si no se puede liberar, el lease expira solo.
                logger.warning("[LEASE] Release failed for %s: %s", self._instance_id, e)
            self._set_primary(False, None)

    def _set_primary(self, value: bool, now: Optional[float]) -> None:
        if value == self._is_primary:
            return
        self._is_primary = value
        IS_PRIMARY.labels(instance=self._instance_id).set(1 if value else 0)
        if value:
            self._next_heartbeat_at = (now or 0.0) + self._heartbeat_interval
            logger.info("[LEASE] %s is now PRIMARY", self._instance_id)
        else:
            self._next_heartbeat_at = None
            if now is not None:
                self._next_takeover_at = now + self._takeover_interval
            logger.info("[LEASE] %s is now FOLLOWER", self._instance_id)

        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception as e:
                logger.warning("[LEASE] Role listener failed: %s", e)
