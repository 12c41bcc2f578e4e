"""Disparador de alertas de flota.

Reglas:
- Un único flag de flota `was_in_danger`
- Dispara solo en el flanco de subida (no estaba en danger → ahora sí)
- Y solo si pasó al menos `cooldown` desde el último disparo
- Errores de efectos secundarios se capturan y loguean, nunca se propagan
"""

from __future__ import annotations

import logging
from typing import Iterable, List, Optional

from ..core.domain.reading import FleetSnapshot
from ..metrics import ALERTS_FIRED, SIDE_EFFECT_ERRORS
from .classification import SensorStatus, Thresholds
from .notification_history import NotificationHistory
from .notifiers import AlertEvent, AlertSideEffect

logger = logging.getLogger(__name__)

DEFAULT_COOLDOWN_SECONDS = 30.0


class AlertTrigger:
    """Detecta la transición de la flota a `danger` y dispara efectos."""

    def __init__(
        self,
        thresholds: Optional[Thresholds] = None,
        cooldown: float = DEFAULT_COOLDOWN_SECONDS,
        side_effects: Iterable[AlertSideEffect] = (),
        history: Optional[NotificationHistory] = None,
    ) -> None:
        if cooldown < 0:
            raise ValueError("cooldown must be >= 0")
        self.thresholds = thresholds or Thresholds()
        self.cooldown = float(cooldown)
        self._side_effects: List[AlertSideEffect] = list(side_effects)
        self._history = history

        self._was_in_danger = False
        self._last_fired_at: Optional[float] = None

    @property
    def was_in_danger(self) -> bool:
        return self._was_in_danger

    @property
    def last_fired_at(self) -> Optional[float]:
        return self._last_fired_at

    def observe(self, snapshot: FleetSnapshot, now: float, record_history: bool = True) -> bool:
        """Evalúa un snapshot. Devuelve True si se disparó la alerta."""
        danger = tuple(
            r for r in snapshot.readings if self.thresholds.classify(r.value) is SensorStatus.DANGER
        )
        in_danger = bool(danger)
        rising = in_danger and not self._was_in_danger
        self._was_in_danger = in_danger

        if not rising:
            return False
        if self._last_fired_at is not None and now - self._last_fired_at < self.cooldown:
            logger.debug("[ALERT] Rising edge inside cooldown, not firing")
            return False

        self._last_fired_at = now
        ALERTS_FIRED.inc()
        event = AlertEvent(fired_at=now, danger_readings=danger, danger_threshold=self.thresholds.danger)
        logger.info("[ALERT] Fired: %s", event.summary)

        for effect in self._side_effects:
            try:
                effect.emit(event)
            except Exception as e:
                SIDE_EFFECT_ERRORS.labels(kind=effect.name).inc()
                logger.warning("[ALERT] Side effect %s failed: %s", effect.name, e)

        if record_history and self._history is not None:
            self._record(event)
        return True

    def _record(self, event: AlertEvent) -> None:
        for reading in event.danger_readings:
            try:
                item = self._history.add(
                    type="danger",
                    sensor_id=reading.id,
                    sensor_name=reading.display_name,
                    location=reading.location,
                    value=reading.value,
                    message=(
                        f"{reading.display_name} reached {reading.value:g} {reading.unit} "
                        f"(danger >= {self.thresholds.danger:g})"
                    ),
                    now=event.fired_at,
                )
                if item is None:
                    SIDE_EFFECT_ERRORS.labels(kind="history").inc()
                    logger.warning("[ALERT] Notification for %s was not persisted", reading.id)
            except Exception as e:
                SIDE_EFFECT_ERRORS.labels(kind="history").inc()
                logger.warning("[ALERT] Could not record notification for %s: %s", reading.id, e)
