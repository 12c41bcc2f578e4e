"""Efectos secundarios de una alerta: sonido, log y push por webhook.

Son fire-and-forget: pueden lanzar excepciones, el AlertTrigger las captura
y las cuenta sin interrumpir la agregación.
"""

from __future__ import annotations

import logging
import sys
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, Optional, TextIO, Tuple

import requests

from ..core.domain.reading import SensorReading

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AlertEvent:
    """Disparo de alerta de flota (flanco de subida a `danger`)."""
    fired_at: float
    danger_readings: Tuple[SensorReading, ...]
    danger_threshold: float

    @property
    def summary(self) -> str:
        names = ", ".join(f"{r.display_name}={r.value:g}{r.unit}" for r in self.danger_readings)
        return f"{len(self.danger_readings)} sensor(s) in danger (>= {self.danger_threshold:g}): {names}"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "type": "danger",
            "firedAt": self.fired_at,
            "dangerThreshold": self.danger_threshold,
            "sensors": [r.to_dict() for r in self.danger_readings],
            "message": self.summary,
        }


class AlertSideEffect(ABC):
    """Interfaz de efecto secundario de alerta."""

    name = "side_effect"

    @abstractmethod
    def emit(self, event: AlertEvent) -> None:
        pass


class BellSoundPlayer(AlertSideEffect):
    """Patrón de 3 pitidos con el carácter BEL de la terminal."""

    name = "sound"

    def __init__(self, stream: Optional[TextIO] = None, beeps: int = 3) -> None:
        self._stream = stream
        self.beeps = beeps

    def emit(self, event: AlertEvent) -> None:
        stream = self._stream or sys.stdout
        stream.write("\a" * self.beeps)
        stream.flush()


class LogNotifier(AlertSideEffect):
    name = "log"

    def emit(self, event: AlertEvent) -> None:
        logger.warning("[ALERT] %s", event.summary)


class WebhookNotifier(AlertSideEffect):
    """Dispara un push vía webhook interno.

    No bloquea más de `timeout` segundos. Una respuesta no-2xx se loguea;
    los errores de red se propagan al trigger, que los traga.
    """

    name = "webhook"

    def __init__(self, url: str, internal_key: Optional[str] = None, timeout: float = 5.0) -> None:
        self.url = url
        self.internal_key = internal_key
        self.timeout = timeout

    def emit(self, event: AlertEvent) -> None:
        headers = {"Content-Type": "application/json"}
        if self.internal_key:
            headers["X-Internal-Key"] = self.internal_key

        response = requests.post(self.url, json=event.to_dict(), headers=headers, timeout=self.timeout)
        if response.ok:
            logger.info("[PUSH] Alert push triggered (%d sensors)", len(event.danger_readings))
        else:
            logger.warning("[PUSH] Failed to trigger push: %s %s", response.status_code, response.text)
