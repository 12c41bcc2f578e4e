"""Clasificación de lecturas por umbral (safe / warning / danger)."""

from __future__ import annotations

import math
from dataclasses import dataclass
from enum import Enum

DEFAULT_WARNING_THRESHOLD = 50.0
DEFAULT_DANGER_THRESHOLD = 200.0


class SensorStatus(Enum):
    """Estado de un sensor según su valor."""

    SAFE = "safe"
    WARNING = "warning"  # warning <= v < danger
    DANGER = "danger"  # v >= danger


@dataclass(frozen=True)
class Thresholds:
    """Umbrales de alerta configurables."""

    warning: float = DEFAULT_WARNING_THRESHOLD
    danger: float = DEFAULT_DANGER_THRESHOLD

    def __post_init__(self) -> None:
        if self.warning > self.danger:
            raise ValueError(
                f"warning threshold ({self.warning}) must not exceed danger threshold ({self.danger})"
            )

    def classify(self, value: float) -> SensorStatus:
        return classify(value, self.warning, self.danger)


def classify(value: float, warning: float, danger: float) -> SensorStatus:
    """Clasifica un valor. NaN se considera `safe` (no dispara alertas)."""
    if math.isnan(value):
        return SensorStatus.SAFE
    if value >= danger:
        return SensorStatus.DANGER
    if value >= warning:
        return SensorStatus.WARNING
    return SensorStatus.SAFE
