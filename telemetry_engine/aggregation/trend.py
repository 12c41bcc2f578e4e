"""Resumen de tendencia de una serie (mitad reciente vs mitad antigua)."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, Optional

from ..core.domain.series import TimeSeriesPoint

TREND_THRESHOLD_PERCENT = 5.0


class TrendDirection(Enum):
    RISING = "rising"
    FALLING = "falling"
    STABLE = "stable"


@dataclass(frozen=True)
class TrendSummary:
    direction: TrendDirection = TrendDirection.STABLE
    change_percent: float = 0.0
    average: float = 0.0
    peak_at: Optional[float] = None
    peak_value: Optional[float] = None
    lowest_at: Optional[float] = None
    lowest_value: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "trend": self.direction.value,
            "changePercent": self.change_percent,
            "averageValue": self.average,
            "peakTime": self.peak_at,
            "peakValue": self.peak_value,
            "lowestTime": self.lowest_at,
            "lowestValue": self.lowest_value,
        }


def _mean(values) -> float:
    return sum(values) / len(values) if values else 0.0


def analyze_trend(points: Iterable[TimeSeriesPoint]) -> TrendSummary:
    """Compara la media de la segunda mitad contra la primera.

    > +5% → rising, < -5% → falling, si no stable. Con menos de 2 puntos
    devuelve un resumen vacío. `change_percent` es el valor absoluto.
    """
    ordered = sorted(points, key=lambda p: p.timestamp)
    if len(ordered) < 2:
        return TrendSummary()

    mid = len(ordered) // 2
    avg_first = _mean([p.value for p in ordered[:mid]])
    avg_second = _mean([p.value for p in ordered[mid:]])
    change = (avg_second - avg_first) / avg_first * 100.0 if avg_first != 0 else 0.0

    direction = TrendDirection.STABLE
    if change > TREND_THRESHOLD_PERCENT:
        direction = TrendDirection.RISING
    elif change < -TREND_THRESHOLD_PERCENT:
        direction = TrendDirection.FALLING

    # Primer punto que alcanza el máximo / mínimo
    peak = ordered[0]
    lowest = ordered[0]
    for p in ordered[1:]:
        if p.value > peak.value:
            peak = p
        if p.value < lowest.value:
            lowest = p

    return TrendSummary(
        direction=direction,
        change_percent=abs(change),
        average=_mean([p.value for p in ordered]),
        peak_at=peak.timestamp,
        peak_value=peak.value,
        lowest_at=lowest.timestamp,
        lowest_value=lowest.value,
    )
