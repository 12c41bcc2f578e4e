"""Serie temporal con throttle, retención y tope de puntos.

- Throttle: se agrega un punto solo si el último tiene >= `update_interval`
- Retención: en cada append se podan puntos con timestamp <= now - retention
- Tope: como máximo `max_points` (se conservan los más nuevos)
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, List, Optional

from ..core.domain.series import TimeSeriesPoint

logger = logging.getLogger(__name__)

DEFAULT_UPDATE_INTERVAL = 60.0
DEFAULT_RETENTION = 30 * 60.0
DEFAULT_MAX_POINTS = 500


class ThrottledSeries:
    """Serie append-only con muestreo mínimo entre puntos."""

    def __init__(
        self,
        update_interval: float = DEFAULT_UPDATE_INTERVAL,
        retention: float = DEFAULT_RETENTION,
        max_points: int = DEFAULT_MAX_POINTS,
        points: Optional[Iterable[TimeSeriesPoint]] = None,
    ) -> None:
        self.update_interval = float(update_interval)
        self.retention = float(retention)
        self.max_points = int(max_points)
        self._points: List[TimeSeriesPoint] = sorted(points or [], key=lambda p: p.timestamp)
        self._cap()

    def __len__(self) -> int:
        return len(self._points)

    @property
    def points(self) -> List[TimeSeriesPoint]:
        return list(self._points)

    @property
    def last(self) -> Optional[TimeSeriesPoint]:
        return self._points[-1] if self._points else None

    def should_append(self, now: float) -> bool:
        last = self.last
        return last is None or now - last.timestamp >= self.update_interval

    def append(self, point: TimeSeriesPoint, now: float) -> bool:
        """Agrega `point` si el throttle lo permite. Devuelve True si se agregó."""
        if not self.should_append(now):
            return False
        self.prune(now)
        self._points.append(point)
        self._cap()
        return True

    def prune(self, now: float) -> int:
        cutoff = now - self.retention
        before = len(self._points)
        self._points = [p for p in self._points if p.timestamp > cutoff]
        return before - len(self._points)

    def window(self, now: Optional[float] = None) -> List[TimeSeriesPoint]:
        """Puntos dentro de la retención a la hora de consulta (sin mutar)."""
        if now is None:
            return list(self._points)
        cutoff = now - self.retention
        return [p for p in self._points if p.timestamp > cutoff]

    def _cap(self) -> None:
        if len(self._points) > self.max_points:
            self._points = self._points[-self.max_points:]

    @classmethod
    def from_list(
        cls,
        items: Any,
        *,
        update_interval: float = DEFAULT_UPDATE_INTERVAL,
        retention: float = DEFAULT_RETENTION,
        max_points: int = DEFAULT_MAX_POINTS,
        now: Optional[float] = None,
    ) -> "ThrottledSeries":
        """Reconstruye desde JSON; descarta puntos ilegibles y (con `now`) expirados."""
        points: List[TimeSeriesPoint] = []
        for item in items if isinstance(items, list) else []:
            try:
                points.append(TimeSeriesPoint.from_dict(item))
            except (KeyError, TypeError, ValueError):
                logger.debug("[AGG] Skipping unreadable series point: %r", item)
        series = cls(update_interval, retention, max_points, points)
        if now is not None:
            series.prune(now)
        return series
