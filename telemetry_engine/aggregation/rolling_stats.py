"""Estadísticas rodantes de 24h por ubicación (reset duro al quedar stale)."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from ..core.domain.reading import SensorReading
from ..core.domain.series import RollingStat

logger = logging.getLogger(__name__)

DEFAULT_STATS_WINDOW = 24 * 60 * 60.0


class RollingStatsBook:
    """Mapa location_key → RollingStat."""

    def __init__(self, window: float = DEFAULT_STATS_WINDOW) -> None:
        self.window = float(window)
        self._stats: Dict[str, RollingStat] = {}

    def __len__(self) -> int:
        return len(self._stats)

    def __contains__(self, location_key: str) -> bool:
        return location_key in self._stats

    def get(self, location_key: str) -> Optional[RollingStat]:
        return self._stats.get(location_key)

    def update(self, reading: SensorReading, now: float) -> RollingStat:
        """Acumula una lectura (valor finito). Reinicia si no existe o está stale."""
        value = reading.value
        stat = self._stats.get(reading.location_key)
        if stat is None or stat.is_stale(now, self.window):
            stat = RollingStat(
                location_key=reading.location_key,
                max=value,
                min=value,
                sum=value,
                sample_count=1,
                last_updated_at=now,
                display_name=reading.display_name,
                location=reading.location,
            )
            self._stats[reading.location_key] = stat
            return stat

        stat.max = max(stat.max, value)
        stat.min = min(stat.min, value)
        stat.sum += value
        stat.sample_count += 1
        stat.last_updated_at = now
        stat.display_name = reading.display_name
        stat.location = reading.location
        return stat

    def sweep(self, now: float) -> int:
        """Elimina entradas stale (sensores que desaparecieron). Devuelve cuántas."""
        stale = [k for k, s in self._stats.items() if s.is_stale(now, self.window)]
        for key in stale:
            del self._stats[key]
        return len(stale)

    def values(self, now: Optional[float] = None) -> List[RollingStat]:
        """Stats ordenadas por `max` descendente; con `now` filtra las stale."""
        items = [
            s for s in self._stats.values()
            if now is None or not s.is_stale(now, self.window)
        ]
        return sorted(items, key=lambda s: s.max, reverse=True)

    def most_recent(self, count: int) -> List[RollingStat]:
        if count <= 0:
            return []
        ordered = sorted(self._stats.values(), key=lambda s: s.last_updated_at, reverse=True)
        return ordered[:count]

    @classmethod
    def from_list(cls, items: Any, *, window: float = DEFAULT_STATS_WINDOW,
                  now: Optional[float] = None) -> "RollingStatsBook":
        book = cls(window)
        for item in items if isinstance(items, list) else []:
            try:
                stat = RollingStat.from_dict(item)
            except (KeyError, TypeError, ValueError):
                logger.debug("[AGG] Skipping unreadable stat: %r", item)
                continue
            if now is not None and stat.is_stale(now, book.window):
                continue
            book._stats[stat.location_key] = stat
        return book
