"""Motor de agregación: snapshots → series rodantes + estadísticas 24h.

Dueño de:
- Serie de promedio de flota (throttle 60s, retención 30min, ≤500 puntos)
- Series por ubicación (mismo throttle, independiente por location_key)
- Estadísticas max/min/avg por ubicación (ventana 24h, reset duro)

Escritura write-through al store tras cada `ingest()`. Si el store rechaza
por cuota se reintenta con la mitad del payload hasta que entre; el estado
en memoria nunca se pierde.
"""

from __future__ import annotations

import dataclasses
import logging
import math
import threading
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

from ..alerts.classification import (
    DEFAULT_DANGER_THRESHOLD,
    DEFAULT_WARNING_THRESHOLD,
    SensorStatus,
    classify,
)
from ..core.domain.errors import StorageQuotaError
from ..core.domain.reading import FleetSnapshot
from ..core.domain.series import FleetStats, RollingStat, TimeSeriesPoint
from ..storage import keys
from ..storage.json_store import JsonStore
from .rolling_stats import DEFAULT_STATS_WINDOW, RollingStatsBook
from .series import DEFAULT_MAX_POINTS, DEFAULT_RETENTION, DEFAULT_UPDATE_INTERVAL, ThrottledSeries
from .trend import TrendSummary, analyze_trend

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AggregationConfig:
    update_interval: float = DEFAULT_UPDATE_INTERVAL
    retention: float = DEFAULT_RETENTION
    max_points: int = DEFAULT_MAX_POINTS
    stats_window: float = DEFAULT_STATS_WINDOW
    warning_threshold: float = DEFAULT_WARNING_THRESHOLD
    danger_threshold: float = DEFAULT_DANGER_THRESHOLD
    follower_accumulates_stats: bool = False

    @classmethod
    def from_settings(cls, settings) -> "AggregationConfig":
        return cls(
            update_interval=settings.series_update_interval_seconds,
            retention=settings.series_retention_seconds,
            max_points=settings.max_series_points,
            stats_window=settings.stats_window_seconds,
            warning_threshold=settings.warning_threshold,
            danger_threshold=settings.danger_threshold,
            follower_accumulates_stats=settings.follower_accumulates_stats,
        )


def compute_fleet_stats(
    snapshot: Optional[FleetSnapshot],
    warning: float = DEFAULT_WARNING_THRESHOLD,
    danger: float = DEFAULT_DANGER_THRESHOLD,
) -> FleetStats:
    """Resumen inmediato de un snapshot.

    Promedio y máximo sobre sensores online con valor finito (0.0 si no hay).
    `alert_count` cuenta lecturas cuya clasificación no es `safe`.
    """
    if snapshot is None:
        return FleetStats()

    online = [r for r in snapshot.readings if r.online]
    values = [r.value for r in online if r.has_finite_value]
    alert_count = sum(
        1 for r in snapshot.readings if classify(r.value, warning, danger) is not SensorStatus.SAFE
    )
    return FleetStats(
        total_count=len(snapshot.readings),
        online_count=len(online),
        average_value=sum(values) / len(values) if values else 0.0,
        max_value=max(values) if values else 0.0,
        alert_count=alert_count,
        status=snapshot.status,
    )


class AggregationEngine:
    """Pliega snapshots en series y estadísticas persistidas.

    Args:
        store: Store JSON compartido
        config: Intervalos, retención y umbrales
    """

    def __init__(self, store: JsonStore, config: Optional[AggregationConfig] = None) -> None:
        self._store = store
        self.config = config or AggregationConfig()
        self._lock = threading.RLock()

        self._fleet = self._new_series()
        self._locations: Dict[str, ThrottledSeries] = {}
        self._stats = RollingStatsBook(self.config.stats_window)
        self._snapshot: Optional[FleetSnapshot] = None
        self._fleet_stats = FleetStats()

    def _new_series(self) -> ThrottledSeries:
        return ThrottledSeries(
            self.config.update_interval, self.config.retention, self.config.max_points
        )

    # =========================================================================
    # Carga / escritura
    # =========================================================================

    def load(self, now: float) -> None:
        """Recarga series y stats del store descartando lo expirado.

        Se usa al arrancar y al ser promovida a dueña del lease.
        """
        series_opts = dict(
            update_interval=self.config.update_interval,
            retention=self.config.retention,
            max_points=self.config.max_points,
            now=now,
        )
        fleet = ThrottledSeries.from_list(self._store.load(keys.FLEET_SERIES, []), **series_opts)

        locations: Dict[str, ThrottledSeries] = {}
        raw_locations = self._store.load(keys.LOCATION_SERIES, {})
        if isinstance(raw_locations, dict):
            for location_key, items in raw_locations.items():
                series = ThrottledSeries.from_list(items, **series_opts)
                if len(series):
                    locations[str(location_key)] = series

        stats = RollingStatsBook.from_list(
            self._store.load(keys.LOCATION_STATS, []),
            window=self.config.stats_window,
            now=now,
        )

        with self._lock:
            self._fleet = fleet
            self._locations = locations
            self._stats = stats

        logger.info(
            "[AGG] Loaded fleet_points=%d locations=%d stats=%d",
            len(fleet), len(locations), len(stats),
        )

    def _evict_expired_series(self, now: float) -> int:
        """Quita series de ubicación sin puntos dentro de la retención."""
        expired = [k for k, s in self._locations.items() if not s.window(now)]
        for key in expired:
            del self._locations[key]
        return len(expired)

    def _persist(self, now: float) -> None:
        fleet_points = self._fleet.points
        self._save_truncating(
            keys.FLEET_SERIES,
            fleet_points,
            encode=lambda pts: [p.to_dict() for p in pts],
            halve=lambda pts: pts[len(pts) - len(pts) // 2:] if len(pts) > 1 else [],
        )

        # Series sin puntos vigentes (ubicación desaparecida) no se escriben
        location_points = {
            key: series.points for key, series in self._locations.items() if series.window(now)
        }
        self._save_truncating(
            keys.LOCATION_SERIES,
            location_points,
            encode=lambda m: {k: [p.to_dict() for p in pts] for k, pts in m.items()},
            halve=lambda m: {
                k: pts[len(pts) - len(pts) // 2:] for k, pts in m.items() if len(pts) > 1
            },
        )

        stats = self._stats.most_recent(len(self._stats))
        self._save_truncating(
            keys.LOCATION_STATS,
            stats,
            encode=lambda items: [s.to_dict() for s in items],
            halve=lambda items: items[: len(items) // 2],
        )

    def _save_truncating(
        self,
        name: str,
        payload: Any,
        encode: Callable[[Any], Any],
        halve: Callable[[Any], Any],
    ) -> bool:
        """Escribe `payload`; ante StorageQuotaError reintenta con la mitad."""
        attempts = 0
        while True:
            try:
                self._store.save(name, encode(payload))
                if attempts:
                    logger.warning("[AGG] Persisted %s truncated after %d quota retries", name, attempts)
                return True
            except StorageQuotaError as e:
                if not payload:
                    logger.error("[AGG] Cannot persist %s even empty: %s", name, e)
                    return False
                attempts += 1
                payload = halve(payload)
            except Exception as e:
                logger.error("[AGG] Persist failed key=%s err=%s", name, e)
                return False

    # =========================================================================
    # Escritura (dueño del lease)
    # =========================================================================

    def ingest(self, snapshot: FleetSnapshot, now: float) -> FleetStats:
        """Pliega un snapshot en series y stats, persiste y devuelve FleetStats."""
        with self._lock:
            self._snapshot = snapshot
            finite = [r for r in snapshot.readings if r.has_finite_value]

            if finite:
                mean = math.fsum(r.value for r in finite) / len(finite)
                self._fleet.append(TimeSeriesPoint(timestamp=now, value=mean), now)

            for reading in finite:
                series = self._locations.get(reading.location_key)
                if series is None:
                    series = self._new_series()
                    self._locations[reading.location_key] = series
                series.append(
                    TimeSeriesPoint(
                        timestamp=now,
                        value=reading.value,
                        sensor_id=reading.location_key,
                        display_name=reading.display_name,
                        location=reading.location,
                    ),
                    now,
                )
                self._stats.update(reading, now)

            swept = self._stats.sweep(now)
            if swept:
                logger.debug("[AGG] Swept %d stale stats", swept)
            evicted = self._evict_expired_series(now)
            if evicted:
                logger.debug("[AGG] Evicted %d expired location series", evicted)

            self._persist(now)
            self._fleet_stats = compute_fleet_stats(
                snapshot, self.config.warning_threshold, self.config.danger_threshold
            )
            return self._fleet_stats

    # =========================================================================
    # Seguidor (caché de visualización)
    # =========================================================================

    def absorb(self, snapshot: FleetSnapshot, now: float) -> FleetStats:
        """Aplica un snapshot recibido de otra instancia.

        Por defecto no acumula: reemplaza el snapshot actual y relee series y
        stats del store (escritas por el dueño). Con
        `follower_accumulates_stats` se comporta como `ingest()`.
        """
        if self.config.follower_accumulates_stats:
            return self.ingest(snapshot, now)

        self.load(now)
        return self.restore_snapshot(snapshot)

    def restore_snapshot(self, snapshot: FleetSnapshot) -> FleetStats:
        """Fija el snapshot actual sin tocar series ni stats (recuperación)."""
        with self._lock:
            self._snapshot = snapshot
            self._fleet_stats = compute_fleet_stats(
                snapshot, self.config.warning_threshold, self.config.danger_threshold
            )
            return self._fleet_stats

    # =========================================================================
    # Lectura (pura)
    # =========================================================================

    def get_fleet_series(self, now: Optional[float] = None) -> List[TimeSeriesPoint]:
        with self._lock:
            return self._fleet.window(now)

    def get_location_series(self, now: Optional[float] = None) -> Dict[str, List[TimeSeriesPoint]]:
        with self._lock:
            result = {}
            for key, series in self._locations.items():
                points = series.window(now)
                if points:
                    result[key] = points
            return result

    def get_location_stats(self, now: Optional[float] = None) -> List[RollingStat]:
        """Stats por ubicación ordenadas por máximo descendente (copias)."""
        with self._lock:
            return [dataclasses.replace(s) for s in self._stats.values(now)]

    def get_fleet_stats(self) -> FleetStats:
        with self._lock:
            return self._fleet_stats

    def get_current_snapshot(self) -> Optional[FleetSnapshot]:
        with self._lock:
            return self._snapshot

    def get_fleet_trend(self, now: Optional[float] = None) -> TrendSummary:
        return analyze_trend(self.get_fleet_series(now))
