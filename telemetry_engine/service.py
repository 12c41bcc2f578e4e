"""Servicio de telemetría: une coordinación, ingesta, agregación y alertas.

Un proceso = una instancia. Loop cooperativo de un solo hilo:

    tick(now)
      ├─ coordinator.tick(now)           heartbeat / takeover
      ├─ PRIMARY:  ciclo de ingesta cada polling_interval
      │            fetch → ingest → publish → alertas
      └─ FOLLOWER: drena snapshots de otras instancias → absorb → alertas

Los transports (pub/sub, paho) corren en sus propios hilos pero solo encolan;
el estado del motor se toca únicamente dentro de `tick`.
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional

from .aggregation.engine import AggregationEngine
from .alerts.notification_history import NotificationHistory
from .alerts.trigger import AlertTrigger
from .broadcast.state_sync import StateSync
from .coordination.coordinator_service import CoordinatorService
from .core.domain.reading import ConnectionStatus, FleetSnapshot
from .core.domain.series import FleetStats
from .core.monitoring import CycleStats
from .ingest.pipeline import IngestionPipeline
from .ingest.sources import SourceConfig
from .metrics import INGEST_CYCLES, SNAPSHOTS_ABSORBED

logger = logging.getLogger(__name__)

DEFAULT_POLLING_INTERVAL = 30.0
DEFAULT_TICK_INTERVAL = 0.5


class TelemetryService:
    """Instancia del motor de telemetría.

    Todas las dependencias se inyectan (ver `bootstrap.build_service`).
    `clock` devuelve epoch segundos; los tests pasan `now` explícito.
    """

    def __init__(
        self,
        *,
        coordinator: CoordinatorService,
        pipeline: IngestionPipeline,
        sources: Iterable[SourceConfig],
        engine: AggregationEngine,
        state_sync: StateSync,
        trigger: AlertTrigger,
        history: Optional[NotificationHistory] = None,
        polling_interval: float = DEFAULT_POLLING_INTERVAL,
        stats: Optional[CycleStats] = None,
        clock: Callable[[], float] = time.time,
        on_close: Iterable[Callable[[], None]] = (),
    ) -> None:
        if polling_interval <= 0:
            raise ValueError("polling_interval must be positive")
        self.coordinator = coordinator
        self.pipeline = pipeline
        self.sources = tuple(sources)
        self.engine = engine
        self.state_sync = state_sync
        self.trigger = trigger
        self.history = history
        self.polling_interval = float(polling_interval)
        self.stats = stats or CycleStats()
        self._clock = clock
        self._on_close: List[Callable[[], None]] = list(on_close)

        self._started = False
        self._promoted = False
        self._next_cycle_at: Optional[float] = None

        self.coordinator.add_listener(self._on_role_change)

    @property
    def instance_id(self) -> str:
        return self.coordinator.instance_id

    @property
    def is_primary(self) -> bool:
        return self.coordinator.is_primary

    @property
    def started(self) -> bool:
        return self._started

    def now(self) -> float:
        return self._clock()

    # =========================================================================
    # Ciclo de vida
    # =========================================================================

    def start(self, now: Optional[float] = None) -> bool:
        """Carga estado persistido, recupera el último snapshot e intenta el lease.

        Returns:
            True si la instancia arrancó como primaria
        """
        if self._started:
            return self.is_primary
        now = self.now() if now is None else now

        self.engine.load(now)
        recovered = self.state_sync.latest(now)
        if recovered is not None:
            self.engine.restore_snapshot(recovered)
            logger.info(
                "[SERVICE] Recovered snapshot from store (age %.1fs, %d readings)",
                now - recovered.captured_at,
                len(recovered.readings),
            )

        self._started = True
        self.coordinator.start(now)
        # La promoción en start() ya parte de un engine recién cargado
        self._promoted = False
        if self.is_primary:
            self._next_cycle_at = now
        logger.info(
            "[SERVICE] Instance %s started as %s (sync=%s, sources=%d)",
            self.instance_id,
            "PRIMARY" if self.is_primary else "FOLLOWER",
            self.state_sync.transport,
            len(self.sources),
        )
        return self.is_primary

    def tick(self, now: Optional[float] = None) -> None:
        """Un paso del loop. Secuencial: un ciclo termina antes del siguiente."""
        if not self._started:
            return
        now = self.now() if now is None else now

        self.coordinator.tick(now)

        if self.is_primary:
            if self._promoted:
                self._promoted = False
                # Nueva dueña: partir de lo que escribió la anterior
                self.engine.load(now)
                self._next_cycle_at = now
            if self._next_cycle_at is None or now >= self._next_cycle_at:
                self.run_cycle(now)
                self._next_cycle_at = now + self.polling_interval
        else:
            self._next_cycle_at = None
            for snapshot in self.state_sync.drain():
                self._absorb(snapshot, now)

    def run_cycle(self, now: Optional[float] = None) -> FleetStats:
        """Ciclo completo de la instancia dueña: fetch → ingest → publish → alertas."""
        now = self.now() if now is None else now
        snapshot = self.pipeline.fetch_cycle(self.sources, now)
        fleet_stats = self.engine.ingest(snapshot, now)
        self.state_sync.publish(snapshot)
        self.trigger.observe(snapshot, now, record_history=True)

        self.stats.cycles += 1
        self.stats.last_cycle_at = now
        if snapshot.status is ConnectionStatus.DISCONNECTED:
            self.stats.disconnected_cycles += 1
            logger.warning("[SERVICE] All %d sources failed, fleet is disconnected", snapshot.sources_total)
        INGEST_CYCLES.labels(status=snapshot.status.value).inc()

        logger.info(
            "[SERVICE] Cycle status=%s sensors=%d online=%d avg=%.1f max=%.1f alerts=%d",
            snapshot.status.value,
            fleet_stats.total_count,
            fleet_stats.online_count,
            fleet_stats.average_value,
            fleet_stats.max_value,
            fleet_stats.alert_count,
        )
        return fleet_stats

    def _absorb(self, snapshot: FleetSnapshot, now: float) -> None:
        self.engine.absorb(snapshot, now)
        # Solo la dueña registra historial; las demás solo suenan/notifican
        self.trigger.observe(snapshot, now, record_history=False)
        self.stats.absorbed += 1
        SNAPSHOTS_ABSORBED.inc()
        logger.debug("[SERVICE] Absorbed snapshot captured_at=%.3f", snapshot.captured_at)

    def _on_role_change(self, is_primary: bool) -> None:
        if is_primary and self._started:
            self._promoted = True

    def run_forever(
        self,
        stop_event: Optional[threading.Event] = None,
        tick_interval: float = DEFAULT_TICK_INTERVAL,
    ) -> None:
        """Loop bloqueante hasta que `stop_event` se active."""
        stop_event = stop_event or threading.Event()
        self.start()
        try:
            while not stop_event.is_set():
                try:
                    self.tick()
                except Exception as e:
                    logger.exception("[SERVICE] Tick failed: %s", e)
                stop_event.wait(tick_interval)
        finally:
            self.stop()

    def stop(self) -> None:
        """Teardown: suelta el lease (best-effort) y cierra transports."""
        if not self._started:
            return
        self._started = False
        self._next_cycle_at = None
        self.coordinator.stop()
        for closer in (self.state_sync.close, self.pipeline.close, *self._on_close):
            try:
                closer()
            except Exception as e:
                logger.warning("[SERVICE] Error during shutdown: %s", e)
        logger.info("[SERVICE] Instance %s stopped", self.instance_id)

    # =========================================================================
    # Estado
    # =========================================================================

    def status(self) -> Dict[str, Any]:
        lease = self.coordinator.coordinator.current_lease()
        snapshot = self.engine.get_current_snapshot()
        return {
            "instance_id": self.instance_id,
            "role": "primary" if self.is_primary else "follower",
            "started": self._started,
            "sync_transport": self.state_sync.transport,
            "lease_owner": lease.owner_id if lease else None,
            "sources": [s.id for s in self.sources if s.enabled],
            "polling_interval": self.polling_interval,
            "snapshot_status": snapshot.status.value if snapshot else None,
            "snapshot_captured_at": snapshot.captured_at if snapshot else None,
            "fleet_stats": self.engine.get_fleet_stats().to_dict(),
            "cycle_stats": self.stats.to_dict(),
        }
