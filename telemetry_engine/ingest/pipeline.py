"""Pipeline de ingesta: fuentes → normalización → FleetSnapshot.

Reglas:
- Solo fuentes habilitadas
- Una fuente que falla aporta cero lecturas y NO aborta el ciclo
- Lecturas malformadas se descartan (log INFO + contador)
- El pipeline no guarda estado entre ciclos
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional

from ..core.domain.errors import MalformedReadingError, SourceFetchError
from ..core.domain.reading import FleetSnapshot, SensorReading
from ..core.monitoring import CycleStats
from ..metrics import READINGS_DROPPED, SOURCE_FAILURES
from .client_interface import ISourceClient
from .sources import SourceConfig
from .validators import normalize_reading

logger = logging.getLogger(__name__)


@dataclass
class CycleReport:
    """Detalle de un ciclo, para logs y estadísticas locales."""
    accepted: int = 0
    dropped: int = 0
    failed_sources: List[str] = field(default_factory=list)


class IngestionPipeline:
    """Ejecuta un ciclo de ingesta sobre las fuentes configuradas.

    Args:
        clients: Cliente por tipo de fuente (`http`, `mqtt`, `demo`)
        stats: Contadores locales opcionales
    """

    def __init__(
        self,
        clients: Dict[str, ISourceClient],
        stats: Optional[CycleStats] = None,
    ) -> None:
        self._clients = dict(clients)
        self._stats = stats
        self.last_report = CycleReport()

    def fetch_cycle(self, sources: Iterable[SourceConfig], now: float) -> FleetSnapshot:
        enabled = [s for s in sources if s.enabled]
        report = CycleReport()
        readings: List[SensorReading] = []

        for source in enabled:
            try:
                raw_items = self._fetch_source(source, now)
            except SourceFetchError as e:
                report.failed_sources.append(source.id)
                SOURCE_FAILURES.labels(source=source.id).inc()
                logger.warning("[INGEST] %s", e)
                continue

            for raw in raw_items:
                try:
                    readings.append(normalize_reading(raw, source, now))
                    report.accepted += 1
                except MalformedReadingError as e:
                    report.dropped += 1
                    READINGS_DROPPED.inc()
                    logger.info("[INGEST] Dropped reading from %s: %s", source.id, e)

        snapshot = FleetSnapshot.build(
            readings,
            now,
            sources_total=len(enabled),
            sources_failed=report.failed_sources,
        )

        self.last_report = report
        if self._stats is not None:
            self._stats.readings += len(snapshot.readings)
            self._stats.dropped += report.dropped
            self._stats.source_failures += len(report.failed_sources)

        logger.debug(
            "[INGEST] Cycle status=%s readings=%d dropped=%d failed=%s",
            snapshot.status.value,
            len(snapshot.readings),
            report.dropped,
            report.failed_sources,
        )
        return snapshot

    def _fetch_source(self, source: SourceConfig, now: float) -> list:
        client = self._clients.get(source.kind)
        if client is None:
            raise SourceFetchError(source.id, f"no client registered for kind={source.kind}")
        try:
            items = client.fetch(source, now)
        except SourceFetchError:
            raise
        except Exception as e:
            # Errores de transporte o de forma inesperados cuentan como fallo de fuente.
            raise SourceFetchError(source.id, f"{type(e).__name__}: {e}") from e
        if not isinstance(items, list):
            raise SourceFetchError(source.id, f"unexpected payload type {type(items).__name__}")
        return items

    def close(self) -> None:
        for kind, client in self._clients.items():
            try:
                client.close()
            except Exception as e:
                logger.warning("[INGEST] Error closing %s client: %s", kind, e)
