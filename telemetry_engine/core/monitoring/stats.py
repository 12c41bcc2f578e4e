"""Estadísticas de ciclos de ingesta."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone


@dataclass
class CycleStats:
    """Contadores de la instancia local (no se comparten entre instancias)."""

    cycles: int = 0
    absorbed: int = 0
    readings: int = 0
    dropped: int = 0
    source_failures: int = 0
    disconnected_cycles: int = 0
    last_cycle_at: float = 0
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __str__(self) -> str:
        return (
            f"CycleStats: cycles={self.cycles} absorbed={self.absorbed} "
            f"readings={self.readings} source_failures={self.source_failures}"
        )

    def to_dict(self) -> dict:
        """Convierte a diccionario."""
        return {
            "cycles": self.cycles,
            "absorbed": self.absorbed,
            "readings": self.readings,
            "dropped": self.dropped,
            "source_failures": self.source_failures,
            "disconnected_cycles": self.disconnected_cycles,
            "last_cycle_at": self.last_cycle_at,
            "started_at": self.started_at.isoformat(),
            "availability": self._availability(),
        }

    def _availability(self) -> float:
        """Fracción de ciclos propios con al menos una fuente respondiendo."""
        if self.cycles == 0:
            return 1.0
        return (self.cycles - self.disconnected_cycles) / self.cycles

    def reset(self):
        """Reinicia estadísticas."""
        self.cycles = 0
        self.absorbed = 0
        self.readings = 0
        self.dropped = 0
        self.source_failures = 0
        self.disconnected_cycles = 0
        self.last_cycle_at = 0
        self.started_at = datetime.now(timezone.utc)
