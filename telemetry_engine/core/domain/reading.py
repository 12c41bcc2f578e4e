"""Modelo de dominio para lecturas de sensores y snapshots de flota."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, Optional, Tuple


class ConnectionStatus(Enum):
    """Estado de conectividad resultante de un ciclo de ingesta."""
    CONNECTED = "connected"
    EMPTY = "empty"                # Fuentes respondieron, sin lecturas válidas
    DISCONNECTED = "disconnected"  # Todas las fuentes fallaron
    NO_SOURCES = "no_sources"      # No hay fuentes habilitadas


@dataclass(frozen=True)
class SensorReading:
    """Lectura instantánea de un sensor - modelo canónico.

    Este es el contrato único que fluye por todo el motor:
    Fuente → Normalización → Agregación → Broadcast → Alertas
    """
    id: str
    display_name: str
    location_key: str
    value: float
    unit: str = "ADC"
    captured_at: float = 0.0
    online: bool = True
    location: str = ""
    source_id: str = ""

    @property
    def has_finite_value(self) -> bool:
        return math.isfinite(self.value)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "displayName": self.display_name,
            "locationKey": self.location_key,
            "value": self.value if self.has_finite_value else None,
            "unit": self.unit,
            "capturedAt": self.captured_at,
            "online": self.online,
            "location": self.location,
            "sourceId": self.source_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SensorReading":
        value = data.get("value")
        return cls(
            id=str(data["id"]),
            display_name=str(data.get("displayName") or data["id"]),
            location_key=str(data.get("locationKey") or data["id"]),
            # null en JSON = valor no finito en origen
            value=float(value) if value is not None else math.nan,
            unit=str(data.get("unit") or "ADC"),
            captured_at=float(data.get("capturedAt") or 0.0),
            online=bool(data.get("online", True)),
            location=str(data.get("location") or ""),
            source_id=str(data.get("sourceId") or ""),
        )


@dataclass(frozen=True)
class FleetSnapshot:
    """Conjunto completo de lecturas observadas en un ciclo.

    Semántica de reemplazo: un snapshot nuevo sustituye por completo la
    membresía de la flota anterior (los sensores ausentes se consideran
    desaparecidos, no "stale").
    """
    readings: Tuple[SensorReading, ...]
    captured_at: float
    sources_total: int = 0
    sources_failed: Tuple[str, ...] = field(default_factory=tuple)
    status: ConnectionStatus = ConnectionStatus.CONNECTED

    @classmethod
    def build(
        cls,
        readings: Iterable[SensorReading],
        captured_at: float,
        *,
        sources_total: int = 0,
        sources_failed: Iterable[str] = (),
        status: Optional[ConnectionStatus] = None,
    ) -> "FleetSnapshot":
        """Construye un snapshot deduplicando por `id` (gana la última)."""
        by_id: Dict[str, SensorReading] = {}
        for reading in readings:
            by_id.pop(reading.id, None)
            by_id[reading.id] = reading
        unique = tuple(by_id.values())
        failed = tuple(sources_failed)

        if status is None:
            if sources_total == 0:
                status = ConnectionStatus.NO_SOURCES
            elif unique:
                status = ConnectionStatus.CONNECTED
            elif len(failed) >= sources_total:
                status = ConnectionStatus.DISCONNECTED
            else:
                status = ConnectionStatus.EMPTY

        return cls(
            readings=unique,
            captured_at=captured_at,
            sources_total=sources_total,
            sources_failed=failed,
            status=status,
        )

    @property
    def is_empty(self) -> bool:
        return not self.readings

    def to_dict(self) -> Dict[str, Any]:
        return {
            "readings": [r.to_dict() for r in self.readings],
            "capturedAt": self.captured_at,
            "sourcesTotal": self.sources_total,
            "sourcesFailed": list(self.sources_failed),
            "status": self.status.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FleetSnapshot":
        try:
            status = ConnectionStatus(data.get("status", "connected"))
        except ValueError:
            status = ConnectionStatus.CONNECTED
        return cls(
            readings=tuple(SensorReading.from_dict(r) for r in data.get("readings") or []),
            captured_at=float(data.get("capturedAt") or 0.0),
            sources_total=int(data.get("sourcesTotal") or 0),
            sources_failed=tuple(str(s) for s in data.get("sourcesFailed") or []),
            status=status,
        )
