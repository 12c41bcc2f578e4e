"""Modelos derivados: puntos de series, estadísticas rodantes y resumen de flota."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional

from .reading import ConnectionStatus


@dataclass(frozen=True)
class TimeSeriesPoint:
    """Punto `(timestamp, value)`.

    En las series por ubicación se etiqueta con `sensor_id` (= location key),
    `display_name` y `location`.
    """
    timestamp: float
    value: float
    sensor_id: Optional[str] = None
    display_name: Optional[str] = None
    location: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"timestamp": self.timestamp, "value": self.value}
        if self.sensor_id is not None:
            data["sensorId"] = self.sensor_id
            data["sensorName"] = self.display_name
            data["location"] = self.location
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TimeSeriesPoint":
        return cls(
            timestamp=float(data["timestamp"]),
            value=float(data["value"]),
            sensor_id=data.get("sensorId"),
            display_name=data.get("sensorName"),
            location=data.get("location"),
        )


@dataclass
class RollingStat:
    """Acumulador max/min/avg por ubicación con ventana de 24h.

    Política de reset duro: cuando `last_updated_at` queda fuera de la
    ventana se reinicia, no se decae incrementalmente.
    """
    location_key: str
    max: float
    min: float
    sum: float
    sample_count: int
    last_updated_at: float
    display_name: str = ""
    location: str = ""

    @property
    def avg(self) -> float:
        if self.sample_count == 0:
            return 0.0
        return self.sum / self.sample_count

    def is_stale(self, now: float, window_seconds: float) -> bool:
        return now - self.last_updated_at > window_seconds

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.location_key,
            "name": self.display_name,
            "location": self.location,
            "maxValue": self.max,
            "minValue": self.min,
            "sum": self.sum,
            "count": self.sample_count,
            "avgValue": self.avg,
            "timestamp": self.last_updated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "RollingStat":
        return cls(
            location_key=str(data["id"]),
            max=float(data["maxValue"]),
            min=float(data["minValue"]),
            sum=float(data["sum"]),
            sample_count=int(data["count"]),
            last_updated_at=float(data["timestamp"]),
            display_name=str(data.get("name") or ""),
            location=str(data.get("location") or ""),
        )


@dataclass(frozen=True)
class FleetStats:
    """Resumen para consumo inmediato. No se persiste."""
    total_count: int = 0
    online_count: int = 0
    average_value: float = 0.0
    max_value: float = 0.0
    alert_count: int = 0
    status: ConnectionStatus = ConnectionStatus.NO_SOURCES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalSensors": self.total_count,
            "onlineSensors": self.online_count,
            "averageValue": self.average_value,
            "maxValue": self.max_value,
            "alertCount": self.alert_count,
            "status": self.status.value,
        }
