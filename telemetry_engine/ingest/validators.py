"""Validadores de payloads crudos de sensores.

Valida y transforma lecturas crudas (HTTP, MQTT, demo) al modelo canónico
SensorReading. Acepta camelCase y snake_case.

Reglas:
- Sin `id` o sin `value` numérico → MalformedReadingError (se descarta)
- Defaults: display_name := id, unit := "ADC", captured_at := now, online := True
- NaN y negativos se aceptan: la clasificación decide qué significan
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from ..core.domain.errors import MalformedReadingError
from ..core.domain.reading import SensorReading
from .sources import SourceConfig

logger = logging.getLogger(__name__)

DEFAULT_UNIT = "ADC"

# Por encima de esto un epoch numérico se interpreta en milisegundos.
_EPOCH_MS_THRESHOLD = 1e12


class RawSensorPayload(BaseModel):
    """Schema de validación para una lectura cruda.

    Formato esperado (campos opcionales salvo id/value):
    {
        "id": "s1",
        "name": "Cocina",
        "location": "Planta 1 - Cocina",
        "value": 123.4,
        "unit": "ADC",
        "timestamp": "2026-01-31T08:00:00Z",
        "isOnline": true
    }
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(validation_alias=AliasChoices("id", "sensorId", "sensor_id"))
    value: float
    name: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("name", "displayName", "display_name")
    )
    location: Optional[str] = None
    location_key: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("locationKey", "location_key")
    )
    unit: Optional[str] = None
    timestamp: Optional[Any] = Field(
        default=None, validation_alias=AliasChoices("timestamp", "capturedAt", "captured_at")
    )
    is_online: Optional[bool] = Field(
        default=None, validation_alias=AliasChoices("isOnline", "is_online", "online")
    )

    @field_validator("id", mode="before")
    @classmethod
    def validate_id(cls, v):
        if v is None or isinstance(v, bool) or not isinstance(v, (str, int)):
            raise ValueError("id is required")
        v = str(v).strip()
        if not v:
            raise ValueError("id is required")
        return v

    @field_validator("value", mode="before")
    @classmethod
    def validate_value(cls, v):
        if v is None or isinstance(v, bool):
            raise ValueError("value must be a number")
        if isinstance(v, (int, float)):
            return float(v)
        if isinstance(v, str):
            try:
                return float(v.strip())
            except ValueError:
                raise ValueError("value must be a number")
        raise ValueError("value must be a number")

    @field_validator("name", "location", "location_key", "unit", mode="before")
    @classmethod
    def blank_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("is_online", mode="before")
    @classmethod
    def lenient_bool(cls, v):
        if v is None or isinstance(v, bool):
            return v
        if isinstance(v, (int, float)):
            return bool(v)
        if isinstance(v, str):
            lowered = v.strip().lower()
            if lowered in ("1", "true", "yes", "on", "online"):
                return True
            if lowered in ("0", "false", "no", "off", "offline"):
                return False
        return None


def parse_timestamp(value: Any, default: float) -> float:
    """Normaliza un timestamp a epoch segundos.

    Acepta epoch en segundos o milisegundos y strings ISO-8601. Si no se
    puede interpretar, devuelve `default`.
    """
    if value is None or isinstance(value, bool):
        return default
    if isinstance(value, (int, float)):
        ts = float(value)
        return ts / 1000.0 if ts > _EPOCH_MS_THRESHOLD else ts
    if isinstance(value, str) and value.strip():
        text = value.strip()
        try:
            return parse_timestamp(float(text), default)
        except ValueError:
            pass
        try:
            dt = datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError:
            logger.debug("[VALIDATOR] Unparseable timestamp %r, using now", value)
            return default
        if dt.tzinfo is None:
            dt = dt.replace(tzinfo=timezone.utc)
        return dt.timestamp()
    return default


def normalize_reading(raw: Any, source: SourceConfig, now: float) -> SensorReading:
    """Valida una lectura cruda y la convierte al modelo canónico.

    Args:
        raw: Diccionario recibido de la fuente
        source: Fuente de origen (namespacing de id y location por defecto)
        now: Timestamp del ciclo

    Raises:
        MalformedReadingError: si falta `id` o `value` no es numérico
    """
    if not isinstance(raw, dict):
        raise MalformedReadingError(f"reading must be an object, got {type(raw).__name__}", raw)

    try:
        payload = RawSensorPayload.model_validate(raw)
    except ValidationError as e:
        first = e.errors()[0] if e.errors() else {}
        field = ".".join(str(p) for p in first.get("loc", ())) or "payload"
        raise MalformedReadingError(f"{field}: {first.get('msg', 'invalid')}", raw) from e

    location = payload.location or source.name
    return SensorReading(
        id=f"{source.id}-{payload.id}",
        display_name=payload.name or payload.id,
        location_key=payload.location_key or location or payload.id,
        value=payload.value,
        unit=payload.unit or DEFAULT_UNIT,
        captured_at=parse_timestamp(payload.timestamp, now),
        online=True if payload.is_online is None else payload.is_online,
        location=location,
        source_id=source.id,
    )
