"""Taxonomía de errores del motor de telemetría."""

from __future__ import annotations

from typing import Optional


class TelemetryError(Exception):
    """Base de todos los errores del motor."""


class SourceFetchError(TelemetryError):
    """Fallo al obtener datos de una fuente de ingesta.

    Se recupera localmente: la fuente aporta cero lecturas en ese ciclo.
    """

    def __init__(self, source_id: str, message: str) -> None:
        super().__init__(f"source={source_id}: {message}")
        self.source_id = source_id


class MalformedReadingError(TelemetryError):
    """Lectura cruda sin `id` o sin `value` numérico. Se descarta."""

    def __init__(self, message: str, raw: Optional[object] = None) -> None:
        super().__init__(message)
        self.raw = raw


class StorageQuotaError(TelemetryError):
    """El almacenamiento rechazó la escritura por tamaño/cuota."""

    def __init__(self, key: str, size: int = 0) -> None:
        super().__init__(f"quota exceeded writing key={key} size={size}")
        self.key = key
        self.size = size
