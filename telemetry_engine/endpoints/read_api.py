"""API de lectura: series, estadísticas y snapshot actual.

Lecturas puras sobre el AggregationEngine; nunca disparan ingesta. La
retención se aplica a la hora de la consulta.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends

from ..service import TelemetryService
from .deps import get_service

router = APIRouter(tags=["telemetry"])


@router.get("/fleet/series")
def fleet_series(service: TelemetryService = Depends(get_service)):
    points = service.engine.get_fleet_series(service.now())
    return {"points": [p.to_dict() for p in points]}


@router.get("/fleet/stats")
def fleet_stats(service: TelemetryService = Depends(get_service)):
    return service.engine.get_fleet_stats().to_dict()


@router.get("/fleet/trend")
def fleet_trend(service: TelemetryService = Depends(get_service)):
    return service.engine.get_fleet_trend(service.now()).to_dict()


@router.get("/locations/series")
def location_series(service: TelemetryService = Depends(get_service)):
    series = service.engine.get_location_series(service.now())
    return {key: [p.to_dict() for p in points] for key, points in series.items()}


@router.get("/locations/stats")
def location_stats(service: TelemetryService = Depends(get_service)):
    """Máximo/mínimo/promedio 24h por ubicación, ordenado por máximo desc."""
    return {"items": [s.to_dict() for s in service.engine.get_location_stats(service.now())]}


@router.get("/snapshot")
def current_snapshot(service: TelemetryService = Depends(get_service)):
    snapshot = service.engine.get_current_snapshot()
    if snapshot is None:
        return {"readings": [], "capturedAt": None, "status": None}
    return snapshot.to_dict()
