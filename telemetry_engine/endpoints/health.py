"""Health, estado de la instancia y métricas Prometheus."""

from fastapi import APIRouter, Depends, Response
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from ..service import TelemetryService
from .deps import get_service

router = APIRouter(tags=["health"])


@router.get("/health")
def health(service: TelemetryService = Depends(get_service)):
    """Liveness probe: ok mientras el loop esté arrancado."""
    return {
        "status": "ok" if service.started else "stopped",
        "role": "primary" if service.is_primary else "follower",
    }


@router.get("/status")
def status(service: TelemetryService = Depends(get_service)):
    return service.status()


@router.get("/metrics")
def metrics():
    """Métricas en formato texto de Prometheus."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
