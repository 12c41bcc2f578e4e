"""Dependencias FastAPI compartidas por los routers."""

from __future__ import annotations

from fastapi import HTTPException, Request

from ..alerts.notification_history import NotificationHistory
from ..service import TelemetryService


def get_service(request: Request) -> TelemetryService:
    service = getattr(request.app.state, "service", None)
    if service is None:
        raise HTTPException(status_code=503, detail="telemetry service not initialized")
    return service


def get_history(request: Request) -> NotificationHistory:
    history = get_service(request).history
    if history is None:
        raise HTTPException(status_code=503, detail="notification history disabled")
    return history
