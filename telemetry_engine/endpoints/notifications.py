"""Historial de notificaciones de alerta."""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from ..alerts.notification_history import NotificationHistory
from ..service import TelemetryService
from .deps import get_history, get_service

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def list_notifications(
    unread_only: bool = Query(default=False),
    history: NotificationHistory = Depends(get_history),
):
    items = history.items()
    if unread_only:
        items = [n for n in items if not n.is_read]
    return {
        "items": [n.to_dict() for n in items],
        "unreadCount": history.unread_count(),
    }


@router.post("/read-all")
def mark_all_read(history: NotificationHistory = Depends(get_history)):
    return {"updated": history.mark_all_as_read()}


@router.post("/{notification_id}/read")
def mark_read(notification_id: str, history: NotificationHistory = Depends(get_history)):
    if history.get(notification_id) is None:
        raise HTTPException(status_code=404, detail="notification not found")
    history.mark_as_read(notification_id)
    return {"id": notification_id, "isRead": True}


@router.delete("")
def clear_notifications(
    older_than_days: Optional[float] = Query(default=None, gt=0),
    history: NotificationHistory = Depends(get_history),
    service: TelemetryService = Depends(get_service),
):
    """Sin parámetros borra todo; con `older_than_days` solo lo antiguo."""
    if older_than_days is None:
        history.clear_all()
        return {"cleared": "all"}
    return {"cleared": history.clear_old(older_than_days, service.now())}
