"""Routers FastAPI de solo lectura sobre el motor."""

from .health import router as health_router
from .notifications import router as notifications_router
from .read_api import router as read_router

__all__ = ["health_router", "notifications_router", "read_router"]
