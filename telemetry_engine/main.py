from __future__ import annotations

from fastapi import FastAPI

from . import __version__
from .endpoints import health_router, notifications_router, read_router
from .service import TelemetryService


def create_app(service: TelemetryService) -> FastAPI:
    """App de lectura sobre una instancia ya construida.

    El loop del servicio lo maneja quien llama (ver jobs/cli.py); la app
    solo consulta su estado.
    """
    app = FastAPI(title="Smoke Telemetry Engine", version=__version__)
    app.state.service = service
    app.include_router(health_router)
    app.include_router(read_router)
    app.include_router(notifications_router)
    return app
