"""Single-Writer Coordinator - elección de instancia primaria por lease."""

from .coordinator_service import CoordinatorService
from .lease_coordinator import LeaseCoordinator

__all__ = ["CoordinatorService", "LeaseCoordinator"]
