"""Lease de coordinación (elección de instancia primaria)."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class CoordinationLease:
    """Reclamo advisorio y acotado en el tiempo de escritor único.

    Es cooperativo, no un lock duro: si el dueño muere, el lease expira.
    """
    owner_id: str
    heartbeat_at: float

    def is_live(self, now: float, lease_timeout: float) -> bool:
        return now - self.heartbeat_at < lease_timeout

    def to_dict(self) -> Dict[str, Any]:
        return {"owner": self.owner_id, "heartbeatAt": self.heartbeat_at}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CoordinationLease":
        return cls(owner_id=str(data["owner"]), heartbeat_at=float(data["heartbeatAt"]))
