"""Domain layer - Modelos y contratos."""

from .errors import (
    MalformedReadingError,
    SourceFetchError,
    StorageQuotaError,
    TelemetryError,
)
from .lease import CoordinationLease
from .reading import ConnectionStatus, FleetSnapshot, SensorReading
from .series import FleetStats, RollingStat, TimeSeriesPoint
from .store_interface import IBroadcastChannel, IKeyValueStore, NullBroadcastChannel

__all__ = [
    "ConnectionStatus",
    "CoordinationLease",
    "FleetSnapshot",
    "FleetStats",
    "IBroadcastChannel",
    "IKeyValueStore",
    "MalformedReadingError",
    "NullBroadcastChannel",
    "RollingStat",
    "SensorReading",
    "SourceFetchError",
    "StorageQuotaError",
    "TelemetryError",
    "TimeSeriesPoint",
]
