"""Abstract interface for source clients.

This decouples the ingestion pipeline from transport details.
Any transport (HTTP, MQTT, demo simulator) can implement this interface.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from .sources import SourceConfig

RawReading = Dict[str, Any]


class ISourceClient(ABC):
    """Abstract interface for source clients.

    Implementations:
    - HttpSourceClient: GET against a REST endpoint
    - MqttSourceClient: latest message per sensor from a topic
    - DemoSourceClient: deterministic simulation
    """

    @abstractmethod
    def fetch(self, source: SourceConfig, now: float) -> List[RawReading]:
        """Fetch the raw readings currently exposed by a source.

        Args:
            source: Source configuration
            now: Cycle timestamp (epoch seconds)

        Returns:
            Raw reading payloads (not yet validated)

        Raises:
            SourceFetchError: if the source cannot be read
        """
        pass

    def close(self) -> None:
        """Release transport resources. No-op by default."""
        return None
