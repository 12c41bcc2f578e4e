"""Abstract interfaces for shared storage and broadcast.

This decouples the engine from transport details.
Any storage (Redis, in-memory) or bus (Redis pub/sub, in-process hub)
can implement these interfaces.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Callable, Dict, Optional

BroadcastMessage = Dict[str, Any]
BroadcastHandler = Callable[[BroadcastMessage], None]


class IKeyValueStore(ABC):
    """Durable key/value storage shared between instances.

    No atomicity, no transactions. Readers must re-validate timestamps.

    Implementations:
    - InMemoryStore: process-local, optional byte quota
    - RedisKeyValueStore: shared across processes/hosts
    """

    @abstractmethod
    def get(self, key: str) -> Optional[str]:
        """Return the stored string or None if absent."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a string. Raises StorageQuotaError when it does not fit."""
        pass

    @abstractmethod
    def remove(self, key: str) -> None:
        """Delete a key (no-op if absent)."""
        pass


class IBroadcastChannel(ABC):
    """Best-effort message bus between instances.

    Implementations:
    - InMemoryBroadcastChannel: channels attached to one in-process hub
    - RedisBroadcastChannel: Redis pub/sub
    - NullBroadcastChannel: bus unavailable
    """

    @abstractmethod
    def publish(self, message: BroadcastMessage) -> bool:
        """Publish a message to the other instances.

        Returns:
            True if handed to the transport, False otherwise
        """
        pass

    @abstractmethod
    def subscribe(self, handler: BroadcastHandler) -> None:
        """Register a handler for messages coming from other instances."""
        pass

    @abstractmethod
    def close(self) -> None:
        pass

    @property
    def available(self) -> bool:
        return True


class NullBroadcastChannel(IBroadcastChannel):
    """No-op channel for when no bus is available."""

    def publish(self, message: BroadcastMessage) -> bool:
        return False

    def subscribe(self, handler: BroadcastHandler) -> None:
        return None

    def close(self) -> None:
        return None

    @property
    def available(self) -> bool:
        return False
