"""Store en memoria.

Compartible entre varias instancias del mismo proceso (tests, modo
single-process). Opcionalmente aplica una cuota en bytes para reproducir
el comportamiento de un almacenamiento acotado.
"""

from __future__ import annotations

import threading
from typing import Dict, Optional

from ..core.domain.errors import StorageQuotaError
from ..core.domain.store_interface import IKeyValueStore


class InMemoryStore(IKeyValueStore):
    """Implementación sencilla en memoria de IKeyValueStore.

    - `max_bytes`: cuota total (suma de longitudes de valores). None = sin límite.
    - Lock explícito porque los transports pueden leer desde otro hilo.
    """

    def __init__(self, max_bytes: Optional[int] = None) -> None:
        self._data: Dict[str, str] = {}
        self._max_bytes = max_bytes
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._data.get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            if self._max_bytes is not None:
                used = sum(len(v) for k, v in self._data.items() if k != key)
                if used + len(value) > self._max_bytes:
                    raise StorageQuotaError(key, len(value))
            self._data[key] = value

    def remove(self, key: str) -> None:
        with self._lock:
            self._data.pop(key, None)

    def keys(self) -> list[str]:
        with self._lock:
            return sorted(self._data)

    @property
    def used_bytes(self) -> int:
        with self._lock:
            return sum(len(v) for v in self._data.values())
