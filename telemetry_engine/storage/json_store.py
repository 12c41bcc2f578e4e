"""Adaptador JSON sobre un IKeyValueStore.

Marshal/unmarshal con orjson. Las lecturas fallidas (clave ausente,
JSON corrupto, error de transporte) devuelven el default; las escrituras
propagan StorageQuotaError para que el llamador pueda truncar y reintentar.
"""

from __future__ import annotations

import logging
from typing import Any

import orjson

from ..core.domain.errors import StorageQuotaError
from ..core.domain.store_interface import IKeyValueStore

logger = logging.getLogger(__name__)


class JsonStore:
    """Acceso JSON con claves fijas, con prefijo por despliegue."""

    def __init__(self, store: IKeyValueStore, prefix: str = "") -> None:
        self._store = store
        self._prefix = prefix

    @property
    def raw(self) -> IKeyValueStore:
        return self._store

    def key(self, name: str) -> str:
        return f"{self._prefix}:{name}" if self._prefix else name

    def load(self, name: str, default: Any = None) -> Any:
        key = self.key(name)
        try:
            raw = self._store.get(key)
        except Exception as e:
            logger.warning("[STORE] Read failed key=%s err=%s", key, e)
            return default
        if raw is None:
            return default
        try:
            return orjson.loads(raw)
        except orjson.JSONDecodeError as e:
            logger.warning("[STORE] Corrupt JSON key=%s err=%s", key, e)
            return default

    def save(self, name: str, value: Any) -> int:
        """Serializa y escribe. Devuelve el tamaño escrito.

        Raises:
            StorageQuotaError: si el store rechaza el tamaño
        """
        key = self.key(name)
        payload = orjson.dumps(value).decode("utf-8")
        self._store.set(key, payload)
        return len(payload)

    def save_quietly(self, name: str, value: Any) -> bool:
        """Escritura best-effort: loguea y devuelve False en cualquier error."""
        try:
            self.save(name, value)
            return True
        except StorageQuotaError as e:
            logger.error("[STORE] %s", e)
        except Exception as e:
            logger.error("[STORE] Write failed key=%s err=%s", self.key(name), e)
        return False

    def remove(self, name: str) -> None:
        key = self.key(name)
        try:
            self._store.remove(key)
        except Exception as e:
            logger.warning("[STORE] Remove failed key=%s err=%s", key, e)
