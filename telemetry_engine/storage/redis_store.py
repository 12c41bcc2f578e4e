"""Store clave/valor sobre Redis."""

from __future__ import annotations

import logging
from typing import Optional

import redis

from ..core.domain.errors import StorageQuotaError
from ..core.domain.store_interface import IKeyValueStore
from ..core.redis.connection import RedisConnection

logger = logging.getLogger(__name__)


class RedisKeyValueStore(IKeyValueStore):
    """IKeyValueStore respaldado por Redis (GET/SET/DEL planos).

    Sin transacciones: igual que el almacenamiento del navegador, cada
    escritura sobrescribe el valor completo de la clave.

    Responsabilidades:
    - Traducir respuestas OOM de Redis a StorageQuotaError
    - Aplicar TTL opcional a todas las claves
    """

    def __init__(
        self,
        connection: RedisConnection,
        ttl_seconds: Optional[int] = None,
    ):
        self._conn = connection
        self._ttl = ttl_seconds

    @property
    def _client(self) -> redis.Redis:
        client = self._conn.client
        if client is None:
            raise RuntimeError("Redis connection not initialized")
        return client

    def get(self, key: str) -> Optional[str]:
        value = self._client.get(key)
        if value is None:
            return None
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return str(value)

    def set(self, key: str, value: str) -> None:
        try:
            self._client.set(key, value, ex=self._ttl)
        except redis.ResponseError as e:
            # maxmemory alcanzado: "OOM command not allowed when used memory > 'maxmemory'"
            if "OOM" in str(e):
                raise StorageQuotaError(key, len(value)) from e
            raise

    def remove(self, key: str) -> None:
        self._client.delete(key)
