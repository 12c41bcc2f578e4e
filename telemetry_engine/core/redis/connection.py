"""Conexión a Redis compartida por el store y el canal de broadcast.

El estado `is_connected` lo mantienen vivo los propios usuarios: el canal
marca la conexión como perdida ante ConnectionError y vuelve a probarla con
`ping()` antes de publicar.
"""

from __future__ import annotations

import logging
import os
import time
from typing import Optional

import redis

logger = logging.getLogger(__name__)


class RedisConnection:
    def __init__(self, url: Optional[str] = None):
        self._url = url or os.getenv("REDIS_URL", "redis://localhost:6379/0")
        self._client: Optional[redis.Redis] = None
        self._connected = False

    @property
    def client(self) -> Optional[redis.Redis]:
        return self._client

    @property
    def is_connected(self) -> bool:
        return self._connected

    @property
    def safe_url(self) -> str:
        """URL sin credenciales, apta para logs."""
        return self._url.split("@")[-1]

    def connect(self, attempts: int = 1, retry_delay: float = 1.0) -> bool:
        """Conecta a Redis.

        Con `attempts` > 1 reintenta esperando `retry_delay` segundos entre
        intentos (útil cuando el servicio arranca a la par que Redis).
        """
        self._client = redis.Redis.from_url(
            self._url,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        attempts = max(1, attempts)
        last_error: Optional[Exception] = None
        for attempt in range(1, attempts + 1):
            last_error = self._check()
            if last_error is None:
                self._connected = True
                logger.info("[REDIS] Connected: %s (attempt %d)", self.safe_url, attempt)
                return True
            if attempt < attempts:
                time.sleep(retry_delay)

        self._connected = False
        logger.warning(
            "[REDIS] Connection failed after %d attempt(s) to %s: %s",
            attempts, self.safe_url, last_error,
        )
        return False

    def ping(self) -> bool:
        """Vuelve a comprobar la conexión y actualiza `is_connected`."""
        if self._client is None:
            return False
        error = self._check()
        if error is not None:
            self.mark_lost(error)
            return False
        if not self._connected:
            logger.info("[REDIS] Connection restored: %s", self.safe_url)
        self._connected = True
        return True

    def mark_lost(self, error: Exception) -> None:
        if self._connected:
            logger.warning("[REDIS] Connection lost (%s): %s", self.safe_url, error)
        self._connected = False

    def disconnect(self):
        if self._client:
            try:
                self._client.close()
            except redis.RedisError as e:
                logger.debug("[REDIS] Close error: %s", e)
        self._connected = False

    def _check(self) -> Optional[Exception]:
        try:
            self._client.ping()
            return None
        except redis.RedisError as e:
            return e
