"""Redis layer - Conexión compartida por store y broadcast."""

from .connection import RedisConnection

__all__ = ["RedisConnection"]
