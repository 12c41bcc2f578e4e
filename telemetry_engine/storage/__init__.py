"""Persistent Store Adapter - almacenamiento clave/valor compartido."""

from . import keys
from .json_store import JsonStore
from .memory_store import InMemoryStore
from .redis_store import RedisKeyValueStore

__all__ = ["InMemoryStore", "JsonStore", "RedisKeyValueStore", "keys"]
