"""Tests de los adaptadores de almacenamiento (memoria, Redis, JSON).

Redis se simula con MagicMock; no requiere servidor.

Ejecutar:
    pytest tests/test_storage.py -v
"""

from unittest.mock import MagicMock, patch

import pytest
import redis

from telemetry_engine.core.domain.errors import StorageQuotaError
from telemetry_engine.core.redis.connection import RedisConnection
from telemetry_engine.storage import InMemoryStore, JsonStore, RedisKeyValueStore


# =============================================================================
# TEST 1: STORE EN MEMORIA
# =============================================================================

class TestInMemoryStore:

    def test_get_set_remove(self):
        store = InMemoryStore()
        store.set("k", "v")

        assert store.get("k") == "v"
        store.remove("k")
        assert store.get("k") is None
        store.remove("k")

    def test_quota(self):
        store = InMemoryStore(max_bytes=10)
        store.set("a", "12345")

        with pytest.raises(StorageQuotaError) as exc:
            store.set("b", "123456")
        assert exc.value.key == "b"
        assert store.get("b") is None

    def test_overwrite_counts_once(self):
        store = InMemoryStore(max_bytes=10)
        store.set("a", "1234567890")
        store.set("a", "0987654321")

        assert store.used_bytes == 10


# =============================================================================
# TEST 2: JSON STORE
# =============================================================================

class TestJsonStore:

    def test_prefixed_keys(self, raw_store):
        store = JsonStore(raw_store, prefix="smoke")
        store.save("history", [1, 2])

        assert raw_store.keys() == ["smoke:history"]
        assert store.load("history") == [1, 2]

    def test_missing_and_corrupt_return_default(self, raw_store, json_store):
        raw_store.set(json_store.key("bad"), "{oops")

        assert json_store.load("missing", []) == []
        assert json_store.load("bad", {}) == {}

    def test_read_errors_return_default(self):
        raw = MagicMock()
        raw.get.side_effect = redis.ConnectionError("down")

        assert JsonStore(raw).load("x", "fallback") == "fallback"

    def test_save_propagates_quota(self):
        store = JsonStore(InMemoryStore(max_bytes=5))
        with pytest.raises(StorageQuotaError):
            store.save("x", [1, 2, 3, 4, 5])

    def test_save_quietly(self):
        store = JsonStore(InMemoryStore(max_bytes=5))

        assert store.save_quietly("x", [1]) is True
        assert store.save_quietly("y", [1, 2, 3, 4, 5]) is False

    def test_remove(self, json_store):
        json_store.save("x", 1)
        json_store.remove("x")
        assert json_store.load("x") is None


# =============================================================================
# TEST 3: REDIS
# =============================================================================

@pytest.fixture
def redis_conn():
    conn = MagicMock(spec=RedisConnection)
    conn.client = MagicMock()
    conn.is_connected = True
    return conn


class TestRedisKeyValueStore:

    def test_get_decodes_bytes(self, redis_conn):
        redis_conn.client.get.return_value = b'{"a": 1}'
        assert RedisKeyValueStore(redis_conn).get("k") == '{"a": 1}'

    def test_get_missing(self, redis_conn):
        redis_conn.client.get.return_value = None
        assert RedisKeyValueStore(redis_conn).get("k") is None

    def test_set_with_ttl(self, redis_conn):
        RedisKeyValueStore(redis_conn, ttl_seconds=60).set("k", "v")
        redis_conn.client.set.assert_called_once_with("k", "v", ex=60)

    def test_oom_becomes_quota_error(self, redis_conn):
        redis_conn.client.set.side_effect = redis.ResponseError(
            "OOM command not allowed when used memory > 'maxmemory'."
        )
        with pytest.raises(StorageQuotaError):
            RedisKeyValueStore(redis_conn).set("k", "v")

    def test_other_response_errors_propagate(self, redis_conn):
        redis_conn.client.set.side_effect = redis.ResponseError("WRONGTYPE")
        with pytest.raises(redis.ResponseError):
            RedisKeyValueStore(redis_conn).set("k", "v")

    def test_remove(self, redis_conn):
        RedisKeyValueStore(redis_conn).remove("k")
        redis_conn.client.delete.assert_called_once_with("k")

    def test_uninitialized_connection(self, redis_conn):
        redis_conn.client = None
        with pytest.raises(RuntimeError):
            RedisKeyValueStore(redis_conn).get("k")


class TestRedisConnection:

    @patch("telemetry_engine.core.redis.connection.redis.Redis.from_url")
    def test_connect_ok(self, from_url):
        conn = RedisConnection("redis://user:pw@cache:6379/0")

        assert conn.connect() is True
        assert conn.is_connected
        assert conn.safe_url == "cache:6379/0"
        from_url.return_value.ping.assert_called_once()

    @patch("telemetry_engine.core.redis.connection.redis.Redis.from_url")
    def test_connect_failure(self, from_url):
        from_url.return_value.ping.side_effect = redis.ConnectionError("refused")
        conn = RedisConnection("redis://cache:6379/0")

        assert conn.connect() is False
        assert conn.is_connected is False

    @patch("telemetry_engine.core.redis.connection.redis.Redis.from_url")
    def test_disconnect(self, from_url):
        conn = RedisConnection("redis://cache:6379/0")
        conn.connect()
        conn.disconnect()

        from_url.return_value.close.assert_called_once()
        assert conn.is_connected is False

    @patch("telemetry_engine.core.redis.connection.time.sleep")
    @patch("telemetry_engine.core.redis.connection.redis.Redis.from_url")
    def test_connect_retries(self, from_url, sleep):
        from_url.return_value.ping.side_effect = [redis.ConnectionError("loading"), True]
        conn = RedisConnection("redis://cache:6379/0")

        assert conn.connect(attempts=3, retry_delay=0.5) is True
        assert from_url.return_value.ping.call_count == 2
        sleep.assert_called_once_with(0.5)

    @patch("telemetry_engine.core.redis.connection.time.sleep")
    @patch("telemetry_engine.core.redis.connection.redis.Redis.from_url")
    def test_connect_gives_up_after_attempts(self, from_url, sleep):
        from_url.return_value.ping.side_effect = redis.ConnectionError("refused")
        conn = RedisConnection("redis://cache:6379/0")

        assert conn.connect(attempts=3) is False
        assert from_url.return_value.ping.call_count == 3
        assert sleep.call_count == 2

    @patch("telemetry_engine.core.redis.connection.redis.Redis.from_url")
    def test_lost_and_restored(self, from_url):
        conn = RedisConnection("redis://cache:6379/0")
        conn.connect()

        conn.mark_lost(redis.ConnectionError("reset"))
        assert conn.is_connected is False

        assert conn.ping() is True
        assert conn.is_connected is True

        from_url.return_value.ping.side_effect = redis.TimeoutError("slow")
        assert conn.ping() is False
        assert conn.is_connected is False

    def test_ping_before_connect(self):
        assert RedisConnection("redis://cache:6379/0").ping() is False
