"""
Unit tests for the session store backends.
"""
from unittest.mock import AsyncMock

import fakeredis.aioredis
import pytest
import redis

from numis_auth.core.exceptions import StorageError
from numis_auth.interfaces.storage_interface import ISessionStore
from numis_auth.storage.memory_store import InMemorySessionStore
from numis_auth.storage.redis_store import RedisSessionStore


@pytest.fixture
async def redis_client():
    client = fakeredis.aioredis.FakeRedis(decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def redis_store(redis_client):
    return RedisSessionStore(redis_client, key_prefix="test:auth:")


@pytest.mark.unit
class TestInMemorySessionStore:
    """Test the in-memory backend."""

    async def test_set_get_remove(self):
        store = InMemorySessionStore()

        await store.set("token", "tok123")
        assert await store.get("token") == "tok123"

        await store.remove("token")
        assert await store.get("token") is None

    async def test_remove_missing_key(self):
        store = InMemorySessionStore()

        await store.remove("user")

        assert store.snapshot() == {}

    async def test_initial_contents_copied(self):
        initial = {"token": "tok123"}
        store = InMemorySessionStore(initial)
        await store.set("user", "{}")

        assert initial == {"token": "tok123"}
        assert store.snapshot() == {"token": "tok123", "user": "{}"}

    def test_satisfies_protocol(self):
        assert isinstance(InMemorySessionStore(), ISessionStore)


@pytest.mark.unit
class TestRedisSessionStore:
    """Test the Redis backend."""

    async def test_set_get_remove(self, redis_store, redis_client):
        await redis_store.set("token", "tok123")

        assert await redis_store.get("token") == "tok123"
        assert await redis_client.get("test:auth:token") == "tok123"

        await redis_store.remove("token")
        assert await redis_store.get("token") is None

    async def test_missing_key(self, redis_store):
        assert await redis_store.get("logoutReason") is None

    async def test_decodes_bytes(self):
        client = fakeredis.aioredis.FakeRedis()
        store = RedisSessionStore(client)
        await store.set("token", "tok123")

        assert await store.get("token") == "tok123"
        await client.aclose()

    async def test_read_error_wrapped(self):
        client = AsyncMock()
        client.get.side_effect = redis.RedisError("connection lost")
        store = RedisSessionStore(client)

        with pytest.raises(StorageError) as exc_info:
            await store.get("token")

        assert exc_info.value.key == "token"

    async def test_write_error_wrapped(self):
        client = AsyncMock()
        client.set.side_effect = redis.ConnectionError("connection refused")
        store = RedisSessionStore(client)

        with pytest.raises(StorageError):
            await store.set("token", "tok123")

    async def test_remove_error_wrapped(self):
        client = AsyncMock()
        client.delete.side_effect = redis.RedisError("READONLY")
        store = RedisSessionStore(client)

        with pytest.raises(StorageError):
            await store.remove("user")

    async def test_close(self):
        client = AsyncMock()
        store = RedisSessionStore(client)

        await store.close()

        client.aclose.assert_awaited_once()

    def test_satisfies_protocol(self, redis_store):
        assert isinstance(redis_store, ISessionStore)
