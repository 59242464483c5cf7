"""
Redis-backed session store.
Keeps the credential and cached profile durable across process restarts.
"""
import asyncio
from typing import Optional

import redis.asyncio as redis
from redis.asyncio import Redis
import structlog

from ..core.exceptions import StorageError

logger = structlog.get_logger()


class RedisSessionStore:
    """Session store persisting keys under a namespace prefix in Redis."""

    def __init__(self, client: Redis, key_prefix: str = "numis:auth:", timeout: float = 5.0):
        self.client = client
        self.key_prefix = key_prefix
        self.timeout = timeout

    @classmethod
    def from_url(cls, redis_url: str, key_prefix: str = "numis:auth:", timeout: float = 5.0) -> "RedisSessionStore":
        """Create a store with its own connection pool."""
        client = redis.from_url(
            redis_url,
            socket_timeout=timeout,
            socket_connect_timeout=timeout,
            retry_on_timeout=True,
            decode_responses=True,
        )
        return cls(client, key_prefix=key_prefix, timeout=timeout)

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}{key}"

    async def get(self, key: str) -> Optional[str]:
        try:
            value = await asyncio.wait_for(self.client.get(self._key(key)), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("Redis get timeout", key=key)
            raise StorageError("Timed out reading session store", key=key) from e
        except redis.RedisError as e:
            logger.error("Redis get error", key=key, error=str(e))
            raise StorageError(f"Failed to read session store: {e}", key=key) from e

        if isinstance(value, bytes):
            value = value.decode("utf-8")
        return value

    async def set(self, key: str, value: str) -> None:
        try:
            await asyncio.wait_for(self.client.set(self._key(key), value), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("Redis set timeout", key=key)
            raise StorageError("Timed out writing session store", key=key) from e
        except redis.RedisError as e:
            logger.error("Redis set error", key=key, error=str(e))
            raise StorageError(f"Failed to write session store: {e}", key=key) from e

    async def remove(self, key: str) -> None:
        try:
            await asyncio.wait_for(self.client.delete(self._key(key)), timeout=self.timeout)
        except asyncio.TimeoutError as e:
            logger.error("Redis delete timeout", key=key)
            raise StorageError("Timed out clearing session store", key=key) from e
        except redis.RedisError as e:
            logger.error("Redis delete error", key=key, error=str(e))
            raise StorageError(f"Failed to clear session store: {e}", key=key) from e

    async def close(self) -> None:
        """Close the Redis connection."""
        try:
            await asyncio.wait_for(self.client.aclose(), timeout=self.timeout)
            logger.info("Redis session store closed")
        except asyncio.TimeoutError:
            logger.warning("Redis session store close timeout")
