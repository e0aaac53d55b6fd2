"""Redis client backing the permission resolution cache.

This module provides async Redis operations for:
- Point reads and TTL writes of cached resolution results
- Point deletes and namespace (pattern) deletes for invalidation

Redis is never a source of truth; every value stored here can be
recomputed from the record store.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum, auto

from redis.asyncio import Redis as AsyncRedis, from_url as async_from_url

logger = logging.getLogger(__name__)

SCAN_BATCH_SIZE = 500


class _RedisLifecycleState(Enum):
    """Lifecycle states for Redis singleton.

    State transitions:
    - UNINITIALIZED -> INITIALIZED (via init_redis)
    - INITIALIZED -> CLOSED (via close_redis)
    - CLOSED -> INITIALIZED (via init_redis - allows restart)

    Invariants:
    - init_redis() is idempotent: multiple calls in INITIALIZED state are no-ops
    - close_redis() is idempotent: multiple calls in CLOSED/UNINITIALIZED state are no-ops
    - get_redis() raises RuntimeError if state is not INITIALIZED
    """
    UNINITIALIZED = auto()
    INITIALIZED = auto()
    CLOSED = auto()


class RedisClient:
    """Async Redis client implementing the cache backend contract."""

    def __init__(self, redis_url: str) -> None:
        """Initialize Redis client.

        Args:
            redis_url: Redis connection URL (e.g., redis://localhost:6379/0)
        """
        self._redis_url = redis_url
        self._redis: AsyncRedis | None = None

    async def connect(self) -> None:
        """Create the connection pool (connections open lazily)."""
        if self._redis is None:
            self._redis = async_from_url(
                self._redis_url,
                encoding="utf-8",
                decode_responses=True,
            )
            logger.info("Redis connection established")

    async def disconnect(self) -> None:
        """Close Redis connection."""
        if self._redis is not None:
            await self._redis.aclose()
            self._redis = None
            logger.info("Redis connection closed")

    async def _ensure_connected(self) -> AsyncRedis:
        if self._redis is None:
            await self.connect()
        assert self._redis is not None
        return self._redis

    async def ping(self) -> bool:
        redis = await self._ensure_connected()
        return bool(await redis.ping())

    async def set_value(
        self,
        key: str,
        value: str,
        ttl_seconds: int | None = None,
    ) -> None:
        """Set a string value with optional TTL.

        The write is an unconditional overwrite.

        Args:
            key: Key
            value: Value
            ttl_seconds: Optional TTL
        """
        redis = await self._ensure_connected()
        if ttl_seconds:
            await redis.setex(key, ttl_seconds, value)
        else:
            await redis.set(key, value)

    async def get_value(self, key: str) -> str | None:
        """Get a string value.

        Args:
            key: Key

        Returns:
            Value or None if not exists
        """
        redis = await self._ensure_connected()
        return await redis.get(key)

    async def delete_value(self, key: str) -> None:
        redis = await self._ensure_connected()
        await redis.delete(key)

    async def delete_values(self, *keys: str) -> int:
        """Delete several keys with a single DEL.

        Returns:
            Number of keys that existed and were deleted
        """
        if not keys:
            return 0
        redis = await self._ensure_connected()
        return await redis.delete(*keys)

    async def scan_keys(self, pattern: str) -> list[str]:
        """Collect keys matching a glob pattern using SCAN (never KEYS).

        Args:
            pattern: Redis glob pattern, e.g. ``role:permissions:*``

        Returns:
            Matching keys in no particular order
        """
        redis = await self._ensure_connected()
        return [
            key async for key in redis.scan_iter(match=pattern, count=SCAN_BATCH_SIZE)
        ]

    async def delete_pattern(self, pattern: str) -> int:
        """Delete every key matching a glob pattern.

        Keys written concurrently with the scan may survive; they are
        bounded by their own TTL.

        Args:
            pattern: Redis glob pattern

        Returns:
            Number of keys deleted
        """
        redis = await self._ensure_connected()
        deleted = 0
        batch: list[str] = []
        async for key in redis.scan_iter(match=pattern, count=SCAN_BATCH_SIZE):
            batch.append(key)
            if len(batch) >= SCAN_BATCH_SIZE:
                deleted += await redis.delete(*batch)
                batch = []
        if batch:
            deleted += await redis.delete(*batch)
        return deleted


# Global instance (created at startup, not at import)
# Protected by _redis_lock to prevent race conditions during initialization/shutdown
_redis_client: RedisClient | None = None
_redis_state: _RedisLifecycleState = _RedisLifecycleState.UNINITIALIZED
_redis_lock: asyncio.Lock = asyncio.Lock()


async def init_redis(redis_url: str) -> RedisClient:
    """Initialize global Redis client.

    This function is idempotent - calling it multiple times when already
    initialized will return the existing client without creating a new one.

    State transitions:
    - UNINITIALIZED -> INITIALIZED: Creates new client and connects
    - INITIALIZED -> INITIALIZED: Returns existing client (no-op)
    - CLOSED -> INITIALIZED: Creates new client and connects (allows restart)

    Args:
        redis_url: Redis connection URL

    Returns:
        Redis client instance
    """
    global _redis_client, _redis_state

    async with _redis_lock:
        if _redis_state == _RedisLifecycleState.INITIALIZED:
            assert _redis_client is not None
            logger.debug("Redis already initialized, returning existing client")
            return _redis_client

        logger.info("Initializing Redis client (current state: %s)", _redis_state.name)
        _redis_client = RedisClient(redis_url)
        await _redis_client.connect()
        _redis_state = _RedisLifecycleState.INITIALIZED
        return _redis_client


async def close_redis() -> None:
    """Close global Redis client.

    This function is idempotent - calling it multiple times or when not
    initialized will safely do nothing.

    State transitions:
    - INITIALIZED -> CLOSED: Disconnects and cleans up client
    - CLOSED -> CLOSED: No-op
    - UNINITIALIZED -> UNINITIALIZED: No-op
    """
    global _redis_client, _redis_state

    async with _redis_lock:
        if _redis_state != _RedisLifecycleState.INITIALIZED:
            logger.debug("Redis not initialized (state: %s), nothing to close", _redis_state.name)
            return

        if _redis_client is not None:
            await _redis_client.disconnect()
            _redis_client = None
        _redis_state = _RedisLifecycleState.CLOSED
        logger.info("Redis client closed")


def get_redis() -> RedisClient:
    """Get the global async Redis client.

    Returns:
        Redis client instance

    Raises:
        RuntimeError: If Redis client not initialized
    """
    if _redis_state != _RedisLifecycleState.INITIALIZED or _redis_client is None:
        raise RuntimeError(
            f"Redis client not available (state: {_redis_state.name}). "
            "Call init_redis() first."
        )
    return _redis_client


def _reset_for_testing() -> None:
    global _redis_client, _redis_state, _redis_lock
    _redis_client = None
    _redis_state = _RedisLifecycleState.UNINITIALIZED
    _redis_lock = asyncio.Lock()
