"""Tests for the Redis cache backend and its singleton lifecycle.

Connections open lazily, so none of these tests need a running server.
"""

import asyncio
import fnmatch

import pytest

from role_manager.infrastructure import redis

REDIS_URL = "redis://localhost:6379/0"


@pytest.fixture(autouse=True)
def fresh_lifecycle():
    redis._reset_for_testing()
    yield
    redis._reset_for_testing()


class FakeAsyncRedis:
    """Just enough of redis.asyncio.Redis for RedisClient."""

    def __init__(self, values: dict[str, str] | None = None) -> None:
        self.values = dict(values or {})
        self.setex_calls: list[tuple[str, int, str]] = []
        self.delete_batches: list[tuple[str, ...]] = []

    async def get(self, key: str) -> str | None:
        return self.values.get(key)

    async def set(self, key: str, value: str) -> None:
        self.values[key] = value

    async def setex(self, key: str, ttl: int, value: str) -> None:
        self.setex_calls.append((key, ttl, value))
        self.values[key] = value

    async def delete(self, *keys: str) -> int:
        self.delete_batches.append(keys)
        removed = 0
        for key in keys:
            if self.values.pop(key, None) is not None:
                removed += 1
        return removed

    async def scan_iter(self, match: str, count: int):
        for key in list(self.values):
            if fnmatch.fnmatchcase(key, match):
                yield key


def _client_with(fake: FakeAsyncRedis) -> redis.RedisClient:
    client = redis.RedisClient(REDIS_URL)
    client._redis = fake  # type: ignore[assignment]
    return client


class TestRedisClient:
    @pytest.mark.anyio
    async def test_set_value_with_ttl_uses_setex(self) -> None:
        fake = FakeAsyncRedis()
        client = _client_with(fake)

        await client.set_value("role:permissions:admin", "[]", ttl_seconds=300)

        assert fake.setex_calls == [("role:permissions:admin", 300, "[]")]
        assert await client.get_value("role:permissions:admin") == "[]"

    @pytest.mark.anyio
    async def test_set_value_without_ttl(self) -> None:
        fake = FakeAsyncRedis()
        client = _client_with(fake)

        await client.set_value("k", "v")

        assert fake.setex_calls == []
        assert fake.values == {"k": "v"}

    @pytest.mark.anyio
    async def test_delete_value(self) -> None:
        fake = FakeAsyncRedis({"k": "v"})

        await _client_with(fake).delete_value("k")

        assert fake.values == {}

    @pytest.mark.anyio
    async def test_delete_values_issues_one_delete(self) -> None:
        fake = FakeAsyncRedis({"a": "1", "b": "2", "c": "3"})

        deleted = await _client_with(fake).delete_values("a", "b", "missing")

        assert deleted == 2
        assert fake.delete_batches == [("a", "b", "missing")]
        assert fake.values == {"c": "3"}

    @pytest.mark.anyio
    async def test_delete_values_without_keys_is_noop(self) -> None:
        fake = FakeAsyncRedis({"a": "1"})

        assert await _client_with(fake).delete_values() == 0
        assert fake.delete_batches == []

    @pytest.mark.anyio
    async def test_scan_keys_matches_pattern(self) -> None:
        fake = FakeAsyncRedis({"role:permissions:a": "[]", "role:permissions:b": "[]", "x": "1"})

        keys = await _client_with(fake).scan_keys("role:permissions:*")

        assert sorted(keys) == ["role:permissions:a", "role:permissions:b"]

    @pytest.mark.anyio
    async def test_delete_pattern_removes_only_matches(self) -> None:
        fake = FakeAsyncRedis({"role:permissions:a": "[]", "other": "1"})

        deleted = await _client_with(fake).delete_pattern("role:permissions:*")

        assert deleted == 1
        assert fake.values == {"other": "1"}

    @pytest.mark.anyio
    async def test_delete_pattern_batches_large_scans(self) -> None:
        total = redis.SCAN_BATCH_SIZE + 3
        fake = FakeAsyncRedis({f"role:permissions:r{i}": "[]" for i in range(total)})

        deleted = await _client_with(fake).delete_pattern("role:permissions:*")

        assert deleted == total
        assert [len(batch) for batch in fake.delete_batches] == [redis.SCAN_BATCH_SIZE, 3]

    @pytest.mark.anyio
    async def test_delete_pattern_with_no_matches_issues_no_delete(self) -> None:
        fake = FakeAsyncRedis({"other": "1"})

        assert await _client_with(fake).delete_pattern("role:permissions:*") == 0
        assert fake.delete_batches == []


class TestLifecycle:
    @pytest.mark.anyio
    async def test_init_is_idempotent(self) -> None:
        try:
            first = await redis.init_redis(REDIS_URL)
            second = await redis.init_redis(REDIS_URL)

            assert first is second
            assert redis._redis_state == redis._RedisLifecycleState.INITIALIZED
        finally:
            await redis.close_redis()

    @pytest.mark.anyio
    async def test_close_is_idempotent(self) -> None:
        await redis.init_redis(REDIS_URL)

        await redis.close_redis()
        await redis.close_redis()

        assert redis._redis_state == redis._RedisLifecycleState.CLOSED
        assert redis._redis_client is None

    @pytest.mark.anyio
    async def test_close_without_init_is_noop(self) -> None:
        await redis.close_redis()
        assert redis._redis_state == redis._RedisLifecycleState.UNINITIALIZED

    def test_get_before_init_raises(self) -> None:
        with pytest.raises(RuntimeError, match="not available.*UNINITIALIZED"):
            redis.get_redis()

    @pytest.mark.anyio
    async def test_get_after_close_raises(self) -> None:
        await redis.init_redis(REDIS_URL)
        assert redis.get_redis() is not None
        await redis.close_redis()

        with pytest.raises(RuntimeError, match="not available.*CLOSED"):
            redis.get_redis()

    @pytest.mark.anyio
    async def test_reinit_after_close_builds_new_client(self) -> None:
        try:
            first = await redis.init_redis(REDIS_URL)
            await redis.close_redis()
            second = await redis.init_redis(REDIS_URL)

            assert second is not first
            assert redis.get_redis() is second
        finally:
            await redis.close_redis()

    @pytest.mark.anyio
    async def test_concurrent_init_shares_one_client(self) -> None:
        try:
            clients = await asyncio.gather(*(redis.init_redis(REDIS_URL) for _ in range(10)))
            assert all(client is clients[0] for client in clients)
        finally:
            await redis.close_redis()

    @pytest.mark.anyio
    async def test_concurrent_close_is_safe(self) -> None:
        await redis.init_redis(REDIS_URL)

        await asyncio.gather(*(redis.close_redis() for _ in range(10)))

        assert redis._redis_state == redis._RedisLifecycleState.CLOSED
