"""Tests for resolution cache keys and the invalidation protocol."""
import json

import pytest

from role_manager.services.rbac.cache import (
    CACHE_NAMESPACE,
    ResolutionCache,
    cache_key_for,
    is_keyable_role_name,
    key_includes_role,
)
from tests.rbac_helpers import FakeCacheBackend


class TestCacheKey:
    def test_key_is_sorted_and_namespaced(self) -> None:
        assert cache_key_for(["editor", "admin"]) == "role:permissions:admin,editor"

    def test_key_ignores_order(self) -> None:
        assert cache_key_for(["b", "a", "c"]) == cache_key_for(["c", "b", "a"])

    def test_key_ignores_duplicates(self) -> None:
        assert cache_key_for(["admin", "admin"]) == cache_key_for(["admin"])

    def test_single_role_key(self) -> None:
        assert cache_key_for(["admin"]) == CACHE_NAMESPACE + "admin"

    def test_key_includes_role_matches_whole_names_only(self) -> None:
        key = cache_key_for(["admin", "editor"])
        assert key_includes_role(key, "admin")
        assert key_includes_role(key, "editor")
        assert not key_includes_role(key, "adm")
        assert not key_includes_role("other:admin", "admin")

    def test_key_rejects_names_containing_delimiter(self) -> None:
        # {"a,b"} would otherwise share a key with {"a", "b"}.
        with pytest.raises(ValueError):
            cache_key_for(["a,b"])
        assert not is_keyable_role_name("a,b")
        assert not is_keyable_role_name("")
        assert is_keyable_role_name("admin")


class TestReadWrite:
    @pytest.mark.anyio
    async def test_put_then_get_round_trips_set(self) -> None:
        backend = FakeCacheBackend()
        cache = ResolutionCache(backend)

        await cache.put(["admin"], {"users.write", "users.read"})

        assert await cache.get(["admin"]) == frozenset({"users.read", "users.write"})
        stored = backend.values["role:permissions:admin"]
        assert json.loads(stored) == ["users.read", "users.write"]

    @pytest.mark.anyio
    async def test_put_uses_configured_ttl(self) -> None:
        backend = FakeCacheBackend()
        cache = ResolutionCache(backend, ttl_seconds=42)

        await cache.put(["admin"], set())

        assert backend.ttls["role:permissions:admin"] == 42

    @pytest.mark.anyio
    async def test_default_ttl_is_five_minutes(self) -> None:
        backend = FakeCacheBackend()
        await ResolutionCache(backend).put(["admin"], {"x"})
        assert backend.ttls["role:permissions:admin"] == 300

    @pytest.mark.anyio
    async def test_empty_set_is_a_hit_not_a_miss(self) -> None:
        backend = FakeCacheBackend()
        cache = ResolutionCache(backend)
        await cache.put(["viewer"], set())

        assert await cache.get(["viewer"]) == frozenset()

    @pytest.mark.anyio
    async def test_get_returns_none_on_miss(self) -> None:
        cache = ResolutionCache(FakeCacheBackend())
        assert await cache.get(["admin"]) is None

    @pytest.mark.anyio
    async def test_get_degrades_to_miss_on_backend_error(self, caplog) -> None:
        backend = FakeCacheBackend()
        backend.failing = True
        cache = ResolutionCache(backend)

        with caplog.at_level("WARNING"):
            assert await cache.get(["admin"]) is None
        assert any("Cache read failed" in r.getMessage() for r in caplog.records)

    @pytest.mark.anyio
    async def test_get_discards_undecodable_entry(self) -> None:
        backend = FakeCacheBackend()
        backend.values["role:permissions:admin"] = "{not json"
        assert await ResolutionCache(backend).get(["admin"]) is None

    @pytest.mark.anyio
    async def test_get_discards_wrongly_shaped_entry(self) -> None:
        backend = FakeCacheBackend()
        backend.values["role:permissions:admin"] = json.dumps({"slug": "x"})
        assert await ResolutionCache(backend).get(["admin"]) is None

    @pytest.mark.anyio
    async def test_put_reports_failure_without_raising(self) -> None:
        backend = FakeCacheBackend()
        backend.failing = True
        assert await ResolutionCache(backend).put(["admin"], {"x"}) is False

    def test_rejects_non_positive_ttl(self) -> None:
        with pytest.raises(ValueError):
            ResolutionCache(FakeCacheBackend(), ttl_seconds=0)

    def test_rejects_unknown_mode(self) -> None:
        with pytest.raises(ValueError):
            ResolutionCache(FakeCacheBackend(), invalidation="everything")  # type: ignore[arg-type]


def _populated_backend() -> FakeCacheBackend:
    backend = FakeCacheBackend()
    for names in (["admin"], ["editor"], ["admin", "editor"], ["editor", "viewer"]):
        backend.values[cache_key_for(names)] = "[]"
    backend.values["unrelated:key"] = "1"
    return backend


class TestInvalidation:
    @pytest.mark.anyio
    async def test_invalidate_all_drops_only_namespace(self) -> None:
        backend = _populated_backend()

        assert await ResolutionCache(backend).invalidate_all() is True

        assert list(backend.values) == ["unrelated:key"]

    @pytest.mark.anyio
    async def test_exact_mode_drops_single_role_key_only(self) -> None:
        backend = _populated_backend()
        cache = ResolutionCache(backend, invalidation="exact")

        await cache.invalidate_role("admin")

        assert "role:permissions:admin" not in backend.values
        # Known staleness hazard of exact mode: the combination survives.
        assert "role:permissions:admin,editor" in backend.values
        assert "role:permissions:editor" in backend.values

    @pytest.mark.anyio
    async def test_containing_mode_drops_every_combination_with_role(self) -> None:
        backend = _populated_backend()
        cache = ResolutionCache(backend, invalidation="containing")

        await cache.invalidate_role("admin")

        assert "role:permissions:admin" not in backend.values
        assert "role:permissions:admin,editor" not in backend.values
        assert "role:permissions:editor" in backend.values
        assert "role:permissions:editor,viewer" in backend.values
        assert "unrelated:key" in backend.values

    @pytest.mark.anyio
    async def test_invalidate_roles_handles_several_names(self) -> None:
        backend = _populated_backend()
        cache = ResolutionCache(backend)

        await cache.invalidate_roles(["admin", "viewer"])

        assert set(backend.values) == {"role:permissions:editor", "unrelated:key"}

    @pytest.mark.anyio
    async def test_invalidation_failure_is_logged_not_raised(self, caplog) -> None:
        backend = _populated_backend()
        backend.failing = True
        cache = ResolutionCache(backend)

        with caplog.at_level("WARNING"):
            assert await cache.invalidate_all() is False
            assert await cache.invalidate_role("admin") is False

        messages = [r.getMessage() for r in caplog.records]
        assert sum("may be stale until TTL expiry" in m for m in messages) == 2

    @pytest.mark.anyio
    async def test_containing_mode_deletes_matches_in_one_call(self) -> None:
        backend = _populated_backend()
        cache = ResolutionCache(backend, invalidation="containing")

        await cache.invalidate_role("editor")

        expected = [
            "role:permissions:admin,editor",
            "role:permissions:editor",
            "role:permissions:editor,viewer",
        ]
        deletes = [call for call in backend.calls if call[0].startswith("delete")]
        assert deletes == [("delete_many", ",".join(expected))]
        assert set(backend.values) == {"role:permissions:admin", "unrelated:key"}

    @pytest.mark.anyio
    async def test_unkeyable_names_are_skipped(self) -> None:
        backend = _populated_backend()
        cache = ResolutionCache(backend, invalidation="exact")

        assert await cache.invalidate_roles(["admin,editor"]) is True

        assert "role:permissions:admin,editor" in backend.values
        assert backend.calls == []
