"""Resolution cache: key derivation and the invalidation protocol.

Resolved permission sets are cached per *combination* of role names:

    role:permissions:<distinct role names, sorted, comma-joined>

Permission writes drop the whole namespace because any cached combination
may include the changed permission. Role writes drop keys according to the
configured mode:

- ``exact``: only ``role:permissions:<name>``. A combination entry such as
  ``role:permissions:admin,editor`` keeps serving the old set until its TTL
  expires.
- ``containing``: every key whose role set contains the name.

Role names never contain the delimiter, so a key maps back to exactly one
set of names.

Every failure here is logged and swallowed. The cache is an optimization,
so a broken cache degrades to "always miss" and a failed invalidation
leaves staleness bounded by the TTL.
"""

from __future__ import annotations

import json
import logging
from typing import Iterable

from redis.exceptions import RedisError

from ...config import InvalidationMode
from ...domain.ports.rbac import CacheBackend

logger = logging.getLogger(__name__)

CACHE_NAMESPACE = "role:permissions:"
ROLE_NAME_DELIMITER = ","
DEFAULT_TTL_SECONDS = 300


def canonical_role_names(role_names: Iterable[str]) -> list[str]:
    return sorted(set(role_names))


def is_keyable_role_name(role_name: str) -> bool:
    """Whether ``role_name`` can appear in a cache key.

    A name containing the delimiter would make ``{"a,b"}`` and
    ``{"a", "b"}`` share a key, so such names are never valid role names.
    """
    return bool(role_name) and ROLE_NAME_DELIMITER not in role_name


def cache_key_for(role_names: Iterable[str]) -> str:
    """Build the cache key for a set of role names.

    Independent of input order and of duplicates.

    Raises:
        ValueError: If a name contains the delimiter
    """
    names = canonical_role_names(role_names)
    for name in names:
        if not is_keyable_role_name(name):
            raise ValueError(f"Role name cannot be used in a cache key: {name!r}")
    return CACHE_NAMESPACE + ROLE_NAME_DELIMITER.join(names)


def key_includes_role(key: str, role_name: str) -> bool:
    """Whether a cache key's role set contains ``role_name``."""
    if not key.startswith(CACHE_NAMESPACE):
        return False
    return role_name in key[len(CACHE_NAMESPACE):].split(ROLE_NAME_DELIMITER)


class ResolutionCache:
    def __init__(
        self,
        backend: CacheBackend,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        invalidation: InvalidationMode = "containing",
    ) -> None:
        if ttl_seconds <= 0:
            raise ValueError("ttl_seconds must be greater than 0")
        if invalidation not in ("exact", "containing"):
            raise ValueError(f"Unknown invalidation mode: {invalidation}")
        self._backend = backend
        self.ttl_seconds = ttl_seconds
        self.invalidation = invalidation

    async def get(self, role_names: Iterable[str]) -> frozenset[str] | None:
        """Return the cached slug set, or None on miss or any cache failure."""
        key = cache_key_for(role_names)
        try:
            raw = await self._backend.get_value(key)
        except RedisError as exc:
            logger.warning("Cache read failed key=%s error=%s", key, exc)
            return None
        if raw is None:
            logger.debug("Cache miss key=%s", key)
            return None
        try:
            decoded = json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry key=%s", key)
            return None
        if not isinstance(decoded, list) or not all(isinstance(s, str) for s in decoded):
            logger.warning("Discarding malformed cache entry key=%s", key)
            return None
        logger.debug("Cache hit key=%s", key)
        return frozenset(decoded)

    async def put(self, role_names: Iterable[str], slugs: Iterable[str]) -> bool:
        key = cache_key_for(role_names)
        payload = json.dumps(sorted(set(slugs)))
        try:
            await self._backend.set_value(key, payload, self.ttl_seconds)
        except RedisError as exc:
            logger.warning("Cache write failed key=%s error=%s", key, exc)
            return False
        return True

    async def invalidate_all(self) -> bool:
        """Drop every cached resolution (used on any permission write)."""
        pattern = CACHE_NAMESPACE + "*"
        try:
            deleted = await self._backend.delete_pattern(pattern)
        except RedisError as exc:
            logger.warning(
                "Cache invalidation failed pattern=%s error=%s; "
                "entries may be stale until TTL expiry",
                pattern,
                exc,
            )
            return False
        logger.debug("Invalidated %d cache entries pattern=%s", deleted, pattern)
        return True

    async def invalidate_role(self, role_name: str) -> bool:
        """Drop cached resolutions affected by a write to one role."""
        return await self.invalidate_roles([role_name])

    async def invalidate_roles(self, role_names: Iterable[str]) -> bool:
        # Names that cannot be keyed never own a cache entry.
        names = {name for name in role_names if is_keyable_role_name(name)}
        if not names:
            return True
        try:
            if self.invalidation == "exact":
                keys = {cache_key_for([name]) for name in names}
            else:
                keys = {
                    key
                    for key in await self._backend.scan_keys(CACHE_NAMESPACE + "*")
                    if any(key_includes_role(key, name) for name in names)
                }
            deleted = 0
            if keys:
                deleted = await self._backend.delete_values(*sorted(keys))
        except RedisError as exc:
            logger.warning(
                "Cache invalidation failed roles=%s error=%s; "
                "entries may be stale until TTL expiry",
                ",".join(sorted(names)),
                exc,
            )
            return False
        logger.debug(
            "Invalidated %d cache entries roles=%s mode=%s",
            deleted,
            ",".join(sorted(names)),
            self.invalidation,
        )
        return True
