import logging
from typing import Iterable

from ...domain.ports.rbac import PermissionStore, RoleStore
from ...errors import NoRolesMatchedError
from .cache import ResolutionCache, canonical_role_names, is_keyable_role_name
from .expansion import expand_roles

logger = logging.getLogger(__name__)


class PermissionResolver:
    """Turns a set of role names into the set of permission slugs they grant.

    The cache is read-through/write-through and never a correctness
    dependency: cache errors fall back to the record store. Two concurrent
    misses for the same names both compute the same value and both
    overwrite the same key, which is harmless.
    """

    def __init__(
        self,
        role_store: RoleStore,
        permission_store: PermissionStore,
        cache: ResolutionCache,
    ):
        self.role_store = role_store
        self.permission_store = permission_store
        self.cache = cache

    async def resolve(self, role_names: Iterable[str]) -> frozenset[str]:
        """Resolve role names to permission slugs.

        Args:
            role_names: Role names in any order; duplicates are ignored

        Returns:
            frozenset[str]: Union of the slugs of every permission attached to
            the roles that exist. Dangling permission references contribute
            nothing.

        Raises:
            NoRolesMatchedError: If none of the names matches a role
        """
        names = self._lookup_names(role_names)
        if names is None:
            return frozenset()

        cached = await self.cache.get(names)
        if cached is not None:
            return cached

        slugs = await self._compute(names)
        await self.cache.put(names, slugs)
        return slugs

    async def resolve_for_role(self, role_name: str) -> frozenset[str]:
        return await self.resolve([role_name])

    async def compute(self, role_names: Iterable[str]) -> frozenset[str]:
        """Resolve straight from the record store, bypassing the cache."""
        names = self._lookup_names(role_names)
        if names is None:
            return frozenset()
        return await self._compute(names)

    def _lookup_names(self, role_names: Iterable[str]) -> list[str] | None:
        """Canonical names that can name a role; None for empty input.

        Names containing the key delimiter are dropped: no role may carry
        one, and keying them would alias another set of names.
        """
        names = canonical_role_names(role_names)
        if not names:
            return None
        usable = [name for name in names if is_keyable_role_name(name)]
        if not usable:
            raise NoRolesMatchedError(names)
        if len(usable) < len(names):
            logger.debug(
                "Ignoring unusable role names: %s",
                " ".join(repr(name) for name in names if name not in usable),
            )
        return usable

    async def _compute(self, names: list[str]) -> frozenset[str]:
        roles = await self.role_store.list_by_names(names)
        if not roles:
            raise NoRolesMatchedError(names)

        if len(roles) < len(names):
            found = {role.name for role in roles}
            logger.debug(
                "Resolving with unknown roles ignored: %s",
                ",".join(name for name in names if name not in found),
            )

        slugs: set[str] = set()
        for role in await expand_roles(roles, self.permission_store):
            slugs.update(role.slugs)
        return frozenset(slugs)
