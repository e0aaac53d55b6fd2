from collections.abc import AsyncGenerator

from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from .config import settings
from .crud.permission import PermissionRepository
from .crud.role import RoleRepository
from .database import get_session
from .domain.ports.rbac import CacheBackend, PermissionStore, RoleStore
from .infrastructure.redis import get_redis
from .services.rbac import (
    PermissionRegistry,
    PermissionResolver,
    ResolutionCache,
    RoleRegistry,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


def get_permission_store(db: AsyncSession = Depends(get_db)) -> PermissionStore:
    return PermissionRepository(db)


def get_role_store(db: AsyncSession = Depends(get_db)) -> RoleStore:
    return RoleRepository(db)


def get_cache_backend() -> CacheBackend:
    return get_redis()


def get_resolution_cache(
    backend: CacheBackend = Depends(get_cache_backend),
) -> ResolutionCache:
    return ResolutionCache(
        backend,
        ttl_seconds=settings.permissions_cache_ttl_seconds,
        invalidation=settings.role_cache_invalidation,
    )


def get_permission_registry(
    permission_store: PermissionStore = Depends(get_permission_store),
    cache: ResolutionCache = Depends(get_resolution_cache),
) -> PermissionRegistry:
    return PermissionRegistry(permission_store, cache)


def get_role_registry(
    role_store: RoleStore = Depends(get_role_store),
    permission_store: PermissionStore = Depends(get_permission_store),
    cache: ResolutionCache = Depends(get_resolution_cache),
) -> RoleRegistry:
    return RoleRegistry(role_store, permission_store, cache)


def get_permission_resolver(
    role_store: RoleStore = Depends(get_role_store),
    permission_store: PermissionStore = Depends(get_permission_store),
    cache: ResolutionCache = Depends(get_resolution_cache),
) -> PermissionResolver:
    return PermissionResolver(role_store, permission_store, cache)
