"""
Seed default permissions and roles.

Existing slugs and role names are left untouched, so the script can be run
repeatedly. Writes go through the registries so the resolution cache is
invalidated like any other write.

Usage:
    python -m scripts.seed_rbac
"""
import asyncio
import logging

from role_manager.config import settings
from role_manager.crud.permission import PermissionRepository
from role_manager.crud.role import RoleRepository
from role_manager.database import AsyncSessionLocal, engine
from role_manager.errors import NotFoundError
from role_manager.infrastructure.redis import close_redis, init_redis
from role_manager.services.rbac import PermissionRegistry, ResolutionCache, RoleRegistry

logger = logging.getLogger("role_manager.seed")


DEFAULT_PERMISSIONS = [
    {"slug": "users.read", "meta": {"description": "View user accounts"}},
    {"slug": "users.write", "meta": {"description": "Create and edit user accounts"}},
    {"slug": "posts.read", "meta": {"description": "View posts"}},
    {"slug": "posts.write", "meta": {"description": "Create and edit posts"}},
    {"slug": "roles.manage", "meta": {"description": "Manage roles and permissions"}},
]

ROLE_PERMISSIONS = {
    "admin": ["users.read", "users.write", "roles.manage"],
    "editor": ["users.read", "posts.write"],
    "viewer": ["posts.read"],
}


async def seed_rbac(
    permission_registry: PermissionRegistry, role_registry: RoleRegistry
) -> tuple[int, int]:
    """Create missing default permissions and roles.

    Returns:
        (permissions created, roles created)
    """
    permission_ids: dict[str, str] = {}
    created_permissions = 0
    for data in DEFAULT_PERMISSIONS:
        try:
            permission = await permission_registry.find_by_slug(data["slug"])
        except NotFoundError:
            permission = await permission_registry.create(data["slug"], data["meta"])
            created_permissions += 1
            logger.info("Created permission %s", data["slug"])
        permission_ids[permission.slug] = str(permission.id)

    created_roles = 0
    for name, slugs in ROLE_PERMISSIONS.items():
        try:
            await role_registry.find_by_name(name)
            logger.info("Role %s already exists, skipping", name)
            continue
        except NotFoundError:
            pass
        await role_registry.create(name, [permission_ids[slug] for slug in slugs])
        created_roles += 1
        logger.info("Created role %s", name)

    return created_permissions, created_roles


async def main() -> None:
    redis = await init_redis(settings.redis_url)
    try:
        async with AsyncSessionLocal() as session:
            cache = ResolutionCache(
                redis,
                ttl_seconds=settings.permissions_cache_ttl_seconds,
                invalidation=settings.role_cache_invalidation,
            )
            permission_repo = PermissionRepository(session)
            permission_registry = PermissionRegistry(permission_repo, cache)
            role_registry = RoleRegistry(RoleRepository(session), permission_repo, cache)
            created_permissions, created_roles = await seed_rbac(
                permission_registry, role_registry
            )
        logger.info(
            "Seeding complete: %d permissions, %d roles created",
            created_permissions,
            created_roles,
        )
    finally:
        await close_redis()
        await engine.dispose()


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
    )
    asyncio.run(main())
