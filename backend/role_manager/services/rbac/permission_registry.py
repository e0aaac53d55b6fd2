import logging
import uuid
from typing import Any

from ...domain.errors import DuplicateKeyError
from ...domain.ports.rbac import PermissionData, PermissionStore
from ...errors import DuplicateRecordError, RecordNotFoundError
from .cache import ResolutionCache
from .expansion import parse_record_id

logger = logging.getLogger(__name__)


class PermissionRegistry:
    """CRUD over permissions.

    Every successful write is committed first and then drops the whole
    resolution cache namespace, since any role may reference the permission.
    """

    def __init__(self, permission_store: PermissionStore, cache: ResolutionCache):
        self.permission_store = permission_store
        self.cache = cache

    async def create(self, slug: str, meta: dict[str, Any] | None = None) -> PermissionData:
        try:
            permission = await self.permission_store.create(slug, meta or {})
            await self.permission_store.commit()
        except DuplicateKeyError as exc:
            await self.permission_store.rollback()
            raise DuplicateRecordError("Permission", "slug") from exc
        except Exception:
            await self.permission_store.rollback()
            raise

        logger.info("Permission created id=%s slug=%s", permission.id, permission.slug)
        await self.cache.invalidate_all()
        return permission

    async def find_all(self) -> list[PermissionData]:
        return await self.permission_store.list_all()

    async def find_by_id(self, permission_id: uuid.UUID | str) -> PermissionData:
        parsed = parse_record_id(permission_id)
        permission = None
        if parsed is not None:
            permission = await self.permission_store.get_by_id(parsed)
        if permission is None:
            raise RecordNotFoundError("Permission", "ID", permission_id)
        return permission

    async def find_by_slug(self, slug: str) -> PermissionData:
        permission = await self.permission_store.get_by_slug(slug)
        if permission is None:
            raise RecordNotFoundError("Permission", "slug", slug)
        return permission

    async def update(
        self,
        permission_id: uuid.UUID | str,
        *,
        slug: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> PermissionData:
        permission = await self.find_by_id(permission_id)
        try:
            permission = await self.permission_store.update(permission, slug=slug, meta=meta)
            await self.permission_store.commit()
        except DuplicateKeyError as exc:
            await self.permission_store.rollback()
            raise DuplicateRecordError("Permission", "slug") from exc
        except Exception:
            await self.permission_store.rollback()
            raise

        logger.info("Permission updated id=%s slug=%s", permission.id, permission.slug)
        await self.cache.invalidate_all()
        return permission

    async def remove(self, permission_id: uuid.UUID | str) -> None:
        permission = await self.find_by_id(permission_id)
        removed_id, removed_slug = permission.id, permission.slug
        try:
            await self.permission_store.delete(permission)
            await self.permission_store.commit()
        except Exception:
            await self.permission_store.rollback()
            raise

        # Roles keep their now-dangling reference; resolution skips it.
        logger.info("Permission removed id=%s slug=%s", removed_id, removed_slug)
        await self.cache.invalidate_all()
