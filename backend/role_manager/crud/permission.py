import uuid
from typing import Any, Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import DuplicateKeyError
from ..models.permission import Permission


class PermissionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, slug: str, meta: dict[str, Any]) -> Permission:
        permission = Permission(slug=slug, meta=dict(meta))
        self.session.add(permission)
        await self._flush(slug)
        await self.session.refresh(permission)
        return permission

    async def get_by_id(self, permission_id: uuid.UUID) -> Permission | None:
        return await self.session.get(Permission, permission_id)

    async def get_by_slug(self, slug: str) -> Permission | None:
        result = await self.session.execute(
            select(Permission).where(Permission.slug == slug)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Permission]:
        result = await self.session.execute(
            select(Permission).order_by(Permission.created_at, Permission.slug)
        )
        return list(result.scalars().all())

    async def list_by_ids(self, permission_ids: Iterable[uuid.UUID]) -> list[Permission]:
        ids = set(permission_ids)
        if not ids:
            return []
        result = await self.session.execute(
            select(Permission).where(Permission.id.in_(ids))
        )
        return list(result.scalars().all())

    async def update(
        self,
        permission: Permission,
        *,
        slug: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> Permission:
        if slug is not None:
            permission.slug = slug
        if meta is not None:
            permission.meta = dict(meta)
        await self._flush(permission.slug)
        await self.session.refresh(permission)
        return permission

    async def delete(self, permission: Permission) -> None:
        await self.session.delete(permission)
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def _flush(self, slug: str) -> None:
        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            raise DuplicateKeyError("slug", slug) from exc
