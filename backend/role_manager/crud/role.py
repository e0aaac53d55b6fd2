import uuid
from typing import Iterable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ..domain.errors import DuplicateKeyError
from ..models.role import Role


class RoleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, name: str, permission_ids: list[str]) -> Role:
        role = Role(name=name, permission_ids=list(permission_ids))
        self.session.add(role)
        await self._flush(name)
        await self.session.refresh(role)
        return role

    async def get_by_id(self, role_id: uuid.UUID) -> Role | None:
        return await self.session.get(Role, role_id)

    async def get_by_name(self, name: str) -> Role | None:
        result = await self.session.execute(
            select(Role).where(Role.name == name)
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Role]:
        result = await self.session.execute(
            select(Role).order_by(Role.created_at, Role.name)
        )
        return list(result.scalars().all())

    async def list_by_names(self, names: Iterable[str]) -> list[Role]:
        wanted = set(names)
        if not wanted:
            return []
        result = await self.session.execute(
            select(Role).where(Role.name.in_(wanted)).order_by(Role.name)
        )
        return list(result.scalars().all())

    async def update(
        self,
        role: Role,
        *,
        name: str | None = None,
        permission_ids: list[str] | None = None,
    ) -> Role:
        if name is not None:
            role.name = name
        if permission_ids is not None:
            role.permission_ids = list(permission_ids)
        await self._flush(role.name)
        await self.session.refresh(role)
        return role

    async def delete(self, role: Role) -> None:
        await self.session.delete(role)
        await self.session.flush()

    async def commit(self) -> None:
        await self.session.commit()

    async def rollback(self) -> None:
        await self.session.rollback()

    async def _flush(self, name: str) -> None:
        try:
            await self.session.flush()
        except IntegrityError as exc:
            await self.session.rollback()
            raise DuplicateKeyError("name", name) from exc
