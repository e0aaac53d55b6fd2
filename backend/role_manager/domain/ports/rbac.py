from __future__ import annotations

from datetime import datetime
import uuid
from typing import Any, Iterable, Protocol


class PermissionData(Protocol):
    id: uuid.UUID
    slug: str
    meta: dict[str, Any]
    created_at: datetime
    updated_at: datetime


class RoleData(Protocol):
    id: uuid.UUID
    name: str
    # Weak references: ids are not guaranteed to resolve to a permission.
    permission_ids: list[str]
    created_at: datetime
    updated_at: datetime


class PermissionStore(Protocol):
    async def create(self, slug: str, meta: dict[str, Any]) -> PermissionData:
        ...

    async def get_by_id(self, permission_id: uuid.UUID) -> PermissionData | None:
        ...

    async def get_by_slug(self, slug: str) -> PermissionData | None:
        ...

    async def list_all(self) -> list[PermissionData]:
        ...

    async def list_by_ids(
        self, permission_ids: Iterable[uuid.UUID]
    ) -> list[PermissionData]:
        ...

    async def update(
        self,
        permission: PermissionData,
        *,
        slug: str | None = None,
        meta: dict[str, Any] | None = None,
    ) -> PermissionData:
        ...

    async def delete(self, permission: PermissionData) -> None:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


class RoleStore(Protocol):
    async def create(self, name: str, permission_ids: list[str]) -> RoleData:
        ...

    async def get_by_id(self, role_id: uuid.UUID) -> RoleData | None:
        ...

    async def get_by_name(self, name: str) -> RoleData | None:
        ...

    async def list_all(self) -> list[RoleData]:
        ...

    async def list_by_names(self, names: Iterable[str]) -> list[RoleData]:
        ...

    async def update(
        self,
        role: RoleData,
        *,
        name: str | None = None,
        permission_ids: list[str] | None = None,
    ) -> RoleData:
        ...

    async def delete(self, role: RoleData) -> None:
        ...

    async def commit(self) -> None:
        ...

    async def rollback(self) -> None:
        ...


class CacheBackend(Protocol):
    async def get_value(self, key: str) -> str | None:
        ...

    async def set_value(
        self, key: str, value: str, ttl_seconds: int | None = None
    ) -> None:
        ...

    async def delete_value(self, key: str) -> None:
        ...

    async def delete_values(self, *keys: str) -> int:
        ...

    async def delete_pattern(self, pattern: str) -> int:
        ...

    async def scan_keys(self, pattern: str) -> list[str]:
        ...
