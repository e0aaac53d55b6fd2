from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import Iterable

from ...domain.ports.rbac import PermissionData, PermissionStore, RoleData


@dataclass(frozen=True, slots=True)
class ExpandedRole:
    """A role with its permission references replaced by live records.

    ``permission_ids`` keeps the stored references, including dangling ones;
    ``permissions`` holds only the records that still exist, in stored order.
    """

    id: uuid.UUID
    name: str
    permission_ids: tuple[str, ...]
    permissions: tuple[PermissionData, ...]
    created_at: datetime
    updated_at: datetime

    @property
    def slugs(self) -> frozenset[str]:
        return frozenset(permission.slug for permission in self.permissions)


def parse_record_id(raw: uuid.UUID | str) -> uuid.UUID | None:
    try:
        return uuid.UUID(str(raw))
    except (TypeError, ValueError):
        return None


async def expand_roles(
    roles: Iterable[RoleData], permission_store: PermissionStore
) -> list[ExpandedRole]:
    """Expand permission references of many roles with one batch lookup."""
    roles = list(roles)
    referenced: set[uuid.UUID] = set()
    for role in roles:
        for raw in role.permission_ids:
            parsed = parse_record_id(raw)
            if parsed is not None:
                referenced.add(parsed)
    by_id: dict[uuid.UUID, PermissionData] = {}
    if referenced:
        for permission in await permission_store.list_by_ids(referenced):
            by_id[permission.id] = permission

    expanded = []
    for role in roles:
        permissions = []
        for raw in role.permission_ids:
            parsed = parse_record_id(raw)
            if parsed is not None and parsed in by_id:
                permissions.append(by_id[parsed])
        expanded.append(
            ExpandedRole(
                id=role.id,
                name=role.name,
                permission_ids=tuple(role.permission_ids),
                permissions=tuple(permissions),
                created_at=role.created_at,
                updated_at=role.updated_at,
            )
        )
    return expanded


async def expand_role(role: RoleData, permission_store: PermissionStore) -> ExpandedRole:
    [expanded] = await expand_roles([role], permission_store)
    return expanded
