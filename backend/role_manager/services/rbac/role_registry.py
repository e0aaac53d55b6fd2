import logging
import uuid

from ...domain.errors import DuplicateKeyError
from ...domain.ports.rbac import PermissionStore, RoleStore
from ...errors import (
    DuplicateRecordError,
    InvalidRoleNameError,
    InvalidPermissionReferenceError,
    RecordNotFoundError,
)
from .cache import ROLE_NAME_DELIMITER, ResolutionCache, is_keyable_role_name
from .expansion import ExpandedRole, expand_role, expand_roles, parse_record_id

logger = logging.getLogger(__name__)


def _dedupe(permission_ids: list[str]) -> list[str]:
    # dict preserves first-seen order
    return list(dict.fromkeys(str(raw) for raw in permission_ids))


def _check_name(name: str) -> None:
    if not is_keyable_role_name(name):
        raise InvalidRoleNameError(
            name, f"role names must not contain {ROLE_NAME_DELIMITER!r}"
        )


class RoleRegistry:
    """CRUD over roles and their permission references.

    References are checked against the permission store at write time only;
    a later permission delete leaves a dangling id that reads skip.
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

    async def validate_permission_ids(self, permission_ids: list[str]) -> list[str]:
        """Check every reference with one batch lookup.

        Raises InvalidPermissionReferenceError naming the first bad id in
        input order.

        Returns:
            The ids, normalized and with duplicates collapsed.
        """
        parsed = [(raw, parse_record_id(raw)) for raw in permission_ids]
        well_formed = {value for _, value in parsed if value is not None}
        existing: set[uuid.UUID] = set()
        if well_formed:
            existing = {
                permission.id
                for permission in await self.permission_store.list_by_ids(well_formed)
            }

        for raw, value in parsed:
            if value is None:
                raise InvalidPermissionReferenceError(raw, malformed=True)
            if value not in existing:
                raise InvalidPermissionReferenceError(raw, malformed=False)
        return _dedupe([str(value) for _, value in parsed])

    async def create(self, name: str, permission_ids: list[str] | None = None) -> ExpandedRole:
        _check_name(name)
        ids: list[str] = []
        if permission_ids:
            ids = await self.validate_permission_ids(permission_ids)

        try:
            role = await self.role_store.create(name, ids)
            await self.role_store.commit()
        except DuplicateKeyError as exc:
            await self.role_store.rollback()
            raise DuplicateRecordError("Role", "name") from exc
        except Exception:
            await self.role_store.rollback()
            raise

        logger.info("Role created id=%s name=%s permissions=%d", role.id, role.name, len(ids))
        await self.cache.invalidate_role(role.name)
        return await expand_role(role, self.permission_store)

    async def find_all(self) -> list[ExpandedRole]:
        roles = await self.role_store.list_all()
        return await expand_roles(roles, self.permission_store)

    async def _get(self, role_id: uuid.UUID | str):
        parsed = parse_record_id(role_id)
        role = None
        if parsed is not None:
            role = await self.role_store.get_by_id(parsed)
        if role is None:
            raise RecordNotFoundError("Role", "ID", role_id)
        return role

    async def find_by_id(self, role_id: uuid.UUID | str) -> ExpandedRole:
        role = await self._get(role_id)
        return await expand_role(role, self.permission_store)

    async def find_by_name(self, name: str) -> ExpandedRole:
        role = await self.role_store.get_by_name(name)
        if role is None:
            raise RecordNotFoundError("Role", "name", name)
        return await expand_role(role, self.permission_store)

    async def update(
        self,
        role_id: uuid.UUID | str,
        *,
        name: str | None = None,
        permission_ids: list[str] | None = None,
    ) -> ExpandedRole:
        if name is not None:
            _check_name(name)
        ids = permission_ids
        if permission_ids:
            ids = await self.validate_permission_ids(permission_ids)

        role = await self._get(role_id)
        previous_name = role.name
        try:
            role = await self.role_store.update(role, name=name, permission_ids=ids)
            await self.role_store.commit()
        except DuplicateKeyError as exc:
            await self.role_store.rollback()
            raise DuplicateRecordError("Role", "name") from exc
        except Exception:
            await self.role_store.rollback()
            raise

        logger.info("Role updated id=%s name=%s", role.id, role.name)
        # A rename must also drop entries cached under the old name.
        await self.cache.invalidate_roles({previous_name, role.name})
        return await expand_role(role, self.permission_store)

    async def remove(self, role_id: uuid.UUID | str) -> None:
        role = await self._get(role_id)
        removed_id, removed_name = role.id, role.name
        try:
            await self.role_store.delete(role)
            await self.role_store.commit()
        except Exception:
            await self.role_store.rollback()
            raise

        logger.info("Role removed id=%s name=%s", removed_id, removed_name)
        await self.cache.invalidate_role(removed_name)
