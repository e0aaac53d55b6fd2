from fastapi import APIRouter, Depends, Response, status

from ..dependencies import get_permission_resolver, get_role_registry
from ..schemas.role import (
    ResolvePermissionsRequest,
    ResolvePermissionsResponse,
    RoleCreate,
    RoleResponse,
    RoleUpdate,
)
from ..services.rbac import PermissionResolver, RoleRegistry


router = APIRouter(prefix="/roles", tags=["roles"])


@router.post(
    "/resolve-permissions",
    response_model=ResolvePermissionsResponse,
)
async def resolve_permissions(
    payload: ResolvePermissionsRequest,
    resolver: PermissionResolver = Depends(get_permission_resolver),
) -> ResolvePermissionsResponse:
    """
    Resolve role names to the union of their permission slugs.

    Order of names and duplicates do not matter. Returns 404 when none of
    the names matches a role.
    """
    slugs = await resolver.resolve(payload.role_names)
    return ResolvePermissionsResponse(permissions=sorted(slugs))


@router.post("", response_model=RoleResponse, status_code=status.HTTP_201_CREATED)
async def create_role(
    payload: RoleCreate,
    registry: RoleRegistry = Depends(get_role_registry),
):
    role = await registry.create(payload.name, payload.permissions)
    return RoleResponse.model_validate(role)


@router.get("", response_model=list[RoleResponse])
async def list_roles(registry: RoleRegistry = Depends(get_role_registry)):
    return [RoleResponse.model_validate(role) for role in await registry.find_all()]


@router.get("/name/{name}", response_model=RoleResponse)
async def get_role_by_name(
    name: str,
    registry: RoleRegistry = Depends(get_role_registry),
):
    return RoleResponse.model_validate(await registry.find_by_name(name))


@router.get("/{role_id}", response_model=RoleResponse)
async def get_role(
    role_id: str,
    registry: RoleRegistry = Depends(get_role_registry),
):
    return RoleResponse.model_validate(await registry.find_by_id(role_id))


@router.patch("/{role_id}", response_model=RoleResponse)
async def update_role(
    role_id: str,
    payload: RoleUpdate,
    registry: RoleRegistry = Depends(get_role_registry),
):
    role = await registry.update(
        role_id, name=payload.name, permission_ids=payload.permissions
    )
    return RoleResponse.model_validate(role)


@router.delete("/{role_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_role(
    role_id: str,
    registry: RoleRegistry = Depends(get_role_registry),
) -> Response:
    await registry.remove(role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
