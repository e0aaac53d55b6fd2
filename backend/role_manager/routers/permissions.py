from fastapi import APIRouter, Depends, Response, status

from ..dependencies import get_permission_registry
from ..schemas.permission import PermissionCreate, PermissionResponse, PermissionUpdate
from ..services.rbac import PermissionRegistry


router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.post("", response_model=PermissionResponse, status_code=status.HTTP_201_CREATED)
async def create_permission(
    payload: PermissionCreate,
    registry: PermissionRegistry = Depends(get_permission_registry),
):
    return await registry.create(payload.slug, payload.meta)


@router.get("", response_model=list[PermissionResponse])
async def list_permissions(
    registry: PermissionRegistry = Depends(get_permission_registry),
):
    return await registry.find_all()


@router.get("/slug/{slug}", response_model=PermissionResponse)
async def get_permission_by_slug(
    slug: str,
    registry: PermissionRegistry = Depends(get_permission_registry),
):
    return await registry.find_by_slug(slug)


@router.get("/{permission_id}", response_model=PermissionResponse)
async def get_permission(
    permission_id: str,
    registry: PermissionRegistry = Depends(get_permission_registry),
):
    return await registry.find_by_id(permission_id)


@router.patch("/{permission_id}", response_model=PermissionResponse)
async def update_permission(
    permission_id: str,
    payload: PermissionUpdate,
    registry: PermissionRegistry = Depends(get_permission_registry),
):
    return await registry.update(permission_id, slug=payload.slug, meta=payload.meta)


@router.delete("/{permission_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_permission(
    permission_id: str,
    registry: PermissionRegistry = Depends(get_permission_registry),
) -> Response:
    await registry.remove(permission_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
