import uuid
from datetime import datetime
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field

from .permission import PermissionResponse

# Commas delimit role names in resolution cache keys.
ROLE_NAME_PATTERN = r"^[^,]+$"


class RoleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, pattern=ROLE_NAME_PATTERN)


class RoleCreate(RoleBase):
    # Plain strings: malformed ids are reported by the registry as a bad
    # request naming the offending id.
    permissions: list[str] = Field(default_factory=list)


class RoleUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100, pattern=ROLE_NAME_PATTERN)
    permissions: list[str] | None = None


class RoleResponse(RoleBase):
    # Unconstrained so rows written before the delimiter rule still render.
    name: str
    id: uuid.UUID
    permissions: list[PermissionResponse]
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ResolvePermissionsRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    role_names: list[Annotated[str, Field(min_length=1)]] = Field(..., alias="roleNames")


class ResolvePermissionsResponse(BaseModel):
    permissions: list[str]
