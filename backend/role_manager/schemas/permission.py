import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class PermissionBase(BaseModel):
    slug: str = Field(..., min_length=1, max_length=255)
    meta: dict[str, Any] = Field(default_factory=dict)


class PermissionCreate(PermissionBase):
    pass


class PermissionUpdate(BaseModel):
    slug: str | None = Field(None, min_length=1, max_length=255)
    meta: dict[str, Any] | None = None


class PermissionResponse(PermissionBase):
    id: uuid.UUID
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
