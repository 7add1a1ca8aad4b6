import uuid
from datetime import datetime
from pydantic import BaseModel, Field


class PermissionBase(BaseModel):
    resource: str = Field(..., min_length=1, max_length=100, pattern=r"^[^:\s]+$")
    action: str = Field(..., min_length=1, max_length=100, pattern=r"^[^:\s]+$")


class PermissionCreate(PermissionBase):
    description: str | None = None


class PermissionUpdate(BaseModel):
    description: str | None = None


class PermissionResponse(PermissionBase):
    id: uuid.UUID
    description: str | None = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class GrantRequest(PermissionBase):
    pass


class GrantResponse(PermissionBase):
    id: uuid.UUID
    role_id: uuid.UUID
    created_at: datetime

    class Config:
        from_attributes = True


class ResourcesActionsResponse(BaseModel):
    resources: list[str]
    actions: list[str]


class SyncResponse(BaseModel):
    routes_seen: int
    permissions_added: int
    grants_added: int
    admin_role_created: bool
