import uuid
from datetime import datetime
from pydantic import BaseModel, Field, field_validator


class RoleBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    display_name: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class RoleCreate(RoleBase):
    is_active: bool = True


class RoleUpdate(BaseModel):
    display_name: str | None = Field(None, min_length=1, max_length=255)
    description: str | None = None
    is_active: bool | None = None

    # Omitting a field leaves it unchanged; only description may be cleared
    @field_validator("display_name", "is_active")
    @classmethod
    def _reject_null(cls, value):
        if value is None:
            raise ValueError("must not be null")
        return value


class RoleResponse(RoleBase):
    id: uuid.UUID
    is_system: bool
    is_editable: bool
    is_active: bool
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True
