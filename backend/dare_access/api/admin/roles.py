"""Admin API endpoints for role management."""
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...authz.dependencies import RequirePermission
from ...config import settings
from ...dependencies import get_db
from ...schemas.role import RoleCreate, RoleResponse, RoleUpdate
from ...services.admin.role_service import RoleAdminService

router = APIRouter(prefix="/roles", tags=["admin-roles"])


@router.get(
    "",
    response_model=list[RoleResponse],
    dependencies=[Depends(RequirePermission("roles", "manage"))],
)
async def list_roles(
    include_inactive: bool = Query(False, description="Include inactive roles"),
    db: AsyncSession = Depends(get_db),
):
    service = RoleAdminService(db, settings.admin_role_name)
    return await service.list_roles(include_inactive=include_inactive)


@router.post(
    "",
    response_model=RoleResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(RequirePermission("roles", "manage"))],
)
async def create_role(data: RoleCreate, db: AsyncSession = Depends(get_db)):
    service = RoleAdminService(db, settings.admin_role_name)
    return await service.create_role(data)


@router.get(
    "/{role_id}",
    response_model=RoleResponse,
    dependencies=[Depends(RequirePermission("roles", "view"))],
)
async def get_role(role_id: UUID, db: AsyncSession = Depends(get_db)):
    service = RoleAdminService(db, settings.admin_role_name)
    return await service.get_role(role_id)


@router.patch(
    "/{role_id}",
    response_model=RoleResponse,
    dependencies=[Depends(RequirePermission("roles", "edit"))],
)
async def update_role(role_id: UUID, data: RoleUpdate, db: AsyncSession = Depends(get_db)):
    """
    Update a role's display fields.

    System roles are refused with SYSTEM_ROLE_PROTECTED.
    """
    service = RoleAdminService(db, settings.admin_role_name)
    return await service.update_role(role_id, data)


@router.delete(
    "/{role_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(RequirePermission("roles", "delete"))],
)
async def delete_role(role_id: UUID, db: AsyncSession = Depends(get_db)):
    """Delete a role together with all of its grants."""
    service = RoleAdminService(db, settings.admin_role_name)
    await service.delete_role(role_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
