"""
Admin API endpoints for role/permission grants.

Roles are addressed by name here, matching the ``role`` claim carried in
access tokens.
"""
from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...authz.dependencies import RequirePermission
from ...config import settings
from ...dependencies import get_db
from ...schemas.permission import GrantRequest, GrantResponse, ResourcesActionsResponse
from ...services.admin.catalog_service import PermissionCatalogService
from ...services.admin.role_service import RoleAdminService

router = APIRouter(prefix="/role-permissions", tags=["admin-role-permissions"])


# Declared before "/{role_name}" so the bare path is not captured as a role
@router.get(
    "",
    response_model=ResourcesActionsResponse,
    dependencies=[Depends(RequirePermission("permissions", "list"))],
)
async def list_resources_and_actions(db: AsyncSession = Depends(get_db)):
    """Distinct cataloged resources and actions, for building grant forms."""
    service = PermissionCatalogService(db, settings.admin_role_name, settings.api_prefix)
    resources, actions = await service.resources_and_actions()
    return ResourcesActionsResponse(resources=resources, actions=actions)


@router.get(
    "/{role_name}",
    response_model=list[GrantResponse],
    dependencies=[Depends(RequirePermission("permissions", "view"))],
)
async def list_role_grants(role_name: str, db: AsyncSession = Depends(get_db)):
    service = RoleAdminService(db, settings.admin_role_name)
    return await service.list_grants(role_name)


@router.post(
    "/{role_name}",
    response_model=GrantResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(RequirePermission("permissions", "create"))],
)
async def grant_permission(
    role_name: str,
    data: GrantRequest,
    db: AsyncSession = Depends(get_db),
):
    """Grant a cataloged token to a role. Unknown tokens are 404, duplicates 409."""
    service = RoleAdminService(db, settings.admin_role_name)
    return await service.grant(role_name, data.resource, data.action)


@router.delete(
    "/{role_name}/{resource}/{action}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=[Depends(RequirePermission("permissions", "delete"))],
)
async def revoke_permission(
    role_name: str,
    resource: str,
    action: str,
    db: AsyncSession = Depends(get_db),
):
    service = RoleAdminService(db, settings.admin_role_name)
    await service.revoke(role_name, resource, action)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
