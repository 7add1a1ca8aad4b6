"""
Admin API endpoints for the permission catalog.

Tokens are normally cataloged by the startup synchronizer; these endpoints
cover manual additions, description edits and an on-demand re-sync.
"""
from uuid import UUID

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from ...authz.dependencies import RequirePermission
from ...config import settings
from ...dependencies import get_db
from ...schemas.permission import (
    PermissionCreate,
    PermissionResponse,
    PermissionUpdate,
    SyncResponse,
)
from ...services.admin.catalog_service import PermissionCatalogService

router = APIRouter(prefix="/permissions", tags=["admin-permissions"])


def _service(db: AsyncSession) -> PermissionCatalogService:
    return PermissionCatalogService(db, settings.admin_role_name, settings.api_prefix)


@router.get(
    "",
    response_model=list[PermissionResponse],
    dependencies=[Depends(RequirePermission("permissions", "manage"))],
)
async def list_permissions(db: AsyncSession = Depends(get_db)):
    return await _service(db).list_permissions()


@router.post(
    "",
    response_model=PermissionResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(RequirePermission("permissions", "manage"))],
)
async def create_permission(data: PermissionCreate, db: AsyncSession = Depends(get_db)):
    """
    Catalog a permission token by hand.

    The administrator role is granted the new token immediately.
    """
    return await _service(db).create_permission(data)


@router.patch(
    "/{permission_id}",
    response_model=PermissionResponse,
    dependencies=[Depends(RequirePermission("permissions", "edit"))],
)
async def update_permission(
    permission_id: UUID,
    data: PermissionUpdate,
    db: AsyncSession = Depends(get_db),
):
    return await _service(db).update_description(permission_id, data)


@router.post(
    "/sync",
    response_model=SyncResponse,
    dependencies=[Depends(RequirePermission("permissions", "create"))],
)
async def sync_permissions(request: Request, db: AsyncSession = Depends(get_db)):
    """Re-run catalog synchronization and administrator repair against the live routes."""
    report = await _service(db).synchronize(request.app)
    return SyncResponse(**report.as_dict())
