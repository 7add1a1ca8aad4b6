"""Service layer for the permission catalog."""
import logging
import uuid

from fastapi import FastAPI
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ...authz.route_sources import routes_from_app
from ...authz.startup import CatalogReport, synchronize_catalog
from ...crud.permission import PermissionRepository
from ...crud.role import RoleRepository
from ...errors import ConflictError, NotFoundError
from ...models.permission import Permission
from ...schemas.permission import PermissionCreate, PermissionUpdate

logger = logging.getLogger("dare_access.catalog")


class PermissionCatalogService:
    def __init__(self, session: AsyncSession, admin_role_name: str, api_prefix: str = "/api"):
        self.session = session
        self.admin_role_name = admin_role_name
        self.api_prefix = api_prefix
        self.permission_repo = PermissionRepository(session)
        self.role_repo = RoleRepository(session)

    async def list_permissions(self) -> list[Permission]:
        return await self.permission_repo.list_all()

    async def resources_and_actions(self) -> tuple[list[str], list[str]]:
        return await self.permission_repo.list_resources_and_actions()

    async def create_permission(self, data: PermissionCreate) -> Permission:
        """Catalog a token by hand; the administrator is granted it in the same transaction."""
        if await self.permission_repo.get_by_token(data.resource, data.action) is not None:
            raise ConflictError(f"Permission already exists: {data.resource}:{data.action}")

        try:
            permission = await self.permission_repo.create(
                resource=data.resource,
                action=data.action,
                description=data.description,
            )
            admin_role_id = await self.role_repo.get_role_id(self.admin_role_name)
            if admin_role_id is not None:
                await self.role_repo.grant_if_missing(admin_role_id, data.resource, data.action)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError(
                f"Permission already exists: {data.resource}:{data.action}"
            ) from exc

        logger.info("Cataloged permission %s", permission.key)
        return permission

    async def update_description(self, permission_id: uuid.UUID, data: PermissionUpdate) -> Permission:
        permission = await self.permission_repo.get_by_id(permission_id)
        if permission is None:
            raise NotFoundError("Permission not found")
        permission = await self.permission_repo.update_description(permission, data.description)
        await self.session.commit()
        return permission

    async def synchronize(self, app: FastAPI) -> CatalogReport:
        """On-demand catalog sync against the live route table."""
        routes = routes_from_app(app)
        try:
            report = await synchronize_catalog(
                self.session,
                routes,
                admin_role_name=self.admin_role_name,
                api_prefix=self.api_prefix,
            )
            await self.session.commit()
        except Exception:
            await self.session.rollback()
            raise
        return report
