"""
Service layer for role and grant management.

Plain persistence operations, plus the two invariants the authorization
subsystem depends on:
- system roles (the administrator) are never deleted or edited here
- the administrator role never loses catalog coverage
"""
import logging
import uuid

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from ...crud.permission import PermissionRepository
from ...crud.role import RoleRepository
from ...errors import ConflictError, NotFoundError, SystemRoleError
from ...models.role import Role
from ...models.role_permission import RolePermission
from ...schemas.role import RoleCreate, RoleUpdate

logger = logging.getLogger("dare_access.roles")


class RoleAdminService:
    """Service for role CRUD and role/permission grants."""

    def __init__(self, session: AsyncSession, admin_role_name: str):
        self.session = session
        self.admin_role_name = admin_role_name
        self.role_repo = RoleRepository(session)
        self.permission_repo = PermissionRepository(session)

    async def list_roles(self, include_inactive: bool = False) -> list[Role]:
        return await self.role_repo.list_all(include_inactive=include_inactive)

    async def get_role(self, role_id: uuid.UUID) -> Role:
        role = await self.role_repo.get_by_id(role_id)
        if role is None:
            raise NotFoundError("Role not found")
        return role

    async def get_role_by_name(self, name: str) -> Role:
        role = await self.role_repo.get_by_name(name)
        if role is None:
            raise NotFoundError(f"Role not found: {name}")
        return role

    async def create_role(self, data: RoleCreate) -> Role:
        if await self.role_repo.get_by_name(data.name) is not None:
            raise ConflictError("Role with this name already exists")

        try:
            role = await self.role_repo.create(
                name=data.name,
                display_name=data.display_name,
                description=data.description,
                is_active=data.is_active,
            )
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("Role with this name already exists") from exc

        logger.info("Created role %r", role.name)
        return role

    async def update_role(self, role_id: uuid.UUID, data: RoleUpdate) -> Role:
        role = await self.get_role(role_id)
        if role.is_system or not role.is_editable:
            raise SystemRoleError("System roles cannot be edited")

        changes = data.model_dump(exclude_unset=True)
        for field, value in changes.items():
            setattr(role, field, value)
        role = await self.role_repo.update(role)
        await self.session.commit()
        logger.info("Updated role %r: %s", role.name, sorted(changes))
        return role

    async def delete_role(self, role_id: uuid.UUID) -> None:
        role = await self.get_role(role_id)
        if role.is_system:
            raise SystemRoleError("Cannot delete system roles")

        await self.role_repo.delete(role)
        await self.session.commit()
        logger.info("Deleted role %r and its grants", role.name)

    async def list_grants(self, role_name: str) -> list[RolePermission]:
        role = await self.get_role_by_name(role_name)
        return await self.role_repo.list_grants(role.id)

    async def grant(self, role_name: str, resource: str, action: str) -> RolePermission:
        role = await self.get_role_by_name(role_name)
        if await self.permission_repo.get_by_token(resource, action) is None:
            raise NotFoundError(f"Unknown permission: {resource}:{action}")
        if await self.role_repo.has_grant(role.id, resource, action):
            raise ConflictError("Permission already exists for this role")

        try:
            grant = await self.role_repo.grant(role.id, resource, action)
            await self.session.commit()
        except IntegrityError as exc:
            await self.session.rollback()
            raise ConflictError("Permission already exists for this role") from exc

        logger.info("Granted %s:%s to %r", resource, action, role.name)
        return grant

    async def revoke(self, role_name: str, resource: str, action: str) -> None:
        role = await self.get_role_by_name(role_name)
        if role.name == self.admin_role_name:
            raise SystemRoleError("Administrator permissions cannot be revoked")

        if not await self.role_repo.revoke(role.id, resource, action):
            raise NotFoundError("Permission does not exist for this role")
        await self.session.commit()
        logger.info("Revoked %s:%s from %r", resource, action, role.name)
