import uuid

from sqlalchemy import exists, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.permission import Permission
from ..models.role import Role
from ..models.role_permission import RolePermission
from .permission import insert_for


class RoleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(
        self,
        name: str,
        display_name: str,
        description: str | None = None,
        is_system: bool = False,
        is_editable: bool = True,
        is_active: bool = True,
    ) -> Role:
        role = Role(
            name=name,
            display_name=display_name,
            description=description,
            is_system=is_system,
            is_editable=is_editable,
            is_active=is_active,
        )
        self.session.add(role)
        await self.session.flush()
        await self.session.refresh(role)
        return role

    async def get_by_id(self, role_id: uuid.UUID) -> Role | None:
        return await self.session.get(Role, role_id)

    async def get_by_name(self, name: str) -> Role | None:
        result = await self.session.execute(
            select(Role).where(Role.name == name)
        )
        return result.scalar_one_or_none()

    async def get_role_id(self, name: str) -> uuid.UUID | None:
        result = await self.session.execute(
            select(Role.id).where(Role.name == name)
        )
        return result.scalar_one_or_none()

    async def list_all(self, include_inactive: bool = False) -> list[Role]:
        query = select(Role).order_by(Role.name)
        if not include_inactive:
            query = query.where(Role.is_active)
        result = await self.session.execute(query)
        return list(result.scalars().all())

    async def update(self, role: Role) -> Role:
        await self.session.flush()
        await self.session.refresh(role)
        return role

    async def delete(self, role: Role) -> None:
        await self.session.delete(role)
        await self.session.flush()

    async def has_grant(self, role_id: uuid.UUID, resource: str, action: str) -> bool:
        result = await self.session.execute(
            select(
                exists().where(
                    RolePermission.role_id == role_id,
                    RolePermission.resource == resource,
                    RolePermission.action == action,
                )
            )
        )
        return bool(result.scalar())

    async def list_grants(self, role_id: uuid.UUID) -> list[RolePermission]:
        result = await self.session.execute(
            select(RolePermission)
            .where(RolePermission.role_id == role_id)
            .order_by(RolePermission.resource, RolePermission.action)
        )
        return list(result.scalars().all())

    async def list_grant_keys(self, role_id: uuid.UUID) -> set[str]:
        result = await self.session.execute(
            select(RolePermission.resource, RolePermission.action)
            .where(RolePermission.role_id == role_id)
        )
        return {f"{resource}:{action}" for resource, action in result.all()}

    async def list_missing_grants(self, role_id: uuid.UUID) -> list[Permission]:
        """Catalog entries the role does not hold."""
        granted = exists().where(
            RolePermission.role_id == role_id,
            RolePermission.resource == Permission.resource,
            RolePermission.action == Permission.action,
        )
        result = await self.session.execute(
            select(Permission)
            .where(~granted)
            .order_by(Permission.resource, Permission.action)
        )
        return list(result.scalars().all())

    async def grant(self, role_id: uuid.UUID, resource: str, action: str) -> RolePermission:
        role_permission = RolePermission(role_id=role_id, resource=resource, action=action)
        self.session.add(role_permission)
        await self.session.flush()
        await self.session.refresh(role_permission)
        return role_permission

    async def grant_if_missing(self, role_id: uuid.UUID, resource: str, action: str) -> bool:
        insert = insert_for(self.session)
        stmt = (
            insert(RolePermission)
            .values(id=uuid.uuid4(), role_id=role_id, resource=resource, action=action)
            .on_conflict_do_nothing(index_elements=["role_id", "resource", "action"])
            .returning(RolePermission.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def revoke(self, role_id: uuid.UUID, resource: str, action: str) -> bool:
        result = await self.session.execute(
            select(RolePermission).where(
                RolePermission.role_id == role_id,
                RolePermission.resource == resource,
                RolePermission.action == action,
            )
        )
        role_permission = result.scalar_one_or_none()
        if role_permission is None:
            return False
        await self.session.delete(role_permission)
        await self.session.flush()
        return True
