import uuid

from sqlalchemy import select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from ..models.permission import Permission


def insert_for(session: AsyncSession):
    bind = session.get_bind()
    dialect = bind.dialect.name if bind is not None else "postgresql"
    if dialect == "sqlite":
        return sqlite_insert
    return pg_insert


class PermissionRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, resource: str, action: str, description: str | None = None) -> Permission:
        permission = Permission(resource=resource, action=action, description=description)
        self.session.add(permission)
        await self.session.flush()
        await self.session.refresh(permission)
        return permission

    async def insert_if_missing(self, resource: str, action: str, description: str | None = None) -> bool:
        """Insert a catalog entry unless (resource, action) already exists.

        Returns False when the unique constraint rejected the row, which
        covers a concurrent writer inserting the same token first.
        """
        insert = insert_for(self.session)
        stmt = (
            insert(Permission)
            .values(id=uuid.uuid4(), resource=resource, action=action, description=description)
            .on_conflict_do_nothing(index_elements=["resource", "action"])
            .returning(Permission.id)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def get_by_id(self, permission_id: uuid.UUID) -> Permission | None:
        return await self.session.get(Permission, permission_id)

    async def get_by_token(self, resource: str, action: str) -> Permission | None:
        result = await self.session.execute(
            select(Permission).where(
                Permission.resource == resource,
                Permission.action == action,
            )
        )
        return result.scalar_one_or_none()

    async def list_all(self) -> list[Permission]:
        result = await self.session.execute(
            select(Permission).order_by(Permission.resource, Permission.action)
        )
        return list(result.scalars().all())

    async def list_keys(self) -> set[str]:
        result = await self.session.execute(select(Permission.resource, Permission.action))
        return {f"{resource}:{action}" for resource, action in result.all()}

    async def list_by_resource(self, resource: str) -> list[Permission]:
        result = await self.session.execute(
            select(Permission)
            .where(Permission.resource == resource)
            .order_by(Permission.action)
        )
        return list(result.scalars().all())

    async def list_resources_and_actions(self) -> tuple[list[str], list[str]]:
        resources = await self.session.execute(
            select(Permission.resource).distinct().order_by(Permission.resource)
        )
        actions = await self.session.execute(
            select(Permission.action).distinct().order_by(Permission.action)
        )
        return list(resources.scalars().all()), list(actions.scalars().all())

    async def update_description(self, permission: Permission, description: str | None) -> Permission:
        permission.description = description
        await self.session.flush()
        await self.session.refresh(permission)
        return permission
