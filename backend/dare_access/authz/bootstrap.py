"""
Administrator bootstrap and repair.

Runs after catalog synchronization and converges on the same invariant from
an independent direction: the administrator role exists, the baseline
tokens are cataloged, and the administrator holds every cataloged token.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Final

from sqlalchemy.ext.asyncio import AsyncSession

from ..crud.permission import PermissionRepository
from ..crud.role import RoleRepository
from ..models.role import Role
from .introspection import PermissionToken, describe_token

logger = logging.getLogger("dare_access.authz.bootstrap")

CRUD_ACTIONS: Final[tuple[str, ...]] = ("list", "view", "create", "edit", "delete")

CORE_RECORD_RESOURCES: Final[tuple[str, ...]] = (
    "users",
    "youth_profiles",
    "businesses",
    "business_tracking",
    "mentors",
    "mentorship",
    "makerspaces",
    "training",
    "skills",
    "reports",
)

# Protected even when route discovery has not run or missed a route
BASELINE_PERMISSIONS: Final[tuple[PermissionToken, ...]] = (
    *(
        PermissionToken(resource, action)
        for resource in CORE_RECORD_RESOURCES
        for action in CRUD_ACTIONS
    ),
    PermissionToken("roles", "manage"),
    PermissionToken("roles", "view"),
    PermissionToken("roles", "edit"),
    PermissionToken("roles", "delete"),
    PermissionToken("permissions", "manage"),
    PermissionToken("permissions", "list"),
    PermissionToken("permissions", "view"),
    PermissionToken("permissions", "create"),
    PermissionToken("permissions", "edit"),
    PermissionToken("permissions", "delete"),
    PermissionToken("dashboard", "view"),
    PermissionToken("activities", "view"),
    PermissionToken("system", "manage"),
)


@dataclass(frozen=True)
class BootstrapResult:
    role_created: bool
    permissions_added: int
    grants_added: int


class AdminBootstrap:
    def __init__(
        self,
        session: AsyncSession,
        admin_role_name: str,
        baseline: tuple[PermissionToken, ...] = BASELINE_PERMISSIONS,
    ):
        self.session = session
        self.admin_role_name = admin_role_name
        self.baseline = baseline
        self.permission_repo = PermissionRepository(session)
        self.role_repo = RoleRepository(session)

    async def ensure_admin_role(self) -> tuple[Role, bool]:
        role = await self.role_repo.get_by_name(self.admin_role_name)
        if role is None:
            role = await self.role_repo.create(
                name=self.admin_role_name,
                display_name="Administrator",
                description="System administrator with full access to all features",
                is_system=True,
                is_editable=False,
                is_active=True,
            )
            logger.info("Created admin role %r with id %s", role.name, role.id)
            return role, True

        if not (role.is_system and role.is_active) or role.is_editable:
            logger.warning("Admin role %r had drifted flags; restoring them", role.name)
            role.is_system = True
            role.is_editable = False
            role.is_active = True
            role = await self.role_repo.update(role)
        return role, False

    async def ensure_baseline_permissions(self) -> int:
        existing = await self.permission_repo.list_keys()
        added = 0
        for token in self.baseline:
            if token.key in existing:
                continue
            if await self.permission_repo.insert_if_missing(
                token.resource, token.action, describe_token(token)
            ):
                added += 1
                logger.info("Added baseline permission %s", token.key)
            existing.add(token.key)
        return added

    async def grant_full_catalog(self, role: Role) -> int:
        missing = await self.role_repo.list_missing_grants(role.id)
        granted = 0
        for permission in missing:
            if await self.role_repo.grant_if_missing(role.id, permission.resource, permission.action):
                granted += 1
        if granted:
            logger.info("Granted %d missing permissions to %s", granted, role.name)
        return granted

    async def run(self) -> BootstrapResult:
        role, created = await self.ensure_admin_role()
        permissions_added = await self.ensure_baseline_permissions()
        grants_added = await self.grant_full_catalog(role)

        result = BootstrapResult(
            role_created=created,
            permissions_added=permissions_added,
            grants_added=grants_added,
        )
        logger.info(
            "Admin bootstrap finished: role_created=%s permissions_added=%d grants_added=%d",
            result.role_created,
            result.permissions_added,
            result.grants_added,
        )
        return result
