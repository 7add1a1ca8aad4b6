"""
Permission catalog synchronization.

Reconciles the tokens implied by the registered API routes with the
permissions table. Missing tokens are cataloged and granted to the
administrator role. Existing rows are never modified or removed.
"""
from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from ..crud.permission import PermissionRepository
from ..crud.role import RoleRepository
from .introspection import Route, derive_token, describe_token

logger = logging.getLogger("dare_access.authz.sync")


@dataclass(frozen=True)
class SyncResult:
    routes_seen: int
    permissions_added: int
    grants_added: int = 0


class PermissionSynchronizer:
    def __init__(self, session: AsyncSession, admin_role_name: str, api_prefix: str = "/api"):
        self.session = session
        self.admin_role_name = admin_role_name
        self.api_prefix = api_prefix
        self.permission_repo = PermissionRepository(session)
        self.role_repo = RoleRepository(session)

    async def sync(self, routes: Iterable[Route]) -> SyncResult:
        """Catalog every token derived from ``routes`` and grant it to the admin role.

        Idempotent: with an unchanged route set the second run writes nothing.
        The caller owns the transaction.
        """
        routes = list(routes)
        existing = await self.permission_repo.list_keys()

        admin_role_id = await self.role_repo.get_role_id(self.admin_role_name)
        if admin_role_id is None:
            logger.warning(
                "Admin role %r not found; new permissions will not be granted until bootstrap",
                self.admin_role_name,
            )

        permissions_added = 0
        grants_added = 0
        for route in routes:
            token = derive_token(route, self.api_prefix)
            if token is None or token.key in existing:
                continue
            existing.add(token.key)

            inserted = await self.permission_repo.insert_if_missing(
                token.resource, token.action, describe_token(token)
            )
            if inserted:
                permissions_added += 1
                logger.info(
                    "Added permission %s from route %s %s",
                    token.key,
                    route.method,
                    route.path,
                )
            else:
                # Another writer cataloged it after our snapshot was taken
                logger.debug("Permission %s already cataloged concurrently", token.key)

            if admin_role_id is not None:
                if await self.role_repo.grant_if_missing(admin_role_id, token.resource, token.action):
                    grants_added += 1
                    logger.info("Granted permission %s to %s", token.key, self.admin_role_name)

        result = SyncResult(
            routes_seen=len(routes),
            permissions_added=permissions_added,
            grants_added=grants_added,
        )
        logger.info(
            "Permission sync finished: routes_seen=%d permissions_added=%d grants_added=%d",
            result.routes_seen,
            result.permissions_added,
            result.grants_added,
        )
        return result
