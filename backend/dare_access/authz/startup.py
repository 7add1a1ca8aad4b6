from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from fastapi import FastAPI
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..config import Settings
from ..errors import PermissionSyncError
from .bootstrap import AdminBootstrap, BootstrapResult
from .introspection import Route
from .route_sources import collect_routes
from .synchronizer import PermissionSynchronizer, SyncResult

logger = logging.getLogger("dare_access.authz")


@dataclass(frozen=True)
class CatalogReport:
    sync: SyncResult
    bootstrap: BootstrapResult

    def as_dict(self) -> dict[str, int | bool]:
        return {
            "routes_seen": self.sync.routes_seen,
            "permissions_added": self.sync.permissions_added + self.bootstrap.permissions_added,
            "grants_added": self.sync.grants_added + self.bootstrap.grants_added,
            "admin_role_created": self.bootstrap.role_created,
        }


async def synchronize_catalog(
    session: AsyncSession,
    routes: Iterable[Route],
    *,
    admin_role_name: str,
    api_prefix: str = "/api",
) -> CatalogReport:
    """Run the synchronizer, then the admin bootstrap, in the caller's transaction."""
    synchronizer = PermissionSynchronizer(session, admin_role_name, api_prefix)
    sync_result = await synchronizer.sync(routes)
    bootstrap_result = await AdminBootstrap(session, admin_role_name).run()
    return CatalogReport(sync=sync_result, bootstrap=bootstrap_result)


async def run_permission_startup(
    app: FastAPI,
    session_factory: async_sessionmaker[AsyncSession],
    config: Settings,
) -> CatalogReport | None:
    """Synchronize the catalog before the server accepts requests.

    Raises:
        PermissionSyncError: on any failure, so the lifespan aborts startup
    """
    if not config.sync_permissions_on_startup:
        logger.warning("Permission synchronization on startup is disabled")
        return None

    try:
        routes = collect_routes(
            config.permission_route_source,
            app=app,
            directory=config.permission_routes_dir,
            api_prefix=config.api_prefix,
        )
        logger.info(
            "Collected %d routes from %s source", len(routes), config.permission_route_source
        )
        async with session_factory() as session:
            async with session.begin():
                report = await synchronize_catalog(
                    session,
                    routes,
                    admin_role_name=config.admin_role_name,
                    api_prefix=config.api_prefix,
                )
    except (SQLAlchemyError, OSError, ValueError) as exc:
        logger.error("Permission synchronization failed: %s", exc)
        raise PermissionSyncError(f"Permission synchronization failed: {exc}") from exc

    logger.info("Permission catalog ready: %s", report.as_dict())
    return report
