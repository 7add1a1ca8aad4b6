"""
Synchronize the permission catalog without starting the server.

Scans the route-definition modules under PERMISSION_ROUTES_DIR, catalogs any
missing permission tokens, then repairs the administrator role so it holds
every cataloged token. Safe to run repeatedly.

Usage:
    python -m scripts.sync_permissions
"""
import asyncio
import logging
import os
import sys

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dare_access.authz.route_sources import scan_route_files
from dare_access.authz.startup import synchronize_catalog
from dare_access.config import get_settings
from dare_access.database import AsyncSessionLocal, engine

logger = logging.getLogger("dare_access.authz.sync")


async def sync_permissions() -> int:
    config = get_settings()
    routes = scan_route_files(config.permission_routes_dir, config.api_prefix)
    print(f"Scanned {config.permission_routes_dir}: {len(routes)} routes")

    async with AsyncSessionLocal() as session:
        async with session.begin():
            report = await synchronize_catalog(
                session,
                routes,
                admin_role_name=config.admin_role_name,
                api_prefix=config.api_prefix,
            )

    summary = report.as_dict()
    print(f"  Permissions added: {summary['permissions_added']}")
    print(f"  Grants added:      {summary['grants_added']}")
    if summary["admin_role_created"]:
        print(f"  Created administrator role '{config.admin_role_name}'")
    await engine.dispose()
    return 0


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    sys.exit(asyncio.run(sync_permissions()))
