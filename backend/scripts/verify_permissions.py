"""
Report the permission catalog and check administrator coverage.

Prints token counts per resource and grant counts per role, and exits with
status 1 when the administrator role is missing or lacks any cataloged token.

Usage:
    python -m scripts.verify_permissions
"""
import asyncio
import os
import sys
from collections import Counter

# Add parent directory to path to import app modules
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dare_access.config import get_settings
from dare_access.crud.permission import PermissionRepository
from dare_access.crud.role import RoleRepository
from dare_access.database import AsyncSessionLocal, engine


async def verify_permissions() -> int:
    config = get_settings()
    async with AsyncSessionLocal() as session:
        permission_repo = PermissionRepository(session)
        role_repo = RoleRepository(session)

        permissions = await permission_repo.list_all()
        print(f"Cataloged permissions: {len(permissions)}")
        for resource, count in sorted(Counter(p.resource for p in permissions).items()):
            print(f"  {resource}: {count}")

        print("\nGrants by role:")
        for role in await role_repo.list_all(include_inactive=True):
            grants = await role_repo.list_grant_keys(role.id)
            flags = " (system)" if role.is_system else ""
            print(f"  {role.name}{flags}: {len(grants)}")

        admin_role = await role_repo.get_by_name(config.admin_role_name)
        if admin_role is None:
            print(f"\nERROR: administrator role '{config.admin_role_name}' does not exist")
            exit_code = 1
        else:
            missing = await role_repo.list_missing_grants(admin_role.id)
            if missing:
                print(f"\nERROR: '{admin_role.name}' is missing {len(missing)} permissions:")
                for permission in missing:
                    print(f"  {permission.key}")
                exit_code = 1
            else:
                print(f"\n'{admin_role.name}' holds every cataloged permission")
                exit_code = 0

    await engine.dispose()
    return exit_code


if __name__ == "__main__":
    sys.exit(asyncio.run(verify_permissions()))
