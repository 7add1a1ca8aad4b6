import logging

import pytest
from sqlalchemy import func, select

from dare_access.authz.introspection import Route
from dare_access.authz.service import AuthorizationService, DecisionReason
from dare_access.authz.synchronizer import PermissionSynchronizer
from dare_access.crud.permission import PermissionRepository
from dare_access.crud.role import RoleRepository
from dare_access.models import Permission, RolePermission
from dare_access.security.principal import Principal

ROUTES = [
    Route("GET", "/api/mentors"),
    Route("POST", "/api/mentors"),
    Route("GET", "/api/mentors/{mentor_id}"),
    Route("POST", "/api/auth/login"),
    Route("GET", "/health"),
]


async def _create_admin(session):
    role = await RoleRepository(session).create(
        name="admin",
        display_name="Administrator",
        is_system=True,
        is_editable=False,
    )
    await session.commit()
    return role


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.anyio
async def test_sync_catalogs_and_grants_admin(session) -> None:
    admin = await _create_admin(session)

    result = await PermissionSynchronizer(session, "admin").sync(ROUTES)
    await session.commit()

    assert result.routes_seen == len(ROUTES)
    assert result.permissions_added == 3
    assert result.grants_added == 3
    assert await PermissionRepository(session).list_keys() == {
        "mentors:list",
        "mentors:create",
        "mentors:view",
    }
    assert await RoleRepository(session).list_grant_keys(admin.id) == {
        "mentors:list",
        "mentors:create",
        "mentors:view",
    }


@pytest.mark.anyio
async def test_sync_is_idempotent(session) -> None:
    await _create_admin(session)
    synchronizer = PermissionSynchronizer(session, "admin")

    await synchronizer.sync(ROUTES)
    await session.commit()
    permissions_before = await _count(session, Permission)
    grants_before = await _count(session, RolePermission)

    second = await synchronizer.sync(ROUTES)
    await session.commit()

    assert second.permissions_added == 0
    assert second.grants_added == 0
    assert await _count(session, Permission) == permissions_before
    assert await _count(session, RolePermission) == grants_before


@pytest.mark.anyio
async def test_sync_sets_readable_description(session) -> None:
    await _create_admin(session)

    await PermissionSynchronizer(session, "admin").sync([Route("GET", "/api/youth-profiles")])
    await session.commit()

    permission = await PermissionRepository(session).get_by_token("youth_profiles", "list")
    assert permission is not None
    assert permission.description == "list youth profiles"


@pytest.mark.anyio
async def test_sync_never_touches_existing_rows(session) -> None:
    admin = await _create_admin(session)
    await PermissionRepository(session).create("mentors", "list", description="Custom text")
    await PermissionRepository(session).create("legacy", "view")
    await session.commit()

    await PermissionSynchronizer(session, "admin").sync(ROUTES)
    await session.commit()

    repo = PermissionRepository(session)
    assert (await repo.get_by_token("mentors", "list")).description == "Custom text"
    assert await repo.get_by_token("legacy", "view") is not None
    # Pre-existing catalog rows are left for the bootstrap to grant
    assert "mentors:list" not in await RoleRepository(session).list_grant_keys(admin.id)


@pytest.mark.anyio
async def test_sync_without_admin_role_skips_grants(session, caplog: pytest.LogCaptureFixture) -> None:
    with caplog.at_level(logging.WARNING, logger="dare_access.authz.sync"):
        result = await PermissionSynchronizer(session, "admin").sync(ROUTES)
    await session.commit()

    assert result.permissions_added == 3
    assert result.grants_added == 0
    assert await _count(session, RolePermission) == 0
    assert any("Admin role 'admin' not found" in record.getMessage() for record in caplog.records)


@pytest.mark.anyio
async def test_concurrent_insert_is_treated_as_existing(session, monkeypatch: pytest.MonkeyPatch) -> None:
    admin = await _create_admin(session)
    await PermissionRepository(session).create("mentors", "list")
    await session.commit()

    synchronizer = PermissionSynchronizer(session, "admin")

    # Stale snapshot: another writer cataloged mentors:list after it was taken
    async def stale_keys() -> set[str]:
        return set()

    monkeypatch.setattr(synchronizer.permission_repo, "list_keys", stale_keys)

    result = await synchronizer.sync([Route("GET", "/api/mentors")])
    await session.commit()

    assert result.permissions_added == 0
    assert result.grants_added == 1
    assert await _count(session, Permission) == 1
    assert await RoleRepository(session).list_grant_keys(admin.id) == {"mentors:list"}


@pytest.mark.anyio
async def test_mentor_scenario(session) -> None:
    admin = await _create_admin(session)
    role_repo = RoleRepository(session)
    await role_repo.create(name="mentee", display_name="Mentee")
    await session.commit()

    await PermissionSynchronizer(session, "admin").sync(
        [Route("GET", "/api/mentors"), Route("POST", "/api/mentors")]
    )
    await session.commit()

    assert await PermissionRepository(session).list_keys() == {"mentors:list", "mentors:create"}
    assert await role_repo.list_grant_keys(admin.id) == {"mentors:list", "mentors:create"}

    service = AuthorizationService(role_repo, "admin")
    allowed = await service.authorize(Principal("u-1", "admin"), "mentors", "list")
    denied = await service.authorize(Principal("u-2", "mentee"), "mentors", "list")

    assert allowed.allowed
    assert not denied.allowed
    assert denied.reason is DecisionReason.PERMISSION_DENIED
