import uuid

import pytest
from fastapi import FastAPI
from sqlalchemy import func, select

from dare_access.authz.route_sources import routes_from_app
from dare_access.authz.startup import synchronize_catalog
from dare_access.crud.permission import PermissionRepository
from dare_access.crud.role import RoleRepository
from dare_access.main import create_app
from dare_access.models import RolePermission
from tests.authz_helpers import auth_headers, client_for, override_db

ADMIN = auth_headers("admin")


@pytest.fixture
async def app(session_factory) -> FastAPI:
    app = create_app()
    override_db(app, session_factory)
    async with session_factory() as session:
        await synchronize_catalog(session, routes_from_app(app), admin_role_name="admin")
        await session.commit()
    return app


async def _create_role(client, name: str) -> dict:
    response = await client.post(
        "/api/roles",
        json={"name": name, "display_name": name.title()},
        headers=ADMIN,
    )
    assert response.status_code == 201, response.text
    return response.json()


@pytest.mark.anyio
async def test_catalog_contains_admin_surface(app: FastAPI, session_factory) -> None:
    async with session_factory() as session:
        keys = await PermissionRepository(session).list_keys()

    assert {
        "permissions:manage",
        "permissions:edit",
        "permissions:create",
        "permissions:list",
        "permissions:view",
        "permissions:delete",
        "roles:manage",
        "roles:view",
        "roles:edit",
        "roles:delete",
    } <= keys


@pytest.mark.anyio
async def test_role_lifecycle_and_cascade(app: FastAPI, session_factory) -> None:
    async with client_for(app) as client:
        role = await _create_role(client, "coordinator")
        assert role["is_system"] is False

        granted = await client.post(
            "/api/role-permissions/coordinator",
            json={"resource": "roles", "action": "view"},
            headers=ADMIN,
        )
        assert granted.status_code == 201

        as_coordinator = auth_headers("coordinator")
        allowed = await client.get(f"/api/roles/{role['id']}", headers=as_coordinator)
        assert allowed.status_code == 200
        assert allowed.json()["name"] == "coordinator"

        not_granted = await client.get("/api/roles", headers=as_coordinator)
        assert not_granted.status_code == 403
        assert not_granted.json()["error"]["code"] == "PERMISSION_DENIED"

        deleted = await client.delete(f"/api/roles/{role['id']}", headers=ADMIN)
        assert deleted.status_code == 204

        after_delete = await client.get(f"/api/roles/{role['id']}", headers=as_coordinator)
        assert after_delete.status_code == 403
        assert after_delete.json()["error"]["code"] == "UNKNOWN_ROLE"

    async with session_factory() as session:
        orphaned = await session.execute(
            select(func.count()).select_from(RolePermission).where(
                RolePermission.role_id == uuid.UUID(role["id"])
            )
        )
        assert orphaned.scalar_one() == 0


@pytest.mark.anyio
async def test_duplicate_role_is_conflict(app: FastAPI) -> None:
    async with client_for(app) as client:
        await _create_role(client, "mentee")
        response = await client.post(
            "/api/roles",
            json={"name": "mentee", "display_name": "Again"},
            headers=ADMIN,
        )

    assert response.status_code == 409
    assert response.json()["error"]["code"] == "CONFLICT_ERROR"


@pytest.mark.anyio
async def test_role_update(app: FastAPI) -> None:
    async with client_for(app) as client:
        role = await _create_role(client, "mentor")
        response = await client.patch(
            f"/api/roles/{role['id']}",
            json={"display_name": "Senior Mentor", "is_active": False},
            headers=ADMIN,
        )
        listed = await client.get("/api/roles", params={"include_inactive": True}, headers=ADMIN)

    assert response.status_code == 200
    assert response.json()["display_name"] == "Senior Mentor"
    assert response.json()["is_active"] is False
    assert "mentor" in {item["name"] for item in listed.json()}


@pytest.mark.anyio
@pytest.mark.parametrize("payload", [{"display_name": None}, {"is_active": None}])
async def test_role_update_rejects_null_for_required_fields(app: FastAPI, payload: dict) -> None:
    async with client_for(app) as client:
        role = await _create_role(client, "trainer")
        response = await client.patch(f"/api/roles/{role['id']}", json=payload, headers=ADMIN)
        unchanged = await client.get(f"/api/roles/{role['id']}", headers=ADMIN)

    assert response.status_code == 422
    assert response.json()["error"]["code"] == "VALIDATION_ERROR"
    assert unchanged.json()["display_name"] == "Trainer"
    assert unchanged.json()["is_active"] is True


@pytest.mark.anyio
async def test_role_update_clears_description(app: FastAPI) -> None:
    async with client_for(app) as client:
        created = await client.post(
            "/api/roles",
            json={"name": "reviewer", "display_name": "Reviewer", "description": "Reviews reports"},
            headers=ADMIN,
        )
        response = await client.patch(
            f"/api/roles/{created.json()['id']}",
            json={"description": None},
            headers=ADMIN,
        )

    assert response.status_code == 200
    assert response.json()["description"] is None
    assert response.json()["display_name"] == "Reviewer"


@pytest.mark.anyio
async def test_system_role_is_protected(app: FastAPI, session_factory) -> None:
    async with session_factory() as session:
        admin_role = await RoleRepository(session).get_by_name("admin")

    async with client_for(app) as client:
        deleted = await client.delete(f"/api/roles/{admin_role.id}", headers=ADMIN)
        edited = await client.patch(
            f"/api/roles/{admin_role.id}",
            json={"display_name": "Renamed"},
            headers=ADMIN,
        )
        revoked = await client.delete("/api/role-permissions/admin/roles/view", headers=ADMIN)

    for response in (deleted, edited, revoked):
        assert response.status_code == 403
        assert response.json()["error"]["code"] == "SYSTEM_ROLE_PROTECTED"

    async with session_factory() as session:
        role_repo = RoleRepository(session)
        assert await role_repo.get_by_name("admin") is not None
        assert "roles:view" in await role_repo.list_grant_keys(admin_role.id)


@pytest.mark.anyio
async def test_grant_validation(app: FastAPI) -> None:
    async with client_for(app) as client:
        await _create_role(client, "mentee")
        unknown_token = await client.post(
            "/api/role-permissions/mentee",
            json={"resource": "rockets", "action": "launch"},
            headers=ADMIN,
        )
        unknown_role = await client.post(
            "/api/role-permissions/ghost",
            json={"resource": "roles", "action": "view"},
            headers=ADMIN,
        )
        first = await client.post(
            "/api/role-permissions/mentee",
            json={"resource": "roles", "action": "view"},
            headers=ADMIN,
        )
        duplicate = await client.post(
            "/api/role-permissions/mentee",
            json={"resource": "roles", "action": "view"},
            headers=ADMIN,
        )
        malformed = await client.post(
            "/api/role-permissions/mentee",
            json={"resource": "roles:view", "action": "view"},
            headers=ADMIN,
        )

    assert unknown_token.status_code == 404
    assert unknown_role.status_code == 404
    assert first.status_code == 201
    assert duplicate.status_code == 409
    assert malformed.status_code == 422
    assert malformed.json()["error"]["code"] == "VALIDATION_ERROR"


@pytest.mark.anyio
async def test_revoke_grant(app: FastAPI) -> None:
    async with client_for(app) as client:
        await _create_role(client, "mentee")
        await client.post(
            "/api/role-permissions/mentee",
            json={"resource": "roles", "action": "view"},
            headers=ADMIN,
        )
        revoked = await client.delete("/api/role-permissions/mentee/roles/view", headers=ADMIN)
        again = await client.delete("/api/role-permissions/mentee/roles/view", headers=ADMIN)
        grants = await client.get("/api/role-permissions/mentee", headers=ADMIN)

    assert revoked.status_code == 204
    assert again.status_code == 404
    assert grants.json() == []


@pytest.mark.anyio
async def test_manual_permission_is_granted_to_admin(app: FastAPI) -> None:
    async with client_for(app) as client:
        created = await client.post(
            "/api/permissions",
            json={"resource": "exports", "action": "run", "description": "Run exports"},
            headers=ADMIN,
        )
        duplicate = await client.post(
            "/api/permissions",
            json={"resource": "exports", "action": "run"},
            headers=ADMIN,
        )
        admin_grants = await client.get("/api/role-permissions/admin", headers=ADMIN)
        updated = await client.patch(
            f"/api/permissions/{created.json()['id']}",
            json={"description": "Run CSV exports"},
            headers=ADMIN,
        )

    assert created.status_code == 201
    assert duplicate.status_code == 409
    assert ("exports", "run") in {(g["resource"], g["action"]) for g in admin_grants.json()}
    assert updated.status_code == 200
    assert updated.json()["description"] == "Run CSV exports"
    assert updated.json()["resource"] == "exports"


@pytest.mark.anyio
async def test_resources_and_actions(app: FastAPI) -> None:
    async with client_for(app) as client:
        response = await client.get("/api/role-permissions", headers=ADMIN)

    body = response.json()
    assert response.status_code == 200
    assert {"permissions", "roles", "mentors"} <= set(body["resources"])
    assert {"list", "view", "manage"} <= set(body["actions"])


@pytest.mark.anyio
async def test_on_demand_sync_is_idempotent(app: FastAPI) -> None:
    async with client_for(app) as client:
        response = await client.post("/api/permissions/sync", headers=ADMIN)

    body = response.json()
    assert response.status_code == 200
    assert body["routes_seen"] > 0
    assert body["permissions_added"] == 0
    assert body["grants_added"] == 0
    assert body["admin_role_created"] is False


@pytest.mark.anyio
async def test_health_is_not_gated(app: FastAPI) -> None:
    async with client_for(app) as client:
        response = await client.get("/health")

    assert response.status_code in {200, 503}
    assert "error" not in response.json()
