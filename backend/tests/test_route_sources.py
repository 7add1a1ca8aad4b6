import logging
from pathlib import Path

import pytest
from fastapi import APIRouter, FastAPI
from starlette.routing import BaseRoute

from dare_access.authz.introspection import Route
from dare_access.authz.route_sources import (
    collect_routes,
    join_paths,
    routes_from_app,
    scan_route_files,
    scan_source,
    walk_routes,
)
from dare_access.main import create_app


def _build_app() -> FastAPI:
    app = FastAPI()
    router = APIRouter(prefix="/api/mentors")

    @router.get("")
    async def list_mentors():
        return []

    @router.api_route("/{mentor_id}", methods=["GET", "PATCH"])
    async def mentor(mentor_id: int):
        return {}

    app.include_router(router)

    @app.get("/health")
    async def health():
        return {}

    return app


def test_routes_from_app_lists_one_route_per_method() -> None:
    routes = routes_from_app(_build_app())

    assert Route("GET", "/api/mentors") in routes
    assert Route("GET", "/api/mentors/{mentor_id}") in routes
    assert Route("PATCH", "/api/mentors/{mentor_id}") in routes
    assert Route("GET", "/health") in routes
    # FastAPI's docs routes are plain GETs as well; no HEAD/OPTIONS are yielded
    assert all(route.method in {"GET", "POST", "PUT", "PATCH", "DELETE"} for route in routes)


def test_scan_source_applies_router_prefix() -> None:
    content = '''
router = APIRouter(prefix="/youth-profiles", tags=["youth"])

@router.get("")
async def list_profiles(): ...

@router.post('/')
async def create_profile(): ...

@router.delete("/{profile_id}")
async def delete_profile(profile_id: int): ...

value = os.environ.get("NOT_A_ROUTE")
'''
    assert scan_source(content) == [
        Route("GET", "/api/youth-profiles"),
        Route("POST", "/api/youth-profiles"),
        Route("DELETE", "/api/youth-profiles/{profile_id}"),
    ]


def test_scan_route_files_skips_test_modules(tmp_path: Path) -> None:
    (tmp_path / "mentors.py").write_text('router.get("/mentors")\nrouter.post("/mentors")\n')
    nested = tmp_path / "nested"
    nested.mkdir()
    (nested / "reports.py").write_text('router.get("/reports")\n')
    (tmp_path / "test_mentors.py").write_text('client.get("/secret")\n')
    (tmp_path / "mentors_test.py").write_text('client.get("/secret")\n')

    routes = scan_route_files(tmp_path)

    assert routes == [
        Route("GET", "/api/mentors"),
        Route("POST", "/api/mentors"),
        Route("GET", "/api/reports"),
    ]


def test_scan_route_files_requires_directory(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        scan_route_files(tmp_path / "missing")


def test_collect_routes_selects_adapter(tmp_path: Path) -> None:
    (tmp_path / "mentors.py").write_text('router.get("/mentors")\n')

    static = collect_routes("static", directory=tmp_path)
    live = collect_routes("live", app=_build_app())

    assert static == [Route("GET", "/api/mentors")]
    assert Route("GET", "/api/mentors") in live
    with pytest.raises(ValueError):
        collect_routes("live")
    with pytest.raises(ValueError):
        collect_routes("static")
    with pytest.raises(ValueError):
        collect_routes("remote", app=_build_app())


def test_join_paths() -> None:
    assert join_paths("/api", "", "/mentors/") == "/api/mentors"
    assert join_paths("", "") == "/"


def test_routes_from_app_descends_into_nested_routers() -> None:
    app = FastAPI()
    outer = APIRouter(prefix="/api")
    inner = APIRouter(prefix="/diagnostics")

    @inner.get("")
    async def list_diagnostics():
        return []

    @inner.delete("/{diagnostic_id}")
    async def delete_diagnostic(diagnostic_id: int):
        return None

    outer.include_router(inner)
    app.include_router(outer, prefix="/v1")

    routes = routes_from_app(app)

    assert Route("GET", "/v1/api/diagnostics") in routes
    assert Route("DELETE", "/v1/api/diagnostics/{diagnostic_id}") in routes


def test_routes_from_app_covers_the_application_surface() -> None:
    routes = routes_from_app(create_app())

    assert Route("GET", "/health") in routes
    assert Route("GET", "/api/roles") in routes
    assert Route("POST", "/api/permissions/sync") in routes


def test_walk_routes_warns_on_unknown_entries(caplog: pytest.LogCaptureFixture) -> None:
    class OpaqueRoute(BaseRoute):
        pass

    with caplog.at_level(logging.WARNING, logger="dare_access.authz.sync"):
        assert list(walk_routes([OpaqueRoute()])) == []

    assert "OpaqueRoute" in caplog.text
