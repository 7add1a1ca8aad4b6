"""
Input adapters feeding ``(method, path)`` pairs to the route introspector.

Two sources yield the same ``Route`` shape:

- ``routes_from_app`` walks the live FastAPI route table.
- ``scan_route_files`` statically scans route-definition modules for
  ``.get("/path")``-style registrations. Used when no application instance is
  available (maintenance scripts).
"""
from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Iterator, Sequence
from pathlib import Path

from fastapi import FastAPI
from starlette.routing import BaseRoute, Mount, Route as StarletteRoute, WebSocketRoute

from .introspection import METHOD_ACTIONS, Route

logger = logging.getLogger("dare_access.authz.sync")

ROUTE_SOURCE_LIVE = "live"
ROUTE_SOURCE_STATIC = "static"

_METHOD_CALL = re.compile(
    r"\.(get|post|put|patch|delete)\(\s*(['\"])([^'\"]*)\2",
    re.IGNORECASE,
)
_ROUTER_PREFIX = re.compile(r"APIRouter\([^)]*?prefix\s*=\s*(['\"])([^'\"]*)\1", re.DOTALL)


def join_paths(*parts: str) -> str:
    pieces = [part.strip("/") for part in parts if part and part.strip("/")]
    return "/" + "/".join(pieces)


def _included_router(route: BaseRoute) -> tuple[Sequence[BaseRoute], str] | None:
    # FastAPI releases that keep ``include_router`` lazy store one entry per
    # included router; older releases flatten its routes into the parent.
    original_router = getattr(route, "original_router", None)
    include_context = getattr(route, "include_context", None)
    if original_router is None or include_context is None:
        return None
    return original_router.routes, getattr(include_context, "prefix", "")


def walk_routes(routes: Iterable[BaseRoute], base_path: str = "") -> Iterator[tuple[str, StarletteRoute]]:
    """Yield ``(full_path, route)`` for every HTTP route, descending into mounts and included routers."""
    for route in routes:
        if isinstance(route, Mount):
            yield from walk_routes(route.routes, join_paths(base_path, route.path))
        elif isinstance(route, StarletteRoute):
            yield join_paths(base_path, route.path), route
        elif isinstance(route, WebSocketRoute):
            continue
        else:
            included = _included_router(route)
            if included is None:
                logger.warning(
                    "Skipping route entry of unsupported type %s under %r",
                    type(route).__name__,
                    base_path or "/",
                )
                continue
            child_routes, prefix = included
            yield from walk_routes(child_routes, join_paths(base_path, prefix))


def routes_from_app(app: FastAPI) -> list[Route]:
    """Enumerate every registered HTTP operation of a live application."""
    routes: list[Route] = []
    for path, route in walk_routes(app.routes):
        for method in sorted(route.methods or ()):
            if method.upper() in METHOD_ACTIONS:
                routes.append(Route(method.upper(), path))
    return routes


def _is_test_module(path: Path) -> bool:
    return path.name.startswith("test_") or path.stem.endswith("_test")


def scan_source(content: str, api_prefix: str = "/api") -> list[Route]:
    """Extract routes from the text of one route-definition module."""
    prefix_match = _ROUTER_PREFIX.search(content)
    router_prefix = prefix_match.group(2) if prefix_match else ""

    routes: list[Route] = []
    for match in _METHOD_CALL.finditer(content):
        method, route_path = match.group(1).upper(), match.group(3)
        if route_path and not route_path.startswith("/"):
            # Relative literals without a leading slash are not route paths
            continue
        routes.append(Route(method, join_paths(api_prefix, router_prefix, route_path)))
    return routes


def scan_route_files(directory: str | Path, api_prefix: str = "/api") -> list[Route]:
    """Scan ``*.py`` files under ``directory`` for route registrations."""
    root = Path(directory)
    if not root.is_dir():
        raise FileNotFoundError(f"Routes directory does not exist: {root}")

    routes: list[Route] = []
    for path in sorted(root.rglob("*.py")):
        if _is_test_module(path):
            continue
        found = scan_source(path.read_text(encoding="utf-8"), api_prefix)
        if found:
            logger.debug("Found %d routes in %s", len(found), path)
        routes.extend(found)
    return routes


def collect_routes(
    source: str,
    *,
    app: FastAPI | None = None,
    directory: str | Path | None = None,
    api_prefix: str = "/api",
) -> list[Route]:
    if source == ROUTE_SOURCE_LIVE:
        if app is None:
            raise ValueError("Live route introspection requires an application")
        return routes_from_app(app)
    if source == ROUTE_SOURCE_STATIC:
        if directory is None:
            raise ValueError("Static route scanning requires a directory")
        return scan_route_files(directory, api_prefix)
    raise ValueError(f"Unknown route source: {source!r}")
