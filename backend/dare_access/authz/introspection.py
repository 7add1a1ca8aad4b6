"""
Route introspection: translate API operations into permission tokens.

Every registered ``(method, path)`` pair maps to at most one
``(resource, action)`` token. This is the single place that decides what a
permission token means, so the catalog synchronizer and the endpoint gates
must both go through ``derive_token``.
"""
from __future__ import annotations

import re
from types import MappingProxyType
from typing import Final, Mapping, NamedTuple


class Route(NamedTuple):
    method: str
    path: str


class PermissionToken(NamedTuple):
    resource: str
    action: str

    @property
    def key(self) -> str:
        return f"{self.resource}:{self.action}"

    @classmethod
    def from_key(cls, key: str) -> "PermissionToken":
        resource, sep, action = key.partition(":")
        if not sep or not resource or not action:
            raise ValueError(f"Invalid permission key: {key!r}")
        return cls(resource, action)


# URL segment -> canonical resource name. Unknown segments pass through.
RESOURCE_ALIASES: Final[Mapping[str, str]] = MappingProxyType({
    "youth-profiles": "youth_profiles",
    "youth": "youth_profiles",
    "business-profiles": "businesses",
    "business-tracking": "business_tracking",
    "business-advice": "businesses",
    "mentor-businesses": "mentors",
    "mentorship-messages": "mentorship",
    "makerspaces": "makerspaces",
    "training-programs": "training",
    "service-categories": "skills",
    "service-subcategories": "skills",
    "skills": "skills",
    "uploads": "uploads",
    "roles": "roles",
    "role-permissions": "permissions",
    "users": "users",
    "permissions": "permissions",
    "admin": "system",
    "stats": "dashboard",
    "activities": "activities",
    "reports": "reports",
    "diagnostics": "diagnostics",
    "portfolio": "portfolio",
    "certificates": "certificates",
    "education": "education",
})

METHOD_ACTIONS: Final[Mapping[str, str]] = MappingProxyType({
    "GET": "view",
    "POST": "create",
    "PUT": "edit",
    "PATCH": "edit",
    "DELETE": "delete",
})

# Exact paths (relative to the API prefix) whose action ignores the method
SPECIAL_ACTIONS: Final[Mapping[str, str]] = MappingProxyType({
    "/roles": "manage",
    "/permissions": "manage",
    "/stats": "view",
    "/activities": "view",
    "/reports": "view",
})

AUTH_ONLY_SEGMENTS: Final[frozenset[str]] = frozenset({"login", "logout", "register"})

_PLACEHOLDER = re.compile(r"^(\{[^{}/]+\}|:[A-Za-z_][A-Za-z0-9_]*)$")
_IDENTIFIER_VALUE = re.compile(
    r"^(\d+|[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12})$"
)


def normalize_path(path: str) -> str:
    path = path.split("?", 1)[0].split("#", 1)[0]
    if not path.startswith("/"):
        path = "/" + path
    if len(path) > 1:
        path = path.rstrip("/") or "/"
    return path


def _relative_segments(path: str, api_prefix: str) -> list[str] | None:
    prefix = normalize_path(api_prefix)
    if prefix == "/":
        return [part for part in path.split("/") if part]
    if path != prefix and not path.startswith(prefix + "/"):
        return None
    return [part for part in path[len(prefix):].split("/") if part]


def is_parameter_segment(segment: str) -> bool:
    """True for ``{id}``, ``{id:int}``, ``:id`` and concrete id values (digits, UUID)."""
    return bool(_PLACEHOLDER.match(segment) or _IDENTIFIER_VALUE.match(segment))


def derive_token(route: Route, api_prefix: str = "/api") -> PermissionToken | None:
    method = route.method.upper()
    if method not in METHOD_ACTIONS:
        return None
    path = normalize_path(route.path)

    segments = _relative_segments(path, api_prefix)
    if not segments:
        return None
    if any(segment in AUTH_ONLY_SEGMENTS for segment in segments):
        return None

    segment = segments[0]
    if is_parameter_segment(segment):
        return None
    resource = RESOURCE_ALIASES.get(segment, segment)

    relative_path = "/" + "/".join(segments)
    action = SPECIAL_ACTIONS.get(relative_path)
    if action is None:
        action = METHOD_ACTIONS[method]
        if method == "GET" and not any(is_parameter_segment(part) for part in segments[1:]):
            action = "list"

    return PermissionToken(resource, action)


def derive_tokens(routes, api_prefix: str = "/api") -> list[PermissionToken]:
    """Derive unique tokens in order of first appearance."""
    seen: set[PermissionToken] = set()
    tokens: list[PermissionToken] = []
    for route in routes:
        token = derive_token(route, api_prefix)
        if token is None or token in seen:
            continue
        seen.add(token)
        tokens.append(token)
    return tokens


def describe_token(token: PermissionToken) -> str:
    return f"{token.action} {token.resource}".replace("_", " ")
