"""
Per-request authorization decisions.

``AuthorizationService.authorize`` is the only place that grants the
administrator role unconditional access. Every other role needs an explicit
grant for the exact ``(resource, action)`` token. Any ambiguity denies.
"""
from __future__ import annotations

import uuid
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from ..security.principal import Principal


class DecisionReason(str, Enum):
    ADMIN_BYPASS = "ADMIN_BYPASS"
    GRANTED = "GRANTED"
    UNAUTHENTICATED = "UNAUTHENTICATED"
    UNKNOWN_ROLE = "UNKNOWN_ROLE"
    PERMISSION_DENIED = "PERMISSION_DENIED"


class GrantStore(Protocol):
    async def get_role_id(self, name: str) -> uuid.UUID | None:
        ...

    async def has_grant(self, role_id: uuid.UUID, resource: str, action: str) -> bool:
        ...


@dataclass(frozen=True)
class AuthorizationDecision:
    allowed: bool
    reason: DecisionReason
    resource: str
    action: str
    role: str | None = None
    message: str = ""

    @property
    def permission_key(self) -> str:
        return f"{self.resource}:{self.action}"

    def as_log_fields(self) -> dict[str, Any]:
        return {
            "authz_allowed": self.allowed,
            "authz_reason": self.reason.value,
            "authz_role": self.role,
            "authz_permission": self.permission_key,
        }


class AuthorizationService:
    def __init__(self, grant_store: GrantStore, admin_role_name: str):
        self.grant_store = grant_store
        self.admin_role_name = admin_role_name

    async def authorize(
        self,
        principal: Principal | None,
        resource: str,
        action: str,
    ) -> AuthorizationDecision:
        """Decide whether ``principal`` may perform ``action`` on ``resource``.

        Performs at most two point reads: role lookup, then grant lookup.
        Store errors propagate so the caller can fail closed.
        """
        if principal is None:
            return AuthorizationDecision(
                allowed=False,
                reason=DecisionReason.UNAUTHENTICATED,
                resource=resource,
                action=action,
                message="Authentication required",
            )

        role_name = principal.role
        if role_name == self.admin_role_name:
            return AuthorizationDecision(
                allowed=True,
                reason=DecisionReason.ADMIN_BYPASS,
                resource=resource,
                action=action,
                role=role_name,
            )

        role_id = await self.grant_store.get_role_id(role_name)
        if role_id is None:
            return AuthorizationDecision(
                allowed=False,
                reason=DecisionReason.UNKNOWN_ROLE,
                resource=resource,
                action=action,
                role=role_name,
                message=f"Role not recognized: {role_name}",
            )

        if await self.grant_store.has_grant(role_id, resource, action):
            return AuthorizationDecision(
                allowed=True,
                reason=DecisionReason.GRANTED,
                resource=resource,
                action=action,
                role=role_name,
            )

        return AuthorizationDecision(
            allowed=False,
            reason=DecisionReason.PERMISSION_DENIED,
            resource=resource,
            action=action,
            role=role_name,
            message=f"Insufficient permission: {resource}:{action} required",
        )
