"""
Request gate for protected endpoints.

Handlers declare the token they require:

    @router.get("/{mentor_id}", dependencies=[Depends(RequirePermission("mentors", "view"))])

On deny the request is terminated with the canonical error envelope (401 or
403) before the handler runs. Store failures deny with 503.
"""
from __future__ import annotations

import logging

from fastapi import Depends, Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..crud.role import RoleRepository
from ..dependencies import get_current_principal, get_db
from ..errors import (
    AppError,
    AuthError,
    PermissionDeniedError,
    StoreUnavailableError,
    UnknownRoleError,
)
from ..security.principal import Principal
from .introspection import PermissionToken
from .service import AuthorizationDecision, AuthorizationService, DecisionReason

logger = logging.getLogger("dare_access.authz")


def _deny_error(decision: AuthorizationDecision) -> AppError:
    details = {"resource": decision.resource, "action": decision.action}
    if decision.reason is DecisionReason.UNAUTHENTICATED:
        return AuthError(decision.message)
    if decision.reason is DecisionReason.UNKNOWN_ROLE:
        return UnknownRoleError(decision.message, details={**details, "role": decision.role})
    return PermissionDeniedError(decision.message, details=details)


class RequirePermission:
    """Dependency enforcing one ``(resource, action)`` token."""

    def __init__(self, resource: str, action: str):
        self.resource = resource
        self.action = action

    @property
    def token(self) -> PermissionToken:
        return PermissionToken(self.resource, self.action)

    def __repr__(self) -> str:
        return f"RequirePermission({self.resource!r}, {self.action!r})"

    async def __call__(
        self,
        request: Request,
        principal: Principal | None = Depends(get_current_principal),
        db: AsyncSession = Depends(get_db),
    ) -> Principal:
        service = AuthorizationService(RoleRepository(db), settings.admin_role_name)
        try:
            decision = await service.authorize(principal, self.resource, self.action)
        except SQLAlchemyError as exc:
            # Fail closed: no store, no access
            logger.error(
                "Authorization store failure for %s:%s on %s %s: %s",
                self.resource,
                self.action,
                request.method,
                request.url.path,
                exc,
            )
            raise StoreUnavailableError(
                details={"resource": self.resource, "action": self.action}
            ) from exc

        if decision.allowed:
            logger.debug(
                "Authorization allowed (%s) for %s on %s %s",
                decision.reason.value,
                decision.permission_key,
                request.method,
                request.url.path,
            )
            return principal  # type: ignore[return-value]

        logger.warning(
            "Authorization denied: reason=%s role=%s required=%s method=%s path=%s",
            decision.reason.value,
            decision.role or "n/a",
            decision.permission_key,
            request.method,
            request.url.path,
            extra=decision.as_log_fields(),
        )
        raise _deny_error(decision)
