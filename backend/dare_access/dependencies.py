from collections.abc import AsyncGenerator

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from .database import get_session
from .errors import AuthError
from .security.principal import Principal
from .security.token_inspection import ExpiredTokenError, InvalidTokenError, validate_access_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    async for session in get_session():
        yield session


async def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> Principal | None:
    """Resolve the caller from the bearer token, or None when no token was sent.

    A token that is present but unusable is rejected outright.
    """
    if credentials is None:
        return None
    if credentials.scheme.lower() != "bearer":
        raise AuthError("Not authenticated")

    try:
        payload = validate_access_token(credentials.credentials)
    except ExpiredTokenError:
        raise AuthError("Token has expired") from None
    except InvalidTokenError:
        raise AuthError("Invalid token") from None

    return Principal.from_payload(payload)
