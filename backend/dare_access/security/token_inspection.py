from typing import Any, Dict

import jwt

from ..config import settings


class InvalidTokenError(Exception):
    """Raised when a token cannot be parsed or is malformed."""


class ExpiredTokenError(Exception):
    """Raised when a token has expired."""


def _parse_token_payload(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise ExpiredTokenError from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidTokenError from exc


def validate_access_token(token: str) -> Dict[str, Any]:
    """Decode an access token issued by the authentication service.

    The payload must carry a string ``sub`` and a string ``role``.
    """
    payload = _parse_token_payload(token)

    subject = payload.get("sub")
    if not isinstance(subject, str) or not subject:
        raise InvalidTokenError()

    role = payload.get("role")
    if not isinstance(role, str) or not role:
        raise InvalidTokenError()

    return payload
