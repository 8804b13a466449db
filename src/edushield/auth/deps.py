# src/edushield/auth/deps.py
from __future__ import annotations

from typing import Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt

from edushield.app_logger import get_logger
from edushield.auth.access import AccessResolver, Decision
from edushield.auth.principal import Principal, principal_from_claims
from edushield.common.errors import UnknownRoleError, ValidationError
from edushield.core.config import settings

log = get_logger("auth.deps")

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token", auto_error=False)


class AuthError(HTTPException):
    def __init__(self, detail: str, code: int = status.HTTP_401_UNAUTHORIZED):
        super().__init__(status_code=code, detail=detail, headers={"WWW-Authenticate": "Bearer"})


def _decode_jwt(token: str) -> dict:
    return jwt.decode(token, settings.ENCRYPTION_SECRET, algorithms=[settings.JWT_ALGORITHM])


async def get_principal(token: Optional[str] = Depends(oauth2_scheme)) -> Principal:
    if not token:
        raise AuthError("Not authenticated")
    try:
        claims = _decode_jwt(token)
    except ExpiredSignatureError:
        raise AuthError("Token expired")
    except JWTError as e:
        log.debug("JWT decode failed: %s", e)
        raise AuthError("Invalid token")

    try:
        return principal_from_claims(claims)
    except UnknownRoleError as e:
        log.warning("token carries unknown role: %r", e.role)
        raise AuthError("Unknown role", code=status.HTTP_403_FORBIDDEN)
    except ValidationError as e:
        raise AuthError(e.message)


def require_allowed(decision: Decision) -> None:
    """Map a denial to HTTP 403; the denial itself was already audited."""
    if not decision.allowed:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def get_access_resolver() -> AccessResolver:
    # Imported here so that importing auth does not pull in the ORM layer.
    from edushield.db import get_sessionmaker
    from edushield.services.relationships import SqlRelationshipGraph

    return AccessResolver(SqlRelationshipGraph(get_sessionmaker()))


__all__ = ["AuthError", "get_principal", "require_allowed", "get_access_resolver", "oauth2_scheme"]
