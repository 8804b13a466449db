# src/edushield/auth/principal.py
from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Mapping

from edushield.common.enums import Role
from edushield.common.errors import UnknownRoleError, ValidationError


@dataclass(frozen=True)
class Principal:
    """The caller of a request, as asserted by a verified token."""

    user_id: uuid.UUID
    role: Role


def parse_role(raw: Any) -> Role:
    if isinstance(raw, Role):
        return raw
    for role in Role:
        if isinstance(raw, str) and raw.strip().lower() == role.value.lower():
            return role
    raise UnknownRoleError(raw)


def principal_from_claims(claims: Mapping[str, Any]) -> Principal:
    """
    Build a Principal from already-verified token claims.

    ``sub`` must be the user id (UUID) and ``role`` one of the known roles.
    """
    sub = claims.get("sub")
    if not sub:
        raise ValidationError("token has no subject", field="sub")
    try:
        user_id = sub if isinstance(sub, uuid.UUID) else uuid.UUID(str(sub))
    except ValueError as exc:
        raise ValidationError(f"subject is not a user id: {sub!r}", field="sub") from exc
    return Principal(user_id=user_id, role=parse_role(claims.get("role")))
