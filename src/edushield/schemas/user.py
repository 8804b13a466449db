from __future__ import annotations
from typing import Optional
from uuid import UUID
from edushield.common.enums import Role
from edushield.schemas.base import APIModel


class UserOut(APIModel):
    id: UUID
    email: str
    full_name: str
    role: Role
    is_active: bool


class UserPatch(APIModel):
    email: Optional[str] = None
    full_name: Optional[str] = None
    role: Optional[Role] = None
