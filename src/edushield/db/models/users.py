from __future__ import annotations

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from edushield.common.enums import Role
from edushield.db.base import Base, UUIDMixin


class User(UUIDMixin, Base):
    """Login identity; a principal's ``user_id`` is this row's id."""

    __tablename__ = "users"

    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False, index=True)
    full_name: Mapped[str] = mapped_column(sa.String(255), nullable=False, default="")
    role: Mapped[Role] = mapped_column(sa.Enum(Role, native_enum=False, length=32), nullable=False, index=True)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
