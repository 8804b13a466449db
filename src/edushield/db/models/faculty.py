from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from edushield.db.base import Base, GUID, UUIDMixin


class Faculty(UUIDMixin, Base):
    __tablename__ = "faculty"

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )
    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False, index=True)
    department: Mapped[Optional[str]] = mapped_column(sa.String(100))

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
