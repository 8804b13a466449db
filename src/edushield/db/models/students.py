from __future__ import annotations

import uuid
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from edushield.db.base import Base, GUID, UUIDMixin


class Student(UUIDMixin, Base):
    __tablename__ = "students"

    first_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(sa.String(100), nullable=False)
    email: Mapped[str] = mapped_column(sa.String(255), unique=True, nullable=False, index=True)
    roll_number: Mapped[str] = mapped_column(sa.String(64), unique=True, nullable=False, index=True)
    grade: Mapped[Optional[str]] = mapped_column(sa.String(32))
    section: Mapped[Optional[str]] = mapped_column(sa.String(32))

    # Login account of the student; a Student principal may act only on
    # records whose owner is itself.
    owner_user_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True
    )

    # Legacy single-guardian pointer. Mirrors the active primary row in
    # student_guardians; only GuardianAssignmentService writes it.
    primary_guardian_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        GUID(), sa.ForeignKey("guardians.id", ondelete="SET NULL"), nullable=True, index=True
    )

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()
