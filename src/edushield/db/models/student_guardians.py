from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from edushield.db.base import Base, GUID, TimestampMixin, utcnow


class StudentGuardian(TimestampMixin, Base):
    """Guardian <-> student link. Removal is a hard delete."""

    __tablename__ = "student_guardians"
    __table_args__ = (
        # At most one active primary contact per student.
        sa.Index(
            "uq_student_guardians_active_primary",
            "student_id",
            unique=True,
            postgresql_where=sa.text("is_primary_contact AND is_active"),
            sqlite_where=sa.text("is_primary_contact = 1 AND is_active = 1"),
        ),
    )

    guardian_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), sa.ForeignKey("guardians.id", ondelete="CASCADE"), primary_key=True
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), sa.ForeignKey("students.id", ondelete="CASCADE"), primary_key=True, index=True
    )

    relationship_label: Mapped[str] = mapped_column(sa.String(50), nullable=False, default="Parent")
    is_primary_contact: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=False)
    is_authorized_pickup: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    is_emergency_contact: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
    assigned_date: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=utcnow)

    def make_primary_contact(self) -> None:
        self.is_primary_contact = True
        self.is_emergency_contact = True
        self.is_authorized_pickup = True

    @property
    def is_primary(self) -> bool:
        return self.is_active and self.is_primary_contact
