from __future__ import annotations

import uuid
from datetime import datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from edushield.db.base import Base, GUID, TimestampMixin, utcnow


class StudentFaculty(TimestampMixin, Base):
    """Faculty <-> student link. Deactivation flips ``is_active``; rows are kept."""

    __tablename__ = "student_faculty"

    faculty_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), sa.ForeignKey("faculty.id", ondelete="CASCADE"), primary_key=True
    )
    student_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), sa.ForeignKey("students.id", ondelete="CASCADE"), primary_key=True, index=True
    )
    assigned_date: Mapped[datetime] = mapped_column(sa.DateTime(timezone=True), nullable=False, default=utcnow)
    is_active: Mapped[bool] = mapped_column(sa.Boolean, nullable=False, default=True)
    subject: Mapped[Optional[str]] = mapped_column(sa.String(100))
    academic_year: Mapped[Optional[str]] = mapped_column(sa.String(20))
    semester: Mapped[Optional[str]] = mapped_column(sa.String(20))
    notes: Mapped[Optional[str]] = mapped_column(sa.String(500))
