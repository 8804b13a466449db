from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from edushield.common.enums import ExamType
from edushield.db.base import Base, GUID, UUIDMixin


class StudentPerformance(UUIDMixin, Base):
    __tablename__ = "student_performances"

    student_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    subject: Mapped[str] = mapped_column(sa.String(100), nullable=False, index=True)
    exam_type: Mapped[ExamType] = mapped_column(sa.Enum(ExamType, native_enum=False, length=32), nullable=False)
    exam_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    # Ciphertext produced by EncryptionCodec; never plaintext.
    encrypted_score: Mapped[str] = mapped_column(sa.Text, nullable=False)
    max_score: Mapped[Optional[Decimal]] = mapped_column(sa.Numeric(10, 2))
    exam_title: Mapped[Optional[str]] = mapped_column(sa.String(200))
    comments: Mapped[Optional[str]] = mapped_column(sa.Text)
