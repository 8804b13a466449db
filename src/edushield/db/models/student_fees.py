from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Optional

import sqlalchemy as sa
from sqlalchemy.orm import Mapped, mapped_column

from edushield.common.enums import FeeType, PaymentStatus
from edushield.db.base import Base, GUID, UUIDMixin


class StudentFee(UUIDMixin, Base):
    __tablename__ = "student_fees"

    student_id: Mapped[uuid.UUID] = mapped_column(
        GUID(), sa.ForeignKey("students.id", ondelete="CASCADE"), nullable=False, index=True
    )
    fee_type: Mapped[FeeType] = mapped_column(sa.Enum(FeeType, native_enum=False, length=32), nullable=False)
    term: Mapped[str] = mapped_column(sa.String(50), nullable=False)

    # All amounts are EncryptionCodec ciphertext.
    encrypted_total_amount: Mapped[str] = mapped_column(sa.Text, nullable=False)
    encrypted_amount_paid: Mapped[str] = mapped_column(sa.Text, nullable=False)
    encrypted_amount_due: Mapped[str] = mapped_column(sa.Text, nullable=False)
    encrypted_fine_amount: Mapped[str] = mapped_column(sa.Text, nullable=False)

    payment_status: Mapped[PaymentStatus] = mapped_column(
        sa.Enum(PaymentStatus, native_enum=False, length=32), nullable=False, default=PaymentStatus.PENDING
    )
    due_date: Mapped[date] = mapped_column(sa.Date, nullable=False)
    last_payment_date: Mapped[Optional[datetime]] = mapped_column(sa.DateTime(timezone=True))
    notes: Mapped[Optional[str]] = mapped_column(sa.Text)
