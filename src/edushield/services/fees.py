# src/edushield/services/fees.py
from __future__ import annotations

import uuid
from datetime import date
from decimal import Decimal
from typing import List, Optional

import sqlalchemy as sa
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from edushield.app_logger import get_logger
from edushield.common.enums import PaymentStatus
from edushield.common.errors import NotFoundError, ValidationError
from edushield.db.base import utcnow
from edushield.db.models import Student, StudentFee
from edushield.schemas.fee import PaymentRequest, PaymentResult, StudentFeeCreate, StudentFeeOut
from edushield.security.codec import EncryptionCodec
from edushield.services import fee_calculator as calc

log = get_logger("fees")


class StudentFeeService:
    """Student fees; every amount column holds codec ciphertext."""

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], codec: EncryptionCodec):
        self._sessionmaker = sessionmaker
        self._codec = codec

    def _to_out(self, fee: StudentFee) -> StudentFeeOut:
        return StudentFeeOut(
            id=fee.id,
            student_id=fee.student_id,
            fee_type=fee.fee_type,
            term=fee.term,
            total_amount=self._codec.decode(fee.encrypted_total_amount),
            amount_paid=self._codec.decode(fee.encrypted_amount_paid),
            amount_due=self._codec.decode(fee.encrypted_amount_due),
            fine_amount=self._codec.decode(fee.encrypted_fine_amount),
            payment_status=fee.payment_status,
            due_date=fee.due_date,
            last_payment_date=fee.last_payment_date,
            notes=fee.notes,
        )

    def _recalculate(self, fee: StudentFee, fine: Decimal) -> None:
        total = self._codec.decode(fee.encrypted_total_amount)
        paid = self._codec.decode(fee.encrypted_amount_paid)
        fee.encrypted_fine_amount = self._codec.encode(fine)
        fee.encrypted_amount_due = self._codec.encode(calc.amount_due(total, paid, fine))
        fee.payment_status = calc.payment_status(total, paid, fine)

    @staticmethod
    async def _require(session: AsyncSession, fee_id: uuid.UUID) -> StudentFee:
        fee = await session.get(StudentFee, fee_id)
        if fee is None:
            raise NotFoundError("StudentFee", id=fee_id)
        return fee

    async def create(self, data: StudentFeeCreate, today: Optional[date] = None) -> StudentFeeOut:
        today = today or date.today()
        if data.due_date <= today:
            raise ValidationError("Due date must be in the future", field="due_date")
        async with self._sessionmaker() as session, session.begin():
            if await session.get(Student, data.student_id) is None:
                raise NotFoundError("Student", student_id=data.student_id)
            fee = StudentFee(
                student_id=data.student_id,
                fee_type=data.fee_type,
                term=data.term,
                due_date=data.due_date,
                notes=data.notes,
                encrypted_total_amount=self._codec.encode(data.total_amount),
                encrypted_amount_paid=self._codec.encode(calc.ZERO),
                encrypted_amount_due=self._codec.encode(data.total_amount),
                encrypted_fine_amount=self._codec.encode(calc.ZERO),
                payment_status=PaymentStatus.PENDING,
            )
            session.add(fee)
            await session.flush()
            out = self._to_out(fee)
        log.info("created %s fee %s for student %s", out.fee_type.value, out.id, out.student_id)
        return out

    async def get_by_id(self, fee_id: uuid.UUID) -> Optional[StudentFeeOut]:
        async with self._sessionmaker() as session:
            fee = await session.get(StudentFee, fee_id)
            return self._to_out(fee) if fee else None

    async def list_for_student(self, student_id: uuid.UUID) -> List[StudentFeeOut]:
        stmt = sa.select(StudentFee).where(StudentFee.student_id == student_id).order_by(StudentFee.due_date)
        async with self._sessionmaker() as session:
            return [self._to_out(f) for f in (await session.execute(stmt)).scalars()]

    async def record_payment(self, fee_id: uuid.UUID, request: PaymentRequest) -> PaymentResult:
        if request.amount <= 0:
            raise ValidationError("Payment amount must be greater than zero", field="amount")
        async with self._sessionmaker() as session, session.begin():
            fee = await self._require(session, fee_id)
            due = self._codec.decode(fee.encrypted_amount_due)
            if request.amount > due:
                raise ValidationError("Payment amount cannot exceed the amount due", field="amount")

            paid = self._codec.decode(fee.encrypted_amount_paid) + request.amount
            fee.encrypted_amount_paid = self._codec.encode(paid)
            fee.last_payment_date = utcnow()
            self._recalculate(fee, self._codec.decode(fee.encrypted_fine_amount))
            await session.flush()

            result = PaymentResult(
                fee_id=fee.id,
                amount_paid=request.amount,
                new_amount_due=self._codec.decode(fee.encrypted_amount_due),
                new_payment_status=fee.payment_status,
                payment_date=fee.last_payment_date,
            )
        log.info("payment of %s recorded for fee %s", request.amount, fee_id)
        return result

    async def apply_fine(self, fee_id: uuid.UUID, today: Optional[date] = None) -> StudentFeeOut:
        """Set the late fee owed as of *today* and recompute due amount and status."""
        async with self._sessionmaker() as session, session.begin():
            fee = await self._require(session, fee_id)
            if fee.payment_status is not PaymentStatus.PAID:
                self._recalculate(fee, calc.late_fee(fee.due_date, today))
                await session.flush()
            out = self._to_out(fee)
        return out

    async def update_late_fees(self, today: Optional[date] = None) -> int:
        """Refresh the fine on every unpaid overdue fee; returns how many changed."""
        today = today or date.today()
        stmt = sa.select(StudentFee).where(
            StudentFee.due_date < today, StudentFee.payment_status != PaymentStatus.PAID
        )
        updated = 0
        async with self._sessionmaker() as session, session.begin():
            for fee in (await session.execute(stmt)).scalars():
                fine = calc.late_fee(fee.due_date, today)
                if fine != self._codec.decode(fee.encrypted_fine_amount):
                    self._recalculate(fee, fine)
                    updated += 1
        log.info("updated late fees on %d overdue fee record(s)", updated)
        return updated
