from __future__ import annotations
from typing import Optional
from datetime import date, datetime
from decimal import Decimal
from uuid import UUID
from pydantic import Field
from edushield.common.enums import FeeType, PaymentStatus
from edushield.schemas.base import APIModel


class StudentFeeCreate(APIModel):
    student_id: UUID
    fee_type: FeeType
    term: str = Field(..., min_length=1, max_length=50)
    total_amount: Decimal = Field(..., gt=0)
    due_date: date
    notes: Optional[str] = None


class StudentFeeOut(APIModel):
    id: UUID
    student_id: UUID
    fee_type: FeeType
    term: str
    total_amount: Decimal
    amount_paid: Decimal
    amount_due: Decimal
    fine_amount: Decimal
    payment_status: PaymentStatus
    due_date: date
    last_payment_date: Optional[datetime] = None
    notes: Optional[str] = None


class PaymentRequest(APIModel):
    amount: Decimal


class PaymentResult(APIModel):
    fee_id: UUID
    amount_paid: Decimal
    new_amount_due: Decimal
    new_payment_status: PaymentStatus
    payment_date: datetime
