# src/edushield/services/fee_calculator.py
"""Late-fee and payment-status arithmetic for student fees."""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from typing import Optional

from edushield.common.enums import PaymentStatus

BASE_LATE_FEE = Decimal("100")
DAILY_LATE_FEE = Decimal("10")
MAX_LATE_FEE = Decimal("500")

ZERO = Decimal("0")


def days_overdue(due_date: date, today: Optional[date] = None) -> int:
    today = today or date.today()
    return max((today - due_date).days, 0)


def late_fee(due_date: date, today: Optional[date] = None) -> Decimal:
    """Flat charge on the first late day, then a daily charge, capped."""
    days = days_overdue(due_date, today)
    if days == 0:
        return ZERO
    return min(BASE_LATE_FEE + DAILY_LATE_FEE * days, MAX_LATE_FEE)


def amount_due(total: Decimal, paid: Decimal, fine: Decimal) -> Decimal:
    return max(total + fine - paid, ZERO)


def payment_status(total: Decimal, paid: Decimal, fine: Decimal) -> PaymentStatus:
    if paid >= total + fine:
        return PaymentStatus.PAID
    if paid > 0:
        return PaymentStatus.PARTIAL
    if fine > 0:
        return PaymentStatus.OVERDUE
    return PaymentStatus.PENDING
