"""Late fee accrual for overdue installments"""

from datetime import date
from decimal import Decimal
from typing import Any, Iterable

from plotpay_engine.domain.models import InstallmentStatus
from plotpay_engine.domain.money import to_cents
from plotpay_engine.utils.date_utils import days_between

DAYS_PER_MONTH = Decimal(30)


def days_overdue(due_date: date, as_of: date) -> int:
    """Whole days past the due date, never negative"""
    return max(0, days_between(due_date, as_of))


def compute_late_fee(amount_cents: int, days: int, monthly_rate: Decimal) -> int:
    """
    Late fee = (amount x monthly_rate / 30) x days overdue, rounded to the minor unit.

    Example:
        100,000 overdue 15 days at 2% / month -> (100,000 x 0.02 / 30) x 15 = 1,000
    """
    if days <= 0 or amount_cents <= 0:
        return 0
    return to_cents(Decimal(amount_cents) * Decimal(monthly_rate) * Decimal(days) / DAYS_PER_MONTH)


def is_past_due(installment: Any, as_of: date) -> bool:
    return installment.status == InstallmentStatus.PENDING.value and installment.due_date < as_of


def accrue(installments: Iterable[Any], as_of: date, monthly_rate: Decimal) -> int:
    """
    Set late_fee_cents on every overdue installment and return their sum.

    Fees are recomputed from the due date each run, so repeated sweeps on the
    same day are idempotent.
    """
    total = 0
    for installment in installments:
        if installment.status != InstallmentStatus.OVERDUE.value:
            continue
        fee = compute_late_fee(installment.amount_cents, days_overdue(installment.due_date, as_of), monthly_rate)
        installment.late_fee_cents = fee
        total += fee
    return total
