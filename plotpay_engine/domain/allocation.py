"""FIFO payment allocation over a schedule's open installments"""

from dataclasses import dataclass, field
from datetime import date
from typing import Any, Iterable, List

from plotpay_engine.domain.exceptions import InvalidAmountError, OverpaymentError
from plotpay_engine.domain.models import (
    OPEN_INSTALLMENT_STATUSES,
    BookingStatus,
    InstallmentStatus,
    ScheduleStatus,
)


@dataclass
class SplitRemainder:
    """Leftover of an installment that was split; persisted as a new installment"""

    source: Any
    amount_cents: int
    status: InstallmentStatus = InstallmentStatus.PENDING


@dataclass
class AllocationResult:
    amount_cents: int
    paid: List[Any] = field(default_factory=list)
    splits: List[SplitRemainder] = field(default_factory=list)
    unallocated_cents: int = 0


@dataclass
class ReopenResult:
    amount_cents: int
    reopened: List[Any] = field(default_factory=list)
    splits: List[SplitRemainder] = field(default_factory=list)
    unreopened_cents: int = 0


def _due_order(installment: Any):
    return (installment.due_date, installment.sequence or 0)


def ensure_payable(amount_cents: int, pending_cents: int) -> None:
    """
    Raises:
        InvalidAmountError: amount is zero or negative
        OverpaymentError: amount exceeds what remains owed
    """
    if amount_cents is None or amount_cents <= 0:
        raise InvalidAmountError("Payment amount must be greater than zero")
    if amount_cents > pending_cents:
        raise OverpaymentError(amount_cents, pending_cents)


def allocate_fifo(installments: Iterable[Any], amount_cents: int, paid_on: date) -> AllocationResult:
    """
    Apply a payment to open installments, oldest due date first.

    - Covers the whole installment: mark it paid
    - Covers part of it: shrink it to the paid part, mark it paid, and emit a
      pending remainder with the same due date and type
    Installments are mutated in place; remainders are returned for persistence.
    """
    if amount_cents <= 0:
        raise InvalidAmountError("Payment amount must be greater than zero")

    open_installments = sorted(
        (inst for inst in installments if inst.status in OPEN_INSTALLMENT_STATUSES),
        key=_due_order,
    )

    result = AllocationResult(amount_cents=amount_cents)
    remaining = amount_cents
    for installment in open_installments:
        if remaining == 0:
            break

        if remaining >= installment.amount_cents:
            remaining -= installment.amount_cents
        else:
            result.splits.append(SplitRemainder(source=installment, amount_cents=installment.amount_cents - remaining))
            installment.amount_cents = remaining
            remaining = 0

        installment.status = InstallmentStatus.PAID.value
        installment.paid_date = paid_on
        result.paid.append(installment)

    result.unallocated_cents = remaining
    return result


def reopen_lifo(installments: Iterable[Any], amount_cents: int) -> ReopenResult:
    """
    Undo allocation for a refund, most recently due paid installment first.

    A partially refunded installment keeps its still-paid part and a pending
    remainder is emitted for the refunded part.
    """
    if amount_cents <= 0:
        raise InvalidAmountError("Refund amount must be greater than zero")

    paid_installments = sorted(
        (inst for inst in installments if inst.status == InstallmentStatus.PAID.value),
        key=_due_order,
        reverse=True,
    )

    result = ReopenResult(amount_cents=amount_cents)
    remaining = amount_cents
    for installment in paid_installments:
        if remaining == 0:
            break

        if remaining >= installment.amount_cents:
            installment.status = InstallmentStatus.PENDING.value
            installment.paid_date = None
            remaining -= installment.amount_cents
            result.reopened.append(installment)
        else:
            installment.amount_cents -= remaining
            result.splits.append(SplitRemainder(source=installment, amount_cents=remaining))
            remaining = 0

    result.unreopened_cents = remaining
    return result


def apply_to_schedule(schedule: Any, delta_cents: int) -> None:
    """Move paid/pending by a signed delta and update completion"""
    schedule.paid_amount_cents += delta_cents
    schedule.pending_amount_cents = schedule.total_amount_cents - schedule.paid_amount_cents

    if schedule.pending_amount_cents <= 0:
        schedule.status = ScheduleStatus.COMPLETED.value
    elif schedule.status == ScheduleStatus.COMPLETED.value:
        schedule.status = ScheduleStatus.ACTIVE.value


def apply_to_booking(booking: Any, delta_cents: int) -> None:
    """
    Propagate a schedule delta to the booking aggregate.

    Status transitions:
    - pending -> confirmed once paid >= down payment
    - any -> completed once nothing is pending
    - completed -> confirmed / pending when a refund reopens a balance
    """
    booking.paid_amount_cents = (booking.paid_amount_cents or 0) + delta_cents
    booking.pending_amount_cents = booking.total_amount_cents - booking.paid_amount_cents

    if booking.status == BookingStatus.CANCELLED.value:
        return

    if booking.pending_amount_cents <= 0:
        booking.status = BookingStatus.COMPLETED.value
    elif booking.paid_amount_cents >= booking.down_payment_cents:
        if booking.status in (BookingStatus.PENDING.value, BookingStatus.COMPLETED.value):
            booking.status = BookingStatus.CONFIRMED.value
    elif booking.status in (BookingStatus.CONFIRMED.value, BookingStatus.COMPLETED.value):
        booking.status = BookingStatus.PENDING.value
