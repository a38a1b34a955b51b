"""Cross-entity money invariants between booking, schedule, installments and payments"""

from typing import Any, Iterable, List, Optional

from plotpay_engine.domain.exceptions import ReconciliationError
from plotpay_engine.domain.models import (
    OPEN_INSTALLMENT_STATUSES,
    SETTLED_PAYMENT_STATUSES,
    InstallmentStatus,
    InstallmentType,
    ScheduleStatus,
)


def find_violations(
    booking: Any,
    schedule: Any,
    installments: Iterable[Any],
    payments: Iterable[Any],
    booking_schedules: Optional[Iterable[Any]] = None,
    tolerance_cents: int = 1,
) -> List[str]:
    """
    Check every invariant independently and describe each one that fails.

    Invariants:
    - booking paid + pending == booking total
    - schedule paid == sum of settled payments (refunds are negative rows)
    - non-cancelled installments + down payment == schedule total, where
      down_payment_balance installments are part of the down payment
    - open installments == schedule pending, and pending == total - paid >= 0
    - no negative installment
    - at most one active schedule per booking
    """
    installments = list(installments)
    payments = list(payments)
    violations: List[str] = []

    if booking is not None:
        booking_sum = booking.paid_amount_cents + booking.pending_amount_cents
        if abs(booking_sum - booking.total_amount_cents) > tolerance_cents:
            violations.append(
                f"booking {booking.id}: paid {booking.paid_amount_cents} + pending "
                f"{booking.pending_amount_cents} != total {booking.total_amount_cents}"
            )

    settled = sum(p.amount_cents for p in payments if p.status in SETTLED_PAYMENT_STATUSES)
    if schedule.paid_amount_cents != settled:
        violations.append(
            f"schedule {schedule.id}: paid {schedule.paid_amount_cents} != settled payments {settled}"
        )

    negative = [inst for inst in installments if inst.amount_cents < 0]
    if negative:
        violations.append(f"schedule {schedule.id}: {len(negative)} installment(s) with negative amount")

    if schedule.pending_amount_cents != schedule.total_amount_cents - schedule.paid_amount_cents:
        violations.append(
            f"schedule {schedule.id}: pending {schedule.pending_amount_cents} != total - paid "
            f"{schedule.total_amount_cents - schedule.paid_amount_cents}"
        )
    if schedule.pending_amount_cents < 0:
        violations.append(f"schedule {schedule.id}: pending amount is negative ({schedule.pending_amount_cents})")

    # A cancelled schedule no longer carries obligations
    if schedule.status != ScheduleStatus.CANCELLED.value:
        obligations = sum(
            inst.amount_cents
            for inst in installments
            if inst.status != InstallmentStatus.CANCELLED.value
            and inst.installment_type != InstallmentType.DOWN_PAYMENT_BALANCE.value
        )
        if abs(obligations + schedule.down_payment_cents - schedule.total_amount_cents) > tolerance_cents:
            violations.append(
                f"schedule {schedule.id}: installments {obligations} + down payment "
                f"{schedule.down_payment_cents} != total {schedule.total_amount_cents}"
            )

        if booking is not None and booking.paid_amount_cents != schedule.paid_amount_cents:
            violations.append(
                f"booking {booking.id}: paid {booking.paid_amount_cents} != schedule paid {schedule.paid_amount_cents}"
            )

        open_sum = sum(inst.amount_cents for inst in installments if inst.status in OPEN_INSTALLMENT_STATUSES)
        if abs(open_sum - schedule.pending_amount_cents) > tolerance_cents:
            violations.append(
                f"schedule {schedule.id}: open installments {open_sum} != pending {schedule.pending_amount_cents}"
            )

    if booking_schedules is not None:
        active = [s for s in booking_schedules if s.status == ScheduleStatus.ACTIVE.value]
        if len(active) > 1:
            violations.append(f"booking {schedule.booking_id}: {len(active)} active schedules")

    return violations


def check_invariants(
    booking: Any,
    schedule: Any,
    installments: Iterable[Any],
    payments: Iterable[Any],
    booking_schedules: Optional[Iterable[Any]] = None,
    tolerance_cents: int = 1,
) -> None:
    """
    Raises:
        ReconciliationError: listing every violated invariant
    """
    violations = find_violations(booking, schedule, installments, payments, booking_schedules, tolerance_cents)
    if violations:
        raise ReconciliationError(violations, schedule_id=str(schedule.id))
