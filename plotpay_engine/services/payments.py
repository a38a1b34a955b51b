"""Payment recording, approval, refunds and booking payment summaries"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from plotpay_engine.domain.allocation import (
    allocate_fifo,
    apply_to_booking,
    apply_to_schedule,
    ensure_payable,
    reopen_lifo,
)
from plotpay_engine.domain.exceptions import (
    BookingNotFoundError,
    InvalidAmountError,
    OverpaymentError,
    PaymentNotFoundError,
    PaymentStateError,
    ScheduleNotFoundError,
    ScheduleStateError,
)
from plotpay_engine.domain.models import (
    OPEN_INSTALLMENT_STATUSES,
    SETTLED_PAYMENT_STATUSES,
    PaymentMethod,
    PaymentStatus,
    ScheduleStatus,
)
from plotpay_engine.infrastructure.database.models import Payment, PaymentSchedule
from plotpay_engine.infrastructure.database.repositories import (
    BookingRepository,
    InstallmentRepository,
    PaymentRepository,
    ScheduleRepository,
)
from plotpay_engine.infrastructure.observability.logging import log_payment_allocated, log_refund
from plotpay_engine.infrastructure.observability.metrics import (
    allocation_rejection_counter,
    record_allocation,
    refund_counter,
)
from plotpay_engine.services.guard import reconcile, schedule_transaction
from plotpay_engine.services.schedules import get_authoritative_schedule, get_schedule

# Optional per-method details carried on a payment row
METHOD_DETAIL_FIELDS = (
    "transaction_id",
    "reference_number",
    "bank_name",
    "account_number",
    "cheque_number",
    "cheque_date",
    "card_last_four",
    "wallet_provider",
    "receipt_number",
)


@dataclass
class PaymentCommand:
    amount_cents: int
    method: PaymentMethod = PaymentMethod.CASH
    payment_date: Optional[date] = None
    transaction_id: Optional[str] = None
    reference_number: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    cheque_number: Optional[str] = None
    cheque_date: Optional[date] = None
    card_last_four: Optional[str] = None
    wallet_provider: Optional[str] = None
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    processed_by: Optional[str] = None

    def row_fields(self) -> Dict[str, Any]:
        fields = {name: getattr(self, name) for name in METHOD_DETAIL_FIELDS}
        fields.update(
            amount_cents=self.amount_cents,
            method=self.method.value,
            payment_date=self.payment_date or date.today(),
            notes=self.notes,
            processed_by=self.processed_by,
        )
        return fields


def _ensure_accepting(db: Session, schedule: PaymentSchedule) -> None:
    if schedule.status == ScheduleStatus.CANCELLED.value:
        raise ScheduleStateError(f"Payment schedule {schedule.id} is cancelled")
    if schedule.status == ScheduleStatus.SUSPENDED.value:
        raise ScheduleStateError(f"Payment schedule {schedule.id} is suspended")
    # Booking totals follow only the latest schedule
    latest = ScheduleRepository(db).get_latest_for_booking(schedule.booking_id)
    if latest is not None and latest.id != schedule.id:
        raise ScheduleStateError(f"Payment schedule {schedule.id} was superseded by {latest.id}")


def _check_payable(amount_cents: int, schedule: PaymentSchedule) -> None:
    try:
        ensure_payable(amount_cents, schedule.pending_amount_cents)
    except InvalidAmountError:
        allocation_rejection_counter.labels(reason="invalid_amount").inc()
        raise
    except OverpaymentError:
        allocation_rejection_counter.labels(reason="overpayment").inc()
        raise


def _allocate(db: Session, schedule: PaymentSchedule, payment: Payment) -> None:
    """Walk the open installments FIFO and move the balances by the payment amount"""
    installment_repo = InstallmentRepository(db)
    result = allocate_fifo(
        installment_repo.open_installments(schedule.id),
        payment.amount_cents,
        payment.payment_date or date.today(),
    )
    for split in result.splits:
        installment_repo.add_installment(split.source, split.amount_cents, split.status.value)

    apply_to_schedule(schedule, payment.amount_cents)
    booking = BookingRepository(db).get_booking(schedule.booking_id, for_update=True)
    apply_to_booking(booking, payment.amount_cents)

    record_allocation(payment.amount_cents)
    log_payment_allocated(
        str(schedule.id),
        str(payment.id),
        payment.amount_cents,
        len(result.paid),
        len(result.splits),
        schedule.pending_amount_cents,
    )


def _authoritative_schedule(db: Session, booking_id: str) -> PaymentSchedule:
    try:
        return get_authoritative_schedule(db, booking_id)
    except ScheduleNotFoundError:
        allocation_rejection_counter.labels(reason="schedule_not_found").inc()
        raise


def record_manual_payment(db: Session, booking_id: str, command: PaymentCommand) -> Dict[str, Any]:
    """
    Record a payment taken by staff against the booking's authoritative
    schedule. It is approved on entry and allocated immediately.

    Returns:
        Booking payment summary after the allocation

    Raises:
        ScheduleNotFoundError, ScheduleStateError, InvalidAmountError,
        OverpaymentError (nothing is written), ReconciliationError
    """
    schedule_id = _authoritative_schedule(db, booking_id).id

    with schedule_transaction(db, schedule_id, "manual_payment"):
        schedule = ScheduleRepository(db).get_schedule_by_id(schedule_id, for_update=True)
        _ensure_accepting(db, schedule)
        _check_payable(command.amount_cents, schedule)

        payment = PaymentRepository(db).create_payment(
            schedule_id=schedule.id,
            status=PaymentStatus.COMPLETED.value,
            approved_by=command.processed_by,
            approved_at=datetime.now(timezone.utc),
            **command.row_fields(),
        )
        _allocate(db, schedule, payment)
        reconcile(db, schedule)

    return get_booking_summary(db, booking_id)


def submit_payment(db: Session, schedule_id: uuid.UUID, command: PaymentCommand) -> Payment:
    """Record a pending payment awaiting approval; balances do not move yet"""
    get_schedule(db, schedule_id)
    with schedule_transaction(db, schedule_id, "submit_payment"):
        schedule = ScheduleRepository(db).get_schedule_by_id(schedule_id, for_update=True)
        _ensure_accepting(db, schedule)
        _check_payable(command.amount_cents, schedule)

        payment = PaymentRepository(db).create_payment(
            schedule_id=schedule.id,
            status=PaymentStatus.PENDING.value,
            **command.row_fields(),
        )
    return payment


def _get_payment(db: Session, payment_id: uuid.UUID) -> Payment:
    payment = PaymentRepository(db).get_payment_by_id(payment_id)
    if payment is None:
        raise PaymentNotFoundError(f"Payment {payment_id} not found")
    return payment


def approve_payment(db: Session, payment_id: uuid.UUID, approved_by: Optional[str] = None) -> Payment:
    """
    Approve a pending payment and allocate it. The pending balance may have
    shrunk since submission, so overpayment is checked again.

    Raises:
        PaymentNotFoundError, PaymentStateError, OverpaymentError, ReconciliationError
    """
    schedule_id = _get_payment(db, payment_id).schedule_id

    with schedule_transaction(db, schedule_id, "approve_payment"):
        schedule = ScheduleRepository(db).get_schedule_by_id(schedule_id, for_update=True)
        payment = PaymentRepository(db).get_payment_by_id(payment_id, for_update=True)
        if payment.status != PaymentStatus.PENDING.value:
            raise PaymentStateError(f"Payment {payment_id} is {payment.status}; only pending payments can be approved")
        _ensure_accepting(db, schedule)
        _check_payable(payment.amount_cents, schedule)

        payment.status = PaymentStatus.COMPLETED.value
        payment.approved_by = approved_by
        payment.approved_at = datetime.now(timezone.utc)
        _allocate(db, schedule, payment)
        reconcile(db, schedule)
    return payment


def reject_payment(
    db: Session,
    payment_id: uuid.UUID,
    reason: str,
    rejected_by: Optional[str] = None,
) -> Payment:
    """Mark a pending payment failed; nothing is allocated"""
    schedule_id = _get_payment(db, payment_id).schedule_id

    with schedule_transaction(db, schedule_id, "reject_payment"):
        payment = PaymentRepository(db).get_payment_by_id(payment_id, for_update=True)
        if payment.status != PaymentStatus.PENDING.value:
            raise PaymentStateError(f"Payment {payment_id} is {payment.status}; only pending payments can be rejected")
        payment.status = PaymentStatus.FAILED.value
        payment.rejection_reason = reason
        payment.approved_by = rejected_by
    return payment


def refund_payment(
    db: Session,
    payment_id: uuid.UUID,
    amount_cents: int,
    reason: Optional[str] = None,
    processed_by: Optional[str] = None,
) -> Payment:
    """
    Refund part or all of a completed payment.

    The original row is left untouched; the refund is a new negative row with
    status refunded. Paid installments are reopened latest due date first;
    refunded money no installment accounts for (the down payment taken at
    sale) comes back as a down payment balance due on the refund date.

    Raises:
        PaymentNotFoundError, PaymentStateError, InvalidAmountError,
        OverpaymentError: more than the refundable remainder, ReconciliationError
    """
    schedule_id = _get_payment(db, payment_id).schedule_id
    payment_repo = PaymentRepository(db)
    installment_repo = InstallmentRepository(db)

    with schedule_transaction(db, schedule_id, "refund_payment"):
        schedule = ScheduleRepository(db).get_schedule_by_id(schedule_id, for_update=True)
        original = payment_repo.get_payment_by_id(payment_id, for_update=True)
        if original.status != PaymentStatus.COMPLETED.value or original.amount_cents <= 0:
            raise PaymentStateError(f"Payment {payment_id} is {original.status}; only completed payments can be refunded")
        _ensure_accepting(db, schedule)

        refundable = original.amount_cents - payment_repo.refunded_total(original.id)
        if amount_cents is None or amount_cents <= 0:
            raise InvalidAmountError("Refund amount must be greater than zero")
        if amount_cents > refundable:
            raise OverpaymentError(amount_cents, refundable)

        refunded_on = date.today()
        refund = payment_repo.create_payment(
            schedule_id=schedule.id,
            amount_cents=-amount_cents,
            method=original.method,
            status=PaymentStatus.REFUNDED.value,
            payment_date=refunded_on,
            refunded_payment_id=original.id,
            notes=reason,
            processed_by=processed_by,
        )

        result = reopen_lifo(installment_repo.list_for_schedule(schedule.id), amount_cents)
        for split in result.splits:
            installment_repo.add_installment(split.source, split.amount_cents, split.status.value)
        if result.unreopened_cents:
            installment_repo.add_down_payment_balance(
                schedule.id, schedule.booking_id, result.unreopened_cents, refunded_on
            )

        apply_to_schedule(schedule, -amount_cents)
        booking = BookingRepository(db).get_booking(schedule.booking_id, for_update=True)
        apply_to_booking(booking, -amount_cents)
        reconcile(db, schedule)

    refund_counter.inc()
    log_refund(str(schedule_id), str(refund.id), amount_cents, len(result.reopened) + len(result.splits))
    return refund


def get_booking_summary(db: Session, booking_id: str, as_of: Optional[date] = None) -> Dict[str, Any]:
    """
    Money position of a booking on its authoritative schedule.

    Raises:
        BookingNotFoundError
    """
    booking = BookingRepository(db).get_booking(booking_id)
    if booking is None:
        raise BookingNotFoundError(f"Booking {booking_id} not found")
    as_of = as_of or date.today()

    schedule = ScheduleRepository(db).get_latest_for_booking(booking_id)
    payments: List[Payment] = []
    next_due_date = None
    overdue_amount = 0
    if schedule is not None:
        payments = PaymentRepository(db).list_for_schedule(schedule.id)
        installment_repo = InstallmentRepository(db)
        next_due = installment_repo.next_due(schedule.id)
        next_due_date = next_due.due_date if next_due else None
        overdue_amount = sum(
            inst.amount_cents
            for inst in installment_repo.open_installments(schedule.id)
            if inst.due_date < as_of and inst.status in OPEN_INSTALLMENT_STATUSES
        )

    settled = [p for p in payments if p.status in SETTLED_PAYMENT_STATUSES]
    received = [p.payment_date for p in settled if p.amount_cents > 0 and p.payment_date]
    return {
        "booking_id": booking.id,
        "schedule_id": str(schedule.id) if schedule else None,
        "status": booking.status,
        "total_amount_cents": booking.total_amount_cents,
        "paid_amount_cents": booking.paid_amount_cents,
        "pending_amount_cents": booking.pending_amount_cents,
        "payment_count": sum(1 for p in settled if p.amount_cents > 0),
        "last_payment_date": max(received) if received else None,
        "next_due_date": next_due_date,
        "overdue_amount_cents": overdue_amount,
    }


def list_booking_payments(db: Session, booking_id: str) -> List[Payment]:
    if BookingRepository(db).get_booking(booking_id) is None:
        raise BookingNotFoundError(f"Booking {booking_id} not found")
    return PaymentRepository(db).list_for_booking(booking_id)
