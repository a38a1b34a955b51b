"""Schedule lifecycle: create a booking's schedule, look it up, cancel it"""

import uuid
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from plotpay_engine.config import settings
from plotpay_engine.domain.exceptions import (
    ActiveScheduleExistsError,
    InvalidTermError,
    ScheduleNotFoundError,
    ScheduleStateError,
)
from plotpay_engine.domain.installments import build_schedule
from plotpay_engine.domain.models import (
    OPEN_INSTALLMENT_STATUSES,
    AdHocScheduleRequest,
    FullPaymentScheduleRequest,
    InstallmentStatus,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    PlanScheduleRequest,
    PlanStatus,
    ScheduleRequest,
    ScheduleStatus,
)
from plotpay_engine.infrastructure.database.models import PaymentSchedule
from plotpay_engine.infrastructure.database.repositories import (
    BookingRepository,
    InstallmentRepository,
    PaymentRepository,
    ScheduleRepository,
)
from plotpay_engine.infrastructure.observability.logging import log_schedule_created
from plotpay_engine.infrastructure.observability.metrics import schedule_created_counter
from plotpay_engine.services.guard import reconcile, reconciliation_report, schedule_transaction
from plotpay_engine.services.plans import get_plan, terms_from_plan, validated_plan


@dataclass
class CreateScheduleCommand:
    """
    Schedule request from the booking flow.

    Plan mode when payment_plan_id is set, otherwise ad-hoc from
    total / down payment / installment count. Full payment ignores the count.
    """

    booking_id: str
    start_date: date
    payment_type: PaymentType = PaymentType.INSTALLMENT
    payment_plan_id: Optional[uuid.UUID] = None
    total_cents: Optional[int] = None
    down_payment_cents: Optional[int] = None
    installment_count: Optional[int] = None
    down_payment_paid_cents: int = 0
    payment_method: PaymentMethod = PaymentMethod.CASH
    late_fee_rate: Optional[Decimal] = None
    notes: Optional[str] = None


def _schedule_mode(command: CreateScheduleCommand) -> str:
    if command.payment_type == PaymentType.FULL_PAYMENT:
        return "full_payment"
    return "plan" if command.payment_plan_id else "ad_hoc"


def _build_request(db: Session, command: CreateScheduleCommand) -> ScheduleRequest:
    if command.payment_type == PaymentType.FULL_PAYMENT:
        if command.total_cents is None:
            raise InvalidTermError("Total amount is required for a full payment schedule", field="total_cents")
        return FullPaymentScheduleRequest(
            total_cents=command.total_cents,
            start_date=command.start_date,
            paid_cents=command.down_payment_paid_cents,
        )

    if command.payment_plan_id:
        plan = get_plan(db, command.payment_plan_id)
        if plan.status != PlanStatus.ACTIVE.value:
            raise ScheduleStateError(f"Payment plan {plan.id} is not active")
        return PlanScheduleRequest(
            plan=validated_plan(terms_from_plan(plan), plan_id=str(plan.id)),
            start_date=command.start_date,
            down_payment_paid_cents=command.down_payment_paid_cents,
        )

    if command.total_cents is None or command.down_payment_cents is None:
        raise InvalidTermError(
            "Total and down payment amounts are required without a payment plan",
            field="total_cents",
        )
    return AdHocScheduleRequest(
        total_cents=command.total_cents,
        down_payment_cents=command.down_payment_cents,
        installment_count=command.installment_count or settings.default_installment_count,
        start_date=command.start_date,
        down_payment_paid_cents=command.down_payment_paid_cents,
    )


def create_schedule(db: Session, command: CreateScheduleCommand) -> PaymentSchedule:
    """
    Build and persist a schedule for a booking.

    Flow:
    1. Resolve and re-validate the plan (plan mode) and build the draft
    2. Refuse when the booking already has an active schedule
    3. Re-base the booking projection onto the new schedule
    4. Persist schedule + installments, record the down payment taken at sale
    5. Reconcile and commit

    Raises:
        PlanNotFoundError, PlanValidationError, InvalidTermError,
        DownPaymentRangeError, ActiveScheduleExistsError, ReconciliationError
    """
    draft = build_schedule(_build_request(db, command))

    schedule_repo = ScheduleRepository(db)
    with schedule_transaction(db, f"booking:{command.booking_id}", "create_schedule"):
        active = [
            s for s in schedule_repo.list_for_booking(command.booking_id) if s.status == ScheduleStatus.ACTIVE.value
        ]
        if active:
            raise ActiveScheduleExistsError(
                f"Booking {command.booking_id} already has an active schedule ({active[0].id})"
            )

        BookingRepository(db).rebase_booking(
            command.booking_id,
            total_cents=draft.total_cents,
            down_payment_cents=draft.down_payment_cents,
            paid_cents=draft.paid_cents,
        )
        schedule = schedule_repo.create_schedule(
            command.booking_id,
            draft,
            late_fee_rate=command.late_fee_rate if command.late_fee_rate is not None else settings.default_late_fee_rate,
            payment_plan_id=command.payment_plan_id,
            notes=command.notes,
        )

        if draft.paid_cents > 0:
            PaymentRepository(db).create_payment(
                schedule_id=schedule.id,
                amount_cents=draft.paid_cents,
                method=command.payment_method.value,
                status=PaymentStatus.COMPLETED.value,
                payment_date=command.start_date,
                approved_at=datetime.now(timezone.utc),
                notes="Down payment collected at sale",
            )

        reconcile(db, schedule)

    mode = _schedule_mode(command)
    schedule_created_counter.labels(mode=mode).inc()
    log_schedule_created(
        str(schedule.id),
        command.booking_id,
        mode,
        draft.total_cents,
        len(draft.installments),
    )
    return schedule


def get_schedule(db: Session, schedule_id: uuid.UUID) -> PaymentSchedule:
    schedule = ScheduleRepository(db).get_schedule_by_id(schedule_id)
    if schedule is None:
        raise ScheduleNotFoundError(f"Payment schedule {schedule_id} not found")
    return schedule


def get_authoritative_schedule(db: Session, booking_id: str) -> PaymentSchedule:
    """Most recently created schedule of the booking"""
    schedule = ScheduleRepository(db).get_latest_for_booking(booking_id)
    if schedule is None:
        raise ScheduleNotFoundError(f"No payment schedule found for booking {booking_id}")
    return schedule


def cancel_schedule(db: Session, schedule_id: uuid.UUID, reason: Optional[str] = None) -> PaymentSchedule:
    """
    Cancel a schedule and every installment still owed on it. Money already
    received stays recorded; the booking can then get a new schedule.

    Raises:
        ScheduleNotFoundError, ScheduleStateError: already cancelled
    """
    get_schedule(db, schedule_id)
    with schedule_transaction(db, schedule_id, "cancel_schedule"):
        schedule = ScheduleRepository(db).get_schedule_by_id(schedule_id, for_update=True)
        if schedule.status == ScheduleStatus.CANCELLED.value:
            raise ScheduleStateError(f"Payment schedule {schedule_id} is already cancelled")

        for installment in InstallmentRepository(db).list_for_schedule(schedule.id):
            if installment.status in OPEN_INSTALLMENT_STATUSES:
                installment.status = InstallmentStatus.CANCELLED.value
        schedule.status = ScheduleStatus.CANCELLED.value
        if reason:
            schedule.notes = f"{schedule.notes}\n{reason}" if schedule.notes else reason

        reconcile(db, schedule)
    return schedule


def get_reconciliation_report(db: Session, schedule_id: uuid.UUID) -> Dict[str, Any]:
    schedule = get_schedule(db, schedule_id)
    violations = reconciliation_report(db, schedule)
    return {
        "schedule_id": str(schedule.id),
        "booking_id": schedule.booking_id,
        "balanced": not violations,
        "violations": violations,
    }
