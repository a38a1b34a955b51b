"""/v1/schedules - Payment schedule creation, lookup and cancellation"""

from typing import Optional
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from plotpay_engine.api.v1.schemas import (
    InstallmentSchema,
    ReconciliationResponse,
    ScheduleCancelRequest,
    ScheduleCreateRequest,
    ScheduleResponse,
)
from plotpay_engine.api.v1.errors import reconciliation_failure_response, to_http_exception
from plotpay_engine.api.dependencies import get_audit_client, get_request_id, parse_uuid
from plotpay_engine.domain.exceptions import DomainException, ReconciliationError
from plotpay_engine.infrastructure.clients.audit import AuditClient
from plotpay_engine.infrastructure.database.session import get_db
from plotpay_engine.services import schedules as schedule_service

router = APIRouter()


def schedule_response(schedule) -> ScheduleResponse:
    installments = [
        InstallmentSchema(
            id=str(inst.id),
            due_date=inst.due_date,
            amount_cents=inst.amount_cents,
            status=inst.status,
            installment_type=inst.installment_type,
            description=inst.description,
            paid_date=inst.paid_date,
            late_fee_cents=inst.late_fee_cents or 0,
        )
        for inst in schedule.installments
    ]

    return ScheduleResponse(
        schedule_id=str(schedule.id),
        booking_id=schedule.booking_id,
        payment_plan_id=str(schedule.payment_plan_id) if schedule.payment_plan_id else None,
        payment_type=schedule.payment_type,
        status=schedule.status,
        total_amount_cents=schedule.total_amount_cents,
        down_payment_cents=schedule.down_payment_cents,
        paid_amount_cents=schedule.paid_amount_cents,
        pending_amount_cents=schedule.pending_amount_cents,
        installment_count=schedule.installment_count,
        installment_amount_cents=schedule.installment_amount_cents,
        start_date=schedule.start_date,
        end_date=schedule.end_date,
        late_fee_rate=schedule.late_fee_rate,
        total_late_fees_cents=schedule.total_late_fees_cents,
        installments=installments,
        created_at=schedule.created_at.isoformat(),
    )


@router.post("/schedules", response_model=ScheduleResponse, status_code=201)
def create_schedule(
    request_body: ScheduleCreateRequest,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Create the payment schedule for a booking.

    Modes:
    - payment_plan_id set: installments from the plan
    - installment without a plan: total / down payment / installment_count
    - full_payment: whole total as one down payment
    """
    command = schedule_service.CreateScheduleCommand(
        booking_id=request_body.booking_id,
        start_date=request_body.start_date,
        payment_type=request_body.payment_type,
        payment_plan_id=parse_uuid(request_body.payment_plan_id, "plan") if request_body.payment_plan_id else None,
        total_cents=request_body.total_cents,
        down_payment_cents=request_body.down_payment_cents,
        installment_count=request_body.installment_count,
        down_payment_paid_cents=request_body.down_payment_paid_cents,
        payment_method=request_body.payment_method,
        late_fee_rate=request_body.late_fee_rate,
        notes=request_body.notes,
    )
    try:
        schedule = schedule_service.create_schedule(db, command)
    except ReconciliationError as e:
        return reconciliation_failure_response(e, "create_schedule", audit_client, get_request_id(request))
    except DomainException as e:
        raise to_http_exception(e)
    return schedule_response(schedule)


@router.get("/schedules/{schedule_id}", response_model=ScheduleResponse)
def get_schedule(schedule_id: str, db: Session = Depends(get_db)):
    try:
        schedule = schedule_service.get_schedule(db, parse_uuid(schedule_id, "schedule"))
    except DomainException as e:
        raise to_http_exception(e)
    return schedule_response(schedule)


@router.get("/bookings/{booking_id}/schedule", response_model=ScheduleResponse)
def get_booking_schedule(booking_id: str, db: Session = Depends(get_db)):
    """The booking's authoritative (most recently created) schedule"""
    try:
        schedule = schedule_service.get_authoritative_schedule(db, booking_id)
    except DomainException as e:
        raise to_http_exception(e)
    return schedule_response(schedule)


@router.post("/schedules/{schedule_id}/cancel", response_model=ScheduleResponse)
def cancel_schedule(
    schedule_id: str,
    request: Request,
    request_body: Optional[ScheduleCancelRequest] = None,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    reason = request_body.reason if request_body else None
    try:
        schedule = schedule_service.cancel_schedule(db, parse_uuid(schedule_id, "schedule"), reason=reason)
    except ReconciliationError as e:
        return reconciliation_failure_response(e, "cancel_schedule", audit_client, get_request_id(request))
    except DomainException as e:
        raise to_http_exception(e)
    return schedule_response(schedule)


@router.get("/schedules/{schedule_id}/reconciliation", response_model=ReconciliationResponse)
def get_reconciliation(schedule_id: str, db: Session = Depends(get_db)):
    """Report invariant violations without changing anything"""
    try:
        return schedule_service.get_reconciliation_report(db, parse_uuid(schedule_id, "schedule"))
    except DomainException as e:
        raise to_http_exception(e)
