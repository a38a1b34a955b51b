"""Payment endpoints - manual entry, approval workflow, refunds and summaries"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from plotpay_engine.api.v1.schemas import (
    ApproveRequest,
    BookingSummaryResponse,
    PaymentListResponse,
    PaymentRequest,
    PaymentResponse,
    RefundRequest,
    RejectRequest,
)
from plotpay_engine.api.v1.errors import reconciliation_failure_response, to_http_exception
from plotpay_engine.api.dependencies import get_audit_client, get_request_id, parse_uuid
from plotpay_engine.domain.exceptions import DomainException, ReconciliationError
from plotpay_engine.infrastructure.clients.audit import AuditClient
from plotpay_engine.infrastructure.database.session import get_db
from plotpay_engine.services import payments as payment_service

router = APIRouter()


def payment_response(payment) -> PaymentResponse:
    return PaymentResponse(
        payment_id=str(payment.id),
        schedule_id=str(payment.schedule_id),
        amount_cents=payment.amount_cents,
        method=payment.method,
        status=payment.status,
        payment_date=payment.payment_date,
        transaction_id=payment.transaction_id,
        reference_number=payment.reference_number,
        receipt_number=payment.receipt_number,
        notes=payment.notes,
        processed_by=payment.processed_by,
        approved_by=payment.approved_by,
        approved_at=payment.approved_at,
        rejection_reason=payment.rejection_reason,
        refunded_payment_id=str(payment.refunded_payment_id) if payment.refunded_payment_id else None,
        created_at=payment.created_at.isoformat(),
    )


def payment_command(request_body: PaymentRequest) -> payment_service.PaymentCommand:
    return payment_service.PaymentCommand(**request_body.model_dump())


@router.post("/bookings/{booking_id}/payments", response_model=BookingSummaryResponse, status_code=201)
def record_payment(
    booking_id: str,
    request_body: PaymentRequest,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """
    Record a manual payment against the booking's schedule.

    Flow:
    1. Resolve the authoritative schedule and lock it
    2. Reject overpayment (422, nothing written)
    3. Record a completed payment and allocate it FIFO
    4. Reconcile and commit, then return the booking summary
    """
    try:
        summary = payment_service.record_manual_payment(db, booking_id, payment_command(request_body))
    except ReconciliationError as e:
        return reconciliation_failure_response(e, "manual_payment", audit_client, get_request_id(request))
    except DomainException as e:
        raise to_http_exception(e)
    return summary


@router.get("/bookings/{booking_id}/payments", response_model=PaymentListResponse)
def list_payments(booking_id: str, db: Session = Depends(get_db)):
    try:
        payments = payment_service.list_booking_payments(db, booking_id)
    except DomainException as e:
        raise to_http_exception(e)
    return PaymentListResponse(booking_id=booking_id, payments=[payment_response(p) for p in payments])


@router.get("/bookings/{booking_id}/payments/summary", response_model=BookingSummaryResponse)
def get_payment_summary(booking_id: str, db: Session = Depends(get_db)):
    try:
        return payment_service.get_booking_summary(db, booking_id)
    except DomainException as e:
        raise to_http_exception(e)


@router.post("/schedules/{schedule_id}/payments", response_model=PaymentResponse, status_code=201)
def submit_payment(schedule_id: str, request_body: PaymentRequest, db: Session = Depends(get_db)):
    """Submit a payment for approval; balances move only once it is approved"""
    try:
        payment = payment_service.submit_payment(db, parse_uuid(schedule_id, "schedule"), payment_command(request_body))
    except DomainException as e:
        raise to_http_exception(e)
    return payment_response(payment)


@router.post("/payments/{payment_id}/approve", response_model=PaymentResponse)
def approve_payment(
    payment_id: str,
    request_body: ApproveRequest,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    try:
        payment = payment_service.approve_payment(db, parse_uuid(payment_id, "payment"), request_body.approved_by)
    except ReconciliationError as e:
        return reconciliation_failure_response(e, "approve_payment", audit_client, get_request_id(request))
    except DomainException as e:
        raise to_http_exception(e)
    return payment_response(payment)


@router.post("/payments/{payment_id}/reject", response_model=PaymentResponse)
def reject_payment(payment_id: str, request_body: RejectRequest, db: Session = Depends(get_db)):
    try:
        payment = payment_service.reject_payment(
            db, parse_uuid(payment_id, "payment"), request_body.reason, request_body.rejected_by
        )
    except DomainException as e:
        raise to_http_exception(e)
    return payment_response(payment)


@router.post("/payments/{payment_id}/refund", response_model=PaymentResponse, status_code=201)
def refund_payment(
    payment_id: str,
    request_body: RefundRequest,
    request: Request,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """Refund part or all of a completed payment; returns the refund row"""
    try:
        refund = payment_service.refund_payment(
            db,
            parse_uuid(payment_id, "payment"),
            request_body.amount_cents,
            reason=request_body.reason,
            processed_by=request_body.processed_by,
        )
    except ReconciliationError as e:
        return reconciliation_failure_response(e, "refund_payment", audit_client, get_request_id(request))
    except DomainException as e:
        raise to_http_exception(e)
    return payment_response(refund)
