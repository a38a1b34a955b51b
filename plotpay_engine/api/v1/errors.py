"""Translation of domain exceptions into HTTP responses"""

import logging
from fastapi import HTTPException
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from plotpay_engine.domain.exceptions import (
    BookingNotFoundError,
    DomainException,
    InvalidAmountError,
    OverpaymentError,
    PaymentNotFoundError,
    PaymentStateError,
    PlanInUseError,
    PlanNotFoundError,
    PlanRuleError,
    PlanValidationError,
    ReconciliationError,
    ScheduleNotFoundError,
    ScheduleStateError,
)
from plotpay_engine.infrastructure.clients.audit import AuditClient

NOT_FOUND_ERRORS = (ScheduleNotFoundError, PlanNotFoundError, BookingNotFoundError, PaymentNotFoundError)
CONFLICT_ERRORS = (PlanInUseError, PaymentStateError, ScheduleStateError)


def to_http_exception(e: DomainException) -> HTTPException:
    """
    Status mapping:
    - missing plan / schedule / booking / payment -> 404
    - plan rules, invalid amount, overpayment -> 422
    - state conflicts (plan in use, payment or schedule state) -> 409
    - anything else -> 500
    """
    if isinstance(e, NOT_FOUND_ERRORS):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, PlanValidationError):
        return HTTPException(status_code=422, detail={"errors": [err.to_dict() for err in e.errors]})
    if isinstance(e, PlanRuleError):
        return HTTPException(status_code=422, detail={"errors": [e.to_dict()]})
    if isinstance(e, OverpaymentError):
        return HTTPException(
            status_code=422,
            detail={
                "code": "overpayment",
                "message": str(e),
                "amount_cents": e.amount_cents,
                "pending_cents": e.pending_cents,
            },
        )
    if isinstance(e, InvalidAmountError):
        return HTTPException(status_code=422, detail={"code": "invalid_amount", "message": str(e)})
    if isinstance(e, CONFLICT_ERRORS):
        return HTTPException(status_code=409, detail=str(e))
    return HTTPException(status_code=500, detail="Internal server error")


def reconciliation_failure_response(
    e: ReconciliationError,
    operation: str,
    audit_client: AuditClient,
    request_id: str,
) -> JSONResponse:
    """500 response that alerts the audit service once it has been sent"""
    logging.error(f"Reconciliation failed during {operation}: {e}", extra={"request_id": request_id})
    return JSONResponse(
        status_code=500,
        content={"detail": {"code": "reconciliation_failed", "violations": e.violations}},
        background=BackgroundTask(audit_client.report_reconciliation_failure, e, operation, request_id),
    )
