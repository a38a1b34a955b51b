"""Late fee endpoints - per schedule accrual and the overdue sweep"""

from datetime import date
from typing import Optional
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from plotpay_engine.api.v1.schemas import LateFeeRequest, LateFeeResponse, SweepResponse
from plotpay_engine.api.v1.errors import reconciliation_failure_response, to_http_exception
from plotpay_engine.api.dependencies import get_audit_client, get_request_id, parse_uuid
from plotpay_engine.domain.exceptions import DomainException, ReconciliationError
from plotpay_engine.infrastructure.clients.audit import AuditClient
from plotpay_engine.infrastructure.database.session import get_db
from plotpay_engine.services import late_fees as late_fee_service

router = APIRouter()


@router.post("/schedules/{schedule_id}/late-fees", response_model=LateFeeResponse)
def accrue_schedule_late_fees(
    schedule_id: str,
    request: Request,
    request_body: Optional[LateFeeRequest] = None,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """Mark overdue installments and recompute their late fees as of a date (default today)"""
    as_of = (request_body.as_of if request_body else None) or date.today()
    schedule_uuid = parse_uuid(schedule_id, "schedule")
    try:
        total = late_fee_service.process_schedule(db, schedule_uuid, as_of)
    except ReconciliationError as e:
        return reconciliation_failure_response(e, "accrue_late_fees", audit_client, get_request_id(request))
    except DomainException as e:
        raise to_http_exception(e)
    return LateFeeResponse(schedule_id=str(schedule_uuid), total_late_fees_accrued_cents=total)


@router.post("/late-fees/sweep", response_model=SweepResponse)
def run_sweep(
    request: Request,
    request_body: Optional[LateFeeRequest] = None,
    db: Session = Depends(get_db),
    audit_client: AuditClient = Depends(get_audit_client),
):
    """Daily job entry point: every active schedule, one transaction each"""
    as_of = (request_body.as_of if request_body else None) or date.today()
    try:
        result = late_fee_service.run_overdue_sweep(db, as_of)
    except ReconciliationError as e:
        return reconciliation_failure_response(e, "late_fee_sweep", audit_client, get_request_id(request))
    except DomainException as e:
        raise to_http_exception(e)
    return SweepResponse(as_of=as_of, **result)
