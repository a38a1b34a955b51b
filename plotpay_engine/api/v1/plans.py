"""/v1/payment-plans - Payment plan template administration"""

from decimal import Decimal
from typing import List, Optional
from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from plotpay_engine.api.v1.schemas import (
    PaymentPlanCreate,
    PaymentPlanResponse,
    PaymentPlanUpdate,
    PlanCheckResponse,
)
from plotpay_engine.api.v1.errors import to_http_exception
from plotpay_engine.api.dependencies import parse_uuid
from plotpay_engine.domain.exceptions import DomainException
from plotpay_engine.infrastructure.database.session import get_db
from plotpay_engine.services import plans as plan_service

router = APIRouter()


def plan_response(plan) -> PaymentPlanResponse:
    return PaymentPlanResponse(
        id=str(plan.id),
        name=plan.name,
        description=plan.description,
        plot_size_marla=plan.plot_size_marla,
        plot_price_cents=plan.plot_price_cents,
        down_payment_cents=plan.down_payment_cents,
        down_payment_percentage=plan.down_payment_percentage,
        monthly_payment_cents=plan.monthly_payment_cents,
        quarterly_payment_cents=plan.quarterly_payment_cents,
        bi_yearly_payment_cents=plan.bi_yearly_payment_cents,
        triannual_payment_cents=plan.triannual_payment_cents,
        tenure_months=plan.tenure_months,
        status=plan.status,
        notes=plan.notes,
    )


@router.post("/payment-plans", response_model=PaymentPlanResponse, status_code=201)
def create_payment_plan(request_body: PaymentPlanCreate, db: Session = Depends(get_db)):
    """
    Create a payment plan template.

    Every plan rule is checked; all failures come back together as
    422 {"errors": [{"code", "field", "message", ...}]}.
    """
    fields = request_body.model_dump()
    fields["status"] = request_body.status.value
    try:
        plan = plan_service.create_plan(db, fields)
    except DomainException as e:
        raise to_http_exception(e)
    return plan_response(plan)


@router.get("/payment-plans", response_model=List[PaymentPlanResponse])
def list_payment_plans(
    status: Optional[str] = Query(None, description="active | inactive"),
    plot_size_marla: Optional[Decimal] = Query(None, description="Plot size class"),
    db: Session = Depends(get_db),
):
    plans = plan_service.list_plans(db, status=status, plot_size_marla=plot_size_marla)
    return [plan_response(plan) for plan in plans]


@router.get("/payment-plans/{plan_id}", response_model=PaymentPlanResponse)
def get_payment_plan(plan_id: str, db: Session = Depends(get_db)):
    try:
        plan = plan_service.get_plan(db, parse_uuid(plan_id, "plan"))
    except DomainException as e:
        raise to_http_exception(e)
    return plan_response(plan)


@router.patch("/payment-plans/{plan_id}", response_model=PaymentPlanResponse)
def update_payment_plan(
    plan_id: str,
    request_body: PaymentPlanUpdate,
    admin_correction: bool = Query(False, description="Allow payment term changes while schedules use the plan"),
    db: Session = Depends(get_db),
):
    """
    Partially update a plan.

    Payment terms are re-validated against the merged plan and are frozen
    (409) while an active schedule uses the plan, unless admin_correction.
    """
    changes = request_body.model_dump(exclude_unset=True)
    if changes.get("status") is not None:
        changes["status"] = request_body.status.value
    try:
        plan = plan_service.update_plan(db, parse_uuid(plan_id, "plan"), changes, admin_correction=admin_correction)
    except DomainException as e:
        raise to_http_exception(e)
    return plan_response(plan)


@router.delete("/payment-plans/{plan_id}", status_code=204)
def delete_payment_plan(plan_id: str, db: Session = Depends(get_db)):
    try:
        plan_service.delete_plan(db, parse_uuid(plan_id, "plan"))
    except DomainException as e:
        raise to_http_exception(e)
    return Response(status_code=204)


@router.post("/payment-plans/{plan_id}/validate", response_model=PlanCheckResponse)
def validate_payment_plan(plan_id: str, db: Session = Depends(get_db)):
    """Re-check a stored plan against the current rules"""
    try:
        return plan_service.check_plan(db, parse_uuid(plan_id, "plan"))
    except DomainException as e:
        raise to_http_exception(e)
