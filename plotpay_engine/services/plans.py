"""Payment plan administration: create, update, delete and validate plan templates"""

import uuid
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import Session

from plotpay_engine.config import settings
from plotpay_engine.domain.exceptions import PlanInUseError, PlanNotFoundError, PlanValidationError
from plotpay_engine.domain.models import PlanTerms, ScheduleStatus, ValidatedPlan
from plotpay_engine.domain.plan_validation import (
    ValidationPolicy,
    collect_plan_errors,
    is_plan_fundable,
    resolve_down_payment,
    total_scheduled_payments,
    validate_plan,
)
from plotpay_engine.infrastructure.database.models import PaymentPlan
from plotpay_engine.infrastructure.database.repositories import PlanRepository
from plotpay_engine.infrastructure.observability.logging import log_plan_rejected
from plotpay_engine.infrastructure.observability.metrics import record_plan_rejection

# Fields that change what a schedule built from the plan looks like
PAYMENT_FIELDS = (
    "plot_price_cents",
    "down_payment_cents",
    "down_payment_percentage",
    "monthly_payment_cents",
    "quarterly_payment_cents",
    "bi_yearly_payment_cents",
    "triannual_payment_cents",
    "tenure_months",
)


def validation_policy() -> ValidationPolicy:
    return ValidationPolicy(
        tolerance_cents=settings.plan_total_tolerance_cents,
        max_overage_percent=settings.plan_max_overage_percent,
    )


def terms_from_fields(fields: Dict[str, Any]) -> PlanTerms:
    terms = {name: fields.get(name) for name in PAYMENT_FIELDS}
    if terms["tenure_months"] is None:
        terms["tenure_months"] = settings.default_tenure_months
    return PlanTerms(**terms)


def terms_from_plan(plan: PaymentPlan) -> PlanTerms:
    return terms_from_fields({name: getattr(plan, name) for name in PAYMENT_FIELDS})


def validated_plan(terms: PlanTerms, plan_id: Optional[str] = None) -> ValidatedPlan:
    """validate_plan with rejection metrics and logging"""
    try:
        return validate_plan(terms, validation_policy(), plan_id=plan_id)
    except PlanValidationError as e:
        codes = [err.code for err in e.errors]
        record_plan_rejection(codes)
        log_plan_rejected(codes)
        raise


def _exclusive_down_payment(changes: Dict[str, Any]) -> Dict[str, Any]:
    """Setting one form of down payment clears the other"""
    changes = dict(changes)
    if changes.get("down_payment_cents") and "down_payment_percentage" not in changes:
        changes["down_payment_percentage"] = None
    if changes.get("down_payment_percentage") and "down_payment_cents" not in changes:
        changes["down_payment_cents"] = None
    return changes


def create_plan(db: Session, fields: Dict[str, Any]) -> PaymentPlan:
    """
    Validate and persist a new payment plan.

    Raises:
        PlanValidationError: carrying every failed plan rule
    """
    validated_plan(terms_from_fields(fields))

    fields = dict(fields)
    if fields.get("tenure_months") is None:
        fields["tenure_months"] = settings.default_tenure_months

    plan_repo = PlanRepository(db)
    try:
        db_plan = plan_repo.create_plan(**fields)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return db_plan


def get_plan(db: Session, plan_id: uuid.UUID) -> PaymentPlan:
    plan = PlanRepository(db).get_plan_by_id(plan_id)
    if plan is None:
        raise PlanNotFoundError(f"Payment plan {plan_id} not found")
    return plan


def list_plans(
    db: Session,
    status: Optional[str] = None,
    plot_size_marla: Optional[Decimal] = None,
) -> List[PaymentPlan]:
    return PlanRepository(db).list_plans(status=status, plot_size_marla=plot_size_marla)


def update_plan(
    db: Session,
    plan_id: uuid.UUID,
    changes: Dict[str, Any],
    admin_correction: bool = False,
) -> PaymentPlan:
    """
    Apply a partial update. Payment fields are re-validated against the merged
    plan and are frozen while an active schedule uses the plan, unless the
    update is an administrative correction.

    Raises:
        PlanNotFoundError, PlanInUseError, PlanValidationError
    """
    plan_repo = PlanRepository(db)
    plan = get_plan(db, plan_id)

    changes = _exclusive_down_payment(changes)
    payment_changes = {
        name: value for name, value in changes.items() if name in PAYMENT_FIELDS and getattr(plan, name) != value
    }

    if payment_changes:
        if not admin_correction and plan_repo.count_schedules(plan.id, status=ScheduleStatus.ACTIVE.value) > 0:
            raise PlanInUseError(
                f"Payment plan {plan_id} is used by an active schedule; payment terms cannot change"
            )
        merged = {name: getattr(plan, name) for name in PAYMENT_FIELDS}
        merged.update(payment_changes)
        validated_plan(terms_from_fields(merged), plan_id=str(plan.id))

    try:
        plan_repo.update_plan(plan, changes)
        db.commit()
    except Exception:
        db.rollback()
        raise
    return plan


def delete_plan(db: Session, plan_id: uuid.UUID) -> None:
    """
    Raises:
        PlanNotFoundError, PlanInUseError: a schedule references the plan
    """
    plan_repo = PlanRepository(db)
    plan = get_plan(db, plan_id)
    if plan_repo.count_schedules(plan.id) > 0:
        raise PlanInUseError(f"Payment plan {plan_id} is referenced by schedules and cannot be deleted")

    try:
        plan_repo.delete_plan(plan)
        db.commit()
    except Exception:
        db.rollback()
        raise


def check_plan(db: Session, plan_id: uuid.UUID) -> Dict[str, Any]:
    """Evaluate a stored plan against the current rules without changing it"""
    plan = get_plan(db, plan_id)
    terms = terms_from_plan(plan)
    errors = collect_plan_errors(terms, validation_policy())

    down_payment = resolve_down_payment(terms)
    return {
        "plan_id": str(plan.id),
        "valid": not errors,
        "fundable": is_plan_fundable(terms) if terms.plot_price_cents else False,
        "down_payment_cents": down_payment,
        "total_scheduled_cents": total_scheduled_payments(terms, down_payment),
        "errors": [err.to_dict() for err in errors],
    }
