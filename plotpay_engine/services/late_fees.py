"""Overdue marking and late fee accrual, per schedule and as a daily sweep"""

import uuid
from datetime import date
from typing import Any, Dict

from sqlalchemy.orm import Session

from plotpay_engine.domain.late_fees import accrue, is_past_due
from plotpay_engine.domain.models import InstallmentStatus
from plotpay_engine.infrastructure.database.repositories import InstallmentRepository, ScheduleRepository
from plotpay_engine.infrastructure.observability.logging import log_late_fee_sweep, log_late_fees
from plotpay_engine.infrastructure.observability.metrics import late_fee_amount_counter
from plotpay_engine.services.guard import reconcile, schedule_transaction
from plotpay_engine.services.schedules import get_schedule


def mark_overdue_installments(db: Session, schedule_id: uuid.UUID, as_of: date) -> int:
    """Move pending installments due before as_of to overdue; returns how many moved"""
    get_schedule(db, schedule_id)
    marked = 0
    with schedule_transaction(db, schedule_id, "mark_overdue"):
        schedule = ScheduleRepository(db).get_schedule_by_id(schedule_id, for_update=True)
        for installment in InstallmentRepository(db).open_installments(schedule.id):
            if is_past_due(installment, as_of):
                installment.status = InstallmentStatus.OVERDUE.value
                marked += 1
        reconcile(db, schedule)
    return marked


def accrue_late_fees(db: Session, schedule_id: uuid.UUID, as_of: date) -> int:
    """
    Recompute late_fee_cents on every overdue installment and store the sum
    on the schedule. Fees are informational: pending_amount does not change.

    Returns:
        Total late fees on the schedule as of the given date
    """
    get_schedule(db, schedule_id)
    with schedule_transaction(db, schedule_id, "accrue_late_fees"):
        schedule = ScheduleRepository(db).get_schedule_by_id(schedule_id, for_update=True)
        installments = InstallmentRepository(db).list_for_schedule(schedule.id)
        total = accrue(installments, as_of, schedule.late_fee_rate)

        previous = schedule.total_late_fees_cents or 0
        schedule.total_late_fees_cents = total
        overdue_count = sum(1 for inst in installments if inst.status == InstallmentStatus.OVERDUE.value)
        reconcile(db, schedule)

    if total > previous:
        late_fee_amount_counter.inc(total - previous)
    log_late_fees(str(schedule_id), overdue_count, total)
    return total


def process_schedule(db: Session, schedule_id: uuid.UUID, as_of: date) -> int:
    """Mark overdue installments, then accrue their fees"""
    mark_overdue_installments(db, schedule_id, as_of)
    return accrue_late_fees(db, schedule_id, as_of)


def run_overdue_sweep(db: Session, as_of: date) -> Dict[str, Any]:
    """
    Process every active schedule, each in its own transaction. A failure
    stops the sweep but keeps the schedules already committed.
    """
    total = 0
    processed = 0
    for schedule_id in ScheduleRepository(db).list_active_ids():
        total += process_schedule(db, schedule_id, as_of)
        processed += 1

    log_late_fee_sweep(as_of.isoformat(), processed, total)
    return {"total_late_fees_accrued_cents": total, "schedules_processed": processed}
