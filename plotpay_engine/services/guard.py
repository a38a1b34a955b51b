"""Transaction boundary shared by every money-moving operation"""

from contextlib import contextmanager
from typing import Hashable, Iterator, List

from sqlalchemy.orm import Session

from plotpay_engine.config import settings
from plotpay_engine.domain.exceptions import ReconciliationError
from plotpay_engine.domain.reconciliation import check_invariants, find_violations
from plotpay_engine.infrastructure.database.locks import schedule_locks
from plotpay_engine.infrastructure.database.models import PaymentSchedule
from plotpay_engine.infrastructure.database.repositories import (
    BookingRepository,
    InstallmentRepository,
    PaymentRepository,
    ScheduleRepository,
)
from plotpay_engine.infrastructure.observability.logging import log_reconciliation_failure
from plotpay_engine.infrastructure.observability.metrics import reconciliation_failure_counter


@contextmanager
def schedule_transaction(db: Session, lock_key: Hashable, operation: str) -> Iterator[None]:
    """
    Run the body under the per-schedule lock and commit it as one unit.

    Any exception rolls the session back. Reconciliation failures are also
    counted and logged before they propagate; they are never retried.
    """
    with schedule_locks.hold(lock_key):
        try:
            yield
            db.commit()
        except ReconciliationError as e:
            db.rollback()
            reconciliation_failure_counter.labels(operation=operation).inc()
            log_reconciliation_failure(operation, e.schedule_id or str(lock_key), e.violations)
            raise
        except Exception:
            db.rollback()
            raise


def _load_state(db: Session, schedule: PaymentSchedule):
    db.flush()
    booking = BookingRepository(db).get_booking(schedule.booking_id)
    installments = InstallmentRepository(db).list_for_schedule(schedule.id)
    payments = PaymentRepository(db).list_for_schedule(schedule.id)
    booking_schedules = ScheduleRepository(db).list_for_booking(schedule.booking_id)
    return booking, installments, payments, booking_schedules


def reconcile(db: Session, schedule: PaymentSchedule) -> None:
    """
    Flush pending changes and check every money invariant for the schedule.

    Raises:
        ReconciliationError: one or more invariants do not hold
    """
    booking, installments, payments, booking_schedules = _load_state(db, schedule)
    check_invariants(
        booking,
        schedule,
        installments,
        payments,
        booking_schedules,
        tolerance_cents=settings.reconciliation_tolerance_cents,
    )


def reconciliation_report(db: Session, schedule: PaymentSchedule) -> List[str]:
    """Read-only variant of reconcile for operators"""
    booking, installments, payments, booking_schedules = _load_state(db, schedule)
    return find_violations(
        booking,
        schedule,
        installments,
        payments,
        booking_schedules,
        tolerance_cents=settings.reconciliation_tolerance_cents,
    )
