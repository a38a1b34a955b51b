"""Data access layer for plan, booking, schedule, installment and payment entities"""

import uuid
from decimal import Decimal
from typing import List, Optional
from sqlalchemy import func
from sqlalchemy.orm import Session
from plotpay_engine.infrastructure.database.models import Booking, Installment, Payment, PaymentPlan, PaymentSchedule
from plotpay_engine.domain.models import (
    OPEN_INSTALLMENT_STATUSES,
    BookingStatus,
    InstallmentStatus,
    InstallmentType,
    PaymentStatus,
    ScheduleDraft,
    ScheduleStatus,
)


class PlanRepository:
    """Repository for payment plans"""

    def __init__(self, db: Session):
        self.db = db

    def create_plan(self, **fields) -> PaymentPlan:
        db_plan = PaymentPlan(**fields)
        self.db.add(db_plan)
        self.db.flush()
        return db_plan

    def get_plan_by_id(self, plan_id: uuid.UUID) -> Optional[PaymentPlan]:
        return self.db.query(PaymentPlan).filter(PaymentPlan.id == plan_id).first()

    def list_plans(self, status: Optional[str] = None, plot_size_marla: Optional[Decimal] = None) -> List[PaymentPlan]:
        """Plans ordered by plot size, newest first within a size"""
        query = self.db.query(PaymentPlan)
        if status:
            query = query.filter(PaymentPlan.status == status)
        if plot_size_marla is not None:
            query = query.filter(PaymentPlan.plot_size_marla == plot_size_marla)
        return query.order_by(PaymentPlan.plot_size_marla.asc(), PaymentPlan.created_at.desc()).all()

    def update_plan(self, plan: PaymentPlan, changes: dict) -> PaymentPlan:
        for field_name, value in changes.items():
            setattr(plan, field_name, value)
        self.db.flush()
        return plan

    def delete_plan(self, plan: PaymentPlan) -> None:
        self.db.delete(plan)
        self.db.flush()

    def count_schedules(self, plan_id: uuid.UUID, status: Optional[str] = None) -> int:
        query = self.db.query(func.count(PaymentSchedule.id)).filter(PaymentSchedule.payment_plan_id == plan_id)
        if status:
            query = query.filter(PaymentSchedule.status == status)
        return query.scalar() or 0


class BookingRepository:
    """Repository for booking money projections"""

    def __init__(self, db: Session):
        self.db = db

    def get_booking(self, booking_id: str, for_update: bool = False) -> Optional[Booking]:
        query = self.db.query(Booking).filter(Booking.id == booking_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def rebase_booking(self, booking_id: str, total_cents: int, down_payment_cents: int, paid_cents: int) -> Booking:
        """Create the booking projection, or re-base an existing one onto a new schedule"""
        booking = self.get_booking(booking_id, for_update=True)
        if booking is None:
            booking = Booking(id=booking_id, status=BookingStatus.PENDING.value)
            self.db.add(booking)

        booking.total_amount_cents = total_cents
        booking.down_payment_cents = down_payment_cents
        booking.paid_amount_cents = paid_cents
        booking.pending_amount_cents = total_cents - paid_cents
        if booking.status != BookingStatus.CANCELLED.value:
            if booking.pending_amount_cents <= 0:
                booking.status = BookingStatus.COMPLETED.value
            elif paid_cents >= down_payment_cents:
                booking.status = BookingStatus.CONFIRMED.value
            else:
                booking.status = BookingStatus.PENDING.value
        self.db.flush()
        return booking


class ScheduleRepository:
    """Repository for payment schedules and their installments"""

    def __init__(self, db: Session):
        self.db = db

    def create_schedule(
        self,
        booking_id: str,
        draft: ScheduleDraft,
        late_fee_rate: Decimal,
        payment_plan_id: Optional[uuid.UUID] = None,
        notes: Optional[str] = None,
    ) -> PaymentSchedule:
        """Persist a schedule draft with its installments"""
        db_schedule = PaymentSchedule(
            booking_id=booking_id,
            payment_plan_id=payment_plan_id,
            payment_type=draft.payment_type.value,
            status=ScheduleStatus.ACTIVE.value if draft.pending_cents > 0 else ScheduleStatus.COMPLETED.value,
            total_amount_cents=draft.total_cents,
            down_payment_cents=draft.down_payment_cents,
            paid_amount_cents=draft.paid_cents,
            pending_amount_cents=draft.pending_cents,
            installment_count=draft.installment_count,
            installment_amount_cents=draft.installment_amount_cents,
            installment_frequency="monthly" if draft.installment_count else None,
            start_date=draft.start_date,
            end_date=draft.end_date,
            late_fee_rate=late_fee_rate,
            total_late_fees_cents=0,
            notes=notes,
        )
        self.db.add(db_schedule)
        self.db.flush()

        # Installments arrive sorted by due date; sequence keeps that order for same-day ties
        for sequence, inst in enumerate(draft.installments):
            self.db.add(
                Installment(
                    schedule_id=db_schedule.id,
                    booking_id=booking_id,
                    sequence=sequence,
                    amount_cents=inst.amount_cents,
                    due_date=inst.due_date,
                    status=InstallmentStatus.PENDING.value,
                    late_fee_cents=0,
                    installment_type=inst.installment_type.value,
                    description=inst.description,
                )
            )
        self.db.flush()
        return db_schedule

    def get_schedule_by_id(self, schedule_id: uuid.UUID, for_update: bool = False) -> Optional[PaymentSchedule]:
        query = self.db.query(PaymentSchedule).filter(PaymentSchedule.id == schedule_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def get_latest_for_booking(self, booking_id: str) -> Optional[PaymentSchedule]:
        """The authoritative schedule: most recently created for the booking"""
        return (
            self.db.query(PaymentSchedule)
            .filter(PaymentSchedule.booking_id == booking_id)
            .order_by(PaymentSchedule.created_at.desc())
            .first()
        )

    def list_for_booking(self, booking_id: str) -> List[PaymentSchedule]:
        return (
            self.db.query(PaymentSchedule)
            .filter(PaymentSchedule.booking_id == booking_id)
            .order_by(PaymentSchedule.created_at.desc())
            .all()
        )

    def list_active_ids(self) -> List[uuid.UUID]:
        rows = (
            self.db.query(PaymentSchedule.id)
            .filter(PaymentSchedule.status == ScheduleStatus.ACTIVE.value)
            .order_by(PaymentSchedule.created_at.asc())
            .all()
        )
        return [row[0] for row in rows]


class InstallmentRepository:
    """Repository for installments"""

    def __init__(self, db: Session):
        self.db = db

    def list_for_schedule(self, schedule_id: uuid.UUID) -> List[Installment]:
        return (
            self.db.query(Installment)
            .filter(Installment.schedule_id == schedule_id)
            .order_by(Installment.due_date.asc(), Installment.sequence.asc())
            .all()
        )

    def open_installments(self, schedule_id: uuid.UUID) -> List[Installment]:
        """Pending and overdue installments, oldest due date first"""
        return (
            self.db.query(Installment)
            .filter(
                Installment.schedule_id == schedule_id,
                Installment.status.in_(OPEN_INSTALLMENT_STATUSES),
            )
            .order_by(Installment.due_date.asc(), Installment.sequence.asc())
            .all()
        )

    def add_installment(self, source: Installment, amount_cents: int, status: str) -> Installment:
        """New installment inheriting due date, type and description from source"""
        db_installment = Installment(
            schedule_id=source.schedule_id,
            booking_id=source.booking_id,
            sequence=source.sequence,
            amount_cents=amount_cents,
            due_date=source.due_date,
            status=status,
            late_fee_cents=0,
            installment_type=source.installment_type,
            description=source.description,
        )
        self.db.add(db_installment)
        return db_installment

    def add_down_payment_balance(self, schedule_id: uuid.UUID, booking_id: str, amount_cents: int, due_date) -> Installment:
        """Reopened down payment money that no paid installment accounts for"""
        last_sequence = (
            self.db.query(func.max(Installment.sequence)).filter(Installment.schedule_id == schedule_id).scalar()
        )
        db_installment = Installment(
            schedule_id=schedule_id,
            booking_id=booking_id,
            sequence=(last_sequence if last_sequence is not None else -1) + 1,
            amount_cents=amount_cents,
            due_date=due_date,
            status=InstallmentStatus.PENDING.value,
            late_fee_cents=0,
            installment_type=InstallmentType.DOWN_PAYMENT_BALANCE.value,
            description="Remaining Down Payment",
        )
        self.db.add(db_installment)
        return db_installment

    def next_due(self, schedule_id: uuid.UUID) -> Optional[Installment]:
        return (
            self.db.query(Installment)
            .filter(
                Installment.schedule_id == schedule_id,
                Installment.status.in_(OPEN_INSTALLMENT_STATUSES),
            )
            .order_by(Installment.due_date.asc(), Installment.sequence.asc())
            .first()
        )


class PaymentRepository:
    """Repository for payments and refunds"""

    def __init__(self, db: Session):
        self.db = db

    def create_payment(self, **fields) -> Payment:
        db_payment = Payment(**fields)
        self.db.add(db_payment)
        self.db.flush()
        return db_payment

    def get_payment_by_id(self, payment_id: uuid.UUID, for_update: bool = False) -> Optional[Payment]:
        query = self.db.query(Payment).filter(Payment.id == payment_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    def list_for_schedule(self, schedule_id: uuid.UUID) -> List[Payment]:
        return (
            self.db.query(Payment)
            .filter(Payment.schedule_id == schedule_id)
            .order_by(Payment.created_at.desc())
            .all()
        )

    def list_for_booking(self, booking_id: str) -> List[Payment]:
        """Payments across every schedule of a booking, newest first"""
        return (
            self.db.query(Payment)
            .join(PaymentSchedule, Payment.schedule_id == PaymentSchedule.id)
            .filter(PaymentSchedule.booking_id == booking_id)
            .order_by(Payment.created_at.desc())
            .all()
        )

    def refunded_total(self, payment_id: uuid.UUID) -> int:
        """Sum of refunds already issued against a payment, as a positive number"""
        total = (
            self.db.query(func.coalesce(func.sum(Payment.amount_cents), 0))
            .filter(
                Payment.refunded_payment_id == payment_id,
                Payment.status == PaymentStatus.REFUNDED.value,
            )
            .scalar()
        )
        return -int(total or 0)
