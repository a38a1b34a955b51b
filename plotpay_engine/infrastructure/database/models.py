"""SQLAlchemy ORM models for plans, bookings, schedules, installments and payments"""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import Column, String, BigInteger, Integer, Numeric, DateTime, Date, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import declarative_base, relationship
from sqlalchemy.sql import func

Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PaymentPlan(Base):
    """Reusable payment plan template for a plot size class"""

    __tablename__ = "payment_plans"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    name = Column(Text, nullable=False)
    description = Column(Text, nullable=True)
    plot_size_marla = Column(Numeric(5, 2), nullable=False)
    plot_price_cents = Column(BigInteger, nullable=False)
    down_payment_cents = Column(BigInteger, nullable=True)
    down_payment_percentage = Column(Numeric(5, 2), nullable=True)
    monthly_payment_cents = Column(BigInteger, nullable=False)
    quarterly_payment_cents = Column(BigInteger, nullable=True)
    bi_yearly_payment_cents = Column(BigInteger, nullable=True)
    triannual_payment_cents = Column(BigInteger, nullable=True)
    tenure_months = Column(Integer, nullable=False, default=24)
    status = Column(String(16), nullable=False, default="active")
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    schedules = relationship("PaymentSchedule", back_populates="payment_plan")


class Booking(Base):
    """Money projection of a plot booking owned by the booking service"""

    __tablename__ = "bookings"

    id = Column(Text, primary_key=True)
    total_amount_cents = Column(BigInteger, nullable=False)
    down_payment_cents = Column(BigInteger, nullable=False)
    paid_amount_cents = Column(BigInteger, nullable=False, default=0)
    pending_amount_cents = Column(BigInteger, nullable=False, default=0)
    status = Column(String(16), nullable=False, default="pending")
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    schedules = relationship("PaymentSchedule", back_populates="booking", order_by="PaymentSchedule.created_at")


class PaymentSchedule(Base):
    """Instantiation of a plan (or ad-hoc terms) against one booking"""

    __tablename__ = "payment_schedules"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    booking_id = Column(Text, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    payment_plan_id = Column(UUID(as_uuid=True), ForeignKey("payment_plans.id"), nullable=True)
    payment_type = Column(String(16), nullable=False, default="installment")
    status = Column(String(16), nullable=False, default="active")
    total_amount_cents = Column(BigInteger, nullable=False)
    down_payment_cents = Column(BigInteger, nullable=False)
    paid_amount_cents = Column(BigInteger, nullable=False, default=0)
    pending_amount_cents = Column(BigInteger, nullable=False, default=0)
    installment_count = Column(Integer, nullable=True)
    installment_amount_cents = Column(BigInteger, nullable=True)
    installment_frequency = Column(String(16), nullable=True)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=True)
    late_fee_rate = Column(Numeric(6, 4), nullable=False, default=Decimal("0.02"))
    total_late_fees_cents = Column(BigInteger, nullable=False, default=0)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="schedules")
    payment_plan = relationship("PaymentPlan", back_populates="schedules")
    installments = relationship(
        "Installment",
        back_populates="schedule",
        cascade="all, delete-orphan",
        order_by=lambda: [Installment.due_date, Installment.sequence],
    )
    payments = relationship("Payment", back_populates="schedule", cascade="all, delete-orphan")


class Installment(Base):
    """One dated obligation within a payment schedule"""

    __tablename__ = "installments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    schedule_id = Column(UUID(as_uuid=True), ForeignKey("payment_schedules.id", ondelete="CASCADE"), nullable=False, index=True)
    booking_id = Column(Text, ForeignKey("bookings.id", ondelete="CASCADE"), nullable=False, index=True)
    sequence = Column(Integer, nullable=False, default=0)
    amount_cents = Column(BigInteger, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_date = Column(Date, nullable=True)
    status = Column(String(16), nullable=False, default="pending")
    late_fee_cents = Column(BigInteger, nullable=False, default=0)
    installment_type = Column(String(32), nullable=False, default="monthly")
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    schedule = relationship("PaymentSchedule", back_populates="installments")


class Payment(Base):
    """Money received (or refunded, as a negative amount) against a schedule"""

    __tablename__ = "payments"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    schedule_id = Column(UUID(as_uuid=True), ForeignKey("payment_schedules.id", ondelete="CASCADE"), nullable=False, index=True)
    amount_cents = Column(BigInteger, nullable=False)
    method = Column(String(32), nullable=False)
    status = Column(String(16), nullable=False, default="pending")
    payment_date = Column(Date, nullable=True)
    transaction_id = Column(Text, nullable=True)
    reference_number = Column(Text, nullable=True)
    bank_name = Column(Text, nullable=True)
    account_number = Column(Text, nullable=True)
    cheque_number = Column(Text, nullable=True)
    cheque_date = Column(Date, nullable=True)
    card_last_four = Column(String(4), nullable=True)
    wallet_provider = Column(Text, nullable=True)
    receipt_number = Column(Text, nullable=True)
    notes = Column(Text, nullable=True)
    processed_by = Column(Text, nullable=True)
    approved_by = Column(Text, nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    rejection_reason = Column(Text, nullable=True)
    refunded_payment_id = Column(UUID(as_uuid=True), ForeignKey("payments.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    schedule = relationship("PaymentSchedule", back_populates="payments")
