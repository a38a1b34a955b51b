"""Pydantic schemas for API request/response validation"""

from pydantic import BaseModel, Field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from plotpay_engine.domain.models import PaymentMethod, PaymentType, PlanStatus


# Payment plans


class PaymentPlanCreate(BaseModel):
    """Request body for POST /v1/payment-plans"""

    name: str = Field(..., min_length=1)
    description: Optional[str] = None
    plot_size_marla: Decimal = Field(..., gt=0, description="Plot size class in marla")
    plot_price_cents: int = Field(..., description="Plot price in minor currency units")
    down_payment_cents: Optional[int] = None
    down_payment_percentage: Optional[Decimal] = None
    monthly_payment_cents: int
    quarterly_payment_cents: Optional[int] = None
    bi_yearly_payment_cents: Optional[int] = None
    triannual_payment_cents: Optional[int] = None
    tenure_months: Optional[int] = None
    status: PlanStatus = PlanStatus.ACTIVE
    notes: Optional[str] = None


class PaymentPlanUpdate(BaseModel):
    """Request body for PATCH /v1/payment-plans/{plan_id}; omitted fields stay unchanged"""

    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    plot_size_marla: Optional[Decimal] = Field(None, gt=0)
    plot_price_cents: Optional[int] = None
    down_payment_cents: Optional[int] = None
    down_payment_percentage: Optional[Decimal] = None
    monthly_payment_cents: Optional[int] = None
    quarterly_payment_cents: Optional[int] = None
    bi_yearly_payment_cents: Optional[int] = None
    triannual_payment_cents: Optional[int] = None
    tenure_months: Optional[int] = None
    status: Optional[PlanStatus] = None
    notes: Optional[str] = None


class PaymentPlanResponse(BaseModel):
    id: str
    name: str
    description: Optional[str] = None
    plot_size_marla: Decimal
    plot_price_cents: int
    down_payment_cents: Optional[int] = None
    down_payment_percentage: Optional[Decimal] = None
    monthly_payment_cents: int
    quarterly_payment_cents: Optional[int] = None
    bi_yearly_payment_cents: Optional[int] = None
    triannual_payment_cents: Optional[int] = None
    tenure_months: int
    status: str
    notes: Optional[str] = None


class PlanRuleSchema(BaseModel):
    code: str
    field: Optional[str] = None
    message: str
    shortfall_cents: Optional[int] = None
    overage_cents: Optional[int] = None


class PlanCheckResponse(BaseModel):
    """Response for POST /v1/payment-plans/{plan_id}/validate"""

    plan_id: str
    valid: bool
    fundable: bool
    down_payment_cents: int
    total_scheduled_cents: int
    errors: List[PlanRuleSchema]


# Schedules


class ScheduleCreateRequest(BaseModel):
    """Request body for POST /v1/schedules, sent by the booking flow"""

    booking_id: str = Field(..., min_length=1, description="External booking identifier")
    start_date: date
    payment_type: PaymentType = PaymentType.INSTALLMENT
    payment_plan_id: Optional[str] = None
    total_cents: Optional[int] = None
    down_payment_cents: Optional[int] = None
    installment_count: Optional[int] = Field(None, gt=0)
    down_payment_paid_cents: int = Field(0, ge=0)
    payment_method: PaymentMethod = PaymentMethod.CASH
    late_fee_rate: Optional[Decimal] = Field(None, ge=0)
    notes: Optional[str] = None


class ScheduleCancelRequest(BaseModel):
    reason: Optional[str] = None


class InstallmentSchema(BaseModel):
    """Single installment in a payment schedule"""

    id: str
    due_date: date
    amount_cents: int
    status: str
    installment_type: str
    description: Optional[str] = None
    paid_date: Optional[date] = None
    late_fee_cents: int = 0


class ScheduleResponse(BaseModel):
    schedule_id: str
    booking_id: str
    payment_plan_id: Optional[str] = None
    payment_type: str
    status: str
    total_amount_cents: int
    down_payment_cents: int
    paid_amount_cents: int
    pending_amount_cents: int
    installment_count: Optional[int] = None
    installment_amount_cents: Optional[int] = None
    start_date: date
    end_date: Optional[date] = None
    late_fee_rate: Decimal
    total_late_fees_cents: int
    installments: List[InstallmentSchema]
    created_at: str


class ReconciliationResponse(BaseModel):
    schedule_id: str
    booking_id: str
    balanced: bool
    violations: List[str]


# Payments


class PaymentRequest(BaseModel):
    """Request body for recording or submitting a payment"""

    amount_cents: int = Field(..., description="Amount in minor currency units")
    method: PaymentMethod = PaymentMethod.CASH
    payment_date: Optional[date] = None
    transaction_id: Optional[str] = None
    reference_number: Optional[str] = None
    bank_name: Optional[str] = None
    account_number: Optional[str] = None
    cheque_number: Optional[str] = None
    cheque_date: Optional[date] = None
    card_last_four: Optional[str] = Field(None, min_length=4, max_length=4)
    wallet_provider: Optional[str] = None
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    processed_by: Optional[str] = None


class ApproveRequest(BaseModel):
    approved_by: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str = Field(..., min_length=1)
    rejected_by: Optional[str] = None


class RefundRequest(BaseModel):
    amount_cents: int
    reason: Optional[str] = None
    processed_by: Optional[str] = None


class PaymentResponse(BaseModel):
    payment_id: str
    schedule_id: str
    amount_cents: int
    method: str
    status: str
    payment_date: Optional[date] = None
    transaction_id: Optional[str] = None
    reference_number: Optional[str] = None
    receipt_number: Optional[str] = None
    notes: Optional[str] = None
    processed_by: Optional[str] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    refunded_payment_id: Optional[str] = None
    created_at: str


class PaymentListResponse(BaseModel):
    booking_id: str
    payments: List[PaymentResponse]


class BookingSummaryResponse(BaseModel):
    """Response for GET /v1/bookings/{booking_id}/payments/summary"""

    booking_id: str
    schedule_id: Optional[str] = None
    status: str
    total_amount_cents: int
    paid_amount_cents: int
    pending_amount_cents: int
    payment_count: int
    last_payment_date: Optional[date] = None
    next_due_date: Optional[date] = None
    overdue_amount_cents: int


# Late fees


class LateFeeRequest(BaseModel):
    as_of: Optional[date] = None


class LateFeeResponse(BaseModel):
    schedule_id: str
    total_late_fees_accrued_cents: int


class SweepResponse(BaseModel):
    as_of: date
    total_late_fees_accrued_cents: int
    schedules_processed: int
