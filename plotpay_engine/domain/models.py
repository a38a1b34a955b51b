"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Union


class PlanStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class Cadence(str, Enum):
    """Extra payment cadence layered on top of the monthly installments"""

    QUARTERLY = "quarterly"
    BI_YEARLY = "bi_yearly"
    TRIANNUAL = "triannual"  # Three times a year

    @property
    def period_months(self) -> int:
        return CADENCE_PERIOD_MONTHS[self]


CADENCE_PERIOD_MONTHS = {
    Cadence.QUARTERLY: 3,
    Cadence.BI_YEARLY: 6,
    Cadence.TRIANNUAL: 4,
}


class PaymentType(str, Enum):
    FULL_PAYMENT = "full_payment"
    INSTALLMENT = "installment"


class ScheduleStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    SUSPENDED = "suspended"


class InstallmentType(str, Enum):
    DOWN_PAYMENT_BALANCE = "down_payment_balance"
    MONTHLY = "monthly"
    QUARTERLY = "quarterly"
    BI_YEARLY = "bi_yearly"
    TRIANNUAL = "triannual"


class InstallmentStatus(str, Enum):
    PENDING = "pending"
    PAID = "paid"
    OVERDUE = "overdue"
    CANCELLED = "cancelled"


# Installments that still carry an obligation
OPEN_INSTALLMENT_STATUSES = (InstallmentStatus.PENDING.value, InstallmentStatus.OVERDUE.value)


class PaymentMethod(str, Enum):
    CASH = "cash"
    BANK_TRANSFER = "bank_transfer"
    CHEQUE = "cheque"
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    MOBILE_WALLET = "mobile_wallet"
    ONLINE_BANKING = "online_banking"


class PaymentStatus(str, Enum):
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


# Payments whose amount has moved money on the schedule (refunds are negative)
SETTLED_PAYMENT_STATUSES = (PaymentStatus.COMPLETED.value, PaymentStatus.REFUNDED.value)


class BookingStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"


@dataclass
class PlanTerms:
    """Candidate payment plan as submitted by plan administration"""

    plot_price_cents: int
    monthly_payment_cents: int
    down_payment_cents: Optional[int] = None
    down_payment_percentage: Optional[Decimal] = None
    quarterly_payment_cents: Optional[int] = None
    bi_yearly_payment_cents: Optional[int] = None
    triannual_payment_cents: Optional[int] = None
    tenure_months: int = 24

    def cadence_amounts(self) -> dict:
        return {
            Cadence.QUARTERLY: self.quarterly_payment_cents or 0,
            Cadence.BI_YEARLY: self.bi_yearly_payment_cents or 0,
            Cadence.TRIANNUAL: self.triannual_payment_cents or 0,
        }


@dataclass
class ValidatedPlan:
    """Plan terms that passed every validation rule"""

    plot_price_cents: int
    down_payment_cents: int
    monthly_payment_cents: int
    tenure_months: int
    cadence: Optional[Cadence] = None
    cadence_payment_cents: int = 0
    plan_id: Optional[str] = None

    @property
    def cadence_count(self) -> int:
        if self.cadence is None:
            return 0
        return self.tenure_months // self.cadence.period_months

    @property
    def total_scheduled_cents(self) -> int:
        return (
            self.down_payment_cents
            + self.monthly_payment_cents * self.tenure_months
            + self.cadence_payment_cents * self.cadence_count
        )


@dataclass
class ScheduledInstallment:
    """Single dated obligation in a schedule draft"""

    due_date: date
    amount_cents: int
    installment_type: InstallmentType = InstallmentType.MONTHLY
    description: str = ""


# Tagged schedule build requests


@dataclass
class AdHocScheduleRequest:
    """Equal monthly installments for a total / down payment / count triple"""

    total_cents: int
    down_payment_cents: int
    installment_count: int
    start_date: date
    down_payment_paid_cents: int = 0


@dataclass
class PlanScheduleRequest:
    """Installments driven by a validated payment plan"""

    plan: ValidatedPlan
    start_date: date
    down_payment_paid_cents: int = 0


@dataclass
class FullPaymentScheduleRequest:
    """Single settlement of the whole price, no recurring installments"""

    total_cents: int
    start_date: date
    paid_cents: int = 0


ScheduleRequest = Union[AdHocScheduleRequest, PlanScheduleRequest, FullPaymentScheduleRequest]


@dataclass
class ScheduleDraft:
    """Output of the schedule builder, ready to persist"""

    payment_type: PaymentType
    total_cents: int
    down_payment_cents: int
    paid_cents: int
    installment_count: int
    installment_amount_cents: int
    start_date: date
    end_date: date
    installments: List[ScheduledInstallment] = field(default_factory=list)

    @property
    def pending_cents(self) -> int:
        return self.total_cents - self.paid_cents
