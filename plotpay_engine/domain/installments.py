"""Installment schedule generation for plot sales"""

from datetime import date
from typing import Callable, Dict, List

from plotpay_engine.domain.exceptions import DownPaymentRangeError, InvalidTermError
from plotpay_engine.domain.models import (
    AdHocScheduleRequest,
    Cadence,
    FullPaymentScheduleRequest,
    InstallmentType,
    PaymentType,
    PlanScheduleRequest,
    ScheduleDraft,
    ScheduledInstallment,
    ScheduleRequest,
)
from plotpay_engine.utils.date_utils import add_months


CADENCE_INSTALLMENT_TYPES = {
    Cadence.QUARTERLY: InstallmentType.QUARTERLY,
    Cadence.BI_YEARLY: InstallmentType.BI_YEARLY,
    Cadence.TRIANNUAL: InstallmentType.TRIANNUAL,
}

CADENCE_LABELS = {
    Cadence.QUARTERLY: "Quarterly Payment",
    Cadence.BI_YEARLY: "Bi-Yearly Payment",
    Cadence.TRIANNUAL: "Triannual Payment",
}


def generate_installment_plan(
    amount_cents: int,
    num_installments: int,
    start_date: date,
    first_month: int = 1,
) -> List[ScheduledInstallment]:
    """
    Split an amount into equal monthly installments.

    Requirements:
    - One installment per month starting `first_month` months after start_date
    - Last installment absorbs rounding remainder (< num_installments minor units)

    Example:
        400,003 over 4 months -> [100,000, 100,000, 100,000, 100,003]
    """
    if amount_cents <= 0 or num_installments <= 0:
        return []

    base_amount = amount_cents // num_installments
    remainder = amount_cents % num_installments

    installments = []
    for i in range(num_installments):
        amount = base_amount + (remainder if i == num_installments - 1 else 0)
        installments.append(
            ScheduledInstallment(
                due_date=add_months(start_date, first_month + i),
                amount_cents=amount,
                installment_type=InstallmentType.MONTHLY,
                description=f"Monthly Installment {i + 1}",
            )
        )

    return installments


def down_payment_balance_installment(balance_cents: int, start_date: date) -> ScheduledInstallment:
    """Unpaid part of the down payment, due one month after start"""
    return ScheduledInstallment(
        due_date=add_months(start_date, 1),
        amount_cents=balance_cents,
        installment_type=InstallmentType.DOWN_PAYMENT_BALANCE,
        description="Remaining Down Payment",
    )


def _check_paid_down_payment(paid_cents: int, required_cents: int) -> None:
    if paid_cents < 0 or paid_cents > required_cents:
        raise DownPaymentRangeError(
            f"Down payment paid ({paid_cents}) must be between 0 and the required down payment ({required_cents})",
            field="down_payment_paid_cents",
        )


def sort_by_due_date(installments: List[ScheduledInstallment]) -> List[ScheduledInstallment]:
    """Stable sort: same-day installments keep emission order"""
    return sorted(installments, key=lambda inst: inst.due_date)


def build_ad_hoc_schedule(request: AdHocScheduleRequest) -> ScheduleDraft:
    """Equal monthly installments of (total - down payment) / count, due at months 1..N"""
    if request.total_cents <= 0:
        raise InvalidTermError("Total amount must be greater than 0", field="total_cents")
    if request.installment_count <= 0:
        raise InvalidTermError("Installment count must be greater than 0", field="installment_count")
    if request.down_payment_cents < 0 or request.down_payment_cents >= request.total_cents:
        raise DownPaymentRangeError(
            "Down payment must be at least 0 and less than the total amount",
            field="down_payment_cents",
        )
    _check_paid_down_payment(request.down_payment_paid_cents, request.down_payment_cents)

    financed = request.total_cents - request.down_payment_cents
    installments = generate_installment_plan(financed, request.installment_count, request.start_date)

    balance = request.down_payment_cents - request.down_payment_paid_cents
    if balance > 0:
        installments.insert(0, down_payment_balance_installment(balance, request.start_date))

    return ScheduleDraft(
        payment_type=PaymentType.INSTALLMENT,
        total_cents=request.total_cents,
        down_payment_cents=request.down_payment_cents,
        paid_cents=request.down_payment_paid_cents,
        installment_count=request.installment_count,
        installment_amount_cents=financed // request.installment_count,
        start_date=request.start_date,
        end_date=add_months(request.start_date, request.installment_count),
        installments=sort_by_due_date(installments),
    )


def build_plan_schedule(request: PlanScheduleRequest) -> ScheduleDraft:
    """
    Build installments from a validated plan.

    1. Down payment shortfall -> one down_payment_balance installment at month 1
    2. tenure_months monthly installments from month 1 (month 2 if a balance exists)
    3. Extra cadence overlaid every 3 / 6 / 4 months on top of the monthlies
    4. Sorted by due date; the allocator relies on this order
    """
    plan = request.plan
    _check_paid_down_payment(request.down_payment_paid_cents, plan.down_payment_cents)

    installments: List[ScheduledInstallment] = []
    balance = plan.down_payment_cents - request.down_payment_paid_cents
    if balance > 0:
        installments.append(down_payment_balance_installment(balance, request.start_date))

    monthly_start = 2 if balance > 0 else 1
    for i in range(plan.tenure_months):
        installments.append(
            ScheduledInstallment(
                due_date=add_months(request.start_date, monthly_start + i),
                amount_cents=plan.monthly_payment_cents,
                installment_type=InstallmentType.MONTHLY,
                description=f"Monthly Installment {i + 1}",
            )
        )

    if plan.cadence is not None and plan.cadence_payment_cents > 0:
        period = plan.cadence.period_months
        for offset in range(period, plan.tenure_months + 1, period):
            month = monthly_start + offset - 1
            installments.append(
                ScheduledInstallment(
                    due_date=add_months(request.start_date, month),
                    amount_cents=plan.cadence_payment_cents,
                    installment_type=CADENCE_INSTALLMENT_TYPES[plan.cadence],
                    description=f"{CADENCE_LABELS[plan.cadence]} (Month {month})",
                )
            )

    return ScheduleDraft(
        payment_type=PaymentType.INSTALLMENT,
        total_cents=plan.total_scheduled_cents,
        down_payment_cents=plan.down_payment_cents,
        paid_cents=request.down_payment_paid_cents,
        installment_count=plan.tenure_months,
        installment_amount_cents=plan.monthly_payment_cents,
        start_date=request.start_date,
        end_date=add_months(request.start_date, plan.tenure_months),
        installments=sort_by_due_date(installments),
    )


def build_full_payment_schedule(request: FullPaymentScheduleRequest) -> ScheduleDraft:
    """Whole price as the down payment; any unpaid part is due at month 1"""
    if request.total_cents <= 0:
        raise InvalidTermError("Total amount must be greater than 0", field="total_cents")
    _check_paid_down_payment(request.paid_cents, request.total_cents)

    installments = []
    balance = request.total_cents - request.paid_cents
    if balance > 0:
        installments.append(down_payment_balance_installment(balance, request.start_date))

    return ScheduleDraft(
        payment_type=PaymentType.FULL_PAYMENT,
        total_cents=request.total_cents,
        down_payment_cents=request.total_cents,
        paid_cents=request.paid_cents,
        installment_count=0,
        installment_amount_cents=0,
        start_date=request.start_date,
        end_date=add_months(request.start_date, 1),
        installments=installments,
    )


BUILDERS: Dict[type, Callable[..., ScheduleDraft]] = {
    AdHocScheduleRequest: build_ad_hoc_schedule,
    PlanScheduleRequest: build_plan_schedule,
    FullPaymentScheduleRequest: build_full_payment_schedule,
}


def build_schedule(request: ScheduleRequest) -> ScheduleDraft:
    """Main entry point: dispatch on the request variant"""
    builder = BUILDERS.get(type(request))
    if builder is None:
        raise TypeError(f"Unsupported schedule request: {type(request).__name__}")
    return builder(request)
