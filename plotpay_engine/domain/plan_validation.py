"""Payment plan validation - gatekeeper before a plan can drive a schedule"""

from dataclasses import dataclass
from typing import List, Optional

from plotpay_engine.domain.exceptions import (
    DownPaymentRangeError,
    InvalidTermError,
    MultipleCadenceError,
    PlanRuleError,
    PlanValidationError,
    ScheduleImbalanceError,
)
from plotpay_engine.domain.models import Cadence, PlanTerms, ValidatedPlan
from plotpay_engine.domain.money import percent_of


# Maximum share of the post-down-payment balance a single cadence amount may take,
# expressed as the divisor of that balance.
CADENCE_SANITY_DIVISORS = {
    Cadence.QUARTERLY: 4,
    Cadence.BI_YEARLY: 2,
    Cadence.TRIANNUAL: 3,
}
MONTHLY_SANITY_DIVISOR = 2


@dataclass
class ValidationPolicy:
    """Tolerances applied to the scheduled total"""

    tolerance_cents: int = 1000
    max_overage_percent: int = 5


def resolve_down_payment(terms: PlanTerms) -> int:
    """Down payment in minor units: fixed amount wins, else percentage of price"""
    if terms.down_payment_cents:
        return terms.down_payment_cents
    if terms.down_payment_percentage and terms.plot_price_cents:
        return percent_of(terms.plot_price_cents, terms.down_payment_percentage)
    return 0


def active_cadence(terms: PlanTerms) -> Optional[Cadence]:
    positive = [cadence for cadence, amount in terms.cadence_amounts().items() if amount > 0]
    return positive[0] if len(positive) == 1 else None


def total_scheduled_payments(terms: PlanTerms, down_payment_cents: int) -> int:
    """
    Down payment + monthly x tenure + extra cadence x floor(tenure / period).

    Example:
        price 5,000,000, 20% down, 166,667 monthly x 24
        1,000,000 + 4,000,008 = 5,000,008
    """
    total = down_payment_cents + terms.monthly_payment_cents * terms.tenure_months
    for cadence, amount in terms.cadence_amounts().items():
        if amount > 0:
            total += amount * (terms.tenure_months // cadence.period_months)
    return total


def collect_plan_errors(terms: PlanTerms, policy: Optional[ValidationPolicy] = None) -> List[PlanRuleError]:
    """
    Run every plan rule and return the failures in rule order.

    Rules:
    1. At most one extra cadence (short-circuits, the totals are ambiguous otherwise)
    2. Positive price, monthly amount and tenure (short-circuits the arithmetic rules)
    3. Down payment strictly between 0 and the plot price
    4. Scheduled total within [price - tolerance, price x (1 + overage%)]
    5. No cadence amount larger than its share of the remaining balance
    """
    policy = policy or ValidationPolicy()
    errors: List[PlanRuleError] = []

    configured = [c for c, amount in terms.cadence_amounts().items() if amount > 0]
    if len(configured) > 1:
        names = ", ".join(c.value for c in configured)
        return [
            MultipleCadenceError(
                f"Only one additional payment type (quarterly, bi-yearly, or triannual) "
                f"can be selected per plan; got {names}"
            )
        ]

    if terms.plot_price_cents is None or terms.plot_price_cents <= 0:
        errors.append(InvalidTermError("Plot price must be greater than 0", field="plot_price_cents"))
    if terms.monthly_payment_cents is None or terms.monthly_payment_cents <= 0:
        errors.append(InvalidTermError("Monthly payment must be greater than 0", field="monthly_payment_cents"))
    if terms.tenure_months is None or terms.tenure_months <= 0:
        errors.append(InvalidTermError("Tenure must be greater than 0 months", field="tenure_months"))
    for cadence, amount in terms.cadence_amounts().items():
        if amount < 0:
            errors.append(
                InvalidTermError(f"{cadence.value} payment cannot be negative", field=f"{cadence.value}_payment_cents")
            )
    if terms.down_payment_cents and terms.down_payment_percentage:
        errors.append(
            InvalidTermError(
                "Specify either downPaymentAmount or downPaymentPercentage, not both",
                field="down_payment_cents",
            )
        )
    if errors:
        return errors

    price = terms.plot_price_cents

    if terms.down_payment_percentage is not None and not terms.down_payment_cents:
        if terms.down_payment_percentage <= 0 or terms.down_payment_percentage > 100:
            errors.append(
                DownPaymentRangeError(
                    "Down payment percentage must be between 0 and 100",
                    field="down_payment_percentage",
                )
            )
    down_payment = resolve_down_payment(terms)
    if down_payment <= 0:
        errors.append(
            DownPaymentRangeError(
                "Down payment must be greater than 0. Specify either downPaymentAmount or downPaymentPercentage",
                field="down_payment_cents",
            )
        )
    elif down_payment >= price:
        errors.append(
            DownPaymentRangeError(
                "Down payment cannot be equal to or greater than plot price",
                field="down_payment_cents",
            )
        )

    total = total_scheduled_payments(terms, down_payment)
    if total < price - policy.tolerance_cents:
        shortfall = price - total
        errors.append(
            ScheduleImbalanceError(
                f"Total payments ({total}) are insufficient to cover plot price ({price}). Shortfall: {shortfall}",
                shortfall_cents=shortfall,
            )
        )
    # Integer form of total > price * 1.05
    if total * 100 > price * (100 + policy.max_overage_percent):
        overage = total - price
        errors.append(
            ScheduleImbalanceError(
                f"Total payments ({total}) exceed plot price by more than "
                f"{policy.max_overage_percent}%. Overpayment: {overage}",
                overage_cents=overage,
            )
        )

    remaining = price - down_payment
    if terms.monthly_payment_cents * MONTHLY_SANITY_DIVISOR > remaining:
        errors.append(
            InvalidTermError(
                "Monthly payment seems too high compared to remaining amount after down payment",
                field="monthly_payment_cents",
            )
        )
    for cadence, amount in terms.cadence_amounts().items():
        if amount > 0 and amount * CADENCE_SANITY_DIVISORS[cadence] > remaining:
            errors.append(
                InvalidTermError(
                    f"{cadence.value} payment seems too high compared to remaining amount",
                    field=f"{cadence.value}_payment_cents",
                )
            )

    return errors


def validate_plan(
    terms: PlanTerms,
    policy: Optional[ValidationPolicy] = None,
    plan_id: Optional[str] = None,
) -> ValidatedPlan:
    """
    Validate plan terms and resolve them into a ValidatedPlan.

    Raises:
        PlanValidationError: carrying every failed rule
    """
    errors = collect_plan_errors(terms, policy)
    if errors:
        raise PlanValidationError(errors)

    cadence = active_cadence(terms)
    return ValidatedPlan(
        plot_price_cents=terms.plot_price_cents,
        down_payment_cents=resolve_down_payment(terms),
        monthly_payment_cents=terms.monthly_payment_cents,
        tenure_months=terms.tenure_months,
        cadence=cadence,
        cadence_payment_cents=terms.cadence_amounts()[cadence] if cadence else 0,
        plan_id=plan_id,
    )


def is_plan_fundable(terms: PlanTerms) -> bool:
    """Whether recurring payments alone cover the balance left after the down payment"""
    down_payment = resolve_down_payment(terms)
    remaining = terms.plot_price_cents - down_payment
    return total_scheduled_payments(terms, down_payment) - down_payment >= remaining
