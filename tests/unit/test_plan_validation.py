"""Unit tests for payment plan validation rules"""

import pytest
from decimal import Decimal
from plotpay_engine.domain.exceptions import (
    DownPaymentRangeError,
    InvalidTermError,
    MultipleCadenceError,
    PlanValidationError,
    ScheduleImbalanceError,
)
from plotpay_engine.domain.models import Cadence, PlanTerms
from plotpay_engine.domain.plan_validation import (
    ValidationPolicy,
    collect_plan_errors,
    is_plan_fundable,
    resolve_down_payment,
    total_scheduled_payments,
    validate_plan,
)


def five_marla_terms(**overrides) -> PlanTerms:
    fields = dict(
        plot_price_cents=5_000_000,
        down_payment_percentage=Decimal("20"),
        monthly_payment_cents=166_667,
        tenure_months=24,
    )
    fields.update(overrides)
    return PlanTerms(**fields)


def test_valid_plan_resolves_percentage_down_payment():
    plan = validate_plan(five_marla_terms())

    assert plan.down_payment_cents == 1_000_000
    assert plan.cadence is None
    assert plan.total_scheduled_cents == 5_000_008


def test_percentage_down_payment_rounds_half_up():
    terms = five_marla_terms(plot_price_cents=1_000_005, down_payment_percentage=Decimal("10"))
    # 100,000.5 -> 100,001
    assert resolve_down_payment(terms) == 100_001


def test_fixed_down_payment_wins():
    terms = PlanTerms(plot_price_cents=1_000_000, monthly_payment_cents=40_000, down_payment_cents=40_000)
    assert resolve_down_payment(terms) == 40_000


def test_quarterly_plan_totals():
    terms = PlanTerms(
        plot_price_cents=1_200_000,
        down_payment_cents=200_000,
        monthly_payment_cents=50_000,
        quarterly_payment_cents=100_000,
        tenure_months=12,
    )
    plan = validate_plan(terms)

    assert plan.cadence == Cadence.QUARTERLY
    assert plan.cadence_count == 4
    assert total_scheduled_payments(terms, 200_000) == 1_200_000


def test_quarterly_and_bi_yearly_rejected_with_multiple_cadence():
    terms = five_marla_terms(quarterly_payment_cents=50_000, bi_yearly_payment_cents=100_000)

    with pytest.raises(PlanValidationError) as exc_info:
        validate_plan(terms)

    errors = exc_info.value.errors
    assert len(errors) == 1
    assert isinstance(errors[0], MultipleCadenceError)
    assert errors[0].to_dict()["code"] == "multiple_cadence"


def test_non_positive_terms_are_all_reported():
    terms = PlanTerms(plot_price_cents=0, monthly_payment_cents=-1, tenure_months=0, down_payment_cents=10)
    errors = collect_plan_errors(terms)

    assert len(errors) == 3
    assert all(isinstance(e, InvalidTermError) for e in errors)
    assert {e.field for e in errors} == {"plot_price_cents", "monthly_payment_cents", "tenure_months"}


def test_both_down_payment_forms_rejected():
    terms = five_marla_terms(down_payment_cents=1_000_000)
    errors = collect_plan_errors(terms)

    assert len(errors) == 1
    assert isinstance(errors[0], InvalidTermError)


def test_down_payment_must_be_below_price():
    terms = PlanTerms(plot_price_cents=1_000_000, monthly_payment_cents=10, down_payment_cents=1_000_000)

    with pytest.raises(PlanValidationError) as exc_info:
        validate_plan(terms)
    assert exc_info.value.has(DownPaymentRangeError)


def test_missing_down_payment_rejected():
    terms = PlanTerms(plot_price_cents=1_000_000, monthly_payment_cents=40_000, tenure_months=25)
    errors = collect_plan_errors(terms)

    assert any(isinstance(e, DownPaymentRangeError) for e in errors)


def test_percentage_above_hundred_rejected():
    errors = collect_plan_errors(five_marla_terms(down_payment_percentage=Decimal("120")))
    assert any(isinstance(e, DownPaymentRangeError) and e.field == "down_payment_percentage" for e in errors)


def test_shortfall_beyond_tolerance():
    terms = five_marla_terms(monthly_payment_cents=150_000)
    errors = collect_plan_errors(terms)

    imbalance = [e for e in errors if isinstance(e, ScheduleImbalanceError)]
    assert len(imbalance) == 1
    assert imbalance[0].shortfall_cents == 5_000_000 - (1_000_000 + 150_000 * 24)


def test_shortfall_within_tolerance_passes():
    # 1,000,000 + 166,625 x 24 = 4,999,000: exactly at the tolerance edge
    plan = validate_plan(five_marla_terms(monthly_payment_cents=166_625))
    assert plan.total_scheduled_cents == 4_999_000


def test_overage_above_five_percent():
    # 1,000,000 + 177,084 x 24 = 5,250,016 > 5,250,000
    errors = collect_plan_errors(five_marla_terms(monthly_payment_cents=177_084))

    imbalance = [e for e in errors if isinstance(e, ScheduleImbalanceError)]
    assert len(imbalance) == 1
    assert imbalance[0].overage_cents == 250_016


def test_overage_at_five_percent_passes():
    # 1,000,000 + 177,083 x 24 = 5,249,992
    validate_plan(five_marla_terms(monthly_payment_cents=177_083))


def test_custom_tolerance_policy():
    terms = five_marla_terms(monthly_payment_cents=166_625)
    errors = collect_plan_errors(terms, ValidationPolicy(tolerance_cents=500))
    assert any(isinstance(e, ScheduleImbalanceError) for e in errors)


def test_monthly_sanity_bound():
    # Remaining after down payment is 100,000; monthly 60,000 > 100,000 / 2
    terms = PlanTerms(plot_price_cents=200_000, down_payment_cents=100_000, monthly_payment_cents=60_000, tenure_months=2)
    errors = collect_plan_errors(terms)

    assert any(isinstance(e, InvalidTermError) and e.field == "monthly_payment_cents" for e in errors)


def test_cadence_sanity_bound():
    # Remaining is 1,000,000; quarterly 300,000 x 4 > 1,000,000
    terms = PlanTerms(
        plot_price_cents=1_200_000,
        down_payment_cents=200_000,
        monthly_payment_cents=1_000,
        quarterly_payment_cents=300_000,
        tenure_months=12,
    )
    errors = collect_plan_errors(terms)

    assert any(isinstance(e, InvalidTermError) and e.field == "quarterly_payment_cents" for e in errors)


def test_is_plan_fundable():
    assert is_plan_fundable(five_marla_terms()) is True
    assert is_plan_fundable(five_marla_terms(monthly_payment_cents=100_000)) is False
