"""Unit tests for cross-entity money invariants"""

import pytest
from datetime import date
from types import SimpleNamespace
from plotpay_engine.domain.exceptions import ReconciliationError
from plotpay_engine.domain.reconciliation import check_invariants, find_violations


def balanced_state():
    """Total 1,000 with 200 down payment paid at sale and 800 over two installments, first one paid"""
    booking = SimpleNamespace(id="bk-1", total_amount_cents=1_000, paid_amount_cents=600, pending_amount_cents=400)
    schedule = SimpleNamespace(
        id="sch-1",
        booking_id="bk-1",
        status="active",
        total_amount_cents=1_000,
        down_payment_cents=200,
        paid_amount_cents=600,
        pending_amount_cents=400,
    )
    installments = [
        SimpleNamespace(amount_cents=400, status="paid", installment_type="monthly", due_date=date(2025, 2, 1)),
        SimpleNamespace(amount_cents=400, status="pending", installment_type="monthly", due_date=date(2025, 3, 1)),
    ]
    payments = [
        SimpleNamespace(amount_cents=200, status="completed"),
        SimpleNamespace(amount_cents=400, status="completed"),
        SimpleNamespace(amount_cents=999, status="pending"),
    ]
    return booking, schedule, installments, payments


def test_balanced_state_has_no_violations():
    booking, schedule, installments, payments = balanced_state()
    assert find_violations(booking, schedule, installments, payments, [schedule]) == []


def test_booking_paid_plus_pending_must_equal_total():
    booking, schedule, installments, payments = balanced_state()
    booking.pending_amount_cents = 300

    violations = find_violations(booking, schedule, installments, payments)
    assert any("booking bk-1" in v and "total" in v for v in violations)


def test_schedule_paid_must_match_settled_payments():
    booking, schedule, installments, payments = balanced_state()
    payments.append(SimpleNamespace(amount_cents=-100, status="refunded"))

    violations = find_violations(booking, schedule, installments, payments)
    assert any("settled payments 500" in v for v in violations)


def test_open_installments_must_match_pending():
    booking, schedule, installments, payments = balanced_state()
    installments[1].amount_cents = 350
    installments.append(
        SimpleNamespace(amount_cents=50, status="cancelled", installment_type="monthly", due_date=date(2025, 3, 1))
    )

    violations = find_violations(booking, schedule, installments, payments)
    assert any("open installments 350" in v for v in violations)


def test_down_payment_balance_is_part_of_down_payment():
    booking, schedule, installments, payments = balanced_state()
    # Down payment only half collected: the rest is owed as a balance installment
    booking.paid_amount_cents = schedule.paid_amount_cents = 500
    booking.pending_amount_cents = schedule.pending_amount_cents = 500
    payments[0].amount_cents = 100
    installments.append(
        SimpleNamespace(
            amount_cents=100, status="pending", installment_type="down_payment_balance", due_date=date(2025, 2, 1)
        )
    )

    assert find_violations(booking, schedule, installments, payments) == []


def test_negative_installment_is_a_violation():
    booking, schedule, installments, payments = balanced_state()
    installments.append(SimpleNamespace(amount_cents=-1, status="paid", installment_type="monthly", due_date=date(2025, 1, 1)))

    violations = find_violations(booking, schedule, installments, payments)
    assert any("negative amount" in v for v in violations)


def test_two_active_schedules_is_a_violation():
    booking, schedule, installments, payments = balanced_state()
    other = SimpleNamespace(status="active")

    violations = find_violations(booking, schedule, installments, payments, [schedule, other])
    assert any("2 active schedules" in v for v in violations)


def test_tolerance_absorbs_one_minor_unit():
    booking, schedule, installments, payments = balanced_state()
    booking.pending_amount_cents = 401

    assert find_violations(booking, schedule, installments, payments, tolerance_cents=1) == []
    assert find_violations(booking, schedule, installments, payments, tolerance_cents=0) != []


def test_check_invariants_raises_with_every_violation():
    booking, schedule, installments, payments = balanced_state()
    schedule.pending_amount_cents = 100

    with pytest.raises(ReconciliationError) as exc_info:
        check_invariants(booking, schedule, installments, payments)

    assert exc_info.value.schedule_id == "sch-1"
    assert len(exc_info.value.violations) >= 2
