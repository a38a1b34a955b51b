"""Unit tests for FIFO payment allocation and refund reopening"""

import pytest
from datetime import date
from types import SimpleNamespace
from plotpay_engine.domain.allocation import (
    allocate_fifo,
    apply_to_booking,
    apply_to_schedule,
    ensure_payable,
    reopen_lifo,
)
from plotpay_engine.domain.exceptions import InvalidAmountError, OverpaymentError

PAID_ON = date(2025, 3, 1)


def installment(amount_cents, month, sequence=0, status="pending"):
    return SimpleNamespace(
        amount_cents=amount_cents,
        due_date=date(2025, month, 15),
        sequence=sequence,
        status=status,
        paid_date=None,
    )


def test_ensure_payable_rejects_non_positive():
    with pytest.raises(InvalidAmountError):
        ensure_payable(0, 100)
    with pytest.raises(InvalidAmountError):
        ensure_payable(-5, 100)


def test_ensure_payable_rejects_overpayment():
    with pytest.raises(OverpaymentError) as exc_info:
        ensure_payable(101, 100)
    assert exc_info.value.pending_cents == 100


def test_exact_installment_payment():
    installments = [installment(100, 2, 0), installment(100, 3, 1)]
    result = allocate_fifo(installments, 100, PAID_ON)

    assert result.paid == [installments[0]]
    assert result.splits == []
    assert installments[0].status == "paid"
    assert installments[0].paid_date == PAID_ON
    assert installments[1].status == "pending"


def test_partial_payment_splits_installment():
    """Pending [100, 100, 100], pay 150 -> [100 paid, 50 paid, 50 pending, 100 pending]"""
    installments = [installment(100, 2, 0), installment(100, 3, 1), installment(100, 4, 2)]
    result = allocate_fifo(installments, 150, PAID_ON)

    assert [inst.amount_cents for inst in installments] == [100, 50, 100]
    assert [inst.status for inst in installments] == ["paid", "paid", "pending"]
    assert len(result.splits) == 1
    assert result.splits[0].source is installments[1]
    assert result.splits[0].amount_cents == 50
    assert result.unallocated_cents == 0


def test_allocation_walks_due_date_order():
    later = installment(100, 5, 0)
    earlier = installment(100, 2, 1)
    allocate_fifo([later, earlier], 100, PAID_ON)

    assert earlier.status == "paid"
    assert later.status == "pending"


def test_same_due_date_uses_sequence():
    second = installment(100, 3, 1)
    first = installment(100, 3, 0)
    allocate_fifo([second, first], 100, PAID_ON)

    assert first.status == "paid"
    assert second.status == "pending"


def test_overdue_installments_are_allocated_first():
    overdue = installment(100, 1, 0, status="overdue")
    pending = installment(100, 2, 1)
    result = allocate_fifo([pending, overdue], 150, PAID_ON)

    assert overdue.status == "paid"
    assert pending.amount_cents == 50
    assert result.splits[0].amount_cents == 50


def test_paid_and_cancelled_installments_are_skipped():
    paid = installment(100, 1, 0, status="paid")
    cancelled = installment(100, 2, 1, status="cancelled")
    pending = installment(100, 3, 2)
    result = allocate_fifo([paid, cancelled, pending], 100, PAID_ON)

    assert result.paid == [pending]
    assert cancelled.status == "cancelled"


def test_allocation_reports_unallocated_remainder():
    result = allocate_fifo([installment(100, 2)], 130, PAID_ON)
    assert result.unallocated_cents == 30


def test_reopen_lifo_latest_first():
    installments = [installment(100, 2, 0, "paid"), installment(100, 3, 1, "paid"), installment(100, 4, 2)]
    result = reopen_lifo(installments, 100)

    assert installments[1].status == "pending"
    assert installments[1].paid_date is None
    assert installments[0].status == "paid"
    assert result.reopened == [installments[1]]


def test_reopen_lifo_partial_split():
    installments = [installment(100, 2, 0, "paid"), installment(100, 3, 1, "paid")]
    result = reopen_lifo(installments, 130)

    assert installments[1].status == "pending"
    assert installments[0].status == "paid"
    assert installments[0].amount_cents == 70
    assert result.splits[0].amount_cents == 30
    assert result.unreopened_cents == 0


def test_reopen_lifo_reports_money_without_installment():
    installments = [installment(100, 2, 0, "paid")]
    result = reopen_lifo(installments, 250)
    assert result.unreopened_cents == 150


def test_apply_to_schedule_completes_and_reopens():
    schedule = SimpleNamespace(total_amount_cents=300, paid_amount_cents=100, pending_amount_cents=200, status="active")

    apply_to_schedule(schedule, 200)
    assert schedule.pending_amount_cents == 0
    assert schedule.status == "completed"

    apply_to_schedule(schedule, -50)
    assert schedule.pending_amount_cents == 50
    assert schedule.status == "active"


def test_apply_to_booking_status_transitions():
    booking = SimpleNamespace(
        total_amount_cents=1_000,
        down_payment_cents=200,
        paid_amount_cents=100,
        pending_amount_cents=900,
        status="pending",
    )

    apply_to_booking(booking, 100)
    assert booking.status == "confirmed"
    assert booking.paid_amount_cents + booking.pending_amount_cents == booking.total_amount_cents

    apply_to_booking(booking, 800)
    assert booking.status == "completed"

    apply_to_booking(booking, -850)
    assert booking.status == "pending"


def test_apply_to_booking_leaves_cancelled_status():
    booking = SimpleNamespace(
        total_amount_cents=1_000,
        down_payment_cents=200,
        paid_amount_cents=0,
        pending_amount_cents=1_000,
        status="cancelled",
    )
    apply_to_booking(booking, 1_000)
    assert booking.status == "cancelled"
    assert booking.pending_amount_cents == 0
