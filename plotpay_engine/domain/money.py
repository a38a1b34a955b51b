"""Fixed-point money helpers. All amounts are integers in minor currency units."""

from decimal import Decimal, ROUND_HALF_UP


def to_cents(value: Decimal) -> int:
    """Round a Decimal amount of minor units half-up to a whole minor unit"""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def percent_of(amount_cents: int, percentage: Decimal) -> int:
    """percentage% of amount, rounded to the minor unit"""
    return to_cents(Decimal(amount_cents) * Decimal(percentage) / Decimal(100))


def within_tolerance(actual_cents: int, expected_cents: int, tolerance_cents: int) -> bool:
    return abs(actual_cents - expected_cents) <= tolerance_cents
