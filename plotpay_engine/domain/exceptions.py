"""Domain-specific exceptions"""

from typing import List, Optional, Type


class DomainException(Exception):
    """Base exception for domain layer"""

    pass


# Plan validation


class PlanRuleError(DomainException):
    """A single payment plan rule that failed"""

    code = "plan_rule"

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.field = field

    def to_dict(self) -> dict:
        return {"code": self.code, "field": self.field, "message": self.message}


class MultipleCadenceError(PlanRuleError):
    """More than one of quarterly / bi-yearly / triannual is configured"""

    code = "multiple_cadence"


class InvalidTermError(PlanRuleError):
    """Price, monthly amount, tenure or a cadence amount is out of bounds"""

    code = "invalid_term"


class DownPaymentRangeError(PlanRuleError):
    """Down payment is not strictly between zero and the total price"""

    code = "down_payment_range"


class ScheduleImbalanceError(PlanRuleError):
    """Scheduled payments fall short of, or overshoot, the plot price"""

    code = "schedule_imbalance"

    def __init__(self, message: str, shortfall_cents: int = 0, overage_cents: int = 0):
        super().__init__(message)
        self.shortfall_cents = shortfall_cents
        self.overage_cents = overage_cents

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["shortfall_cents"] = self.shortfall_cents
        data["overage_cents"] = self.overage_cents
        return data


class PlanValidationError(DomainException):
    """Aggregate of every plan rule that failed"""

    def __init__(self, errors: List[PlanRuleError]):
        super().__init__("Payment plan validation failed: " + "; ".join(e.message for e in errors))
        self.errors = errors

    def has(self, error_type: Type[PlanRuleError]) -> bool:
        return any(isinstance(e, error_type) for e in self.errors)


# Allocation


class InvalidAmountError(DomainException):
    """Payment or refund amount must be greater than zero"""

    pass


class OverpaymentError(DomainException):
    """Payment exceeds the amount still owed on the schedule"""

    def __init__(self, amount_cents: int, pending_cents: int):
        super().__init__(
            f"Payment amount {amount_cents} exceeds pending amount {pending_cents}"
        )
        self.amount_cents = amount_cents
        self.pending_cents = pending_cents


class ScheduleNotFoundError(DomainException):
    """No payment schedule for the requested id or booking"""

    pass


class PlanNotFoundError(DomainException):
    """Payment plan does not exist"""

    pass


class PlanInUseError(DomainException):
    """Payment plan is referenced by a schedule and cannot be changed"""

    pass


class BookingNotFoundError(DomainException):
    """Booking has no projection in this service"""

    pass


class PaymentNotFoundError(DomainException):
    """Payment does not exist"""

    pass


class PaymentStateError(DomainException):
    """Payment is not in a state that allows the requested transition"""

    pass


class ScheduleStateError(DomainException):
    """Schedule is not active, or a second active schedule was requested"""

    pass


class ActiveScheduleExistsError(ScheduleStateError):
    """Booking already has an active schedule"""

    pass


# Consistency


class ReconciliationError(DomainException):
    """Booking, schedule, installment and payment totals disagree"""

    def __init__(self, violations: List[str], schedule_id: Optional[str] = None):
        super().__init__("Reconciliation failed: " + "; ".join(violations))
        self.violations = violations
        self.schedule_id = schedule_id
