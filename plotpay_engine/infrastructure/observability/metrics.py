"""Prometheus metrics for schedule creation, allocation, late fees and reconciliation"""

from prometheus_client import Counter, Histogram

# Schedule metrics
schedule_created_counter = Counter(
    "plotpay_schedules_created_total",
    "Payment schedules created",
    ["mode"],  # plan | ad_hoc | full_payment
)

plan_rejection_counter = Counter(
    "plotpay_plan_rejections_total",
    "Payment plan rule failures",
    ["code"],
)

# Allocation metrics
payment_allocated_counter = Counter(
    "plotpay_payments_allocated_total",
    "Payments applied to schedules",
)

payment_amount_counter = Counter(
    "plotpay_payment_amount_cents_total",
    "Minor currency units applied to schedules",
)

allocation_rejection_counter = Counter(
    "plotpay_allocation_rejections_total",
    "Payments rejected before allocation",
    ["reason"],  # invalid_amount | overpayment | schedule_not_found
)

refund_counter = Counter(
    "plotpay_refunds_total",
    "Refunds issued against completed payments",
)

# Late fee metrics
late_fee_amount_counter = Counter(
    "plotpay_late_fees_accrued_cents_total",
    "Late fees accrued by sweeps",
)

# Consistency
reconciliation_failure_counter = Counter(
    "plotpay_reconciliation_failures_total",
    "Transactions rolled back because money invariants diverged",
    ["operation"],
)

# Webhook metrics
webhook_latency_histogram = Histogram(
    "webhook_latency_seconds",
    "Audit webhook response time",
    buckets=[0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0],
)

webhook_failure_counter = Counter(
    "webhook_failures_total",
    "Failed webhook deliveries",
)

# Service health
request_duration_histogram = Histogram(
    "http_request_duration_seconds",
    "HTTP request latency",
    ["method", "endpoint", "status"],
)


def record_allocation(amount_cents: int) -> None:
    """Record a successful allocation"""
    payment_allocated_counter.inc()
    payment_amount_counter.inc(amount_cents)


def record_plan_rejection(codes) -> None:
    for code in codes:
        plan_rejection_counter.labels(code=code).inc()
