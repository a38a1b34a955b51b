"""Structured JSON logging for production observability"""

import logging
import sys
from datetime import datetime, timezone
from typing import Any, Dict, List
from pythonjsonlogger import jsonlogger

from plotpay_engine.config import settings


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """Custom JSON formatter with timestamp and service metadata"""

    def add_fields(self, log_record: Dict[str, Any], record: logging.LogRecord, message_dict: Dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["timestamp"] = datetime.now(timezone.utc).isoformat()
        log_record["level"] = record.levelname
        log_record["service"] = settings.service_name


def setup_logging(level: str = "INFO") -> None:
    """Configure structured JSON logging"""
    logger = logging.getLogger()
    logger.setLevel(level)

    # Remove existing handlers
    logger.handlers.clear()

    # JSON handler for stdout
    handler = logging.StreamHandler(sys.stdout)
    formatter = CustomJsonFormatter(
        "%(timestamp)s %(level)s %(name)s %(message)s"
    )
    handler.setFormatter(formatter)
    logger.addHandler(handler)


logger = logging.getLogger("plotpay_engine")


def log_schedule_created(
    schedule_id: str,
    booking_id: str,
    mode: str,
    total_cents: int,
    installment_count: int,
) -> None:
    """Log schedule creation for booking traceability"""
    logger.info(
        "Schedule created",
        extra={
            "schedule_id": schedule_id,
            "booking_id": booking_id,
            "step": "schedule_created",
            "mode": mode,
            "total_cents": total_cents,
            "installment_count": installment_count,
        },
    )


def log_payment_allocated(
    schedule_id: str,
    payment_id: str,
    amount_cents: int,
    installments_paid: int,
    splits: int,
    pending_cents: int,
) -> None:
    """Log structured allocation outcome"""
    logger.info(
        "Payment allocated",
        extra={
            "schedule_id": schedule_id,
            "payment_id": payment_id,
            "step": "payment_allocated",
            "amount_cents": amount_cents,
            "installments_paid": installments_paid,
            "splits": splits,
            "pending_cents": pending_cents,
        },
    )


def log_refund(schedule_id: str, payment_id: str, amount_cents: int, reopened: int) -> None:
    logger.info(
        "Payment refunded",
        extra={
            "schedule_id": schedule_id,
            "payment_id": payment_id,
            "step": "payment_refunded",
            "amount_cents": amount_cents,
            "installments_reopened": reopened,
        },
    )


def log_late_fees(schedule_id: str, overdue_count: int, total_late_fees_cents: int) -> None:
    logger.info(
        "Late fees accrued",
        extra={
            "schedule_id": schedule_id,
            "step": "late_fees_accrued",
            "overdue_count": overdue_count,
            "total_late_fees_cents": total_late_fees_cents,
        },
    )


def log_reconciliation_failure(operation: str, schedule_id: str, violations: List[str]) -> None:
    """Money state diverged; the triggering transaction is rolled back"""
    logger.error(
        "Reconciliation failed",
        extra={
            "schedule_id": schedule_id,
            "step": "reconciliation_failed",
            "operation": operation,
            "violations": violations,
        },
    )


def log_late_fee_sweep(as_of: str, schedules_processed: int, total_late_fees_cents: int) -> None:
    logger.info(
        "Late fee sweep finished",
        extra={
            "step": "late_fee_sweep",
            "as_of": as_of,
            "schedules_processed": schedules_processed,
            "total_late_fees_cents": total_late_fees_cents,
        },
    )


def log_plan_rejected(codes: List[str]) -> None:
    logger.warning("Payment plan rejected", extra={"step": "plan_rejected", "codes": codes})


def log_request(request_id: str, method: str, endpoint: str, status: int, duration_ms: float) -> None:
    logger.info(
        "Request handled",
        extra={
            "step": "request",
            "request_id": request_id,
            "method": method,
            "endpoint": endpoint,
            "status": status,
            "duration_ms": duration_ms,
        },
    )
