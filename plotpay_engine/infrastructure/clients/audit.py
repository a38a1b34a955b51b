"""Audit webhook client: operational alerts for money-state failures"""

import asyncio
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import httpx

from plotpay_engine.config import settings
from plotpay_engine.domain.exceptions import ReconciliationError
from plotpay_engine.infrastructure.observability.metrics import webhook_failure_counter, webhook_latency_histogram

RECONCILIATION_FAILED = "RECONCILIATION_FAILED"


def _retryable(error: Exception) -> bool:
    """Network failures and 5xx are worth another attempt; a 4xx will not change"""
    if isinstance(error, httpx.HTTPStatusError):
        return error.response.status_code >= 500
    return isinstance(error, httpx.RequestError)


class AuditClient:
    """
    Posts alert events to the audit service.

    Delivery runs after the HTTP response has gone out (FastAPI background
    task), so a slow or failing audit service never holds up the caller.
    """

    def __init__(
        self,
        webhook_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        backoff_base: Optional[float] = None,
    ):
        self.webhook_url = webhook_url or settings.audit_webhook_url
        self.transport = transport
        self.max_retries = settings.webhook_max_retries
        self.backoff_base = settings.webhook_backoff_base if backoff_base is None else backoff_base

    def reconciliation_failed_event(
        self,
        error: ReconciliationError,
        operation: str,
        request_id: str,
    ) -> Dict[str, Any]:
        return {
            "event": RECONCILIATION_FAILED,
            "service": settings.service_name,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
            "request_id": request_id,
            "operation": operation,
            "schedule_id": error.schedule_id,
            "violations": list(error.violations),
        }

    async def report_reconciliation_failure(
        self,
        error: ReconciliationError,
        operation: str,
        request_id: str,
    ) -> None:
        await self.send_event(self.reconciliation_failed_event(error, operation, request_id))

    async def send_event(self, payload: Dict[str, Any]) -> None:
        """
        Deliver one event, retrying with exponential backoff
        (backoff_base * 2^(attempt-1)) up to webhook_max_retries attempts.

        Raises:
            httpx.HTTPStatusError / httpx.RequestError: last failure, or a 4xx
        """
        async with httpx.AsyncClient(transport=self.transport, timeout=settings.http_timeout_seconds) as client:
            for attempt in range(1, self.max_retries + 1):
                try:
                    with webhook_latency_histogram.time():
                        response = await client.post(self.webhook_url, json=payload)
                    response.raise_for_status()
                    return
                except (httpx.HTTPStatusError, httpx.RequestError) as e:
                    webhook_failure_counter.inc()
                    if attempt >= self.max_retries or not _retryable(e):
                        raise
                    await asyncio.sleep(self.backoff_base * (2 ** (attempt - 1)))
