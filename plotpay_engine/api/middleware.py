"""Request correlation and latency middleware"""

import uuid
import time
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from plotpay_engine.infrastructure.observability.logging import log_request
from plotpay_engine.infrastructure.observability.metrics import request_duration_histogram

REQUEST_ID_HEADER = "X-Request-ID"


class RequestIDMiddleware(BaseHTTPMiddleware):
    """Correlate a request with its audit events, reusing the caller's ID when given"""

    async def dispatch(self, request: Request, call_next):
        request_id = request.headers.get(REQUEST_ID_HEADER) or str(uuid.uuid4())
        request.state.request_id = request_id

        response = await call_next(request)
        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def route_template(request: Request) -> str:
    """Route path with placeholders so schedule and booking IDs don't explode label cardinality"""
    route = request.scope.get("route")
    return getattr(route, "path", None) or "unmatched"


class MetricsMiddleware(BaseHTTPMiddleware):
    """Record latency per route and log each money-moving request"""

    async def dispatch(self, request: Request, call_next):
        started = time.perf_counter()

        response = await call_next(request)

        duration = time.perf_counter() - started
        endpoint = route_template(request)
        request_duration_histogram.labels(
            method=request.method,
            endpoint=endpoint,
            status=response.status_code,
        ).observe(duration)

        if request.method != "GET":
            log_request(
                request_id=getattr(request.state, "request_id", "unknown"),
                method=request.method,
                endpoint=endpoint,
                status=response.status_code,
                duration_ms=round(duration * 1000, 2),
            )

        return response
