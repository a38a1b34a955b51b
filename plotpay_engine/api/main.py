"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from plotpay_engine.api.middleware import RequestIDMiddleware, MetricsMiddleware
from plotpay_engine.api.v1 import late_fees, payments, plans, schedules
from plotpay_engine.infrastructure.observability.logging import setup_logging
from plotpay_engine.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Plotpay Engine",
        description="Installment payment scheduling and reconciliation for plot sales",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(plans.router, prefix="/v1", tags=["payment-plans"])
    app.include_router(schedules.router, prefix="/v1", tags=["schedules"])
    app.include_router(payments.router, prefix="/v1", tags=["payments"])
    app.include_router(late_fees.router, prefix="/v1", tags=["late-fees"])

    return app


app = create_app()
