"""Dependency injection for FastAPI endpoints"""

import uuid
from fastapi import HTTPException, Request
from plotpay_engine.infrastructure.clients.audit import AuditClient


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_audit_client() -> AuditClient:
    """Provide audit webhook client instance"""
    return AuditClient()


def parse_uuid(value: str, label: str) -> uuid.UUID:
    """Path identifiers are UUIDs; anything else is a client error"""
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {label} ID format")
