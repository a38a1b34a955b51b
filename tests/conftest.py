"""Pytest fixtures for testing"""

import pytest
from datetime import date
from typing import Any, Dict, Generator, List
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from plotpay_engine.api.main import create_app
from plotpay_engine.api.dependencies import get_audit_client
from plotpay_engine.infrastructure.clients.audit import AuditClient
from plotpay_engine.infrastructure.database.models import Base
from plotpay_engine.infrastructure.database.session import engine_options, get_db


# Test database
TEST_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(TEST_DATABASE_URL, **engine_options(TEST_DATABASE_URL))
TestingSessionLocal = sessionmaker(autoflush=False, bind=engine)


class RecordingAuditClient(AuditClient):
    """Builds audit events the real way but collects them instead of posting"""

    def __init__(self):
        super().__init__(webhook_url="http://audit.test/events")
        self.events: List[Dict[str, Any]] = []

    async def send_event(self, payload: Dict[str, Any]) -> None:
        self.events.append(payload)


@pytest.fixture
def db() -> Generator[Session, None, None]:
    """Create test database and session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def audit_client() -> RecordingAuditClient:
    return RecordingAuditClient()


@pytest.fixture
def client(db: Session, audit_client: RecordingAuditClient) -> TestClient:
    """Create FastAPI test client with test database"""
    app = create_app()

    def override_get_db():
        try:
            yield db
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_audit_client] = lambda: audit_client
    return TestClient(app)


@pytest.fixture
def start_date() -> date:
    return date(2025, 1, 15)


@pytest.fixture
def five_marla_plan() -> Dict[str, Any]:
    """5,000,000 plot, 20% down, 166,667 x 24 monthly (scheduled total 5,000,008)"""
    return {
        "name": "5 Marla Standard",
        "plot_size_marla": "5",
        "plot_price_cents": 5_000_000,
        "down_payment_percentage": "20",
        "monthly_payment_cents": 166_667,
        "tenure_months": 24,
    }


@pytest.fixture
def quarterly_plan() -> Dict[str, Any]:
    """1,200,000 plot, 200,000 down, 50,000 monthly + 100,000 quarterly over 12 months"""
    return {
        "name": "Quarterly Saver",
        "plot_size_marla": "3",
        "plot_price_cents": 1_200_000,
        "down_payment_cents": 200_000,
        "monthly_payment_cents": 50_000,
        "quarterly_payment_cents": 100_000,
        "tenure_months": 12,
    }
