"""Integration tests for schedule endpoints"""

from datetime import date
from fastapi.testclient import TestClient

START = date(2025, 1, 15)


def create_plan(client: TestClient, payload: dict) -> str:
    response = client.post("/v1/payment-plans", json=payload)
    assert response.status_code == 201, response.text
    return response.json()["id"]


def create_schedule(client: TestClient, **fields) -> dict:
    body = {"booking_id": "BK-1", "start_date": START.isoformat()}
    body.update(fields)
    response = client.post("/v1/schedules", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_plan_schedule_with_quarterly_overlay(client: TestClient, quarterly_plan: dict):
    plan_id = create_plan(client, quarterly_plan)
    schedule = create_schedule(client, payment_plan_id=plan_id, down_payment_paid_cents=200_000)

    installments = schedule["installments"]
    quarterly = [i for i in installments if i["installment_type"] == "quarterly"]
    assert len(installments) == 16
    assert len(quarterly) == 4
    assert [i["due_date"] for i in quarterly] == ["2025-04-15", "2025-07-15", "2025-10-15", "2026-01-15"]
    assert sum(i["amount_cents"] for i in installments) == 1_000_000

    assert schedule["total_amount_cents"] == 1_200_000
    assert schedule["paid_amount_cents"] == 200_000
    assert schedule["pending_amount_cents"] == 1_000_000
    assert schedule["status"] == "active"
    assert schedule["payment_plan_id"] == plan_id


def test_schedule_records_down_payment_collected_at_sale(client: TestClient, five_marla_plan: dict):
    plan_id = create_plan(client, five_marla_plan)
    create_schedule(client, payment_plan_id=plan_id, down_payment_paid_cents=1_000_000, payment_method="bank_transfer")

    payments = client.get("/v1/bookings/BK-1/payments").json()["payments"]
    assert len(payments) == 1
    assert payments[0]["amount_cents"] == 1_000_000
    assert payments[0]["status"] == "completed"
    assert payments[0]["method"] == "bank_transfer"

    summary = client.get("/v1/bookings/BK-1/payments/summary").json()
    assert summary["status"] == "confirmed"
    assert summary["total_amount_cents"] == 5_000_008
    assert summary["pending_amount_cents"] == 4_000_008


def test_partial_down_payment_creates_balance_installment(client: TestClient, five_marla_plan: dict):
    plan_id = create_plan(client, five_marla_plan)
    schedule = create_schedule(client, payment_plan_id=plan_id, down_payment_paid_cents=400_000)

    first = schedule["installments"][0]
    assert first["installment_type"] == "down_payment_balance"
    assert first["amount_cents"] == 600_000
    assert first["due_date"] == "2025-02-15"
    assert schedule["installments"][1]["due_date"] == "2025-03-15"

    summary = client.get("/v1/bookings/BK-1/payments/summary").json()
    assert summary["status"] == "pending"


def test_ad_hoc_schedule(client: TestClient):
    schedule = create_schedule(
        client,
        total_cents=1_000_000,
        down_payment_cents=100_000,
        installment_count=4,
        down_payment_paid_cents=100_000,
    )

    amounts = [i["amount_cents"] for i in schedule["installments"]]
    assert amounts == [225_000, 225_000, 225_000, 225_000]
    assert schedule["installment_count"] == 4
    assert schedule["end_date"] == "2025-05-15"
    assert schedule["payment_plan_id"] is None


def test_full_payment_schedule_paid_at_sale_is_completed(client: TestClient):
    schedule = create_schedule(
        client,
        payment_type="full_payment",
        total_cents=2_500_000,
        down_payment_paid_cents=2_500_000,
    )

    assert schedule["payment_type"] == "full_payment"
    assert schedule["status"] == "completed"
    assert schedule["installments"] == []

    summary = client.get("/v1/bookings/BK-1/payments/summary").json()
    assert summary["status"] == "completed"
    assert summary["pending_amount_cents"] == 0


def test_ad_hoc_requires_amounts(client: TestClient):
    response = client.post("/v1/schedules", json={"booking_id": "BK-1", "start_date": START.isoformat()})
    assert response.status_code == 422


def test_paid_down_payment_above_required_rejected(client: TestClient, five_marla_plan: dict):
    plan_id = create_plan(client, five_marla_plan)
    response = client.post(
        "/v1/schedules",
        json={
            "booking_id": "BK-1",
            "start_date": START.isoformat(),
            "payment_plan_id": plan_id,
            "down_payment_paid_cents": 1_500_000,
        },
    )

    assert response.status_code == 422
    assert response.json()["detail"]["errors"][0]["code"] == "down_payment_range"


def test_unknown_plan_is_not_found(client: TestClient):
    response = client.post(
        "/v1/schedules",
        json={
            "booking_id": "BK-1",
            "start_date": START.isoformat(),
            "payment_plan_id": "00000000-0000-0000-0000-000000000000",
        },
    )
    assert response.status_code == 404


def test_inactive_plan_cannot_drive_schedule(client: TestClient, five_marla_plan: dict):
    five_marla_plan["status"] = "inactive"
    plan_id = create_plan(client, five_marla_plan)

    response = client.post(
        "/v1/schedules",
        json={"booking_id": "BK-1", "start_date": START.isoformat(), "payment_plan_id": plan_id},
    )
    assert response.status_code == 409


def test_second_active_schedule_rejected(client: TestClient):
    create_schedule(client, total_cents=1_000_000, down_payment_cents=100_000, installment_count=4)

    response = client.post(
        "/v1/schedules",
        json={
            "booking_id": "BK-1",
            "start_date": START.isoformat(),
            "total_cents": 2_000_000,
            "down_payment_cents": 100_000,
            "installment_count": 4,
        },
    )
    assert response.status_code == 409


def test_cancel_then_reschedule(client: TestClient):
    first = create_schedule(
        client, total_cents=1_000_000, down_payment_cents=100_000, installment_count=4, down_payment_paid_cents=100_000
    )

    response = client.post(f"/v1/schedules/{first['schedule_id']}/cancel", json={"reason": "Customer switched plan"})
    assert response.status_code == 200
    cancelled = response.json()
    assert cancelled["status"] == "cancelled"
    assert all(i["status"] == "cancelled" for i in cancelled["installments"])

    second = create_schedule(
        client, total_cents=1_200_000, down_payment_cents=200_000, installment_count=10, down_payment_paid_cents=200_000
    )

    authoritative = client.get("/v1/bookings/BK-1/schedule").json()
    assert authoritative["schedule_id"] == second["schedule_id"]

    summary = client.get("/v1/bookings/BK-1/payments/summary").json()
    assert summary["total_amount_cents"] == 1_200_000
    assert summary["paid_amount_cents"] == 200_000
    assert summary["pending_amount_cents"] == 1_000_000


def test_cancel_twice_conflicts(client: TestClient):
    schedule = create_schedule(client, total_cents=1_000_000, down_payment_cents=100_000, installment_count=4)

    assert client.post(f"/v1/schedules/{schedule['schedule_id']}/cancel").status_code == 200
    assert client.post(f"/v1/schedules/{schedule['schedule_id']}/cancel").status_code == 409


def test_get_schedule_and_booking_lookup(client: TestClient):
    schedule = create_schedule(client, total_cents=1_000_000, down_payment_cents=100_000, installment_count=4)

    response = client.get(f"/v1/schedules/{schedule['schedule_id']}")
    assert response.status_code == 200
    assert response.json()["booking_id"] == "BK-1"

    assert client.get("/v1/bookings/BK-404/schedule").status_code == 404
    assert client.get("/v1/schedules/00000000-0000-0000-0000-000000000000").status_code == 404


def test_reconciliation_report_balanced(client: TestClient):
    schedule = create_schedule(
        client, total_cents=1_000_000, down_payment_cents=100_000, installment_count=4, down_payment_paid_cents=50_000
    )

    response = client.get(f"/v1/schedules/{schedule['schedule_id']}/reconciliation")
    assert response.status_code == 200
    assert response.json() == {
        "schedule_id": schedule["schedule_id"],
        "booking_id": "BK-1",
        "balanced": True,
        "violations": [],
    }
