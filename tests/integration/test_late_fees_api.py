"""Integration tests for late fee accrual and the overdue sweep"""

from datetime import date, timedelta
from fastapi.testclient import TestClient

START = date(2025, 1, 15)
FIRST_DUE = date(2025, 2, 15)


def create_schedule(client: TestClient, booking_id: str, **fields) -> dict:
    """12 x 100,000 monthly with no down payment"""
    body = {
        "booking_id": booking_id,
        "start_date": START.isoformat(),
        "total_cents": 1_200_000,
        "down_payment_cents": 0,
        "installment_count": 12,
    }
    body.update(fields)
    response = client.post("/v1/schedules", json=body)
    assert response.status_code == 201, response.text
    return response.json()


def test_schedule_late_fees(client: TestClient):
    """100,000 overdue 15 days at 2% per month accrues 1,000"""
    schedule = create_schedule(client, "BK-L1")
    as_of = FIRST_DUE + timedelta(days=15)

    response = client.post(f"/v1/schedules/{schedule['schedule_id']}/late-fees", json={"as_of": as_of.isoformat()})
    assert response.status_code == 200
    assert response.json()["total_late_fees_accrued_cents"] == 1_000

    refreshed = client.get(f"/v1/schedules/{schedule['schedule_id']}").json()
    assert refreshed["total_late_fees_cents"] == 1_000
    assert refreshed["pending_amount_cents"] == 1_200_000

    first = refreshed["installments"][0]
    assert first["status"] == "overdue"
    assert first["late_fee_cents"] == 1_000
    assert all(i["status"] == "pending" for i in refreshed["installments"][1:])


def test_late_fees_recomputed_not_compounded(client: TestClient):
    schedule = create_schedule(client, "BK-L2")
    url = f"/v1/schedules/{schedule['schedule_id']}/late-fees"
    as_of = (FIRST_DUE + timedelta(days=15)).isoformat()

    client.post(url, json={"as_of": as_of})
    response = client.post(url, json={"as_of": as_of})
    assert response.json()["total_late_fees_accrued_cents"] == 1_000


def test_custom_late_fee_rate(client: TestClient):
    schedule = create_schedule(client, "BK-L3", late_fee_rate="0.03")
    as_of = (FIRST_DUE + timedelta(days=10)).isoformat()

    response = client.post(f"/v1/schedules/{schedule['schedule_id']}/late-fees", json={"as_of": as_of})
    # 100,000 x 0.03 / 30 x 10
    assert response.json()["total_late_fees_accrued_cents"] == 1_000


def test_overdue_installment_is_paid_first(client: TestClient):
    schedule = create_schedule(client, "BK-L4")
    as_of = (FIRST_DUE + timedelta(days=5)).isoformat()
    client.post(f"/v1/schedules/{schedule['schedule_id']}/late-fees", json={"as_of": as_of})

    response = client.post("/v1/bookings/BK-L4/payments", json={"amount_cents": 100_000})
    assert response.status_code == 201

    installments = client.get(f"/v1/schedules/{schedule['schedule_id']}").json()["installments"]
    assert installments[0]["status"] == "paid"
    assert installments[0]["due_date"] == FIRST_DUE.isoformat()


def test_sweep_processes_active_schedules(client: TestClient):
    create_schedule(client, "BK-S1")
    create_schedule(client, "BK-S2")
    cancelled = create_schedule(client, "BK-S3")
    client.post(f"/v1/schedules/{cancelled['schedule_id']}/cancel")

    as_of = FIRST_DUE + timedelta(days=15)
    response = client.post("/v1/late-fees/sweep", json={"as_of": as_of.isoformat()})

    assert response.status_code == 200
    body = response.json()
    assert body["schedules_processed"] == 2
    assert body["total_late_fees_accrued_cents"] == 2_000
    assert body["as_of"] == as_of.isoformat()


def test_late_fees_unknown_schedule(client: TestClient):
    response = client.post("/v1/schedules/00000000-0000-0000-0000-000000000000/late-fees", json={})
    assert response.status_code == 404
