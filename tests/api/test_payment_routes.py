"""HTTP tests for /api/payments."""

from datetime import date
from uuid import uuid4

import pytest

from fleet_kernel.domain.payments import PaymentStatus


@pytest.fixture
def booked(api_ledger, payment_factory):
    return [
        api_ledger.register(payment_factory("r1", "Sarah Johnson", "150.00", company="Acme")),
        api_ledger.register(
            payment_factory("r2", "Michael Chen", "100.00", status=PaymentStatus.PAID)
        ),
        api_ledger.register(
            payment_factory(
                "r3", "Ann Lee", "50.00", status=PaymentStatus.OVERDUE, due=date(2024, 2, 1)
            )
        ),
    ]


class TestListPayments:
    def test_lists_all_in_booking_order(self, client, booked):
        body = client.get("/api/payments").json()

        assert body["count"] == 3
        assert [p["rentalId"] for p in body["payments"]] == ["r1", "r2", "r3"]
        first = body["payments"][0]
        assert first["amountDue"] == "150.00"
        assert first["paymentStatus"] == "pending"
        assert first["paymentDueDate"] == "2024-03-01"
        assert first["paymentReference"] == "FLEET-R1-SARAHJOHNSON"

    def test_filter_by_status(self, client, booked):
        body = client.get("/api/payments", params={"status": "OVERDUE"}).json()
        assert [p["rentalId"] for p in body["payments"]] == ["r3"]

    def test_search(self, client, booked):
        body = client.get("/api/payments", params={"search": "acme"}).json()
        assert [p["rentalId"] for p in body["payments"]] == ["r1"]

    def test_due_window(self, client, booked):
        body = client.get(
            "/api/payments", params={"due_from": "2024-02-15", "due_to": "2024-03-31"}
        ).json()
        assert {p["rentalId"] for p in body["payments"]} == {"r1", "r2"}

    def test_unknown_status_400(self, client):
        assert client.get("/api/payments", params={"status": "refunded"}).status_code == 400


class TestStatistics:
    def test_aggregates(self, client, booked):
        body = client.get("/api/payments/statistics").json()

        assert body["total"] == 3
        assert body["paid"] == 1
        assert body["pending"] == 1
        assert body["overdue"] == 1
        assert body["totalAmount"] == "300.00"
        assert body["overdueAmount"] == "50.00"
        assert body["collectionRate"] == "33.33"

    def test_empty_ledger(self, client):
        body = client.get("/api/payments/statistics").json()
        assert body["total"] == 0
        assert body["collectionRate"] == "0.00"


class TestGetPayment:
    def test_by_id(self, client, booked):
        record = booked[0]
        body = client.get(f"/api/payments/{record.id}").json()
        assert body["id"] == str(record.id)
        assert body["company"] == "Acme"

    def test_unknown_id_404(self, client):
        assert client.get(f"/api/payments/{uuid4()}").status_code == 404

    def test_malformed_id_422(self, client):
        assert client.get("/api/payments/not-a-uuid").status_code == 422


class TestManualOverride:
    def test_mark_paid(self, client, api_ledger, booked):
        response = client.post(
            "/api/payments/r1/status",
            json={
                "status": "paid",
                "paidDate": "2024-03-05",
                "paymentMethod": "cash",
                "transactionId": "MANUAL-1",
                "actorId": "ops-1",
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["changed"] is True
        assert body["payment"]["paymentStatus"] == "paid"
        assert body["payment"]["transactionId"] == "MANUAL-1"
        assert api_ledger.get_by_rental("r1").paid_date == date(2024, 3, 5)

    def test_reopen_paid_clears_settlement(self, client, booked):
        body = client.post("/api/payments/r2/status", json={"status": "pending"}).json()

        assert body["changed"] is True
        assert body["payment"]["paymentStatus"] == "pending"
        assert body["payment"]["paidDate"] is None
        assert body["payment"]["transactionId"] is None

    def test_same_status_unchanged(self, client, booked):
        body = client.post("/api/payments/r3/status", json={"status": "overdue"}).json()
        assert body["success"] is True
        assert body["changed"] is False

    def test_paid_without_metadata_400(self, client, booked):
        response = client.post("/api/payments/r1/status", json={"status": "paid"})

        assert response.status_code == 400
        assert response.json()["code"] == "TRANSITION_VALIDATION"

    def test_unknown_status_400(self, client, booked):
        response = client.post("/api/payments/r1/status", json={"status": "refunded"})
        assert response.status_code == 400

    def test_unknown_rental_404(self, client):
        response = client.post("/api/payments/nope/status", json={"status": "overdue"})

        assert response.status_code == 404
        assert response.json()["rentalId"] == "nope"

    def test_amount_mismatch_409(self, client, booked):
        response = client.post(
            "/api/payments/r1/status",
            json={
                "status": "paid",
                "paidDate": "2024-03-05",
                "paymentMethod": "cash",
                "transactionId": "MANUAL-1",
                "amount": "10.00",
            },
        )
        assert response.status_code == 409

    def test_missing_status_field_422(self, client, booked):
        assert client.post("/api/payments/r1/status", json={}).status_code == 422
