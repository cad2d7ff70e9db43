import uuid
from datetime import date, timedelta


async def create_caterer(client, name="Sharma Caterers"):
    response = await client.post("/api/v1/caterers", json={"name": name, "phone": "9876543210"})
    assert response.status_code == 201
    return response.json()


async def create_bill(client, caterer_id, rate="1000", amount_paid="0", distribution_date=None, **extra):
    payload = {
        "caterer_id": caterer_id,
        "distribution_date": (distribution_date or date.today()).isoformat(),
        "amount_paid": amount_paid,
        "items": [{"item_name": "Turmeric Powder", "quantity": "1", "rate": rate}],
        **extra,
    }
    response = await client.post("/api/v1/distributions", json=payload)
    assert response.status_code == 201, response.text
    return response.json()


class TestAuth:
    async def test_token_required(self, client):
        response = await client.get("/api/v1/caterers", headers={"Authorization": ""})
        assert response.status_code in (401, 403)

    async def test_invalid_token(self, client):
        response = await client.get("/api/v1/caterers", headers={"Authorization": "Bearer nope"})
        assert response.status_code == 401

    async def test_root_is_public(self, client):
        response = await client.get("/", headers={"Authorization": ""})
        assert response.status_code == 200

    async def test_health_reports_database(self, client):
        response = await client.get("/health", headers={"Authorization": ""})
        assert response.status_code == 200
        assert response.json()["checks"]["database"] == "connected"
        assert response.json()["checks"]["scheduler"] == []


class TestBillingFlow:
    async def test_bill_payment_and_balance(self, client):
        caterer = await create_caterer(client)
        bill = await create_bill(client, caterer["id"])
        assert bill["status"] == "active"
        assert bill["grand_total"] == "1000.00"

        response = await client.post("/api/v1/caterer-payments", json={
            "distribution_id": bill["id"],
            "amount": "400",
            "payment_mode": "UPI",
            "expected_balance_due": "1000.00",
        })
        assert response.status_code == 201, response.text
        body = response.json()
        assert body["ledger"]["status"] == "partial"
        assert body["ledger"]["balance_due"] == "600.00"
        assert body["payment"]["payment_mode"] == "upi"

        balance = (await client.get(f"/api/v1/caterers/{caterer['id']}/balance")).json()
        assert balance["total_billed"] == "1000.00"
        assert balance["total_paid"] == "400.00"
        assert balance["balance_due"] == "600.00"

        response = await client.post("/api/v1/caterer-payments", json={
            "distribution_id": bill["id"], "amount": "600",
        })
        assert response.json()["ledger"]["status"] == "paid"
        assert response.json()["message"] == f"Bill {bill['bill_no']} settled"

    async def test_overpayment_is_rejected(self, client):
        caterer = await create_caterer(client)
        bill = await create_bill(client, caterer["id"], rate="500")

        response = await client.post("/api/v1/caterer-payments", json={
            "distribution_id": bill["id"], "amount": "500.01",
        })
        assert response.status_code == 400
        assert response.json()["type"] == "OverpaymentError"
        assert response.json()["details"]["balance_due"] == "500.00"

    async def test_stale_balance_is_rejected(self, client):
        caterer = await create_caterer(client)
        bill = await create_bill(client, caterer["id"], amount_paid="100")

        response = await client.post("/api/v1/caterer-payments", json={
            "distribution_id": bill["id"], "amount": "50", "expected_balance_due": "1000",
        })
        assert response.status_code == 409
        assert response.json()["type"] == "StaleStateError"

    async def test_payment_with_fractions_of_a_paisa(self, client):
        caterer = await create_caterer(client)
        bill = await create_bill(client, caterer["id"])

        response = await client.post("/api/v1/caterer-payments", json={
            "distribution_id": bill["id"], "amount": "400.004",
        })
        assert response.status_code == 422
        assert (await client.get(f"/api/v1/distributions/{bill['id']}")).json()["amount_paid"] == "0.00"

    async def test_bill_lines_read_back_consistent(self, client):
        caterer = await create_caterer(client)
        for quantity, rate in (("3", "33.335"), ("0.0004", "250000")):
            response = await client.post("/api/v1/distributions", json={
                "caterer_id": caterer["id"],
                "distribution_date": date.today().isoformat(),
                "items": [{"item_name": "Cardamom", "quantity": quantity, "rate": rate}],
            })
            assert response.status_code == 422

        bill = await create_bill(client, caterer["id"], items=[
            {"item_name": "Cardamom", "quantity": "3", "rate": "33.34"},
        ])
        stored = (await client.get(f"/api/v1/distributions/{bill['id']}")).json()
        assert stored["items"][0]["amount"] == "100.02"
        assert stored["grand_total"] == "100.02"

    async def test_payment_needs_a_target(self, client):
        response = await client.post("/api/v1/caterer-payments", json={"amount": "10"})
        assert response.status_code == 422

    async def test_payment_for_other_caterers_bill(self, client):
        owner = await create_caterer(client)
        other = await create_caterer(client, "Other Caterer")
        bill = await create_bill(client, owner["id"])

        response = await client.post("/api/v1/caterer-payments", json={
            "caterer_id": other["id"], "distribution_id": bill["id"], "amount": "10",
        })
        assert response.status_code == 422

    async def test_caterer_level_payment(self, client):
        caterer = await create_caterer(client)
        await create_bill(client, caterer["id"])

        response = await client.post("/api/v1/caterer-payments", json={
            "caterer_id": caterer["id"], "amount": "300",
        })
        assert response.status_code == 201
        assert response.json()["ledger"] is None

        payments = (await client.get("/api/v1/caterer-payments", params={"caterer_id": caterer["id"]})).json()
        assert payments["total"] == 1

    async def test_invalid_line_is_rejected(self, client):
        caterer = await create_caterer(client)
        response = await client.post("/api/v1/distributions", json={
            "caterer_id": caterer["id"],
            "distribution_date": date.today().isoformat(),
            "items": [{"item_name": "Salt", "quantity": "0", "rate": "10"}],
        })
        assert response.status_code == 422

    async def test_cancel_and_status_guard(self, client):
        caterer = await create_caterer(client)
        bill = await create_bill(client, caterer["id"])

        response = await client.patch(f"/api/v1/distributions/{bill['id']}/status", json={"status": "paid"})
        assert response.status_code == 422

        response = await client.patch(f"/api/v1/distributions/{bill['id']}/status", json={"status": "Cancelled"})
        assert response.status_code == 200
        assert response.json()["status"] == "cancelled"

        response = await client.post("/api/v1/caterer-payments", json={
            "distribution_id": bill["id"], "amount": "1",
        })
        assert response.status_code == 422

    async def test_summary_and_list(self, client):
        caterer = await create_caterer(client)
        await create_bill(client, caterer["id"], distribution_date=date.today() - timedelta(days=10))
        await create_bill(client, caterer["id"], amount_paid="1000")

        summary = (await client.get("/api/v1/distributions/summary")).json()
        assert summary["total_bills"] == 2
        assert summary["overdue_bills"] == 1
        assert summary["overdue_amount"] == "1000.00"

        listed = (await client.get("/api/v1/distributions", params={"status": "paid"})).json()
        assert listed["total"] == 1


class TestDeletes:
    async def test_caterer_delete_reports_related_records(self, client):
        caterer = await create_caterer(client)
        await create_bill(client, caterer["id"], amount_paid="100")

        response = await client.delete(f"/api/v1/caterers/{caterer['id']}")
        assert response.status_code == 409
        assert response.json()["details"]["related_records"] == {"bills": 1, "payments": 1, "total": 2}

        response = await client.delete(f"/api/v1/caterers/{caterer['id']}", params={"cascade": "true"})
        assert response.status_code == 204
        assert (await client.get(f"/api/v1/caterers/{caterer['id']}")).status_code == 404

    async def test_distribution_delete_needs_cascade(self, client):
        caterer = await create_caterer(client)
        bill = await create_bill(client, caterer["id"], amount_paid="100")

        assert (await client.delete(f"/api/v1/distributions/{bill['id']}")).status_code == 409
        response = await client.delete(f"/api/v1/distributions/{bill['id']}", params={"cascade": "true"})
        assert response.status_code == 204

        balance = (await client.get(f"/api/v1/caterers/{caterer['id']}/balance")).json()
        assert balance["total_billed"] == "0.00"

    async def test_unknown_ids(self, client):
        missing = uuid.uuid4()
        assert (await client.get(f"/api/v1/distributions/{missing}")).status_code == 404
        assert (await client.get(f"/api/v1/caterer-payments/{missing}")).status_code == 404
        assert (await client.delete(f"/api/v1/payment-reminders/{missing}")).status_code == 404


class TestReminders:
    async def test_reminder_feed_and_promotion(self, client):
        caterer = await create_caterer(client)
        bill = await create_bill(client, caterer["id"], distribution_date=date.today() - timedelta(days=3))

        listed = (await client.get("/api/v1/payment-reminders")).json()
        assert listed["total"] == 1
        assert listed["items"][0]["kind"] == "synthesized"
        assert listed["items"][0]["key"] == f"dist-{bill['id']}"
        assert listed["items"][0]["status"] == "overdue"

        response = await client.post("/api/v1/payment-reminders/promote", json={"distribution_id": bill["id"]})
        assert response.status_code == 201
        reminder = response.json()

        again = await client.post("/api/v1/payment-reminders/promote", json={"distribution_id": bill["id"]})
        assert again.status_code == 422

        listed = (await client.get("/api/v1/payment-reminders")).json()
        assert listed["total"] == 1
        assert listed["items"][0]["kind"] == "persisted"
        assert listed["items"][0]["id"] == reminder["id"]

        snooze_until = (date.today() + timedelta(days=2)).isoformat()
        response = await client.post(
            f"/api/v1/payment-reminders/{reminder['id']}/next-reminder",
            json={"next_reminder_date": snooze_until},
        )
        assert response.status_code == 200
        assert (await client.get("/api/v1/payment-reminders")).json()["total"] == 0

    async def test_notifications_are_announced_once(self, client):
        caterer = await create_caterer(client)
        await create_bill(client, caterer["id"], rate="1250", distribution_date=date.today() - timedelta(days=1))

        first = (await client.get("/api/v1/notifications/new")).json()
        assert first["total"] == 1
        assert first["items"][0]["description"] == "Sharma Caterers - ₹1,250.00 overdue"
        assert first["items"][0]["priority"] == "high"

        assert (await client.get("/api/v1/notifications/new")).json()["total"] == 0
        assert (await client.get("/api/v1/notifications")).json()["total"] == 1

    async def test_acknowledge_silences_notification(self, client):
        caterer = await create_caterer(client)
        bill = await create_bill(client, caterer["id"])
        reminder = (await client.post(
            "/api/v1/payment-reminders/promote", json={"distribution_id": bill["id"]}
        )).json()

        response = await client.post(f"/api/v1/payment-reminders/{reminder['id']}/acknowledge")
        assert response.status_code == 200
        assert response.json()["is_acknowledged"] is True
        assert (await client.get("/api/v1/notifications")).json()["total"] == 0

    async def test_paying_bill_clears_reminder(self, client):
        caterer = await create_caterer(client)
        bill = await create_bill(client, caterer["id"], rate="200")
        await client.post("/api/v1/payment-reminders/promote", json={"distribution_id": bill["id"]})

        await client.post("/api/v1/caterer-payments", json={"distribution_id": bill["id"], "amount": "200"})
        assert (await client.get("/api/v1/payment-reminders")).json()["total"] == 0


class TestSync:
    async def test_sync_endpoints(self, client):
        caterer = await create_caterer(client)
        await create_bill(client, caterer["id"], amount_paid="250")

        response = await client.post(f"/api/v1/caterers/{caterer['id']}/sync-balance")
        assert response.status_code == 200
        assert response.json()["balance_due"] == "750.00"
        assert response.json()["last_synced_at"] is not None

        report = (await client.post("/api/v1/caterers/sync-balances")).json()
        assert report["total"] == 1
        assert report["successful"] == 1

        repair = (await client.post("/api/v1/distributions/repair-ledgers")).json()
        assert repair == {"checked": 1, "repaired": 0, "bill_numbers": []}
