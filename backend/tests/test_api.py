# Overview: Pytest coverage for the HTTP boundary: status codes, payload shapes and error mapping.

from datetime import timedelta

from cari.time_utils import today


def _create_customer(client, name="Deniz Restaurant", **extra):
    resp = client.post("/api/counterparties", json={"type": "customer", "name": name, **extra})
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()


class TestHealth:
    def test_health(self, client, db_session):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.get_json()["checks"]["database"]["status"] == "healthy"


class TestCounterpartyRoutes:
    def test_create_list_get(self, client, db_session):
        created = _create_customer(client, payment_due_day=10)
        assert created["balance"] == "0.00"

        listed = client.get("/api/counterparties?type=customer").get_json()["items"]
        assert [c["id"] for c in listed] == [created["id"]]

        one = client.get(f"/api/counterparties/{created['id']}")
        assert one.status_code == 200
        assert one.get_json()["payment_due_day"] == 10

    def test_validation_errors(self, client, db_session):
        assert client.post("/api/counterparties", json={"name": "X"}).status_code == 400
        assert client.post("/api/counterparties", json={"type": "x", "name": "X"}).status_code == 400
        assert client.post("/api/counterparties", json={"type": "customer", "name": "X", "secret": 1}).status_code == 400
        resp = client.post("/api/counterparties", json={"type": "customer", "name": "X", "payment_due_day": 40})
        assert resp.status_code == 400
        assert "payment_due_day" in resp.get_json()["error"]

    def test_type_change_rejected(self, client, db_session):
        cp = _create_customer(client)
        resp = client.patch(f"/api/counterparties/{cp['id']}", json={"type": "supplier"})
        assert resp.status_code == 400

    def test_unknown_is_404(self, client, db_session):
        assert client.get("/api/counterparties/999").status_code == 404
        assert client.delete("/api/counterparties/999").status_code == 404

    def test_delete_with_balance_is_409(self, client, db_session):
        cp = _create_customer(client)
        client.post("/api/transactions", json={"counterparty_id": cp["id"], "tx_type": "sale", "amount": "10"})
        resp = client.delete(f"/api/counterparties/{cp['id']}")
        assert resp.status_code == 409
        assert "error" in resp.get_json()

    def test_bulk_import(self, client, db_session):
        resp = client.post("/api/counterparties/bulk", json={"rows": [
            {"type": "customer", "name": "A"},
            {"type": "supplier", "name": "B", "invoiced": True},
        ]})
        assert resp.status_code == 201
        assert len(resp.get_json()["created"]) == 2

        bad = client.post("/api/counterparties/bulk", json={"rows": [{"type": "customer"}]})
        assert bad.status_code == 400
        assert bad.get_json()["error"].startswith("row 1:")


class TestTransactionRoutes:
    def test_deniz_restaurant_flow(self, client, db_session):
        cp = _create_customer(client)
        cid = cp["id"]
        yesterday = (today() - timedelta(days=1)).isoformat()

        sale = client.post("/api/transactions", json={
            "counterparty_id": cid, "tx_type": "sale", "amount": "2500.00", "tx_date": yesterday,
        })
        assert sale.status_code == 201
        assert sale.get_json()["state"] == "active"
        assert client.get(f"/api/counterparties/{cid}").get_json()["balance"] == "2500.00"

        collection = client.post("/api/transactions", json={
            "counterparty_id": cid, "tx_type": "collection", "amount": 2500,
        }).get_json()
        assert client.get(f"/api/counterparties/{cid}").get_json()["balance"] == "0.00"

        reversal = client.post(f"/api/transactions/{collection['id']}/reverse")
        assert reversal.status_code == 201
        body = reversal.get_json()
        assert body["tx_type"] == "sale"
        assert body["amount"] == "2500.00"
        assert body["reversed_of"] == collection["id"]
        assert body["state"] == "active-reversal"
        assert client.get(f"/api/counterparties/{cid}").get_json()["balance"] == "2500.00"

        again = client.post(f"/api/transactions/{collection['id']}/reverse")
        assert again.status_code == 409

        ledger = client.get(f"/api/counterparties/{cid}/transactions").get_json()["items"]
        assert [row["state"] for row in ledger] == ["active-reversal", "reversed", "active"]

    def test_insufficient_stock_message(self, client, db_session):
        cp = _create_customer(client)
        product = client.post("/api/products", json={"name": "Levrek"}).get_json()
        client.post("/api/stock/adjust", json={"product_id": product["id"], "quantity": "1.5"})

        resp = client.post("/api/transactions", json={
            "counterparty_id": cp["id"],
            "tx_type": "sale",
            "items": [{"product_id": product["id"], "quantity": "2", "unit_price": "100"}],
        })
        assert resp.status_code == 400
        assert resp.get_json()["error"] == (
            "Insufficient stock for 'Levrek': available 1.5 kg, requested 2 kg"
        )

    def test_quick_entry_by_name(self, client, db_session):
        resp = client.post("/api/transactions", json={
            "counterparty_name": "Yeni Müşteri", "counterparty_type": "customer", "tx_type": "sale", "amount": "75",
        })
        assert resp.status_code == 201
        listed = client.get("/api/counterparties?search=yeni").get_json()["items"]
        assert listed[0]["balance"] == "75.00"

    def test_missing_counterparty(self, client, db_session):
        resp = client.post("/api/transactions", json={"tx_type": "sale", "amount": "5"})
        assert resp.status_code == 400
        resp = client.post("/api/transactions", json={"counterparty_id": 404, "tx_type": "sale", "amount": "5"})
        assert resp.status_code == 404

    def test_delete_returns_removed_ids(self, client, db_session):
        cp = _create_customer(client)
        tx = client.post("/api/transactions", json={
            "counterparty_id": cp["id"], "tx_type": "sale", "amount": "5",
        }).get_json()
        rev = client.post(f"/api/transactions/{tx['id']}/reverse").get_json()

        resp = client.delete(f"/api/transactions/{tx['id']}")
        assert resp.status_code == 200
        assert sorted(resp.get_json()["deleted_ids"]) == sorted([tx["id"], rev["id"]])
        assert client.get(f"/api/transactions/{rev['id']}").status_code == 404

    def test_bulk(self, client, db_session):
        cp = _create_customer(client)
        resp = client.post("/api/transactions/bulk", json={"entries": [
            {"counterparty_id": cp["id"], "tx_type": "collection", "amount": "10"},
            {"counterparty_id": cp["id"], "tx_type": "collection", "amount": "0"},
        ]})
        assert resp.status_code == 400
        assert resp.get_json()["error"].startswith("entry 2:")
        assert client.get(f"/api/counterparties/{cp['id']}").get_json()["balance"] == "0.00"

    def test_parse_items(self, client, db_session):
        resp = client.post("/api/transactions/parse-items", json={"text": "Levrek, 5kg, 120\nçöp"})
        assert resp.status_code == 200
        assert resp.get_json()["items"] == [
            {"product_name": "Levrek", "unit": "kg", "quantity": "5", "unit_price": "120.00"}
        ]


class TestProductAndStockRoutes:
    def test_product_lifecycle(self, client, db_session):
        created = client.post("/api/products", json={"name": "Hamsi", "unit": "kasa"})
        assert created.status_code == 201
        pid = created.get_json()["id"]
        assert created.get_json()["out_of_stock"] is True

        assert client.post("/api/products", json={"name": "hamsi"}).status_code == 409
        assert client.post("/api/products", json={"name": "X", "unit": "ton"}).status_code == 400

        adj = client.post("/api/stock/adjust", json={"product_id": pid, "quantity": "4", "notes": "sayım"})
        assert adj.status_code == 201
        assert adj.get_json()["current_stock"] == "4"

        assert client.post("/api/stock/adjust", json={"product_id": pid, "quantity": "0"}).status_code == 400

        stock = client.get("/api/stock").get_json()["items"]
        assert stock[0]["current_stock"] == "4"

        assert client.post(f"/api/products/{pid}/deactivate").get_json()["is_active"] is False
        assert client.get("/api/products").get_json()["items"] == []
        assert client.post(f"/api/products/{pid}/reactivate").get_json()["is_active"] is True

        history = client.get(f"/api/stock/{pid}/adjustments").get_json()["items"]
        assert [h["quantity"] for h in history] == ["4"]

        assert client.delete(f"/api/products/{pid}").status_code == 200
        assert client.get(f"/api/products/{pid}").status_code == 404


class TestCheckRoutes:
    def test_bounce_and_delete(self, client, db_session):
        cp = _create_customer(client)
        due = (today() + timedelta(days=5)).isoformat()
        check = client.post("/api/checks", json={
            "counterparty_id": cp["id"],
            "kind": "check",
            "direction": "received",
            "amount": "300",
            "due_date": due,
            "create_transaction": True,
        })
        assert check.status_code == 201
        check = check.get_json()
        assert check["transaction_id"] is not None

        upcoming = client.get("/api/checks/upcoming").get_json()["items"]
        assert upcoming[0]["days_left"] == 5

        bounced = client.patch(f"/api/checks/{check['id']}/status", json={"status": "bounced"})
        assert bounced.status_code == 200
        assert bounced.get_json()["reversal_transaction_id"] is not None
        assert client.get(f"/api/counterparties/{cp['id']}").get_json()["balance"] == "0.00"

        again = client.patch(f"/api/checks/{check['id']}/status", json={"status": "bounced"})
        assert again.status_code == 409

        deleted = client.delete(f"/api/checks/{check['id']}")
        assert deleted.status_code == 200
        assert len(deleted.get_json()["deleted_transaction_ids"]) == 2
        assert client.get(f"/api/counterparties/{cp['id']}/transactions").get_json()["items"] == []

    def test_bounce_without_transaction_is_400(self, client, db_session):
        cp = _create_customer(client)
        check = client.post("/api/checks", json={
            "counterparty_id": cp["id"], "direction": "received", "amount": "10", "due_date": "2030-01-01",
        }).get_json()
        resp = client.patch(f"/api/checks/{check['id']}/status", json={"status": "bounced"})
        assert resp.status_code == 400

    def test_new_check_must_be_pending(self, client, db_session):
        cp = _create_customer(client)
        resp = client.post("/api/checks", json={
            "counterparty_id": cp["id"], "direction": "received", "amount": "10",
            "due_date": "2030-01-01", "status": "paid",
        })
        assert resp.status_code == 400

    def test_deleting_check_entry_directly_is_409(self, client, db_session):
        cp = _create_customer(client)
        check = client.post("/api/checks", json={
            "counterparty_id": cp["id"],
            "direction": "received",
            "amount": "75",
            "due_date": (today() + timedelta(days=1)).isoformat(),
            "create_transaction": True,
        }).get_json()

        resp = client.delete(f"/api/transactions/{check['transaction_id']}")
        assert resp.status_code == 409
        assert "delete the check instead" in resp.get_json()["error"]
        assert client.get(f"/api/checks/{check['id']}").get_json()["transaction_id"] == check["transaction_id"]


class TestReportRoutes:
    def test_dashboard_stats_reports(self, client, db_session):
        cp = _create_customer(client)
        client.post("/api/transactions", json={"counterparty_id": cp["id"], "tx_type": "sale", "amount": "40"})

        assert client.get("/api/dashboard").get_json()["total_receivables"] == "40.00"
        assert client.get("/api/stats").get_json()["top_debtors"][0]["name"] == "Deniz Restaurant"
        assert client.get("/api/reports/daily").get_json()["totals"]["sale"] == "40.00"
        assert client.get("/api/reports/monthly").get_json()["totals"]["sale"] == "40.00"
        assert client.get("/api/reports/monthly?month=13").status_code == 400
