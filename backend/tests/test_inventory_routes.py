"""Inventory endpoints: overview, adjustments, history and alerts."""

import pytest

from storefront.models import InventoryTransaction


class TestAccess:

    @pytest.mark.parametrize(
        "method,path",
        [
            ("GET", "/api/inventory"),
            ("POST", "/api/inventory"),
            ("GET", "/api/inventory/transactions"),
            ("GET", "/api/inventory/alerts"),
            ("POST", "/api/inventory/alerts"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_invalid_token(self, client, db_session):
        resp = client.get("/api/inventory", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401
        assert resp.json["error"] == "Invalid or expired token"

    def test_viewer_reads_but_cannot_adjust(self, client, viewer_headers, make_product):
        product = make_product()
        assert client.get("/api/inventory", headers=viewer_headers).status_code == 200

        resp = client.post(
            "/api/inventory",
            json={"product_id": product.id, "adjustment": 5},
            headers=viewer_headers,
        )
        assert resp.status_code == 403
        assert resp.json["required"] == "inventory:adjust"

    def test_customer_cannot_read(self, client, customer_headers):
        assert client.get("/api/inventory", headers=customer_headers).status_code == 403


class TestAdjust:

    def test_manager_adjusts_stock(self, client, manager_headers, make_product, db_session):
        product = make_product(stock=3, name="Terracotta Planter")

        resp = client.post(
            "/api/inventory",
            json={"product_id": product.id, "adjustment": -1, "reason": "Breakage"},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        body = resp.json
        assert body["message"] == "Stock updated for Terracotta Planter. New stock: 2"
        assert body["data"]["product"]["stock_status"] == "lowstock"
        assert body["data"]["transaction"]["quantity"] == -1
        assert body["data"]["transaction"]["type"] == "adjustment"

        tx = db_session.query(InventoryTransaction).filter_by(product_id=product.id).one()
        assert tx.reason == "Breakage"
        assert tx.created_by_user_id is not None

    def test_missing_fields(self, client, admin_headers):
        resp = client.post("/api/inventory", json={"adjustment": 5}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Product ID and adjustment amount are required"

    def test_unknown_product(self, client, admin_headers):
        resp = client.post("/api/inventory", json={"product_id": 999, "adjustment": 5}, headers=admin_headers)
        assert resp.status_code == 404

    @pytest.mark.parametrize(
        "payload",
        [
            {"adjustment": 0},
            {"adjustment": 2.5},
            {"adjustment": True},
            {"adjustment": 1, "type": "gift"},
            {"adjustment": 1, "stock_quantity": 100},
        ],
    )
    def test_rejects_bad_payloads(self, client, admin_headers, make_product, payload):
        product = make_product()
        resp = client.post("/api/inventory", json={"product_id": product.id, **payload}, headers=admin_headers)
        assert resp.status_code == 400


class TestHistoryAndAlerts:

    def test_transactions_with_filters(self, client, admin_headers, make_product):
        product = make_product(stock=10)
        client.post("/api/inventory", json={"product_id": product.id, "adjustment": 4}, headers=admin_headers)
        client.post(
            "/api/inventory",
            json={"product_id": product.id, "adjustment": -2, "type": "sale"},
            headers=admin_headers,
        )

        resp = client.get("/api/inventory/transactions?type=sale", headers=admin_headers)
        assert resp.status_code == 200
        data = resp.json["data"]
        assert [t["quantity"] for t in data["transactions"]] == [-2]
        assert data["summary"] == [{"type": "sale", "total_quantity": -2, "transaction_count": 1}]

        resp = client.get(
            "/api/inventory/transactions?from_date=2000-01-01&to_date=2000-01-31",
            headers=admin_headers,
        )
        assert resp.json["data"]["transactions"] == []

    def test_transactions_bad_date(self, client, admin_headers):
        resp = client.get("/api/inventory/transactions?from_date=yesterday", headers=admin_headers)
        assert resp.status_code == 400

    def test_alerts_listing(self, client, viewer_headers, make_product):
        make_product(stock=0)
        make_product(stock=4)

        resp = client.get("/api/inventory/alerts?severity=warning", headers=viewer_headers)
        assert resp.status_code == 200
        data = resp.json["data"]
        assert data["counts"]["total"] == 2
        assert [a["current_stock"] for a in data["alerts"]] == [4]

    def test_update_threshold_action(self, client, admin_headers, make_product, db_session):
        product = make_product(stock=8)

        resp = client.post(
            "/api/inventory/alerts",
            json={"action": "updateThreshold", "productIds": [product.id], "newThreshold": 10},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["message"] == "Updated threshold for 1 products"
        db_session.refresh(product)
        assert product.stock_status == "lowstock"

    def test_restock_action(self, client, admin_headers, make_product):
        product = make_product(stock=1)

        resp = client.post(
            "/api/inventory/alerts",
            json={"action": "restock", "productIds": [product.id]},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["data"][0]["stock_quantity"] == 15
        assert resp.json["message"] == "Restocked 1 products"

    @pytest.mark.parametrize(
        "payload",
        [
            {"action": "explode", "productIds": [1]},
            {"action": "updateThreshold", "productIds": [1]},
            {"action": "restock", "productIds": "1"},
            {"action": "restock", "productIds": []},
        ],
    )
    def test_invalid_actions(self, client, admin_headers, payload):
        resp = client.post("/api/inventory/alerts", json=payload, headers=admin_headers)
        assert resp.status_code == 400
