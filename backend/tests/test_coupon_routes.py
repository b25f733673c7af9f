"""Checkout coupon endpoints and the marketing admin surface."""

from datetime import datetime


class TestValidateEndpoint:

    def test_valid_coupon(self, client, make_coupon):
        make_coupon("SAVE10", value=10, maximum_discount_paise=5000)

        resp = client.post("/api/coupons/validate", json={"code": "save10", "subtotal": 100000})
        assert resp.status_code == 200
        data = resp.json["data"]
        assert data["code"] == "SAVE10"
        assert data["discountAmount"] == 5000
        assert data["freeShipping"] is False

    def test_unknown_code_is_404(self, client, db_session):
        resp = client.post("/api/coupons/validate", json={"code": "NOPE", "subtotal": 1000})
        assert resp.status_code == 404
        assert resp.json["success"] is False

    def test_expired_coupon_is_400(self, client, make_coupon):
        make_coupon(valid_until=datetime(2020, 1, 1))
        resp = client.post("/api/coupons/validate", json={"code": "SAVE10", "subtotal": 1000})
        assert resp.status_code == 400
        assert resp.json["error"] == "Coupon has expired"

    def test_zone_must_be_string(self, client, make_coupon):
        make_coupon()
        resp = client.post("/api/coupons/validate", json={"code": "SAVE10", "subtotal": 1000, "zone": 5})
        assert resp.status_code == 400

    def test_decimal_subtotal_rejected(self, client, make_coupon):
        make_coupon()
        resp = client.post("/api/coupons/validate", json={"code": "SAVE10", "subtotal": 10.5})
        assert resp.status_code == 400


class TestRedeemEndpoint:

    def test_requires_auth(self, client, make_coupon):
        make_coupon()
        assert client.post("/api/coupons/redeem", json={"code": "SAVE10"}).status_code == 401

    def test_customer_redeems(self, client, customer_headers, make_coupon):
        make_coupon(usage_limit=1)

        resp = client.post("/api/coupons/redeem", json={"code": "SAVE10"}, headers=customer_headers)
        assert resp.status_code == 200
        assert resp.json["data"]["used_count"] == 1

        resp = client.post("/api/coupons/redeem", json={"code": "SAVE10"}, headers=customer_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Coupon usage limit reached"

    def test_viewer_cannot_redeem(self, client, viewer_headers, make_coupon):
        make_coupon()
        resp = client.post("/api/coupons/redeem", json={"code": "SAVE10"}, headers=viewer_headers)
        assert resp.status_code == 403


class TestMarketingCoupons:

    def test_admin_creates_and_lists(self, client, admin_headers):
        resp = client.post(
            "/api/marketing/coupons",
            json={
                "code": "diwali25",
                "type": "percentage",
                "value": 25,
                "maximum_discount_paise": 100000,
                "applies_to_zones": ["mumbai", " pune "],
                "valid_from": "2026-10-01",
                "valid_until": "2026-11-15T23:59:59Z",
            },
            headers=admin_headers,
        )
        assert resp.status_code == 201
        coupon = resp.json["data"]
        assert coupon["code"] == "DIWALI25"
        assert coupon["applies_to_zones"] == ["mumbai", "pune"]
        assert coupon["valid_until"] == "2026-11-15T23:59:59Z"

        resp = client.get("/api/marketing/coupons", headers=admin_headers)
        assert resp.status_code == 200
        assert [c["code"] for c in resp.json["data"]] == ["DIWALI25"]
        assert resp.json["stats"]["total_coupons"] == 1

    def test_duplicate_code_is_409(self, client, admin_headers, make_coupon):
        make_coupon("WELCOME")
        resp = client.post(
            "/api/marketing/coupons",
            json={"code": "Welcome", "type": "fixed_amount", "value": 5000},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_fractional_percentage_is_400(self, client, admin_headers):
        resp = client.post(
            "/api/marketing/coupons",
            json={"code": "HALFOFF", "type": "percentage", "value": 12.5},
            headers=admin_headers,
        )
        assert resp.status_code == 400
        assert resp.json["error"] == "value must be an integer, not a decimal"

    def test_percentage_over_100_is_400(self, client, admin_headers):
        resp = client.post(
            "/api/marketing/coupons",
            json={"code": "TOOMUCH", "type": "percentage", "value": 150},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_manager_can_view_but_not_manage(self, client, manager_headers, make_coupon):
        coupon = make_coupon()
        assert client.get("/api/marketing/coupons", headers=manager_headers).status_code == 200
        resp = client.patch(
            f"/api/marketing/coupons/{coupon.id}",
            json={"is_active": False},
            headers=manager_headers,
        )
        assert resp.status_code == 403

    def test_update_and_delete(self, client, admin_headers, make_coupon):
        coupon = make_coupon()

        resp = client.patch(
            f"/api/marketing/coupons/{coupon.id}",
            json={"is_active": False, "description": "Paused"},
            headers=admin_headers,
        )
        assert resp.status_code == 200
        assert resp.json["data"]["is_active"] is False

        resp = client.post("/api/coupons/validate", json={"code": "SAVE10", "subtotal": 1000})
        assert resp.json["error"] == "Coupon is inactive"

        assert client.delete(f"/api/marketing/coupons/{coupon.id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/marketing/coupons/{coupon.id}", headers=admin_headers).status_code == 404

    def test_used_count_is_not_writable(self, client, admin_headers, make_coupon):
        coupon = make_coupon()
        resp = client.patch(
            f"/api/marketing/coupons/{coupon.id}",
            json={"used_count": 0},
            headers=admin_headers,
        )
        assert resp.status_code == 400
