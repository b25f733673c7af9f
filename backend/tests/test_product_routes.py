"""Catalog endpoints: public reads, staff writes, categories."""

from storefront.services.inventory_service import InventoryService


class TestPublicCatalog:

    def test_list_shows_only_published(self, client, make_product):
        make_product(name="Clay Mug")
        make_product(name="Prototype Jug", status="draft")

        resp = client.get("/api/products")
        assert resp.status_code == 200
        assert [p["name"] for p in resp.json["data"]] == ["Clay Mug"]
        assert resp.json["pagination"]["total"] == 1

    def test_staff_can_include_unpublished(self, client, viewer_headers, make_product):
        make_product(name="Clay Mug")
        make_product(name="Prototype Jug", status="draft")

        resp = client.get("/api/products?include_unpublished=true", headers=viewer_headers)
        assert len(resp.json["data"]) == 2

        resp = client.get("/api/products?include_unpublished=true")
        assert len(resp.json["data"]) == 1

    def test_anonymous_request_after_staff_request(self, client, viewer_headers, make_product):
        make_product(name="Clay Mug")
        make_product(name="Prototype Jug", status="draft")

        staff = client.get("/api/products?include_unpublished=true", headers=viewer_headers)
        assert len(staff.json["data"]) == 2

        for _ in range(2):
            resp = client.get("/api/products?include_unpublished=true")
            assert [p["name"] for p in resp.json["data"]] == ["Clay Mug"]

        draft_id = staff.json["data"][1]["id"]
        assert client.get(f"/api/products/{draft_id}?include_unpublished=true").status_code == 404

    def test_filters(self, client, make_product, category):
        make_product(name="Blue Bowl", category_id=category.id, is_featured=True)
        make_product(name="Red Bowl", stock=0)
        make_product(name="Green Cup")

        def names(resp):
            return [p["name"] for p in resp.json["data"]]

        assert names(client.get("/api/products?q=bowl")) == ["Blue Bowl", "Red Bowl"]
        assert names(client.get("/api/products?category=pottery")) == ["Blue Bowl"]
        assert names(client.get("/api/products?featured=true")) == ["Blue Bowl"]
        assert names(client.get("/api/products?in_stock=true")) == ["Blue Bowl", "Green Cup"]

    def test_pagination_caps_page_size(self, client, make_product):
        for _ in range(3):
            make_product()
        resp = client.get("/api/products?per_page=500")
        assert resp.json["pagination"]["per_page"] == 100

    def test_get_by_id_and_slug(self, client, make_product):
        product = make_product(slug="ink-pot")
        draft = make_product(status="draft")

        assert client.get(f"/api/products/{product.id}").json["data"]["slug"] == "ink-pot"
        assert client.get("/api/products/slug/ink-pot").status_code == 200
        assert client.get(f"/api/products/{draft.id}").status_code == 404
        assert client.get("/api/products/slug/missing").status_code == 404


class TestProductWrites:

    def test_create_derives_stock_status(self, client, admin_headers):
        resp = client.post(
            "/api/products",
            json={
                "sku": "MUG-01",
                "slug": "mug-01",
                "name": "Mug",
                "price_paise": 34900,
                "stock_quantity": 3,
                "status": "published",
            },
            headers=admin_headers,
        )
        assert resp.status_code == 201
        assert resp.json["data"]["stock_status"] == "lowstock"

    def test_create_requires_fields(self, client, admin_headers):
        resp = client.post("/api/products", json={"name": "Mug"}, headers=admin_headers)
        assert resp.status_code == 400
        assert resp.json["error"] == "Missing required fields: price_paise, sku, slug"

    def test_duplicate_sku_is_409(self, client, admin_headers, make_product):
        make_product(sku="MUG-01")
        resp = client.post(
            "/api/products",
            json={"sku": "MUG-01", "slug": "another", "name": "Mug", "price_paise": 100},
            headers=admin_headers,
        )
        assert resp.status_code == 409

    def test_invalid_status(self, client, admin_headers):
        resp = client.post(
            "/api/products",
            json={"sku": "X", "slug": "x", "name": "X", "price_paise": 100, "status": "live"},
            headers=admin_headers,
        )
        assert resp.status_code == 400

    def test_stock_cannot_be_patched(self, client, manager_headers, make_product):
        product = make_product()
        resp = client.patch(
            f"/api/products/{product.id}",
            json={"stock_quantity": 99},
            headers=manager_headers,
        )
        assert resp.status_code == 400

    def test_threshold_patch_updates_status(self, client, manager_headers, make_product):
        product = make_product(stock=8)
        resp = client.patch(
            f"/api/products/{product.id}",
            json={"low_stock_threshold": 10},
            headers=manager_headers,
        )
        assert resp.status_code == 200
        assert resp.json["data"]["stock_status"] == "lowstock"

    def test_manager_cannot_delete(self, client, manager_headers, make_product):
        product = make_product()
        assert client.delete(f"/api/products/{product.id}", headers=manager_headers).status_code == 403

    def test_delete_with_history_conflicts(self, client, admin_headers, make_product, db_session):
        product = make_product()
        InventoryService(db_session).adjust_stock(product_id=product.id, delta=-1)

        resp = client.delete(f"/api/products/{product.id}", headers=admin_headers)
        assert resp.status_code == 409

    def test_delete(self, client, admin_headers, make_product):
        product = make_product()
        assert client.delete(f"/api/products/{product.id}", headers=admin_headers).status_code == 200
        assert client.get(f"/api/products/{product.id}").status_code == 404


class TestCategories:

    def test_public_list(self, client, category):
        resp = client.get("/api/categories")
        assert [c["slug"] for c in resp.json["data"]] == ["pottery"]

    def test_create(self, client, admin_headers):
        resp = client.post("/api/categories", json={"name": "Linen", "slug": "linen"}, headers=admin_headers)
        assert resp.status_code == 201

    def test_duplicate_slug(self, client, admin_headers, category):
        resp = client.post("/api/categories", json={"name": "Pots", "slug": "pottery"}, headers=admin_headers)
        assert resp.status_code == 409

    def test_manager_cannot_create(self, client, manager_headers):
        resp = client.post("/api/categories", json={"name": "Linen", "slug": "linen"}, headers=manager_headers)
        assert resp.status_code == 403
