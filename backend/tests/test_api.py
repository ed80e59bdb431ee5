"""
HTTP API tests (memory backend, seeded with the sample bakery).

Verifies status codes, JSON shapes and the auth-protected routes.
"""

import pytest

from conftest import auth_headers, get_auth_token


def _checkout_body(product, quantity=2, payments=None, **order):
    return {
        "order": order,
        "items": [{
            "product_id": product["id"],
            "product_name": product["name"],
            "quantity": quantity,
            "unit": product["unit"],
            "unit_price": product["counter_price"],
            "price_type": "counter",
            "gst_rate": product["gst_rate"],
        }],
        "payments": payments if payments is not None else [],
    }


def _product(client, sku):
    products = client.get(f"/api/products?search={sku}").json
    return next(p for p in products if p["sku"] == sku)


# =============================================================================
# SYSTEM / AUTH
# =============================================================================


class TestSystem:

    def test_health(self, client):
        resp = client.get("/api/health")
        assert resp.status_code == 200
        assert resp.json["backend"] == "memory"
        assert resp.json["counts"]["products"] == 10
        assert resp.json["counts"]["users"] == 2

    def test_cors_header_for_known_origin(self, client):
        resp = client.get("/api/health", headers={"Origin": "http://localhost:5173"})
        assert resp.headers["Access-Control-Allow-Origin"] == "http://localhost:5173"
        other = client.get("/api/health", headers={"Origin": "http://evil.example"})
        assert "Access-Control-Allow-Origin" not in other.headers


class TestAuth:

    def test_login_returns_user_and_token(self, client):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": "admin123"})
        assert resp.status_code == 200
        assert resp.json["user"]["username"] == "admin"
        assert resp.json["user"]["role"] == "admin"
        assert "password_hash" not in resp.json["user"]
        assert resp.json["token"].startswith(f"token_{resp.json['user']['id']}_")

    def test_bad_credentials(self, client):
        resp = client.post("/api/auth/login", json={"username": "admin", "password": "nope"})
        assert resp.status_code == 401

    def test_missing_credentials(self, client):
        resp = client.post("/api/auth/login", json={"username": "admin"})
        assert resp.status_code == 400

    def test_me(self, client):
        token = get_auth_token(client, "cashier", "cashier123")
        resp = client.get("/api/auth/me", headers=auth_headers(token))
        assert resp.status_code == 200
        assert resp.json["user"]["username"] == "cashier"

    @pytest.mark.parametrize("headers", [{}, {"Authorization": "Bearer token_999_1"}, {"Authorization": "Bearer junk"}])
    def test_me_requires_valid_token(self, client, headers):
        assert client.get("/api/auth/me", headers=headers).status_code == 401

    def test_logout(self, client):
        resp = client.post("/api/auth/logout")
        assert resp.status_code == 200
        assert resp.json["message"]


class TestUsers:

    def test_requires_auth(self, client):
        assert client.get("/api/users").status_code == 401

    def test_cashier_denied(self, client, cashier_headers):
        assert client.get("/api/users", headers=cashier_headers).status_code == 403
        resp = client.post("/api/users", headers=cashier_headers, json={"username": "x", "password": "y"})
        assert resp.status_code == 403

    def test_admin_can_list_and_create(self, client, admin_headers):
        resp = client.get("/api/users", headers=admin_headers)
        assert resp.status_code == 200
        assert {u["username"] for u in resp.json} == {"admin", "cashier"}

        created = client.post(
            "/api/users", headers=admin_headers,
            json={"username": "priya", "password": "secret1", "role": "cashier"},
        )
        assert created.status_code == 201
        assert created.json["username"] == "priya"

        dup = client.post("/api/users", headers=admin_headers, json={"username": "priya", "password": "x"})
        assert dup.status_code == 409

        bad_role = client.post("/api/users", headers=admin_headers, json={"username": "z", "password": "x", "role": "owner"})
        assert bad_role.status_code == 400

        login = client.post("/api/auth/login", json={"username": "priya", "password": "secret1"})
        assert login.status_code == 200


# =============================================================================
# CATALOG
# =============================================================================


class TestProductsApi:

    def test_list_filters(self, client):
        assert len(client.get("/api/products").json) == 10
        assert len(client.get("/api/products?category=All").json) == 10
        breads = client.get("/api/products?category=Breads").json
        assert {p["sku"] for p in breads} == {"WWB001", "WB001"}
        assert [p["name"] for p in client.get("/api/products?search=gulab").json] == ["Gulab Jamun"]

    def test_amounts_serialized_as_strings(self, client):
        cake = _product(client, "CC001")
        assert cake["counter_price"] == "120.00"
        assert cake["gst_rate"] == "18.00"
        assert cake["custom_price"] is None
        assert cake["created_at"].endswith("Z")

    def test_create(self, client):
        resp = client.post("/api/products", json={
            "name": "Plum Cake",
            "sku": "PC001",
            "category": "Cakes",
            "counter_price": "130.50",
            "wholesale_price": 110,
            "stock": 4,
            "unit": "piece",
            "gst_rate": 18,
        })
        assert resp.status_code == 201
        assert resp.json["counter_price"] == "130.50"
        assert resp.json["wholesale_price"] == "110.00"
        assert resp.json["status"] == "low_stock"
        assert resp.json["category_id"] is not None

    @pytest.mark.parametrize(
        "override,field",
        [
            ({"counter_price": "-1"}, "counter_price"),
            ({"counter_price": "1.234"}, "counter_price"),
            ({"stock": -3}, "stock"),
            ({"stock": 2.5}, "stock"),
            ({"gst_rate": 120}, "gst_rate"),
            ({"status": "low_stock"}, "status"),
            ({"name": None}, "name"),
            ({"colour": "red"}, "colour"),
        ],
    )
    def test_create_validation(self, client, override, field):
        body = {
            "name": "Plum Cake", "sku": "PC002", "category": "Cakes",
            "counter_price": "130.00", "wholesale_price": "110.00",
            "unit": "piece", "gst_rate": "18",
        }
        body.update(override)
        resp = client.post("/api/products", json=body)
        assert resp.status_code == 400
        assert field in resp.json["fields"]

    def test_create_missing_required(self, client):
        resp = client.post("/api/products", json={"name": "Only a name"})
        assert resp.status_code == 400
        assert "Missing required fields" in resp.json["error"]

    def test_duplicate_sku(self, client):
        body = {
            "name": "Copy", "sku": "CC001", "category": "Cakes",
            "counter_price": "1.00", "wholesale_price": "1.00", "unit": "piece", "gst_rate": "18",
        }
        assert client.post("/api/products", json=body).status_code == 409

    def test_update_and_delete(self, client):
        cake = _product(client, "CC001")

        resp = client.put(f"/api/products/{cake['id']}", json={"stock": 2})
        assert resp.status_code == 200
        assert resp.json["status"] == "low_stock"

        assert client.put("/api/products/999", json={"stock": 2}).status_code == 404

        assert client.delete(f"/api/products/{cake['id']}").status_code == 200
        assert client.get(f"/api/products/{cake['id']}").status_code == 404
        assert client.delete(f"/api/products/{cake['id']}").status_code == 404

    def test_adjust_stock(self, client):
        rasgulla = _product(client, "RG001")
        resp = client.post(f"/api/products/{rasgulla['id']}/stock", json={"delta": -10})
        assert resp.status_code == 200
        assert resp.json["stock"] == 0

        assert client.post(f"/api/products/{rasgulla['id']}/stock", json={}).status_code == 400
        assert client.post(f"/api/products/{rasgulla['id']}/stock", json={"delta": "5"}).status_code == 400
        assert client.post("/api/products/999/stock", json={"delta": 1}).status_code == 404

    def test_categories(self, client):
        names = [c["name"] for c in client.get("/api/categories").json]
        assert names == ["Cakes", "Pastries", "Breads", "Sweets"]

        created = client.post("/api/categories", json={"name": "Cookies"})
        assert created.status_code == 201
        assert client.post("/api/categories", json={"name": "cookies"}).status_code == 409
        assert client.post("/api/categories", json={}).status_code == 400


class TestCustomersApi:

    def test_search(self, client):
        found = client.get("/api/customers?search=mike").json
        assert [c["name"] for c in found] == ["Mike Chen"]
        assert found[0]["balance"] == "0.00"

    def test_crud(self, client):
        created = client.post("/api/customers", json={
            "name": "Kiran", "phone": "9123456789", "customer_type": "wholesale", "balance": "250.5",
        })
        assert created.status_code == 201
        assert created.json["balance"] == "250.50"
        customer_id = created.json["id"]

        updated = client.put(f"/api/customers/{customer_id}", json={"email": "kiran@example.com"})
        assert updated.status_code == 200
        assert updated.json["email"] == "kiran@example.com"

        assert client.get(f"/api/customers/{customer_id}").status_code == 200
        assert client.delete(f"/api/customers/{customer_id}").status_code == 200
        assert client.get(f"/api/customers/{customer_id}").status_code == 404
        assert client.put(f"/api/customers/{customer_id}", json={"name": "x"}).status_code == 404

    def test_validation(self, client):
        assert client.post("/api/customers", json={}).status_code == 400
        resp = client.post("/api/customers", json={"name": "X", "customer_type": "vip"})
        assert resp.status_code == 400
        assert "customer_type" in resp.json["fields"]

    def test_walk_in_cannot_be_deleted(self, client):
        walk_in = client.get("/api/customers?search=walk-in").json[0]
        assert walk_in["is_default"] is True
        assert client.delete(f"/api/customers/{walk_in['id']}").status_code == 409


# =============================================================================
# ORDERS & DASHBOARD
# =============================================================================


class TestOrdersApi:

    def test_checkout_completed(self, client):
        croissant = _product(client, "BC001")
        body = _checkout_body(croissant, payments=[{"method": "cash", "amount": "118.00"}])

        resp = client.post("/api/orders", json=body)
        assert resp.status_code == 201
        order = resp.json["order"]
        assert order["subtotal"] == "100.00"
        assert order["gst_amount"] == "18.00"
        assert order["total"] == "118.00"
        assert order["status"] == "completed"
        assert order["customer_name"] == "Walk-in Customer"
        assert order["order_number"].startswith("ORD")
        assert resp.json["balance_due"] == "0.00"
        assert resp.json["replayed"] is False
        assert len(resp.json["items"]) == 1
        assert resp.json["payments"][0]["amount"] == "118.00"

        assert _product(client, "BC001")["stock"] == croissant["stock"] - 2

    def test_split_and_partial(self, client):
        croissant = _product(client, "BC001")
        split = client.post("/api/orders", json=_checkout_body(
            croissant, payments=[{"method": "cash", "amount": 60}, {"method": "card", "amount": 58}],
        ))
        assert split.json["order"]["payment_method"] == "split"
        assert split.json["order"]["status"] == "completed"

        partial = client.post("/api/orders", json=_checkout_body(
            croissant, payments=[{"method": "cash", "amount": "50.00"}],
        ))
        assert partial.status_code == 201
        assert partial.json["order"]["status"] == "processing"
        assert partial.json["balance_due"] == "68.00"

        order_id = partial.json["order"]["id"]
        paid = client.post(f"/api/orders/{order_id}/payments", json={"method": "wallet", "amount": "68.00"})
        assert paid.status_code == 201
        assert paid.json["order"]["status"] == "completed"

        again = client.post(f"/api/orders/{order_id}/payments", json={"method": "cash", "amount": "1"})
        assert again.status_code == 409

    def test_follow_up_payment_validation(self, client):
        croissant = _product(client, "BC001")
        partial = client.post("/api/orders", json=_checkout_body(
            croissant, payments=[{"method": "cash", "amount": "50.00"}],
        ))
        order_id = partial.json["order"]["id"]

        assert client.post(f"/api/orders/{order_id}/payments", json={"method": "cash", "amount": "x"}).status_code == 400
        assert client.post(f"/api/orders/{order_id}/payments", json={"method": "cash", "amount": "100"}).status_code == 400
        assert client.post("/api/orders/999/payments", json={"method": "cash", "amount": "1"}).status_code == 404

    def test_idempotent_replay(self, client):
        croissant = _product(client, "BC001")
        body = _checkout_body(
            croissant, payments=[{"method": "cash", "amount": "118.00"}], idempotency_key="till-7",
        )

        first = client.post("/api/orders", json=body)
        second = client.post("/api/orders", json=body)
        assert first.status_code == 201
        assert second.status_code == 200
        assert second.json["replayed"] is True
        assert second.json["order"]["id"] == first.json["order"]["id"]
        assert _product(client, "BC001")["stock"] == croissant["stock"] - 2

    @pytest.mark.parametrize(
        "mutate,status",
        [
            (lambda b: b.update(items=[]), 400),
            (lambda b: b["items"][0].update(quantity=0), 400),
            (lambda b: b["items"][0].update(quantity=10**25, unit_price="1000.00"), 400),
            (lambda b: b["items"][0].update(unit_price="50.005"), 400),
            (lambda b: b["items"][0].update(gst_rate="18.125"), 400),
            (lambda b: b.update(payments=[{"method": "cash", "amount": 0}]), 400),
            (lambda b: b["order"].update(customer_id=999), 404),
        ],
    )
    def test_rejected_checkouts_write_nothing(self, client, mutate, status):
        croissant = _product(client, "BC001")
        body = _checkout_body(croissant, payments=[{"method": "cash", "amount": "118.00"}])
        mutate(body)

        resp = client.post("/api/orders", json=body)
        assert resp.status_code == status
        assert client.get("/api/orders").json == []
        assert _product(client, "BC001")["stock"] == croissant["stock"]

    def test_empty_cart_names_items_field(self, client):
        resp = client.post("/api/orders", json={"items": [], "payments": [{"method": "cash", "amount": 1}]})
        assert resp.status_code == 400
        assert "items" in resp.json["fields"]

    def test_get_and_list_orders(self, client):
        croissant = _product(client, "BC001")
        created = client.post("/api/orders", json=_checkout_body(
            croissant, payments=[{"method": "cash", "amount": "118.00"}],
        )).json

        order_id = created["order"]["id"]
        fetched = client.get(f"/api/orders/{order_id}")
        assert fetched.status_code == 200
        assert fetched.json["order"]["order_number"] == created["order"]["order_number"]
        assert client.get("/api/orders/999").status_code == 404
        assert [o["id"] for o in client.get("/api/orders").json] == [order_id]

    def test_status_transition(self, client):
        croissant = _product(client, "BC001")
        partial = client.post("/api/orders", json=_checkout_body(
            croissant, payments=[{"method": "cash", "amount": "10.00"}],
        )).json
        order_id = partial["order"]["id"]

        unpaid = client.put(f"/api/orders/{order_id}/status", json={"status": "completed"})
        assert unpaid.status_code == 409
        assert client.get(f"/api/orders/{order_id}").json["order"]["status"] == "processing"

        resp = client.put(f"/api/orders/{order_id}/status", json={"status": "cancelled"})
        assert resp.status_code == 200
        assert resp.json["order"]["status"] == "cancelled"
        assert client.put(f"/api/orders/{order_id}/status", json={"status": "completed"}).status_code == 409
        assert client.put(f"/api/orders/{order_id}/status", json={}).status_code == 400


class TestDashboardApi:

    def test_empty_dashboard(self, client):
        metrics = client.get("/api/dashboard/metrics").json
        assert metrics == {
            "today_sales": "0.00",
            "orders_today": 0,
            "average_order": "0.00",
            "low_stock_items": 4,
        }
        assert client.get("/api/dashboard/popular-items").json == []
        assert client.get("/api/dashboard/recent-orders").json == []

    def test_after_sales(self, client):
        croissant = _product(client, "BC001")
        donut = _product(client, "GD001")
        client.post("/api/orders", json=_checkout_body(croissant, payments=[{"method": "cash", "amount": "118.00"}]))
        client.post("/api/orders", json=_checkout_body(donut, quantity=3, payments=[{"method": "card", "amount": "10.00"}]))

        metrics = client.get("/api/dashboard/metrics").json
        assert metrics["today_sales"] == "118.00"
        assert metrics["orders_today"] == 1
        assert metrics["average_order"] == "118.00"

        popular = client.get("/api/dashboard/popular-items").json
        assert [(p["product_name"], p["quantity_sold"]) for p in popular] == [
            ("Glazed Donuts", 3), ("Butter Croissant", 2),
        ]
        assert popular[0]["revenue"] == "120.00"
        assert popular[0]["category"] == donut["category"]
        assert popular[0]["image_url"] == donut["image_url"]
        assert len(client.get("/api/dashboard/popular-items?limit=1&period=today").json) == 1

        recent = client.get("/api/dashboard/recent-orders?limit=1").json
        assert len(recent) == 1
        assert recent[0]["items"][0]["product_name"] == "Glazed Donuts"

    def test_bad_query_params(self, client):
        assert client.get("/api/dashboard/recent-orders?limit=abc").status_code == 400
        assert client.get("/api/dashboard/popular-items?period=week").status_code == 400
