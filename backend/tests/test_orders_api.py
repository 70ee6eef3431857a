"""
Order API tests.

Verifies status codes and response bodies for the order endpoints:
- 201 receipt / 422 INSUFFICIENT_STOCK / 404 PRODUCT_NOT_FOUND / 400 validation
- 400 ALREADY_COMPLETED, ALREADY_VOIDED
- 401 on void without an acting user
- unexpected failures return a bare 500
"""

import pytest

from conftest import stock_of, user_headers
from orderdesk.errors import ContentionError
from orderdesk.services import order_service


def _cart(product_id, quantity=1, unit_price=100):
    return {"order_items": [{"product_id": product_id, "quantity": quantity, "unit_price": unit_price}]}


# =============================================================================
# CREATE
# =============================================================================


class TestCreateOrderRoute:

    def test_pending_receipt(self, client, db_session, make_product):
        pid = make_product(stock=5)
        resp = client.post("/api/orders", json={**_cart(pid, 2), "customer_name": "Lito"})

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["status"] == "Pending"
        assert body["total_amount"] == 200.0
        assert body["customer_name"] == "Lito"
        assert body["order_number"].startswith("ORD-")
        assert "completed_date" not in body
        assert stock_of(pid) == 3

    def test_paid_receipt(self, client, db_session, make_product):
        pid = make_product(stock=5)
        resp = client.post(
            "/api/orders",
            json={**_cart(pid, 3), "payment": {"payment_method": "Cash", "amount": 300}},
            headers=user_headers(5),
        )

        assert resp.status_code == 201
        body = resp.get_json()
        assert body["status"] == "Completed"
        assert body["completed_date"].endswith("Z")

    def test_insufficient_stock(self, client, db_session, make_product):
        pid = make_product(name="Mug", stock=1)
        resp = client.post("/api/orders", json=_cart(pid, 2))

        assert resp.status_code == 422
        body = resp.get_json()
        assert body["code"] == "INSUFFICIENT_STOCK"
        assert body["retryable"] is False
        assert body["details"]["product_name"] == "Mug"
        assert body["details"]["available"] == 1
        assert body["details"]["requested"] == 2

    def test_product_not_found(self, client, db_session):
        resp = client.post("/api/orders", json=_cart(777))
        assert resp.status_code == 404
        assert resp.get_json()["code"] == "PRODUCT_NOT_FOUND"

    def test_inactive_product(self, client, db_session, make_product):
        pid = make_product(stock=5, is_active=False)
        resp = client.post("/api/orders", json=_cart(pid))
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "PRODUCT_INACTIVE"

    def test_empty_cart(self, client, db_session):
        resp = client.post("/api/orders", json={"order_items": []})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_FAILED"

    @pytest.mark.parametrize("unit_price", [1e30, "1e40", "-1e40", 10000000000])
    def test_oversized_unit_price(self, client, db_session, make_product, unit_price):
        pid = make_product(stock=5)
        resp = client.post("/api/orders", json=_cart(pid, 1, unit_price=unit_price))

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_FAILED"
        assert stock_of(pid) == 5

    @pytest.mark.parametrize("amount", [1e30, "1e40"])
    def test_oversized_payment_amount(self, client, db_session, make_product, amount):
        pid = make_product(stock=5)
        resp = client.post(
            "/api/orders",
            json={**_cart(pid), "payment": {"payment_method": "Cash", "amount": amount}},
        )

        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_FAILED"
        assert stock_of(pid) == 5

    def test_non_object_body(self, client, db_session):
        resp = client.post("/api/orders", json=[1, 2, 3])
        assert resp.status_code == 400

    def test_contention_error_maps_to_retryable_409(self, client, db_session, make_product, monkeypatch):
        pid = make_product(stock=5)

        def _contended(*args, **kwargs):
            raise ContentionError("Stock is busy, please retry", details={"attempts": 3})

        monkeypatch.setattr(order_service, "create_order", _contended)
        resp = client.post("/api/orders", json=_cart(pid))
        assert resp.status_code == 409
        body = resp.get_json()
        assert body["code"] == "STOCK_CONTENDED"
        assert body["retryable"] is True

    def test_unexpected_error_is_500(self, client, db_session, make_product, monkeypatch):
        pid = make_product(stock=5)

        def _broken(*args, **kwargs):
            raise RuntimeError("boom")

        monkeypatch.setattr(order_service, "create_order", _broken)
        resp = client.post("/api/orders", json=_cart(pid))
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}


# =============================================================================
# COMPLETE / VOID
# =============================================================================


class TestLifecycleRoutes:

    @pytest.fixture
    def order_id(self, client, db_session, make_product):
        pid = make_product(stock=5)
        return client.post("/api/orders", json=_cart(pid, 1)).get_json()["order_id"]

    def test_complete(self, client, order_id):
        resp = client.post(
            f"/api/orders/{order_id}/complete",
            json={"payment_method": "GCash", "amount": 100, "reference_number": "REF-1"},
            headers=user_headers(3),
        )
        assert resp.status_code == 200
        order = resp.get_json()["order"]
        assert order["status"] == "Completed"
        assert order["payment"]["payment_method"] == "GCash"
        assert order["payment"]["processed_by"] == 3

    def test_complete_twice(self, client, order_id):
        payment = {"payment_method": "Cash", "amount": 100}
        client.post(f"/api/orders/{order_id}/complete", json=payment)
        resp = client.post(f"/api/orders/{order_id}/complete", json=payment)
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "ALREADY_COMPLETED"

    def test_complete_unknown(self, client, db_session):
        resp = client.post("/api/orders/999/complete", json={"payment_method": "Cash", "amount": 1})
        assert resp.status_code == 404

    def test_void_requires_user(self, client, order_id):
        resp = client.post(f"/api/orders/{order_id}/void", json={"void_reason": "x"})
        assert resp.status_code == 401

    def test_malformed_user_header_is_anonymous(self, client, order_id):
        resp = client.post(
            f"/api/orders/{order_id}/void",
            json={"void_reason": "x"},
            headers={"X-User-Id": "abc"},
        )
        assert resp.status_code == 401

    def test_void_and_void_again(self, client, order_id):
        resp = client.post(
            f"/api/orders/{order_id}/void",
            json={"void_reason": "Customer cancelled"},
            headers=user_headers(2),
        )
        assert resp.status_code == 200
        order = resp.get_json()["order"]
        assert order["is_voided"] is True
        assert order["voided_by"] == 2
        assert order["voided_from_status"] == "Pending"

        resp = client.post(
            f"/api/orders/{order_id}/void",
            json={"void_reason": "again"},
            headers=user_headers(2),
        )
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "ALREADY_VOIDED"

    def test_void_reason_required(self, client, order_id):
        resp = client.post(f"/api/orders/{order_id}/void", json={}, headers=user_headers())
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "VALIDATION_FAILED"


# =============================================================================
# READ / EDIT / DELETE
# =============================================================================


class TestOrderQueries:

    def test_active_orders_and_search(self, client, db_session, make_product):
        pid = make_product(stock=10)
        pending = client.post("/api/orders", json=_cart(pid)).get_json()
        completed = client.post(
            "/api/orders",
            json={**_cart(pid), "payment": {"payment_method": "Cash", "amount": 100}},
        ).get_json()

        active = client.get("/api/orders").get_json()["orders"]
        assert [o["order_number"] for o in active] == [pending["order_number"]]

        found = client.get(f"/api/orders?order_number={completed['order_number']}").get_json()["orders"]
        assert [o["id"] for o in found] == [completed["order_id"]]

        not_completed = client.get(f"/api/orders?order_number={pending['order_number']}").get_json()["orders"]
        assert not_completed == []

    def test_voided_orders_hidden_from_search(self, client, db_session, make_product):
        pid = make_product(stock=10)
        completed = client.post(
            "/api/orders",
            json={**_cart(pid), "payment": {"payment_method": "Cash", "amount": 100}},
        ).get_json()
        client.post(
            f"/api/orders/{completed['order_id']}/void",
            json={"void_reason": "refund"},
            headers=user_headers(),
        )
        found = client.get(f"/api/orders?order_number={completed['order_number']}").get_json()["orders"]
        assert found == []

    def test_get_update_delete(self, client, db_session, make_product):
        pid = make_product(stock=10)
        order_id = client.post("/api/orders", json=_cart(pid, 2)).get_json()["order_id"]

        resp = client.get(f"/api/orders/{order_id}")
        assert resp.status_code == 200
        assert resp.get_json()["order"]["items"][0]["quantity"] == 2

        resp = client.put(f"/api/orders/{order_id}", json={"status": "Completed"})
        assert resp.status_code == 400
        assert resp.get_json()["code"] == "ORDER_LOCKED"

        resp = client.put(f"/api/orders/{order_id}", json={"notes": "fragile"})
        assert resp.status_code == 200
        assert resp.get_json()["order"]["notes"] == "fragile"

        resp = client.delete(f"/api/orders/{order_id}")
        assert resp.status_code == 200
        assert resp.get_json()["stock_restored"] is True
        assert stock_of(pid) == 10

        assert client.get(f"/api/orders/{order_id}").status_code == 404

    def test_get_unexpected_error_is_500(self, client, db_session, monkeypatch):
        def _broken(order_id):
            raise RuntimeError("boom")

        monkeypatch.setattr(order_service, "get_order", _broken)
        resp = client.get("/api/orders/1")
        assert resp.status_code == 500
        assert resp.get_json() == {"error": "Internal server error"}
