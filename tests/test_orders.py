from decimal import Decimal

import pytest
from werkzeug.exceptions import HTTPException

from bookstore.orders import merge_items, place_order
from models import Book, Order, OrderItem, OrderStatus


def _order(client, headers, items, address="221B Baker Street"):
    return client.post("/api/orders", json={"items": items, "shipping_address": address}, headers=headers)


def test_merge_items_sums_duplicates():
    merged = merge_items([{"book_id": "a", "quantity": 1}, {"book_id": "b", "quantity": 2}, {"book_id": "a", "quantity": 3}])

    assert list(merged.items()) == [("a", 4), ("b", 2)]


class TestPlaceOrder:
    def test_total_stock_and_status(self, client, db, customer_headers):
        book = db.book(title="Dune", price="12.50", stock_qty=10)

        resp = _order(client, customer_headers, [{"book_id": book.id, "quantity": 2}])

        assert resp.status_code == 201
        order = resp.get_json()["data"]["order"]
        assert order["total_amount"] == "25.00"
        assert order["status"] == "pending"
        assert order["items"][0]["unit_price"] == "12.50"
        assert order["items"][0]["subtotal"] == "25.00"
        assert order["items"][0]["title"] == "Dune"
        assert db.stock(book.id) == 8

    def test_several_books(self, client, db, customer_headers):
        a = db.book(title="A", price="10.00", stock_qty=5)
        b = db.book(title="B", price="3.33", stock_qty=5)

        resp = _order(client, customer_headers, [{"book_id": a.id, "quantity": 1}, {"book_id": b.id, "quantity": 3}])

        assert resp.status_code == 201
        assert resp.get_json()["data"]["order"]["total_amount"] == "19.99"
        assert db.stock(a.id) == 4
        assert db.stock(b.id) == 2
        assert db.count(OrderItem) == 2

    def test_insufficient_stock_changes_nothing(self, client, db, customer_headers):
        plenty = db.book(title="Plenty", stock_qty=10)
        scarce = db.book(title="Scarce", stock_qty=1)

        resp = _order(
            client, customer_headers, [{"book_id": plenty.id, "quantity": 2}, {"book_id": scarce.id, "quantity": 2}]
        )

        assert resp.status_code == 400
        assert resp.get_json()["message"] == f"Insufficient stock for book ID {scarce.id}"
        assert db.stock(plenty.id) == 10
        assert db.stock(scarce.id) == 1
        assert db.count(Order) == 0
        assert db.count(OrderItem) == 0

    def test_missing_book_changes_nothing(self, client, db, customer_headers):
        book = db.book(stock_qty=3)

        resp = _order(client, customer_headers, [{"book_id": book.id, "quantity": 1}, {"book_id": "ghost", "quantity": 1}])

        assert resp.status_code == 404
        assert resp.get_json()["message"] == "Book with ID ghost not found"
        assert db.stock(book.id) == 3
        assert db.count(Order) == 0

    def test_duplicate_lines_are_checked_together(self, client, db, customer_headers):
        book = db.book(stock_qty=5)

        resp = _order(client, customer_headers, [{"book_id": book.id, "quantity": 3}, {"book_id": book.id, "quantity": 3}])

        assert resp.status_code == 400
        assert db.stock(book.id) == 5

    def test_can_buy_last_copy(self, client, db, customer_headers):
        book = db.book(stock_qty=2)

        assert _order(client, customer_headers, [{"book_id": book.id, "quantity": 2}]).status_code == 201
        assert db.stock(book.id) == 0
        assert _order(client, customer_headers, [{"book_id": book.id, "quantity": 1}]).status_code == 400

    def test_price_is_snapshotted(self, client, db, admin_headers, customer_headers):
        book = db.book(price="10.00", stock_qty=5)
        order_id = _order(client, customer_headers, [{"book_id": book.id, "quantity": 1}]).get_json()["data"]["order"]["id"]

        client.put(f"/api/books/{book.id}", json={"title": "Repriced", "price": "99.00"}, headers=admin_headers)
        order = client.get(f"/api/orders/{order_id}", headers=customer_headers).get_json()["data"]["order"]

        assert order["items"][0]["unit_price"] == "10.00"
        assert order["total_amount"] == "10.00"

    @pytest.mark.parametrize(
        "payload, fields",
        [
            ({"items": [], "shipping_address": "x"}, {"items"}),
            ({"items": [{"book_id": "b", "quantity": 0}]}, {"items.0.quantity", "shipping_address"}),
            ({}, {"items", "shipping_address"}),
        ],
    )
    def test_validation(self, client, customer_headers, payload, fields):
        resp = client.post("/api/orders", json=payload, headers=customer_headers)

        assert resp.status_code == 400
        assert {e["field"] for e in resp.get_json()["errors"]} == fields

    def test_requires_login(self, client, db):
        book = db.book()

        assert _order(client, {}, [{"book_id": book.id, "quantity": 1}]).status_code == 401


def test_failure_after_placement_rolls_back(app, db, customer):
    book = db.book(stock_qty=4)

    with app.app_context():
        storage = app.extensions["storage"]
        with pytest.raises(RuntimeError):
            with storage.transaction() as session:
                place_order(session, customer.id, [{"book_id": book.id, "quantity": 3}], "somewhere")
                raise RuntimeError("boom")

    assert db.stock(book.id) == 4
    assert db.count(Order) == 0
    assert db.count(OrderItem) == 0


def test_place_order_aborts_with_http_errors(app, db, customer):
    book = db.book(stock_qty=1)

    with app.app_context():
        storage = app.extensions["storage"]
        with pytest.raises(HTTPException) as exc:
            with storage.transaction() as session:
                place_order(session, customer.id, [{"book_id": book.id, "quantity": 2}], "somewhere")

    assert exc.value.code == 400


class TestReadOrders:
    def test_customers_see_only_their_orders(self, client, db, customer_headers):
        other = db.user(email="other@example.com")
        book = db.book(stock_qty=10)
        _order(client, customer_headers, [{"book_id": book.id, "quantity": 1}])
        _order(client, db.headers(other), [{"book_id": book.id, "quantity": 1}])

        data = client.get("/api/orders", headers=customer_headers).get_json()["data"]

        assert data["pagination"]["total_items"] == 1
        assert data["orders"][0]["customer_email"] == "customer@example.com"

    def test_admin_sees_all_and_filters(self, client, db, admin_headers, customer, customer_headers):
        book = db.book(stock_qty=10)
        first = _order(client, customer_headers, [{"book_id": book.id, "quantity": 1}]).get_json()["data"]["order"]
        _order(client, customer_headers, [{"book_id": book.id, "quantity": 1}])
        db.set_status(first["id"], OrderStatus.SHIPPED)

        assert client.get("/api/orders", headers=admin_headers).get_json()["data"]["pagination"]["total_items"] == 2
        shipped = client.get("/api/orders?status=shipped", headers=admin_headers).get_json()["data"]["orders"]
        assert [o["id"] for o in shipped] == [first["id"]]
        by_user = client.get(f"/api/orders?user_id={customer.id}", headers=admin_headers).get_json()["data"]
        assert by_user["pagination"]["total_items"] == 2

    def test_invalid_status_filter(self, client, customer_headers):
        assert client.get("/api/orders?status=lost", headers=customer_headers).status_code == 400

    def test_other_customers_order_is_forbidden(self, client, db, customer_headers, admin_headers):
        other = db.user(email="other@example.com")
        book = db.book()
        order_id = _order(client, db.headers(other), [{"book_id": book.id, "quantity": 1}]).get_json()["data"]["order"]["id"]

        assert client.get(f"/api/orders/{order_id}", headers=customer_headers).status_code == 403
        assert client.get(f"/api/orders/{order_id}", headers=admin_headers).status_code == 200

    def test_missing_order(self, client, customer_headers):
        assert client.get("/api/orders/nope", headers=customer_headers).status_code == 404


class TestCancel:
    def _place(self, client, db, headers, stock=10, qty=3):
        book = db.book(price="5.00", stock_qty=stock)
        order = _order(client, headers, [{"book_id": book.id, "quantity": qty}]).get_json()["data"]["order"]
        return book, order["id"]

    @pytest.mark.parametrize("status", [OrderStatus.PENDING, OrderStatus.PROCESSING])
    def test_cancel_restores_stock(self, client, db, customer_headers, status):
        book, order_id = self._place(client, db, customer_headers)
        db.set_status(order_id, status)

        resp = client.delete(f"/api/orders/{order_id}", headers=customer_headers)

        assert resp.status_code == 200
        assert resp.get_json()["data"]["order"]["status"] == "cancelled"
        assert db.stock(book.id) == 10

    @pytest.mark.parametrize("status", [OrderStatus.SHIPPED, OrderStatus.DELIVERED, OrderStatus.COMPLETED])
    def test_cannot_cancel_after_fulfilment(self, client, db, customer_headers, status):
        book, order_id = self._place(client, db, customer_headers)
        db.set_status(order_id, status)

        resp = client.delete(f"/api/orders/{order_id}", headers=customer_headers)

        assert resp.status_code == 400
        assert resp.get_json()["message"] == f"Cannot cancel order with status: {status.value}"
        assert db.stock(book.id) == 7
        assert db.get(Order, order_id).status == status

    def test_cancel_twice(self, client, db, customer_headers):
        book, order_id = self._place(client, db, customer_headers)

        client.delete(f"/api/orders/{order_id}", headers=customer_headers)
        resp = client.delete(f"/api/orders/{order_id}", headers=customer_headers)

        assert resp.status_code == 400
        assert db.stock(book.id) == 10

    def test_other_customer_cannot_cancel(self, client, db, customer_headers):
        other = db.user(email="other@example.com")
        book, order_id = self._place(client, db, db.headers(other))

        resp = client.delete(f"/api/orders/{order_id}", headers=customer_headers)

        assert resp.status_code == 403
        assert db.stock(book.id) == 7

    def test_admin_can_cancel_any_order(self, client, db, admin_headers, customer_headers):
        book, order_id = self._place(client, db, customer_headers)

        assert client.delete(f"/api/orders/{order_id}", headers=admin_headers).status_code == 200
        assert db.stock(book.id) == 10


class TestStatusUpdate:
    def _place(self, client, db, headers):
        book = db.book(stock_qty=10)
        order = _order(client, headers, [{"book_id": book.id, "quantity": 4}]).get_json()["data"]["order"]
        return book, order["id"]

    def test_admin_updates_status(self, client, db, admin_headers, customer_headers):
        _, order_id = self._place(client, db, customer_headers)

        resp = client.put(f"/api/orders/{order_id}/status", json={"status": "shipped"}, headers=admin_headers)

        assert resp.status_code == 200
        assert resp.get_json()["data"]["order"]["status"] == "shipped"
        assert db.get(Order, order_id).status == OrderStatus.SHIPPED

    def test_customer_cannot_update_status(self, client, db, customer_headers):
        _, order_id = self._place(client, db, customer_headers)

        resp = client.put(f"/api/orders/{order_id}/status", json={"status": "shipped"}, headers=customer_headers)

        assert resp.status_code == 403

    def test_invalid_status(self, client, db, admin_headers, customer_headers):
        _, order_id = self._place(client, db, customer_headers)

        resp = client.put(f"/api/orders/{order_id}/status", json={"status": "lost"}, headers=admin_headers)

        assert resp.status_code == 400
        assert resp.get_json()["errors"][0]["field"] == "status"
        assert db.get(Order, order_id).status == OrderStatus.PENDING

    def test_cancelling_through_status_restores_stock(self, client, db, admin_headers, customer_headers):
        book, order_id = self._place(client, db, customer_headers)

        resp = client.put(f"/api/orders/{order_id}/status", json={"status": "cancelled"}, headers=admin_headers)

        assert resp.status_code == 200
        assert db.stock(book.id) == 10

    def test_cancelled_is_terminal(self, client, db, admin_headers, customer_headers):
        book, order_id = self._place(client, db, customer_headers)
        client.delete(f"/api/orders/{order_id}", headers=customer_headers)

        resp = client.put(f"/api/orders/{order_id}/status", json={"status": "pending"}, headers=admin_headers)

        assert resp.status_code == 400
        assert db.stock(book.id) == 10

    def test_unknown_order(self, client, admin_headers):
        resp = client.put("/api/orders/nope/status", json={"status": "shipped"}, headers=admin_headers)

        assert resp.status_code == 404


def test_order_total_is_exact_decimal(client, db, customer_headers):
    book = db.book(price="0.10", stock_qty=10)

    resp = _order(client, customer_headers, [{"book_id": book.id, "quantity": 3}])

    assert Decimal(resp.get_json()["data"]["order"]["total_amount"]) == Decimal("0.30")
