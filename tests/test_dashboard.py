from datetime import date, datetime, timezone

import pytest

from bookstore.dashboard import activity_bucket, months_ago, period_key
from models import Order, OrderStatus


@pytest.fixture
def sales(client, db, customer_headers):
    fiction = db.category("Fiction")
    steady = db.book(title="Steady Seller", price="10.00", stock_qty=10, categories=[fiction])
    scarce = db.book(title="Nearly Gone", price="5.00", stock_qty=3, categories=[fiction])

    completed = client.post(
        "/api/orders",
        json={"items": [{"book_id": steady.id, "quantity": 2}], "shipping_address": "1 Main St"},
        headers=customer_headers,
    ).get_json()["data"]["order"]
    client.post(
        "/api/orders",
        json={"items": [{"book_id": scarce.id, "quantity": 2}], "shipping_address": "1 Main St"},
        headers=customer_headers,
    )
    db.set_status(completed["id"], OrderStatus.COMPLETED)
    return {"steady": steady, "scarce": scarce}


def _this_month():
    return datetime.now(timezone.utc).strftime("%Y-%m")


def test_dashboard_is_admin_only(client, customer_headers):
    for path in ("/api/dashboard/stats", "/api/dashboard/sales-trends", "/api/dashboard/customer-analytics"):
        assert client.get(path, headers=customer_headers).status_code == 403
        assert client.get(path).status_code == 401


def test_stats(client, admin_headers, sales):
    data = client.get("/api/dashboard/stats", headers=admin_headers).get_json()["data"]

    assert data["overview"] == {
        "total_customers": 1,
        "total_books": 2,
        "total_orders": 2,
        "total_categories": 1,
        "total_revenue": "20.00",
    }
    assert {(s["status"], s["count"]) for s in data["charts"]["order_status"]} == {("completed", 1), ("pending", 1)}
    assert data["charts"]["monthly_sales"] == [{"month": _this_month(), "order_count": 1, "revenue": "20.00"}]
    assert data["charts"]["category_distribution"] == [{"name": "Fiction", "book_count": 2, "total_sold": 2}]

    top = data["tables"]["top_books"]
    assert [(b["title"], b["total_sold"], b["total_revenue"]) for b in top] == [("Steady Seller", 2, "20.00")]
    assert len(data["tables"]["recent_orders"]) == 2
    assert data["tables"]["recent_orders"][0]["customer_name"] == "Test Customer"
    assert [(b["title"], b["stock_qty"]) for b in data["tables"]["low_stock"]] == [("Nearly Gone", 1)]


def test_stats_on_empty_store(client, admin_headers):
    data = client.get("/api/dashboard/stats", headers=admin_headers).get_json()["data"]

    assert data["overview"]["total_revenue"] == "0.00"
    assert data["charts"]["monthly_sales"] == []
    assert data["tables"]["top_books"] == []


def test_sales_trends_by_day(client, admin_headers, sales):
    data = client.get("/api/dashboard/sales-trends?period=day&limit=7", headers=admin_headers).get_json()["data"]

    assert data["period"] == "day"
    assert data["trends"] == [
        {
            "period": datetime.now(timezone.utc).strftime("%Y-%m-%d"),
            "order_count": 1,
            "unique_customers": 1,
            "revenue": "20.00",
            "avg_order_value": "20.00",
        }
    ]


def test_sales_trends_unknown_period_falls_back(client, admin_headers, sales):
    data = client.get("/api/dashboard/sales-trends?period=fortnight", headers=admin_headers).get_json()["data"]

    assert data["period"] == "month"
    assert data["trends"][0]["period"] == _this_month()


def test_sales_trends_bad_limit(client, admin_headers):
    assert client.get("/api/dashboard/sales-trends?limit=lots", headers=admin_headers).status_code == 400


def test_customer_analytics(client, db, admin_headers, customer, sales):
    db.user(email="idle@example.com", name="Idle")

    data = client.get("/api/dashboard/customer-analytics", headers=admin_headers).get_json()["data"]

    assert data["registration_trends"] == [{"month": _this_month(), "new_customers": 2}]
    [top] = data["top_customers"]
    assert top["id"] == customer.id
    assert top["order_count"] == 2
    assert top["total_spent"] == "30.00"
    assert top["avg_order_value"] == "15.00"
    assert {(d["category"], d["customer_count"]) for d in data["activity_distribution"]} == {
        ("2-3 Orders", 1),
        ("No Orders", 1),
    }


def test_cancelled_orders_do_not_count_towards_top_customers(client, db, admin_headers, customer_headers):
    book = db.book(stock_qty=5)
    order_id = client.post(
        "/api/orders",
        json={"items": [{"book_id": book.id, "quantity": 1}], "shipping_address": "1 Main St"},
        headers=customer_headers,
    ).get_json()["data"]["order"]["id"]
    client.delete(f"/api/orders/{order_id}", headers=customer_headers)

    data = client.get("/api/dashboard/customer-analytics", headers=admin_headers).get_json()["data"]

    assert data["top_customers"] == []


@pytest.mark.parametrize(
    "count, bucket",
    [(0, "No Orders"), (1, "1 Order"), (2, "2-3 Orders"), (3, "2-3 Orders"), (5, "4-5 Orders"), (9, "6+ Orders")],
)
def test_activity_bucket(count, bucket):
    assert activity_bucket(count) == bucket


def test_months_ago_crosses_year_boundary():
    now = datetime(2024, 2, 15, 13, 30, tzinfo=timezone.utc)

    assert months_ago(now, 3) == datetime(2023, 11, 1, tzinfo=timezone.utc)
    assert months_ago(now, 0) == datetime(2024, 2, 1, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value, key",
    [
        (datetime(2024, 12, 30, tzinfo=timezone.utc), "2025-01"),
        ("2024-12-30", "2025-01"),
        (date(2025, 1, 1), "2025-01"),
        ("2021-01-04", "2021-01"),
        ("2021-01-01", "2020-53"),
    ],
)
def test_week_keys_are_iso_weeks(value, key):
    assert period_key(value, "week") == key


def test_weekly_trends_group_new_year_into_one_iso_week(client, db, admin_headers, customer_headers):
    book = db.book(price="10.00", stock_qty=10)
    ids = []
    for _ in range(2):
        resp = client.post(
            "/api/orders",
            json={"items": [{"book_id": book.id, "quantity": 1}], "shipping_address": "1 Main St"},
            headers=customer_headers,
        )
        ids.append(resp.get_json()["data"]["order"]["id"])

    # Tuesday 2024-12-31 and Wednesday 2025-01-01 share ISO week 2025-W01
    with db.storage() as storage:
        for order_id, day in zip(ids, (date(2024, 12, 31), date(2025, 1, 1))):
            order = storage.get(Order, order_id)
            order.order_date = datetime(day.year, day.month, day.day, 12, tzinfo=timezone.utc)
            order.status = OrderStatus.COMPLETED
        storage.save()

    resp = client.get("/api/dashboard/sales-trends?period=week&limit=366", headers=admin_headers)
    trends = resp.get_json()["data"]["trends"]

    assert [(t["period"], t["order_count"], t["revenue"]) for t in trends] == [("2025-01", 2, "20.00")]
