"""
Read-only analytics for the admin dashboard.

All figures are aggregated in SQL. Period bucketing uses date_trunc on
PostgreSQL and strftime (date() for ISO weeks) on SQLite; both are rendered as the same string
keys ("2024-05", ISO weeks as "2024-19", ...) in responses.
"""
from __future__ import annotations

from datetime import date, datetime, timedelta, timezone

from flask import Blueprint, request, abort, current_app
from sqlalchemy import func, distinct

from models.book import Book, book_categories
from models.category import Category
from models.order import Order, OrderItem, OrderStatus, FULFILLED_STATUSES
from models.user import User, UserRole
from models.schemas.common import to_money

from .errors import envelope
from .extensions import get_storage
from utils.decorators import admin_required

bp = Blueprint("dashboard", __name__)

PERIOD_FORMATS = {
    "day": "%Y-%m-%d",
    "week": "%G-%V",
    "month": "%Y-%m",
    "year": "%Y",
}

TOP_N = 10


def _money(value) -> str:
    return str(to_money(value or 0))


def _iso(value):
    return value.isoformat() if hasattr(value, "isoformat") else value


def period_bucket(dialect: str, column, period: str):
    if dialect == "postgresql":
        return func.date_trunc(period, column)
    if period == "week":
        # Monday of the ISO week, matching date_trunc('week')
        return func.date(column, "weekday 0", "-6 days")
    return func.strftime(PERIOD_FORMATS[period], column)


def period_key(value, period: str) -> str:
    if period == "week" and isinstance(value, str):
        value = date.fromisoformat(value[:10])
    if hasattr(value, "strftime"):
        return value.strftime(PERIOD_FORMATS[period])
    return str(value)


def months_ago(now: datetime, n: int) -> datetime:
    """First instant of the month n months before now's month."""
    index = now.year * 12 + (now.month - 1) - n
    return now.replace(year=index // 12, month=index % 12 + 1, day=1,
                       hour=0, minute=0, second=0, microsecond=0)


def period_start(period: str, count: int, now: datetime | None = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    if period == "day":
        return (now - timedelta(days=count)).replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "week":
        return (now - timedelta(weeks=count)).replace(hour=0, minute=0, second=0, microsecond=0)
    if period == "year":
        return now.replace(year=now.year - count, month=1, day=1, hour=0, minute=0, second=0, microsecond=0)
    return months_ago(now, count)


def sales_by_period(session, dialect: str, period: str, since: datetime):
    bucket = period_bucket(dialect, Order.order_date, period).label("period")
    return (
        session.query(
            bucket,
            func.count(Order.id),
            func.count(distinct(Order.user_id)),
            func.coalesce(func.sum(Order.total_amount), 0),
            func.coalesce(func.avg(Order.total_amount), 0),
        )
        .filter(Order.order_date >= since, Order.status.in_(FULFILLED_STATUSES))
        .group_by(bucket)
        .order_by(bucket)
        .all()
    )


def overview(session) -> dict:
    revenue = (
        session.query(func.coalesce(func.sum(Order.total_amount), 0))
        .filter(Order.status == OrderStatus.COMPLETED)
        .scalar()
    )
    return {
        "total_customers": session.query(User).filter(User.role == UserRole.CUSTOMER).count(),
        "total_books": session.query(Book).count(),
        "total_orders": session.query(Order).count(),
        "total_categories": session.query(Category).count(),
        "total_revenue": _money(revenue),
    }


def order_status_distribution(session) -> list:
    rows = (
        session.query(Order.status, func.count(Order.id).label("count"))
        .group_by(Order.status)
        .order_by(func.count(Order.id).desc())
        .all()
    )
    return [{"status": OrderStatus(s).value, "count": int(c)} for s, c in rows]


def category_distribution(session) -> list:
    book_counts = dict(
        session.query(Category.id, func.count(book_categories.c.book_id))
        .outerjoin(book_categories, book_categories.c.category_id == Category.id)
        .group_by(Category.id)
        .all()
    )
    sold = dict(
        session.query(book_categories.c.category_id, func.sum(OrderItem.quantity))
        .join(OrderItem, OrderItem.book_id == book_categories.c.book_id)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status.in_(FULFILLED_STATUSES))
        .group_by(book_categories.c.category_id)
        .all()
    )
    rows = [
        {"name": c.name, "book_count": int(book_counts.get(c.id, 0)), "total_sold": int(sold.get(c.id) or 0)}
        for c in session.query(Category).all()
    ]
    rows.sort(key=lambda r: (-r["book_count"], r["name"]))
    return rows


def top_books(session) -> list:
    total_sold = func.sum(OrderItem.quantity).label("total_sold")
    rows = (
        session.query(
            Book.id,
            Book.title,
            Book.price,
            total_sold,
            func.sum(OrderItem.quantity * OrderItem.unit_price),
        )
        .join(OrderItem, OrderItem.book_id == Book.id)
        .join(Order, Order.id == OrderItem.order_id)
        .filter(Order.status.in_(FULFILLED_STATUSES))
        .group_by(Book.id, Book.title, Book.price)
        .order_by(total_sold.desc())
        .limit(TOP_N)
        .all()
    )
    return [
        {"id": bid, "title": title, "price": _money(price), "total_sold": int(qty), "total_revenue": _money(rev)}
        for bid, title, price, qty, rev in rows
    ]


def recent_orders(session) -> list:
    rows = (
        session.query(Order, User.name)
        .join(User, User.id == Order.user_id)
        .order_by(Order.created_at.desc())
        .limit(TOP_N)
        .all()
    )
    return [
        {
            "id": o.id,
            "customer_name": name,
            "total_amount": _money(o.total_amount),
            "status": OrderStatus(o.status).value,
            "created_at": _iso(o.created_at),
        }
        for o, name in rows
    ]


def low_stock(session, threshold: int) -> list:
    rows = (
        session.query(Book)
        .filter(Book.stock_qty <= threshold)
        .order_by(Book.stock_qty.asc(), Book.title.asc())
        .limit(TOP_N)
        .all()
    )
    return [{"id": b.id, "title": b.title, "stock_qty": b.stock_qty, "price": _money(b.price)} for b in rows]


def activity_bucket(order_count: int) -> str:
    if order_count == 0:
        return "No Orders"
    if order_count == 1:
        return "1 Order"
    if order_count <= 3:
        return "2-3 Orders"
    if order_count <= 5:
        return "4-5 Orders"
    return "6+ Orders"


@bp.get("/stats")
@admin_required()
def stats():
    """
    Dashboard statistics: overview counters, chart series and tables
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      403:
        description: Admin access required
    """
    storage = get_storage()
    session = storage.get_session()
    monthly = sales_by_period(session, storage.dialect, "month", months_ago(datetime.now(timezone.utc), 12))

    return envelope(
        {
            "overview": overview(session),
            "charts": {
                "monthly_sales": [
                    {"month": period_key(p, "month"), "order_count": int(n), "revenue": _money(rev)}
                    for p, n, _, rev, _ in monthly
                ],
                "order_status": order_status_distribution(session),
                "category_distribution": category_distribution(session),
            },
            "tables": {
                "top_books": top_books(session),
                "recent_orders": recent_orders(session),
                "low_stock": low_stock(session, current_app.config.get("LOW_STOCK_THRESHOLD", 5)),
            },
        }
    )


@bp.get("/sales-trends")
@admin_required()
def sales_trends():
    """
    Sales trends per day/week/month/year
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    parameters:
      - in: query
        name: period
        type: string
        enum: [day, week, month, year]
        default: month
      - in: query
        name: limit
        type: integer
        default: 12
        description: "How many periods back to include"
    responses:
      200:
        description: OK
    """
    period = request.args.get("period", "month")
    try:
        limit = int(request.args.get("limit", "12"))
    except ValueError:
        abort(400, description="limit must be an integer")
    if period not in PERIOD_FORMATS:
        period, limit = "month", 12
    limit = max(1, min(limit, 366))

    storage = get_storage()
    rows = sales_by_period(storage.get_session(), storage.dialect, period, period_start(period, limit))
    return envelope(
        {
            "period": period,
            "trends": [
                {
                    "period": period_key(p, period),
                    "order_count": int(n),
                    "unique_customers": int(customers),
                    "revenue": _money(rev),
                    "avg_order_value": _money(avg),
                }
                for p, n, customers, rev, avg in rows
            ],
        }
    )


@bp.get("/customer-analytics")
@admin_required()
def customer_analytics():
    """
    Customer registrations, top spenders and order-count distribution
    ---
    tags:
      - Dashboard
    security:
      - Bearer: []
    responses:
      200:
        description: OK
    """
    storage = get_storage()
    session = storage.get_session()

    bucket = period_bucket(storage.dialect, User.created_at, "month").label("month")
    registrations = (
        session.query(bucket, func.count(User.id))
        .filter(User.role == UserRole.CUSTOMER, User.created_at >= months_ago(datetime.now(timezone.utc), 12))
        .group_by(bucket)
        .order_by(bucket)
        .all()
    )

    total_spent = func.coalesce(func.sum(Order.total_amount), 0).label("total_spent")
    top_customers = (
        session.query(
            User.id,
            User.name,
            User.email,
            func.count(Order.id),
            total_spent,
            func.coalesce(func.avg(Order.total_amount), 0),
            func.max(Order.created_at),
        )
        .join(Order, Order.user_id == User.id)
        .filter(User.role == UserRole.CUSTOMER, Order.status != OrderStatus.CANCELLED)
        .group_by(User.id, User.name, User.email)
        .order_by(total_spent.desc())
        .limit(TOP_N)
        .all()
    )

    per_customer = (
        session.query(User.id, func.count(Order.id))
        .outerjoin(Order, Order.user_id == User.id)
        .filter(User.role == UserRole.CUSTOMER)
        .group_by(User.id)
        .all()
    )
    distribution: dict = {}
    for _, count in per_customer:
        key = activity_bucket(int(count))
        distribution[key] = distribution.get(key, 0) + 1

    return envelope(
        {
            "registration_trends": [
                {"month": period_key(m, "month"), "new_customers": int(n)} for m, n in registrations
            ],
            "top_customers": [
                {
                    "id": uid,
                    "name": name,
                    "email": email,
                    "order_count": int(n),
                    "total_spent": _money(spent),
                    "avg_order_value": _money(avg),
                    "last_order_date": _iso(last),
                }
                for uid, name, email, n, spent, avg, last in top_customers
            ],
            "activity_distribution": [
                {"category": k, "customer_count": v}
                for k, v in sorted(distribution.items(), key=lambda kv: -kv[1])
            ],
        }
    )
