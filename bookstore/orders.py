"""
Orders blueprint and the order placement pipeline.

place_order / cancel_order / apply_status take the session of an open
transaction (DBStorage.transaction()) and abort() on business-rule
failures; the transaction rolls everything back before the error response
is built, so no partial order or stock change is ever committed.
"""
from __future__ import annotations

import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Iterable, List

from flask import Blueprint, request, abort, g
from sqlalchemy.orm import joinedload, selectinload

from models.book import Book
from models.order import Order, OrderItem, OrderStatus, CANCELLABLE_STATUSES
from models.schemas import load
from models.schemas.common import to_money
from models.schemas.order import OrderOutSchema

from .errors import envelope
from .extensions import get_storage
from utils.decorators import admin_required, jwt_required, ensure_owner_or_admin
from utils.pagination import parse_pagination, pagination_meta

bp = Blueprint("orders", __name__)

order_out_schema = OrderOutSchema()
orders_out_schema = OrderOutSchema(many=True)

logger = logging.getLogger(__name__)


def merge_items(items: Iterable[dict]) -> "OrderedDict[str, int]":
    """Sum quantities per book id, keeping first-seen order."""
    merged: "OrderedDict[str, int]" = OrderedDict()
    for item in items:
        merged[item["book_id"]] = merged.get(item["book_id"], 0) + int(item["quantity"])
    return merged


def place_order(session, user_id: str, items: List[dict], shipping_address: str) -> Order:
    wanted = merge_items(items)
    if not wanted:
        abort(400, description="Order must contain at least one item")

    # Lock the rows we are about to decrement (no-op on SQLite)
    books = {
        b.id: b
        for b in session.query(Book).filter(Book.id.in_(list(wanted))).with_for_update().all()
    }

    for book_id, quantity in wanted.items():
        book = books.get(book_id)
        if book is None:
            abort(404, description=f"Book with ID {book_id} not found")
        if book.stock_qty < quantity:
            abort(400, description=f"Insufficient stock for book ID {book_id}")

    total = sum((Decimal(books[bid].price) * qty for bid, qty in wanted.items()), Decimal("0"))

    order = Order(
        user_id=user_id,
        status=OrderStatus.PENDING,
        total_amount=to_money(total),
        shipping_address=shipping_address,
    )
    # Client-side ids let the unit of work emit one executemany for all items
    order.items = [
        OrderItem(book_id=bid, quantity=qty, unit_price=books[bid].price)
        for bid, qty in wanted.items()
    ]
    session.add(order)

    for book_id, quantity in wanted.items():
        # Decrement in SQL so the stored value, not our snapshot, is adjusted
        books[book_id].stock_qty = Book.stock_qty - quantity

    session.flush()
    logger.info("Order %s placed by user %s (%d items, total %s)", order.id, user_id, len(wanted), order.total_amount)
    return order


def cancel_order(session, order: Order) -> Order:
    if order.status not in CANCELLABLE_STATUSES:
        abort(400, description=f"Cannot cancel order with status: {OrderStatus(order.status).value}")

    restore = merge_items({"book_id": i.book_id, "quantity": i.quantity} for i in order.items)
    books = {
        b.id: b
        for b in session.query(Book).filter(Book.id.in_(list(restore))).with_for_update().all()
    }
    for book_id, quantity in restore.items():
        if book_id in books:
            books[book_id].stock_qty = Book.stock_qty + quantity

    order.status = OrderStatus.CANCELLED
    session.flush()
    logger.info("Order %s cancelled, stock restored for %d books", order.id, len(restore))
    return order


def apply_status(session, order: Order, status: OrderStatus) -> Order:
    status = OrderStatus(status)
    if order.status == OrderStatus.CANCELLED:
        abort(400, description="Cancelled orders cannot change status")
    if status == OrderStatus.CANCELLED:
        return cancel_order(session, order)
    order.status = status
    session.flush()
    return order


def _order_query(session):
    return session.query(Order).options(
        joinedload(Order.user),
        selectinload(Order.items).joinedload(OrderItem.book),
    )


def _load_order_for_update(session, order_id: str) -> Order:
    order = (
        session.query(Order)
        .filter(Order.id == order_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not order:
        abort(404, description="Order not found")
    return order


@bp.get("/orders")
@jwt_required()
def list_orders():
    """
    List orders (admins: all, optionally by user_id; customers: their own)
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 10
      - in: query
        name: status
        type: string
        enum: [pending, processing, shipped, delivered, cancelled, completed]
      - in: query
        name: user_id
        type: string
        description: "Admin only"
    responses:
      200:
        description: List of orders
    """
    session = get_storage().get_session()
    page, limit = parse_pagination(default_limit=10)
    user = g.current_user

    query = _order_query(session)
    if not user.is_admin:
        query = query.filter(Order.user_id == user.id)
    elif request.args.get("user_id"):
        query = query.filter(Order.user_id == request.args["user_id"])

    status = request.args.get("status")
    if status:
        try:
            query = query.filter(Order.status == OrderStatus(status))
        except ValueError:
            abort(400, description="Invalid status. Valid statuses are: " + ", ".join(s.value for s in OrderStatus))

    total = query.count()
    rows = query.order_by(Order.created_at.desc(), Order.id).offset((page - 1) * limit).limit(limit).all()
    return envelope({"orders": orders_out_schema.dump(rows), "pagination": pagination_meta(page, limit, total)})


@bp.get("/orders/<order_id>")
@jwt_required()
def get_order(order_id: str):
    """
    Get a single order (owner or admin)
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: path
        name: order_id
        type: string
        required: true
    responses:
      200:
        description: Order found
      403:
        description: Not your order
      404:
        description: Not found
    """
    session = get_storage().get_session()
    order = _order_query(session).filter(Order.id == order_id).first()
    if not order:
        abort(404, description="Order not found")
    ensure_owner_or_admin(order.user_id)
    return envelope({"order": order_out_schema.dump(order)})


@bp.post("/orders")
@jwt_required()
def create_order():
    """
    Place an order: checks stock, snapshots prices, decrements stock atomically
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          required: [items, shipping_address]
          properties:
            items:
              type: array
              items:
                type: object
                properties:
                  book_id: { type: string }
                  quantity: { type: integer, minimum: 1 }
            shipping_address: { type: string, maxLength: 500 }
    responses:
      201:
        description: Created
      400:
        description: Validation error or insufficient stock
      404:
        description: A book does not exist
    """
    data = load("order", request.get_json(silent=True) or {})
    storage = get_storage()

    with storage.transaction() as session:
        order = place_order(session, g.current_user.id, data["items"], data["shipping_address"])

    order = _order_query(storage.get_session()).filter(Order.id == order.id).one()
    return envelope({"order": order_out_schema.dump(order)}, message="Order created successfully", status=201)


@bp.put("/orders/<order_id>/status")
@admin_required()
def update_order_status(order_id: str):
    """
    Update order status (admin)
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: path
        name: order_id
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            status:
              type: string
              enum: [pending, processing, shipped, delivered, cancelled, completed]
    responses:
      200:
        description: Updated
      400:
        description: Invalid status or transition
      404:
        description: Not found
    """
    data = load("order_status", request.get_json(silent=True) or {})
    storage = get_storage()

    with storage.transaction() as session:
        order = _load_order_for_update(session, order_id)
        apply_status(session, order, data["status"])

    return envelope({"order": order_out_schema.dump(order)}, message="Order status updated successfully")


@bp.delete("/orders/<order_id>")
@jwt_required()
def delete_order(order_id: str):
    """
    Cancel an order (owner or admin), restoring stock
    ---
    tags:
      - Orders
    security:
      - Bearer: []
    parameters:
      - in: path
        name: order_id
        type: string
        required: true
    responses:
      200:
        description: Cancelled
      400:
        description: Order is past the cancellable stage
      403:
        description: Not your order
      404:
        description: Not found
    """
    storage = get_storage()

    with storage.transaction() as session:
        order = _load_order_for_update(session, order_id)
        ensure_owner_or_admin(order.user_id)
        cancel_order(session, order)

    return envelope({"order": order_out_schema.dump(order)}, message="Order cancelled successfully")
