from __future__ import annotations

from flask import Blueprint, request, abort
from sqlalchemy import func

from models.book import Book, book_categories
from models.category import Category
from models.schemas import load
from models.schemas.category import CategoryOutSchema

from .errors import envelope
from .extensions import get_storage
from utils.decorators import admin_required
from utils.pagination import parse_pagination, parse_sort, pagination_meta

bp = Blueprint("categories", __name__)

out_schema = CategoryOutSchema()

SORT_COLUMNS = {
    "name": Category.name,
    "created_at": Category.created_at,
}

RECENT_BOOKS = 10


def exists_name_case_insensitive(session, name: str, exclude_id: str | None = None) -> bool:
    q = session.query(Category).filter(func.lower(Category.name) == name.strip().lower())
    if exclude_id:
        q = q.filter(Category.id != exclude_id)
    return session.query(q.exists()).scalar()


def book_count(session, category_id: str) -> int:
    return (
        session.query(func.count(book_categories.c.book_id))
        .filter(book_categories.c.category_id == category_id)
        .scalar()
    )


def dump_category(category: Category, count: int) -> dict:
    data = out_schema.dump(category)
    data["book_count"] = int(count or 0)
    return data


@bp.get("/categories")
def list_categories():
    """
    List categories with their book counts
    ---
    tags: [Categories]
    parameters:
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 50
      - in: query
        name: q
        type: string
      - in: query
        name: sort_by
        type: string
        enum: [name, created_at]
        default: name
      - in: query
        name: sort_order
        type: string
        enum: [asc, desc]
        default: asc
    responses:
      200: { description: OK }
    """
    session = get_storage().get_session()
    page, limit = parse_pagination(default_limit=50)
    _, _, order_by = parse_sort(SORT_COLUMNS, "name", "asc")

    count_col = func.count(book_categories.c.book_id).label("book_count")
    query = (
        session.query(Category, count_col)
        .outerjoin(book_categories, book_categories.c.category_id == Category.id)
        .group_by(Category.id)
    )
    base = session.query(Category)
    q = request.args.get("q")
    if q:
        qnorm = f"%{q.strip().lower()}%"
        query = query.filter(func.lower(Category.name).like(qnorm))
        base = base.filter(func.lower(Category.name).like(qnorm))

    total = base.count()
    rows = query.order_by(order_by).offset((page - 1) * limit).limit(limit).all()
    return envelope(
        {
            "categories": [dump_category(c, count) for c, count in rows],
            "pagination": pagination_meta(page, limit, total),
        }
    )


@bp.get("/categories/<category_id>")
def get_category(category_id: str):
    """
    Get a category by id, with its most recently added books
    ---
    tags: [Categories]
    parameters:
      - in: path
        name: category_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    session = get_storage().get_session()
    c = session.get(Category, category_id)
    if not c:
        abort(404, description="Category not found")

    recent = (
        session.query(Book)
        .join(book_categories, book_categories.c.book_id == Book.id)
        .filter(book_categories.c.category_id == c.id)
        .order_by(Book.created_at.desc())
        .limit(RECENT_BOOKS)
        .all()
    )
    data = dump_category(c, book_count(session, c.id))
    data["recent_books"] = [
        {"id": b.id, "title": b.title, "price": f"{b.price:.2f}", "image_url": b.image_url}
        for b in recent
    ]
    return envelope({"category": data})


@bp.post("/categories")
@admin_required()
def create_category():
    """
    Create a category
    ---
    tags: [Categories]
    security:
      - Bearer: []
    consumes: [application/json]
    parameters:
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name: { type: string, maxLength: 150 }
            description: { type: string, maxLength: 500 }
    responses:
      201: { description: Created }
      400: { description: Validation error }
      409: { description: Name already exists }
    """
    storage = get_storage()
    data = load("category", request.get_json(silent=True) or {})
    if exists_name_case_insensitive(storage.get_session(), data["name"]):
        abort(409, description="Category with this name already exists")
    c = Category(name=data["name"].strip(), description=data.get("description"))
    storage.new(c)
    storage.save()
    return envelope({"category": dump_category(c, 0)}, message="Category created successfully", status=201)


@bp.put("/categories/<category_id>")
@admin_required()
def update_category(category_id: str):
    """
    Update a category
    ---
    tags: [Categories]
    security:
      - Bearer: []
    parameters:
      - in: path
        name: category_id
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            name: { type: string, maxLength: 150 }
            description: { type: string, maxLength: 500 }
    responses:
      200: { description: OK }
      404: { description: Not found }
      409: { description: Name already exists }
    """
    storage = get_storage()
    session = storage.get_session()
    c = session.get(Category, category_id)
    if not c:
        abort(404, description="Category not found")
    data = load("category", request.get_json(silent=True) or {})
    if exists_name_case_insensitive(session, data["name"], exclude_id=c.id):
        abort(409, description="Category with this name already exists")
    c.name = data["name"].strip()
    c.description = data.get("description")
    storage.new(c)
    storage.save()
    return envelope({"category": dump_category(c, book_count(session, c.id))}, message="Category updated successfully")


@bp.delete("/categories/<category_id>")
@admin_required()
def delete_category(category_id: str):
    """
    Delete a category that no book references
    ---
    tags: [Categories]
    security:
      - Bearer: []
    parameters:
      - in: path
        name: category_id
        type: string
        required: true
    responses:
      200: { description: Deleted }
      400: { description: Category still has books }
      404: { description: Not found }
    """
    storage = get_storage()
    session = storage.get_session()
    c = session.get(Category, category_id)
    if not c:
        abort(404, description="Category not found")
    if book_count(session, c.id) > 0:
        abort(400, description="Cannot delete category that has associated books")
    storage.delete(c)
    storage.save()
    return envelope(message="Category deleted successfully")
