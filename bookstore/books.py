from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Dict, List, Optional, Tuple

from flask import Blueprint, request, abort, g
from sqlalchemy import or_, func

from models.book import Book
from models.author import Author
from models.category import Category
from models.publisher import Publisher
from models.order import OrderItem
from models.review import Review
from models.schemas import load
from models.schemas.book import BookOutSchema
from models.schemas.review import ReviewOutSchema

from .errors import envelope
from .extensions import get_storage
from utils.decorators import admin_required, jwt_required
from utils.pagination import parse_pagination, parse_sort, pagination_meta

bp = Blueprint("books", __name__)

book_out_schema = BookOutSchema()
books_out_schema = BookOutSchema(many=True)
review_out_schema = ReviewOutSchema()
reviews_out_schema = ReviewOutSchema(many=True)

# Sorting allowlist: API field -> SQLAlchemy column
SORT_COLUMNS = {
    "title": Book.title,
    "price": Book.price,
    "created_at": Book.created_at,
    "pub_date": Book.pub_date,
}

RECENT_REVIEWS = 5


def parse_price_param(name: str) -> Optional[Decimal]:
    val = request.args.get(name)
    if val in (None, ""):
        return None
    try:
        price = Decimal(val)
    except InvalidOperation:
        abort(400, description=f"{name} must be a number")
    if not price.is_finite():
        abort(400, description=f"{name} must be a number")
    return price


def apply_filters(query):
    search = request.args.get("search")
    category = request.args.get("category")
    author = request.args.get("author")
    publisher_id = request.args.get("publisher_id")
    min_price = parse_price_param("min_price")
    max_price = parse_price_param("max_price")

    if search:
        # Case-insensitive substring on title or description
        qnorm = f"%{search.strip().lower()}%"
        query = query.filter(
            or_(func.lower(Book.title).like(qnorm), func.lower(Book.description).like(qnorm))
        )

    # EXISTS subqueries keep one row per book, no DISTINCT needed
    if category:
        qnorm = f"%{category.strip().lower()}%"
        query = query.filter(Book.categories.any(func.lower(Category.name).like(qnorm)))

    if author:
        qnorm = f"%{author.strip().lower()}%"
        query = query.filter(Book.authors.any(func.lower(Author.name).like(qnorm)))

    if publisher_id:
        query = query.filter(Book.publisher_id == publisher_id)

    if min_price is not None:
        query = query.filter(Book.price >= min_price)

    if max_price is not None:
        query = query.filter(Book.price <= max_price)

    return query


def rating_stats(session, book_ids: List[str]) -> Dict[str, Tuple[float, int]]:
    """Average rating and review count per book id, one grouped query."""
    if not book_ids:
        return {}
    rows = (
        session.query(Review.book_id, func.avg(Review.rating), func.count(Review.id))
        .filter(Review.book_id.in_(book_ids))
        .group_by(Review.book_id)
        .all()
    )
    return {book_id: (round(float(avg or 0), 1), int(count)) for book_id, avg, count in rows}


def dump_books(session, books: List[Book]) -> List[dict]:
    stats = rating_stats(session, [b.id for b in books])
    out = books_out_schema.dump(books)
    for item in out:
        avg, count = stats.get(item["id"], (0.0, 0))
        item["avg_rating"] = avg
        item["review_count"] = count
    return out


def resolve_relations(session, data: dict) -> dict:
    """Check referenced publisher/author/category ids exist; returns loaded objects."""
    resolved = {}
    if data.get("publisher_id"):
        if not session.get(Publisher, data["publisher_id"]):
            abort(400, description="publisher_id not found")

    if "author_ids" in data:
        ids = set(data["author_ids"] or [])
        authors = session.query(Author).filter(Author.id.in_(ids)).all() if ids else []
        if len(authors) != len(ids):
            abort(400, description="One or more author_ids not found")
        resolved["authors"] = authors

    if "category_ids" in data:
        ids = set(data["category_ids"] or [])
        categories = session.query(Category).filter(Category.id.in_(ids)).all() if ids else []
        if len(categories) != len(ids):
            abort(400, description="One or more category_ids not found")
        resolved["categories"] = categories
    return resolved


def ensure_isbn_free(session, isbn: Optional[str], exclude_id: Optional[str] = None) -> None:
    if not isbn:
        return
    q = session.query(Book).filter(Book.isbn == isbn)
    if exclude_id:
        q = q.filter(Book.id != exclude_id)
    if q.first():
        abort(409, description="Book with this ISBN already exists")


BOOK_FIELDS = ["isbn", "title", "price", "stock_qty", "publisher_id", "pub_date", "description", "image_url"]


@bp.get("/books")
def list_books():
    """
    List books with pagination, sorting, filtering, and search
    ---
    tags:
      - Books
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
        name: search
        type: string
        description: "Case-insensitive substring search on title and description"
      - in: query
        name: category
        type: string
        description: "Category name (substring)"
      - in: query
        name: author
        type: string
        description: "Author name (substring)"
      - in: query
        name: publisher_id
        type: string
      - in: query
        name: min_price
        type: number
      - in: query
        name: max_price
        type: number
      - in: query
        name: sort_by
        type: string
        enum: [title, price, created_at, pub_date]
        default: created_at
      - in: query
        name: sort_order
        type: string
        enum: [asc, desc]
        default: desc
    responses:
      200:
        description: List of books
    """
    session = get_storage().get_session()
    page, limit = parse_pagination(default_limit=10)
    sort_by, sort_order, order_by = parse_sort(SORT_COLUMNS, "created_at", "desc")

    query = apply_filters(session.query(Book))
    total = query.count()
    rows = query.order_by(order_by, Book.id).offset((page - 1) * limit).limit(limit).all()

    return envelope(
        {
            "books": dump_books(session, rows),
            "pagination": pagination_meta(page, limit, total),
            "sort": {"sort_by": sort_by, "sort_order": sort_order},
        }
    )


@bp.get("/books/<book_id>")
def get_book(book_id: str):
    """
    Get a single book by id, with its most recent reviews
    ---
    tags:
      - Books
    parameters:
      - in: path
        name: book_id
        type: string
        required: true
    responses:
      200:
        description: Book found
      404:
        description: Not found
    """
    session = get_storage().get_session()
    b = session.get(Book, book_id)
    if not b:
        abort(404, description="Book not found")

    book = dump_books(session, [b])[0]
    recent = (
        session.query(Review)
        .filter(Review.book_id == b.id)
        .order_by(Review.created_at.desc())
        .limit(RECENT_REVIEWS)
        .all()
    )
    book["recent_reviews"] = reviews_out_schema.dump(recent)
    return envelope({"book": book})


@bp.post("/books")
@admin_required()
def create_book():
    """
    Create a new book
    ---
    tags:
      - Books
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
          required: [title, price]
          properties:
            title: { type: string, maxLength: 255 }
            isbn: { type: string, description: "ISBN-10 or ISBN-13" }
            price: { type: number, example: 19.99 }
            stock_qty: { type: integer, minimum: 0, default: 0 }
            pub_date: { type: string, format: date }
            description: { type: string }
            image_url: { type: string }
            publisher_id: { type: string }
            author_ids:
              type: array
              items: { type: string }
            category_ids:
              type: array
              items: { type: string }
    responses:
      201:
        description: Created
      400:
        description: Validation error or unknown reference
      409:
        description: Book with same ISBN already exists
    """
    storage = get_storage()
    data = load("book", request.get_json(silent=True) or {})

    with storage.transaction() as session:
        ensure_isbn_free(session, data.get("isbn"))
        relations = resolve_relations(session, data)

        b = Book(**{f: data.get(f) for f in BOOK_FIELDS if f in data})
        # Association rows are flushed as one executemany per table
        for name, objs in relations.items():
            setattr(b, name, objs)
        session.add(b)

    return envelope({"book": dump_books(storage.get_session(), [b])[0]}, message="Book created successfully", status=201)


@bp.put("/books/<book_id>")
@admin_required()
def update_book(book_id: str):
    """
    Replace a book's fields; author_ids/category_ids replace links when present
    ---
    tags:
      - Books
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: path
        name: book_id
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
    responses:
      200:
        description: Updated
      404:
        description: Not found
      409:
        description: Duplicate ISBN
    """
    storage = get_storage()
    session = storage.get_session()
    b = session.get(Book, book_id)
    if not b:
        abort(404, description="Book not found")

    data = load("book", request.get_json(silent=True) or {})

    with storage.transaction() as session:
        ensure_isbn_free(session, data.get("isbn"), exclude_id=b.id)
        relations = resolve_relations(session, data)
        for field in BOOK_FIELDS:
            if field in data:
                setattr(b, field, data[field])
        for name, objs in relations.items():
            setattr(b, name, objs)

    return envelope({"book": dump_books(session, [b])[0]}, message="Book updated successfully")


@bp.delete("/books/<book_id>")
@admin_required()
def delete_book(book_id: str):
    """
    Delete a book
    ---
    tags:
      - Books
    security:
      - Bearer: []
    parameters:
      - in: path
        name: book_id
        type: string
        required: true
    responses:
      200:
        description: Deleted
      404:
        description: Not found
      409:
        description: Book appears in orders
    """
    storage = get_storage()
    session = storage.get_session()
    b = session.get(Book, book_id)
    if not b:
        abort(404, description="Book not found")

    # Order history keeps its line items, so the book must stay
    ordered = session.query(OrderItem.id).filter(OrderItem.book_id == b.id).first()
    if ordered:
        abort(409, description="Cannot delete a book that appears in orders")

    storage.delete(b)
    storage.save()
    return envelope(message="Book deleted successfully")


@bp.post("/books/<book_id>/reviews")
@jwt_required()
def create_review(book_id: str):
    """
    Review a book (one review per user and book)
    ---
    tags:
      - Books
    security:
      - Bearer: []
    parameters:
      - in: path
        name: book_id
        type: string
        required: true
      - in: body
        name: body
        required: true
        schema:
          type: object
          properties:
            rating: { type: integer, minimum: 1, maximum: 5 }
            comment: { type: string }
    responses:
      201: { description: Created }
      404: { description: Book not found }
      409: { description: Already reviewed }
    """
    storage = get_storage()
    session = storage.get_session()
    b = session.get(Book, book_id)
    if not b:
        abort(404, description="Book not found")

    data = load("review", request.get_json(silent=True) or {})
    user = g.current_user
    if session.query(Review).filter(Review.book_id == b.id, Review.user_id == user.id).first():
        abort(409, description="You have already reviewed this book")

    review = Review(book_id=b.id, user_id=user.id, rating=data["rating"], comment=data.get("comment"))
    storage.new(review)
    storage.save()
    return envelope({"review": review_out_schema.dump(review)}, message="Review added successfully", status=201)
