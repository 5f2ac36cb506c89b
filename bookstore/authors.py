from __future__ import annotations

from flask import Blueprint, request, abort
from sqlalchemy import func

from models.author import Author
from models.schemas import load
from models.schemas.author import AuthorOutSchema

from .errors import envelope
from .extensions import get_storage
from utils.decorators import admin_required
from utils.pagination import parse_pagination, parse_sort, pagination_meta

bp = Blueprint("authors", __name__)

out_schema = AuthorOutSchema()
out_list_schema = AuthorOutSchema(many=True)

SORT_COLUMNS = {"name": Author.name, "created_at": Author.created_at}


@bp.post("/authors")
@admin_required()
def create_author():
    """
    Create an author
    ---
    tags: [Authors]
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
          properties:
            name: { type: string, maxLength: 200 }
            bio: { type: string }
    responses:
      201: { description: Created }
      400: { description: Validation error }
    """
    storage = get_storage()
    data = load("author", request.get_json(silent=True) or {})
    # Names are not unique: different authors can share one
    a = Author(name=data["name"].strip(), bio=data.get("bio"))
    storage.new(a)
    storage.save()
    return envelope({"author": out_schema.dump(a)}, message="Author created successfully", status=201)


@bp.get("/authors")
def list_authors():
    """
    List authors (pagination, sorting, q search)
    ---
    tags: [Authors]
    parameters:
      - in: query
        name: page
        type: integer
        default: 1
      - in: query
        name: limit
        type: integer
        default: 20
      - in: query
        name: q
        type: string
    responses:
      200: { description: OK }
    """
    session = get_storage().get_session()
    page, limit = parse_pagination(default_limit=20)
    _, _, order_by = parse_sort(SORT_COLUMNS, "name", "asc")

    query = session.query(Author)
    q = request.args.get("q")
    if q:
        query = query.filter(func.lower(Author.name).like(f"%{q.strip().lower()}%"))

    total = query.count()
    rows = query.order_by(order_by).offset((page - 1) * limit).limit(limit).all()
    return envelope({"authors": out_list_schema.dump(rows), "pagination": pagination_meta(page, limit, total)})


@bp.get("/authors/<author_id>")
def get_author(author_id: str):
    """
    Get an author by id
    ---
    tags: [Authors]
    parameters:
      - in: path
        name: author_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    a = get_storage().get(Author, author_id)
    if not a:
        abort(404, description="Author not found")
    data = out_schema.dump(a)
    data["books"] = [{"id": b.id, "title": b.title} for b in a.books]
    return envelope({"author": data})
