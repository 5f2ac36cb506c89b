from __future__ import annotations

from flask import Blueprint, request, abort
from sqlalchemy import func

from models.book import Book
from models.publisher import Publisher
from models.schemas import load
from models.schemas.publisher import PublisherOutSchema

from .errors import envelope
from .extensions import get_storage
from utils.decorators import admin_required
from utils.pagination import parse_pagination, parse_sort, pagination_meta

bp = Blueprint("publishers", __name__)

out_schema = PublisherOutSchema()
out_list_schema = PublisherOutSchema(many=True)

SORT_COLUMNS = {"name": Publisher.name, "created_at": Publisher.created_at}


def exists_name_case_insensitive(session, name: str) -> bool:
    q = session.query(Publisher).filter(func.lower(Publisher.name) == name.strip().lower())
    return session.query(q.exists()).scalar()


@bp.post("/publishers")
@admin_required()
def create_publisher():
    """
    Create a publisher
    ---
    tags: [Publishers]
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
            name: { type: string, maxLength: 200 }
            address: { type: string, maxLength: 500 }
    responses:
      201: { description: Created }
      409: { description: Name already exists }
    """
    storage = get_storage()
    data = load("publisher", request.get_json(silent=True) or {})
    if exists_name_case_insensitive(storage.get_session(), data["name"]):
        abort(409, description="Publisher with this name already exists")
    p = Publisher(name=data["name"].strip(), address=data.get("address"))
    storage.new(p)
    storage.save()
    return envelope({"publisher": out_schema.dump(p)}, message="Publisher created successfully", status=201)


@bp.get("/publishers")
def list_publishers():
    """
    List publishers (pagination, q search)
    ---
    tags: [Publishers]
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

    query = session.query(Publisher)
    q = request.args.get("q")
    if q:
        query = query.filter(func.lower(Publisher.name).like(f"%{q.strip().lower()}%"))

    total = query.count()
    rows = query.order_by(order_by).offset((page - 1) * limit).limit(limit).all()
    return envelope({"publishers": out_list_schema.dump(rows), "pagination": pagination_meta(page, limit, total)})


@bp.get("/publishers/<publisher_id>")
def get_publisher(publisher_id: str):
    """
    Get a publisher by id, with its book count
    ---
    tags: [Publishers]
    parameters:
      - in: path
        name: publisher_id
        type: string
        required: true
    responses:
      200: { description: OK }
      404: { description: Not found }
    """
    storage = get_storage()
    p = storage.get(Publisher, publisher_id)
    if not p:
        abort(404, description="Publisher not found")
    data = out_schema.dump(p)
    data["book_count"] = storage.get_session().query(Book).filter(Book.publisher_id == p.id).count()
    return envelope({"publisher": data})
