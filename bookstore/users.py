from __future__ import annotations

from flask import Blueprint, request, abort, g
from sqlalchemy import func

from models.user import User, UserRole
from models.schemas import load
from models.schemas.user import UserOutSchema

from .errors import envelope
from .extensions import get_storage
from utils.decorators import admin_required
from utils.pagination import parse_pagination, parse_sort, pagination_meta

bp = Blueprint("users", __name__)

user_out_schema = UserOutSchema()
user_list_out_schema = UserOutSchema(many=True)

SORT_COLUMNS = {
    "name": User.name,
    "email": User.email,
    "created_at": User.created_at,
}


@bp.get("/users")
@admin_required()
def list_users():
    """
    List users (admin)
    ---
    tags:
      - Users
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
        default: 20
      - in: query
        name: role
        type: string
        enum: [customer, admin]
      - in: query
        name: q
        type: string
        description: "Case-insensitive substring on name or email"
    responses:
      200: { description: OK }
    """
    session = get_storage().get_session()
    page, limit = parse_pagination(default_limit=20)
    _, _, order_by = parse_sort(SORT_COLUMNS, "created_at", "desc")

    query = session.query(User)
    role = request.args.get("role")
    if role in {r.value for r in UserRole}:
        query = query.filter(User.role == UserRole(role))
    q = request.args.get("q")
    if q:
        qnorm = f"%{q.strip().lower()}%"
        query = query.filter(func.lower(User.name).like(qnorm) | func.lower(User.email).like(qnorm))

    total = query.count()
    rows = query.order_by(order_by).offset((page - 1) * limit).limit(limit).all()
    return envelope({"users": user_list_out_schema.dump(rows), "pagination": pagination_meta(page, limit, total)})


@bp.put("/users/<user_id>/role")
@admin_required()
def set_role(user_id: str):
    """
    Admin-only: change a user's role.
    ---
    tags:
      - Users
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      -  in: path
         name: user_id
         type: string
         required: true
      -  in: body
         name: body
         schema:
           type: object
           properties:
             role: { type: string, enum: [customer, admin] }
    responses:
      200: { description: OK }
      400: { description: Invalid role or self-demotion }
      404: { description: User not found }
    """
    data = load("user_role", request.get_json(silent=True) or {})

    storage = get_storage()
    user = storage.get(User, user_id)
    if not user:
        abort(404, description="User not found")
    if user.id == g.current_user.id and data["role"] != UserRole.ADMIN:
        abort(400, description="Admins cannot demote themselves")

    user.role = data["role"]
    storage.new(user)
    storage.save()
    return envelope({"user": user_out_schema.dump(user)}, message="Role updated successfully")
