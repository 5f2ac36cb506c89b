"""
Authentication blueprint:
- POST /auth/register
- POST /auth/login
- GET  /auth/me
- PUT  /auth/me
- POST /auth/logout

The implementation:
- Uses argon2 for password hashing (via utils.security)
- Issues stateless access tokens (JWTs signed with HS256); logout is client-side
- Every protected call re-reads the user row (see utils.decorators.jwt_required)
"""
from __future__ import annotations

import logging

from flask import Blueprint, request, g, abort

from models.user import User, UserRole
from models.schemas import load
from models.schemas.user import UserOutSchema

from .errors import envelope
from .extensions import get_storage
from utils.decorators import jwt_required
from utils.security import hash_password, verify_password, create_access_token

bp = Blueprint("auth", __name__)

user_out_schema = UserOutSchema()

logger = logging.getLogger(__name__)


@bp.post("/register")
def register():
    """
    Register a new customer account
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          required: [name, email, password]
          properties:
            name: { type: string, minLength: 2, maxLength: 150 }
            email: { type: string }
            password: { type: string, minLength: 6 }
            address: { type: string }
            phone: { type: string }
    responses:
      201:
        description: Created (returns user and token)
      400:
        description: Validation error
      409:
        description: Email already registered
    """
    data = load("user_registration", request.get_json(silent=True) or {})

    storage = get_storage()
    session = storage.get_session()
    if session.query(User).filter(User.email == data["email"]).first():
        abort(409, description="User already exists with this email")

    user = User(
        name=data["name"],
        email=data["email"],
        password_hash=hash_password(data["password"]),
        address=data.get("address"),
        phone=data.get("phone"),
        role=UserRole.CUSTOMER,
    )
    storage.new(user)
    storage.save()
    logger.info("Registered user %s", user.id)

    return envelope(
        {"user": user_out_schema.dump(user), "token": create_access_token(user.id)},
        message="User registered successfully",
        status=201,
    )


@bp.post("/login")
def login():
    """
    Login: returns the user and a bearer token
    ---
    tags:
      - Auth
    consumes:
      - application/json
    parameters:
      -  in: body
         name: body
         schema:
           type: object
           properties:
             email: { type: string }
             password: { type: string }
    responses:
      200:
        description: OK (returns token)
      401:
        description: Invalid credentials
    """
    data = load("user_login", request.get_json(silent=True) or {})

    session = get_storage().get_session()
    user: User = session.query(User).filter(User.email == data["email"]).first()
    if not user or not verify_password(data["password"], user.password_hash):
        abort(401, description="Invalid credentials")

    return envelope(
        {"user": user_out_schema.dump(user), "token": create_access_token(user.id)},
        message="Login successful",
    )


@bp.get("/me")
@jwt_required()
def me():
    """
    Get current user info
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
      401:
        description: Unauthorized
    """
    return envelope({"user": user_out_schema.dump(g.current_user)})


@bp.put("/me")
@jwt_required()
def update_me():
    """
    Update own profile (name, address, phone, password)
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    consumes:
      - application/json
    parameters:
      - in: body
        name: body
        schema:
          type: object
          properties:
            name: { type: string }
            address: { type: string }
            phone: { type: string }
            password: { type: string }
    responses:
      200:
        description: Updated
      400:
        description: Validation error
    """
    data = load("user_update", request.get_json(silent=True) or {})
    user = g.current_user
    for field in ("name", "address", "phone"):
        if field in data:
            setattr(user, field, data[field])
    if data.get("password"):
        user.password_hash = hash_password(data["password"])

    storage = get_storage()
    storage.new(user)
    storage.save()
    return envelope({"user": user_out_schema.dump(user)}, message="Profile updated successfully")


@bp.post("/logout")
@jwt_required()
def logout():
    """
    Logout (client discards the token)
    ---
    tags:
      - Auth
    security:
      - Bearer: []
    responses:
      200:
        description: OK
    """
    return envelope(message="Logout successful")
