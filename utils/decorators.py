from __future__ import annotations
from functools import wraps
from flask import request, g, abort

from bookstore.extensions import get_storage
from utils.security import decode_token, TokenError
from models.user import User, UserRole


def jwt_required():
    """Authenticate the bearer token and load the acting user into g.current_user.

    The user row is re-read on every request so deleted users and role
    changes take effect immediately.
    """
    def decorator(fn):
        @wraps(fn)
        def wrapper(*args, **kwargs):
            auth = request.headers.get("Authorization", "")
            if not auth.startswith("Bearer ") or not auth.split(" ", 1)[1].strip():
                abort(401, description="Access token required")
            token = auth.split(" ", 1)[1].strip()
            try:
                decoded = decode_token(token, expected_type="access")
            except TokenError as e:
                abort(403, description=str(e))

            user = get_storage().get(User, decoded["sub"])
            if not user:
                abort(401, description="User not found")
            g.current_user = user
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def admin_required():
    def decorator(fn):
        @wraps(fn)
        @jwt_required()
        def wrapper(*args, **kwargs):
            if g.current_user.role != UserRole.ADMIN:
                abort(403, description="Admin access required")
            return fn(*args, **kwargs)

        return wrapper

    return decorator


def can_access(user, owner_id) -> bool:
    """Capability check shared by owned resources: admins, or the owner."""
    if user is None:
        return False
    return user.role == UserRole.ADMIN or str(user.id) == str(owner_id)


def ensure_owner_or_admin(owner_id) -> None:
    if not can_access(getattr(g, "current_user", None), owner_id):
        abort(403, description="Access denied. You can only access your own resources.")
