"""
Named request schemas and the validation entry points.

validate() is the side-effect free form: it returns the normalized payload
(defaults applied, unknown keys dropped) or every field-level error found in
one pass. load() raises instead, letting the API error handler build the 400.
"""
from __future__ import annotations

from typing import Any, Dict, List, Optional, Tuple

from marshmallow import ValidationError

from models.schemas.common import flatten_errors
from models.schemas.user import (
    UserRegistrationSchema,
    UserLoginSchema,
    UserUpdateSchema,
    UserRoleSchema,
)
from models.schemas.book import BookSchema
from models.schemas.category import CategorySchema
from models.schemas.author import AuthorSchema
from models.schemas.publisher import PublisherSchema
from models.schemas.order import OrderSchema, OrderStatusSchema
from models.schemas.review import ReviewSchema

SCHEMAS = {
    "user_registration": UserRegistrationSchema,
    "user_login": UserLoginSchema,
    "user_update": UserUpdateSchema,
    "user_role": UserRoleSchema,
    "book": BookSchema,
    "category": CategorySchema,
    "author": AuthorSchema,
    "publisher": PublisherSchema,
    "order": OrderSchema,
    "order_status": OrderStatusSchema,
    "review": ReviewSchema,
}


def _schema(name: str, partial: bool = False):
    try:
        return SCHEMAS[name](partial=partial)
    except KeyError:
        raise KeyError(f"Unknown schema: {name}")


def load(name: str, payload: Any, partial: bool = False) -> Dict[str, Any]:
    """Validate and normalize payload; raises marshmallow.ValidationError."""
    if not isinstance(payload, dict):
        raise ValidationError({"_schema": ["Request body must be a JSON object."]})
    return _schema(name, partial).load(payload)


def validate(name: str, payload: Any, partial: bool = False) -> Tuple[Optional[Dict[str, Any]], List[dict]]:
    try:
        return load(name, payload, partial=partial), []
    except ValidationError as err:
        return None, flatten_errors(err.messages)
