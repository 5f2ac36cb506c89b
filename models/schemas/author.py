from marshmallow import Schema, fields, validate

from models.schemas.common import BaseSchema


class AuthorSchema(BaseSchema):
    name = fields.String(required=True, validate=validate.Length(min=2, max=200))
    bio = fields.String(allow_none=True, validate=validate.Length(max=2000))


class AuthorOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    bio = fields.String(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
