from marshmallow import Schema, fields, validate

from models.schemas.common import BaseSchema


class CategorySchema(BaseSchema):
    name = fields.String(required=True, validate=validate.Length(min=1, max=150))
    description = fields.String(allow_none=True, validate=validate.Length(max=500))


class CategoryOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    description = fields.String(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
