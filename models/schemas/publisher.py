from marshmallow import Schema, fields, validate

from models.schemas.common import BaseSchema


class PublisherSchema(BaseSchema):
    name = fields.String(required=True, validate=validate.Length(min=2, max=200))
    address = fields.String(allow_none=True, validate=validate.Length(max=500))


class PublisherOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    address = fields.String(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
