from marshmallow import Schema, fields, validate

from models.schemas.common import BaseSchema


class ReviewSchema(BaseSchema):
    rating = fields.Integer(required=True, strict=True, validate=validate.Range(min=1, max=5))
    comment = fields.String(allow_none=True, validate=validate.Length(max=1000))


class ReviewOutSchema(Schema):
    id = fields.String()
    book_id = fields.String()
    rating = fields.Integer()
    comment = fields.String(allow_none=True)
    reviewer_name = fields.Function(lambda r: r.user.name if r.user else None)
    created_at = fields.DateTime()
