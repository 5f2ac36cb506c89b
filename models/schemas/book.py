from marshmallow import Schema, fields, validates, post_load, validate, ValidationError

from models.schemas.common import BaseSchema, validate_and_normalize_isbn, to_money


class BookSchema(BaseSchema):
    """Create/replace payload for a book."""

    isbn = fields.String(allow_none=True, validate=validate.Length(max=20))
    title = fields.String(required=True, validate=validate.Length(min=1, max=255))
    price = fields.Decimal(required=True)
    stock_qty = fields.Integer(load_default=0, validate=validate.Range(min=0))
    publisher_id = fields.String(allow_none=True)
    pub_date = fields.Date(allow_none=True)
    description = fields.String(allow_none=True, validate=validate.Length(max=2000))
    image_url = fields.Url(allow_none=True)
    author_ids = fields.List(fields.String(), load_only=True)
    category_ids = fields.List(fields.String(), load_only=True)

    @validates("price")
    def _validate_price(self, value, **kwargs):
        if value is None or value <= 0:
            raise ValidationError("price must be greater than 0.")
        if value.as_tuple().exponent < -2:
            raise ValidationError("price must have at most 2 decimal places.")

    @post_load
    def _normalize(self, data, **kwargs):
        if "isbn" in data:
            # Blank form fields mean "no ISBN"; store NULL so the unique index ignores them
            isbn = (data["isbn"] or "").strip()
            data["isbn"] = validate_and_normalize_isbn(isbn) if isbn else None
        if "price" in data:
            data["price"] = to_money(data["price"])
        return data


class NamedRefSchema(Schema):
    id = fields.String()
    name = fields.String()


class BookOutSchema(Schema):
    id = fields.String()
    isbn = fields.String(allow_none=True)
    title = fields.String()
    price = fields.Decimal(as_string=True, places=2)
    stock_qty = fields.Integer()
    pub_date = fields.Date(allow_none=True)
    description = fields.String(allow_none=True)
    image_url = fields.String(allow_none=True)
    publisher_id = fields.String(allow_none=True)
    publisher = fields.Method("get_publisher_name")
    authors = fields.List(fields.Nested(NamedRefSchema))
    categories = fields.List(fields.Nested(NamedRefSchema))
    created_at = fields.DateTime()
    updated_at = fields.DateTime()

    def get_publisher_name(self, obj):
        publisher = getattr(obj, "publisher", None)
        return publisher.name if publisher else None
