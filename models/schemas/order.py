from marshmallow import Schema, fields, validate

from models.schemas.common import BaseSchema
from models.order import OrderStatus


class OrderItemInSchema(BaseSchema):
    book_id = fields.String(required=True, validate=validate.Length(min=1))
    quantity = fields.Integer(required=True, strict=True, validate=validate.Range(min=1))


class OrderSchema(BaseSchema):
    items = fields.List(
        fields.Nested(OrderItemInSchema),
        required=True,
        validate=validate.Length(min=1, error="Order must contain at least one item."),
    )
    shipping_address = fields.String(required=True, validate=validate.Length(min=1, max=500))


class OrderStatusSchema(BaseSchema):
    status = fields.Enum(OrderStatus, by_value=True, required=True)


class OrderItemOutSchema(Schema):
    id = fields.String()
    book_id = fields.String()
    title = fields.Function(lambda i: i.book.title if i.book else None)
    image_url = fields.Function(lambda i: i.book.image_url if i.book else None)
    quantity = fields.Integer()
    unit_price = fields.Decimal(as_string=True, places=2)
    subtotal = fields.Decimal(as_string=True, places=2)


class OrderOutSchema(Schema):
    id = fields.String()
    user_id = fields.String()
    customer_name = fields.Function(lambda o: o.user.name if o.user else None)
    customer_email = fields.Function(lambda o: o.user.email if o.user else None)
    status = fields.Enum(OrderStatus, by_value=True)
    total_amount = fields.Decimal(as_string=True, places=2)
    shipping_address = fields.String()
    order_date = fields.DateTime()
    item_count = fields.Function(lambda o: len(o.items))
    items = fields.List(fields.Nested(OrderItemOutSchema))
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
