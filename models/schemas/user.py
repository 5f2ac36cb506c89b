from marshmallow import Schema, fields, pre_load, validate

from models.schemas.common import BaseSchema
from models.user import UserRole


def _norm_email(v):
    return v.strip().lower() if isinstance(v, str) else v


class UserRegistrationSchema(BaseSchema):
    name = fields.String(required=True, validate=validate.Length(min=2, max=150))
    email = fields.Email(required=True, validate=validate.Length(max=150))
    password = fields.String(required=True, load_only=True, validate=validate.Length(min=6, max=100))
    address = fields.String(allow_none=True, validate=validate.Length(max=500))
    phone = fields.String(allow_none=True, validate=validate.Length(max=20))

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data, email=_norm_email(data["email"]))
        return data


class UserLoginSchema(BaseSchema):
    email = fields.Email(required=True)
    password = fields.String(required=True, load_only=True)

    @pre_load
    def normalize(self, data, **kwargs):
        if isinstance(data, dict) and "email" in data:
            data = dict(data, email=_norm_email(data["email"]))
        return data


class UserUpdateSchema(BaseSchema):
    name = fields.String(validate=validate.Length(min=2, max=150))
    password = fields.String(load_only=True, validate=validate.Length(min=6, max=100))
    address = fields.String(allow_none=True, validate=validate.Length(max=500))
    phone = fields.String(allow_none=True, validate=validate.Length(max=20))


class UserRoleSchema(BaseSchema):
    role = fields.Enum(UserRole, by_value=True, required=True)


class UserOutSchema(Schema):
    id = fields.String()
    name = fields.String()
    email = fields.String()
    role = fields.Enum(UserRole, by_value=True)
    address = fields.String(allow_none=True)
    phone = fields.String(allow_none=True)
    created_at = fields.DateTime()
    updated_at = fields.DateTime()
