from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from marshmallow import Schema, ValidationError, EXCLUDE

CENT = Decimal("0.01")


class BaseSchema(Schema):
    """Input schemas drop unknown keys instead of rejecting the payload."""

    class Meta:
        unknown = EXCLUDE


def normalize_isbn(raw: str) -> str:
    if raw is None:
        raise ValidationError("ISBN is required.")
    # Keep 'X' only for ISBN-10 check-digit position
    return "".join(ch for ch in raw if ch.isdigit() or ch.upper() == "X")


def _is_valid_isbn10(digits: str) -> bool:
    if len(digits) != 10:
        return False
    total = 0
    for i, ch in enumerate(digits[:9], start=1):
        if not ch.isdigit():
            return False
        total += int(ch) * i
    check = digits[9]
    if check == "X":
        total += 10 * 10
    elif check.isdigit():
        total += int(check) * 10
    else:
        return False
    return total % 11 == 0


def _is_valid_isbn13(digits: str) -> bool:
    if len(digits) != 13 or not digits.isdigit():
        return False
    total = 0
    for i, ch in enumerate(digits[:12]):
        factor = 1 if i % 2 == 0 else 3
        total += int(ch) * factor
    check_digit = (10 - (total % 10)) % 10
    return check_digit == int(digits[12])


def validate_and_normalize_isbn(raw: str) -> str:
    digits = normalize_isbn(raw).upper()
    if len(digits) == 10 and _is_valid_isbn10(digits):
        return digits
    if len(digits) == 13 and _is_valid_isbn13(digits):
        return digits
    raise ValidationError("Invalid ISBN-10 or ISBN-13.")


def to_money(value) -> Decimal:
    """Coerce to a Decimal rounded half-up to cents."""
    try:
        d = Decimal(str(value))
    except (InvalidOperation, TypeError):
        raise ValidationError("Invalid decimal.")
    return d.quantize(CENT, rounding=ROUND_HALF_UP)


def flatten_errors(messages, prefix: str = "") -> list:
    """
    Turn marshmallow's nested error dict into a flat list of
    {"field": "items.0.quantity", "message": "..."} entries.
    """
    errors = []
    if isinstance(messages, dict):
        for key, value in messages.items():
            path = f"{prefix}.{key}" if prefix else str(key)
            errors.extend(flatten_errors(value, path))
    elif isinstance(messages, (list, tuple)):
        for value in messages:
            if isinstance(value, (dict, list, tuple)):
                errors.extend(flatten_errors(value, prefix))
            else:
                errors.append({"field": prefix or "_schema", "message": str(value)})
    else:
        errors.append({"field": prefix or "_schema", "message": str(messages)})
    return errors
