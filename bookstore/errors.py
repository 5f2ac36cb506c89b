from flask import jsonify, current_app, request
from werkzeug.exceptions import HTTPException
from marshmallow import ValidationError
from sqlalchemy.exc import IntegrityError
import logging

from models.schemas.common import flatten_errors


def envelope(data=None, message: str | None = None, status: int = 200):
    payload = {"success": True}
    if message:
        payload["message"] = message
    if data is not None:
        payload["data"] = data
    return jsonify(payload), status


def error_response(message: str, status: int, errors: list | None = None, **extra):
    payload = {"success": False, "message": message}
    if errors:
        payload["errors"] = errors
    payload.update({k: v for k, v in extra.items() if v is not None})
    return jsonify(payload), status


def register_error_handlers(app):
    # 404 Not Found
    @app.errorhandler(404)
    def not_found(e):
        description = getattr(e, "description", None)
        # werkzeug's stock text means no route matched at all
        if not description or description.startswith("The requested URL was not found"):
            return error_response("Endpoint not found", 404, path=request.path)
        return error_response(description, 404)

    # marshmallow validation errors map to 400 with every field listed
    @app.errorhandler(ValidationError)
    def handle_validation_error(err: ValidationError):
        if current_app and current_app.debug:
            logging.debug("Validation failed: %s", err.messages)
        return error_response("Validation failed", 400, errors=flatten_errors(err.messages))

    # Integrity errors (unique constraints, FK violations, check constraints)
    @app.errorhandler(IntegrityError)
    def handle_integrity_error(err: IntegrityError):
        message = str(getattr(err, "orig", err))
        lower_msg = message.lower()
        logging.warning("Integrity error: %s", message)
        detail = message if current_app.debug else None
        if "unique" in lower_msg or "duplicate key" in lower_msg:
            return error_response("Resource already exists", 409, error=detail)
        if "foreign key" in lower_msg:
            return error_response("Referenced resource is missing or still in use", 400, error=detail)
        return error_response("Constraint violated", 400, error=detail)

    # Werkzeug HTTPExceptions (abort()) map to their status codes
    @app.errorhandler(HTTPException)
    def handle_http_exception(err: HTTPException):
        return error_response(err.description or err.name, err.code or 400)

    # 500 Internal Error (catch-all)
    @app.errorhandler(Exception)
    def internal_error(err: Exception):
        logging.exception("Unhandled exception", exc_info=err)
        # Only leak details while developing
        detail = str(err) if current_app and current_app.debug else None
        return error_response("Internal server error", 500, error=detail)
