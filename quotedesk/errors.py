"""JSON error responses shared by every blueprint."""

import logging

from flask import jsonify
from werkzeug.exceptions import HTTPException

from quotedesk import db

logger = logging.getLogger(__name__)


class ValidationError(Exception):
    """Raised with a mapping of field name -> list of messages."""

    def __init__(self, errors: dict, message: str = 'The given data was invalid.'):
        super().__init__(message)
        self.message = message
        self.errors = errors


class ErrorCollector:
    """Accumulates per-field messages while validating a payload."""

    def __init__(self):
        self.errors: dict[str, list[str]] = {}

    def add(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    def raise_if_any(self) -> None:
        if self.errors:
            raise ValidationError(self.errors)


def error_response(message: str, status: int, **extra):
    return jsonify(message=message, **extra), status


def register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def validation_failed(e):
        return error_response(e.message, 422, errors=e.errors)

    @app.errorhandler(404)
    def not_found(_):
        return error_response('Resource not found.', 404)

    @app.errorhandler(405)
    def method_not_allowed(_):
        return error_response('Method not allowed.', 405)

    @app.errorhandler(HTTPException)
    def http_error(e):
        return error_response(e.description or e.name, e.code)

    @app.errorhandler(Exception)
    def server_error(e):
        db.session.rollback()
        logger.exception('Unhandled error: %s', e)
        return error_response(
            'Internal server error.', 500,
            error='An unexpected error occurred.'
        )
