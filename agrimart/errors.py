from flask import jsonify
from pydantic import ValidationError as SchemaValidationError
from werkzeug.exceptions import HTTPException
import logging

logger = logging.getLogger(__name__)


class AppError(Exception):
    status_code = 500

    def __init__(self, message=None, payload=None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or 'Request failed'
        self.payload = payload or {}

    def to_dict(self):
        body = dict(self.payload)
        body['error'] = self.message
        return body


class ValidationError(AppError):
    status_code = 400


class EmptyCartError(ValidationError):

    def __init__(self, message='Cart is empty', payload=None):
        super().__init__(message, payload)


class AuthError(AppError):
    status_code = 401


class PermissionDenied(AppError):
    status_code = 403


class NotFoundError(AppError):
    status_code = 404


class UpstreamError(AppError):
    status_code = 502


class TransientUpstreamError(UpstreamError):
    status_code = 503


def error_for_status(status_code, message):
    """Map an HTTP status onto the error class used for it."""
    if status_code == 400:
        return ValidationError(message)
    if status_code == 401:
        return AuthError(message)
    if status_code == 403:
        return PermissionDenied(message)
    if status_code == 404:
        return NotFoundError(message)
    if status_code in (429, 502, 503, 504):
        return TransientUpstreamError(message)
    err = AppError(message)
    err.status_code = status_code
    return err


def _schema_message(exc: SchemaValidationError) -> str:
    first = exc.errors()[0] if exc.errors() else {}
    loc = '.'.join(str(p) for p in first.get('loc', ()))
    msg = first.get('msg', 'invalid request')
    return f'{loc}: {msg}' if loc else msg


def register_error_handlers(app):

    @app.errorhandler(AppError)
    def handle_app_error(exc):
        if exc.status_code >= 500:
            logger.error("Request failed: %s", exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(SchemaValidationError)
    def handle_schema_error(exc):
        return jsonify({'error': _schema_message(exc)}), 400

    @app.errorhandler(HTTPException)
    def handle_http_error(exc):
        return jsonify({'error': exc.description or exc.name}), exc.code
