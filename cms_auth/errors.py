"""Error taxonomy for the auth core and the Flask handlers that render it."""
from __future__ import annotations

from typing import Any, Dict, List, Optional

from flask import Flask, current_app, jsonify
from werkzeug.exceptions import HTTPException


class AppError(Exception):
    """Base exception carrying a caller-safe message and an HTTP status."""

    code = "APP_ERROR"
    http_status = 500
    default_message = "Request failed"

    def __init__(self, message: Optional[str] = None, *, fields: Optional[List[Dict[str, str]]] = None):
        self.message = message or self.default_message
        self.fields = fields
        super().__init__(self.message)

    def payload(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "type": self.__class__.__name__,
            "message": self.message,
            "code": self.code,
        }
        if self.fields:
            data["fields"] = self.fields
        return {"error": data}


class ValidationError(AppError):
    code = "VALIDATION"
    http_status = 400
    default_message = "Invalid request body"


class NoOpChange(AppError):
    code = "NO_OP_CHANGE"
    http_status = 400
    default_message = "The new password is the same as the current one"


class Unauthorized(AppError):
    code = "UNAUTHORIZED"
    http_status = 401
    default_message = "unauthorized"


class ExpiredToken(Unauthorized):
    pass


class BadSignature(Unauthorized):
    pass


class InvalidCredentials(AppError):
    code = "INVALID_CREDENTIALS"
    http_status = 401
    default_message = "Invalid username, email or password"


class InvalidCode(AppError):
    code = "INVALID_CODE"
    http_status = 401
    default_message = "Invalid OTP code"


class Expired(AppError):
    code = "EXPIRED"
    http_status = 401
    default_message = "This OTP code has expired"


class AlreadyUsed(AppError):
    code = "ALREADY_USED"
    http_status = 401
    default_message = "This OTP code has been used"


class Forbidden(AppError):
    code = "FORBIDDEN"
    http_status = 403
    default_message = "forbidden"


class NotFound(AppError):
    code = "NOT_FOUND"
    http_status = 404
    default_message = "not found"


class NotRegistered(NotFound):
    code = "NOT_REGISTERED"
    default_message = "This user is not registered"


class NoChallenge(NotFound):
    code = "NO_CHALLENGE"
    default_message = "No OTP code was sent to this email"


class AlreadyExists(AppError):
    code = "ALREADY_EXISTS"
    http_status = 409
    default_message = "This user is already registered"


class InternalError(AppError):
    code = "INTERNAL"
    http_status = 500
    default_message = "internal server error"


def init_app(app: Flask) -> None:
    """Attach the JSON error handlers to the application."""

    app.register_error_handler(AppError, _handle_app_error)
    app.register_error_handler(HTTPException, _handle_http_exception)
    app.register_error_handler(Exception, _handle_unexpected)


def _handle_app_error(error: AppError):
    if isinstance(error, Unauthorized):
        # Expired and tampered tokens look the same from outside.
        error = Unauthorized(error.message if type(error) is Unauthorized else None)
    resp = jsonify(error.payload())
    resp.status_code = error.http_status
    return resp


def _handle_http_exception(error: HTTPException):
    app_error = AppError(error.description or error.name)
    app_error.code = error.name.upper().replace(" ", "_")
    app_error.http_status = error.code or 500
    return _handle_app_error(app_error)


def _handle_unexpected(error: Exception):
    current_app.logger.exception("Unhandled exception", exc_info=error)
    return _handle_app_error(InternalError())
