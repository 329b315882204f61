"""
JSON error responses.

Every error leaves the API as {timestamp, status, error, message, path};
validation failures add a ``validationErrors`` map of field -> message.
"""

from __future__ import annotations

from typing import Any

from flask import Flask, g, request
from werkzeug.exceptions import HTTPException

from app.crm.modules.customers.service import (
    CustomerNotFoundError,
    DuplicateEmailError,
    InvalidSortFieldError,
)
from app.crm.utils import isoformat, utcnow

AUTH_REALM = "customers"


class RequestValidationError(Exception):
    """Syntactically invalid input, caught before the service is called."""

    def __init__(self, validation_errors: dict[str, str]):
        self.validation_errors = validation_errors
        super().__init__("Input validation failed")


def error_body(status: int, error: str, message: str, **extra: Any) -> dict[str, Any]:
    body: dict[str, Any] = {
        "timestamp": isoformat(utcnow()),
        "status": status,
        "error": error,
        "message": message,
        "path": request.path,
    }
    body.update(extra)
    return body


def _rollback_request_session() -> None:
    s = getattr(g, "db_session", None)
    if s is not None:
        s.rollback()


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(CustomerNotFoundError)
    def _not_found(e: CustomerNotFoundError):
        app.logger.warning("Customer not found: %s", e)
        return error_body(404, "Not Found", str(e)), 404

    @app.errorhandler(DuplicateEmailError)
    def _duplicate_email(e: DuplicateEmailError):
        app.logger.warning("Duplicate email error: %s", e)
        return error_body(409, "Conflict", str(e)), 409

    @app.errorhandler(RequestValidationError)
    def _validation(e: RequestValidationError):
        app.logger.warning("Validation error: %s", e.validation_errors)
        body = error_body(400, "Validation Failed", str(e), validationErrors=e.validation_errors)
        return body, 400

    @app.errorhandler(InvalidSortFieldError)
    def _invalid_sort(e: InvalidSortFieldError):
        app.logger.warning("Validation error: %s", e)
        body = error_body(400, "Validation Failed", "Input validation failed", validationErrors={"sortBy": "Invalid sort field"})
        return body, 400

    @app.errorhandler(401)
    def _err_401(e):  # type: ignore[no-redef]
        body = error_body(401, "Unauthorized", "Authentication is required to access this resource")
        return body, 401, {"WWW-Authenticate": f'Basic realm="{AUTH_REALM}"'}

    @app.errorhandler(403)
    def _err_403(e):  # type: ignore[no-redef]
        missing = getattr(g, "missing_permission", None)
        if missing:
            user = getattr(g, "current_user", None)
            app.logger.warning("Forbidden: missing_permission=%s user=%s", missing, getattr(user, "username", None))
        return error_body(403, "Forbidden", "Access is denied"), 403

    @app.errorhandler(HTTPException)
    def _http_error(e: HTTPException):
        code = e.code or 500
        return error_body(code, e.name, e.description or e.name), code

    @app.errorhandler(Exception)
    def _unexpected(e: Exception):
        app.logger.exception("Unexpected error occurred (request_id=%s)", getattr(g, "request_id", None))
        _rollback_request_session()
        return error_body(500, "Internal Server Error", "An unexpected error occurred"), 500
