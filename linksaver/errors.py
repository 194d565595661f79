"""Error taxonomy for the LinkSaver API and its JSON rendering.

Every failure a route can produce maps onto one of the classes below. The
handlers registered by :func:`register_error_handlers` turn them into the
``{"error": "..."}`` body the clients expect, so route code raises instead of
building error responses by hand.
"""

from __future__ import annotations

from flask import Flask, jsonify
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from linksaver.extensions import db

__all__ = [
    "LinkSaverError",
    "ValidationError",
    "AuthError",
    "NotFoundError",
    "ConflictError",
    "UpstreamError",
    "register_error_handlers",
]


class LinkSaverError(Exception):
    """Base class for errors that render as a JSON error response."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_dict(self) -> dict:
        return {"error": self.message}


class ValidationError(LinkSaverError):
    """Raised when request input has the wrong shape or size."""

    status_code = 400

    def __init__(self, field: str | None, message: str) -> None:
        super().__init__(message)
        self.field = field


class AuthError(LinkSaverError):
    """Raised when the bearer token is missing, unknown or revoked."""

    status_code = 401


class NotFoundError(LinkSaverError):
    """Raised when a record is absent or belongs to another user."""

    status_code = 404


class ConflictError(LinkSaverError):
    """Raised when a write would collide with an existing record."""

    status_code = 409

    def __init__(self, message: str, existing: dict | None = None) -> None:
        super().__init__(message)
        self.existing = existing

    def to_dict(self) -> dict:
        payload = super().to_dict()
        if self.existing is not None:
            payload["existing"] = self.existing
        return payload


class UpstreamError(LinkSaverError):
    """Raised when the persistence layer or another dependency fails."""

    status_code = 500


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(LinkSaverError)
    def handle_linksaver_error(exc: LinkSaverError):
        if exc.status_code >= 500:
            app.logger.error("Request failed: %s", exc.message)
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_error(exc: HTTPException):
        if exc.code == 404:
            return jsonify({"error": "Route not found"}), 404
        return jsonify({"error": exc.description or exc.name}), exc.code

    @app.errorhandler(SQLAlchemyError)
    def handle_database_error(exc: SQLAlchemyError):
        db.session.rollback()
        app.logger.exception("Database error")
        return jsonify({"error": str(exc) or "Database error"}), 500

    @app.errorhandler(Exception)
    def handle_unexpected_error(exc: Exception):
        app.logger.exception("Unhandled error")
        return jsonify({"error": str(exc) or "Internal server error"}), 500
