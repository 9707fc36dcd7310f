from __future__ import annotations

import logging
from datetime import datetime
from functools import wraps
from typing import Optional

from flask import Flask, jsonify, session
from werkzeug.exceptions import HTTPException

from ..core.enums import Role
from ..core.exceptions import (
    AuthorizationError,
    DomainError,
    DuplicateAttendance,
    GeofenceViolation,
    InvalidTransition,
    LocationRequired,
    NotFoundError,
    SessionNotActive,
    TransientError,
    ValidationError,
    VerificationRequired,
)
from .datetime_utils import parse_iso_date, parse_iso_datetime

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: list[tuple[type[DomainError], int]] = [
    (ValidationError, 400),
    (AuthorizationError, 403),
    (NotFoundError, 404),
    (InvalidTransition, 409),
    (DuplicateAttendance, 409),
    (SessionNotActive, 409),
    (LocationRequired, 422),
    (VerificationRequired, 422),
    (GeofenceViolation, 422),
    (TransientError, 503),
]


def status_for(exc: DomainError) -> int:
    for error_type, status in _STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return status
    return 400


def error_response(code: str, message: str, status: int, **extra):
    body = {"success": False, "code": code, "message": message}
    body.update(extra)
    return jsonify(body), status


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(DomainError)
    def handle_domain_error(exc: DomainError):
        extra = {}
        if isinstance(exc, GeofenceViolation) and exc.distance_meters is not None:
            extra["distance_meters"] = round(exc.distance_meters, 1)
        return error_response(exc.code, str(exc), status_for(exc), **extra)

    @app.errorhandler(404)
    def handle_not_found(_exc):
        return error_response("NOT_FOUND", "Route not found", 404)

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        if isinstance(exc, HTTPException):
            code = (exc.name or "error").upper().replace(" ", "_")
            return error_response(code, exc.description or exc.name, exc.code or 500)
        logger.exception("Unhandled error")
        message = str(exc) if app.config.get("DEBUG") else "Internal server error"
        return error_response("INTERNAL_ERROR", message, 500)


def current_user_id() -> int:
    return int(session["user_id"])


def current_role() -> Role:
    return Role(session.get("role"))


def login_required(*roles: Role):
    """Require a logged-in user, optionally with one of ``roles``."""

    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            if "user_id" not in session:
                return error_response("AUTH_REQUIRED", "Authentication required", 401)
            if roles and session.get("role") not in {r.value for r in roles}:
                return error_response("INSUFFICIENT_PERMISSIONS", "Insufficient permissions", 403)
            return view(*args, **kwargs)

        return wrapper

    return decorator


def arg_date(value: Optional[str], field_name: str):
    if not value:
        return None
    try:
        return parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be YYYY-MM-DD")


def arg_datetime(value: Optional[str], field_name: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        return parse_iso_datetime(value)
    except ValueError:
        raise ValidationError(f"{field_name} must be an ISO datetime")


def arg_int(value, field_name: str) -> Optional[int]:
    if value is None or value == "":
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field_name} must be an integer")
