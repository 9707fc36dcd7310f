from __future__ import annotations


class DomainError(Exception):
    """Base exception for business rule violations."""

    code = "DOMAIN_ERROR"


class ValidationError(DomainError):
    """Raised when input data is invalid or violates domain rules."""

    code = "INVALID_INPUT"


class InvalidInput(ValidationError):
    """Malformed coordinates, out-of-range settings and similar bad input."""


class AuthorizationError(DomainError):
    """Raised when a user lacks permission for an action."""

    code = "INSUFFICIENT_PERMISSIONS"


class NotFoundError(DomainError):
    code = "NOT_FOUND"


class InvalidTransition(DomainError):
    """Raised when a session cannot move from its current status."""

    code = "INVALID_TRANSITION"


class SessionNotActive(DomainError):
    code = "SESSION_NOT_ACTIVE"


class WindowClosed(SessionNotActive):
    """The session is running but the attendance window is not open."""

    code = "WINDOW_CLOSED"


class DuplicateAttendance(DomainError):
    """The (session, student) pair already has a record."""

    code = "DUPLICATE_ATTENDANCE"


class LocationRequired(DomainError):
    code = "LOCATION_REQUIRED"


class VerificationRequired(DomainError):
    code = "VERIFICATION_REQUIRED"


class GeofenceViolation(DomainError):
    code = "GEOFENCE_VIOLATION"

    def __init__(self, message: str, *, distance_meters: float | None = None):
        super().__init__(message)
        self.distance_meters = distance_meters


class TransientError(DomainError):
    """Storage or identity source did not answer in time; safe to retry."""

    code = "TRANSIENT"
