from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    """Roles attached to the authenticated user."""

    ADMIN = "admin"
    TEACHER = "teacher"
    STUDENT = "student"


class SessionStatus(str, Enum):
    """Lifecycle of an attendance-taking session."""

    SCHEDULED = "scheduled"
    ACTIVE = "active"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.COMPLETED, SessionStatus.CANCELLED)


class AttendanceStatus(str, Enum):
    """Status stored on an attendance record."""

    PRESENT = "present"
    ABSENT = "absent"
    LATE = "late"
    EXCUSED = "excused"

    @property
    def requires_location(self) -> bool:
        return self in (AttendanceStatus.PRESENT, AttendanceStatus.LATE)


class VerificationMethod(str, Enum):
    OTP = "otp"
    BIOMETRIC = "biometric"
    LOCATION = "location"
    MANUAL = "manual"


class MarkedBy(str, Enum):
    """Who created the record."""

    STUDENT = "student"
    TEACHER = "teacher"
    ADMIN = "admin"


class EventKind(str, Enum):
    """Events pushed to classroom subscribers."""

    ATTENDANCE_UPDATE = "attendance-update"
    ATTENDANCE_REQUEST = "attendance-request"
    SESSION_STATUS = "session-status"
