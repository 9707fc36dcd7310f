from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Optional

from ..core.constants import DEFAULT_GEOFENCE_RADIUS_METERS, DEFAULT_WINDOW_MINUTES
from ..core.enums import SessionStatus
from ..core.exceptions import InvalidTransition
from ..geo.distance import Coordinates
from ..reports.model import AttendanceSummary

WINDOW_CLOSED = "window closed"
ALREADY_MARKED = "already marked"


@dataclass(frozen=True)
class SessionSettings:
    allow_late_attendance: bool = False
    require_location: bool = True
    require_biometric: bool = False
    auto_mark_absent: bool = True
    window_minutes: int = DEFAULT_WINDOW_MINUTES


@dataclass(frozen=True)
class SessionLocation:
    """Geofence center of the classroom."""

    name: str
    coordinates: Coordinates
    radius: int = DEFAULT_GEOFENCE_RADIUS_METERS


@dataclass(frozen=True)
class AttendanceWindow:
    start: datetime
    end: datetime

    def contains(self, moment: datetime) -> bool:
        return self.start <= moment <= self.end


@dataclass(frozen=True)
class AttendanceRef:
    """Reference to a persisted record; the record itself lives in storage."""

    attendance_id: int
    student_id: int


@dataclass(frozen=True)
class MarkDecision:
    allowed: bool
    reason: Optional[str] = None


@dataclass(frozen=True)
class AttendanceSession:
    """Domain entity: one attendance-taking session of a classroom.

    Transitions return a new instance; callers persist it through the repository.
    """

    session_id: int
    classroom_id: int
    teacher_id: int
    title: str
    scheduled_date: date
    start_time: datetime
    end_time: datetime
    location: SessionLocation
    settings: SessionSettings = field(default_factory=SessionSettings)
    status: SessionStatus = SessionStatus.SCHEDULED
    attendance: tuple[AttendanceRef, ...] = ()
    statistics: AttendanceSummary = field(default_factory=AttendanceSummary.empty)
    description: Optional[str] = None
    notes: Optional[str] = None
    created_by: Optional[int] = None

    @property
    def attendance_window(self) -> AttendanceWindow:
        # Always derived so it can never drift from start_time/window_minutes.
        return AttendanceWindow(
            start=self.start_time,
            end=self.start_time + timedelta(minutes=self.settings.window_minutes),
        )

    # -- transitions -------------------------------------------------------

    def start(self, now: datetime) -> "AttendanceSession":
        if self.status != SessionStatus.SCHEDULED:
            raise InvalidTransition(f"Cannot start a session that is {self.status.value}")
        return replace(self, status=SessionStatus.ACTIVE, start_time=now)

    def end(self, now: datetime) -> "AttendanceSession":
        if self.status != SessionStatus.ACTIVE:
            raise InvalidTransition(f"Cannot end a session that is {self.status.value}")
        return replace(self, status=SessionStatus.COMPLETED, end_time=now)

    def cancel(self) -> "AttendanceSession":
        if self.status.is_terminal:
            raise InvalidTransition(f"Session is already {self.status.value}")
        return replace(self, status=SessionStatus.CANCELLED)

    # -- queries -----------------------------------------------------------

    def is_currently_active(self, now: datetime) -> bool:
        return self.status == SessionStatus.ACTIVE and self.start_time <= now <= self.end_time

    def is_window_open(self, now: datetime) -> bool:
        return self.status == SessionStatus.ACTIVE and self.attendance_window.contains(now)

    def is_late_period(self, now: datetime) -> bool:
        """After the window closed but still inside the session, with late check-ins allowed."""
        return (
            self.settings.allow_late_attendance
            and self.status == SessionStatus.ACTIVE
            and self.attendance_window.end < now <= self.end_time
        )

    def has_student(self, student_id: int) -> bool:
        return any(ref.student_id == student_id for ref in self.attendance)

    def can_mark_attendance(self, student_id: int, now: datetime) -> MarkDecision:
        if not (self.is_window_open(now) or self.is_late_period(now)):
            return MarkDecision(allowed=False, reason=WINDOW_CLOSED)
        if self.has_student(student_id):
            return MarkDecision(allowed=False, reason=ALREADY_MARKED)
        return MarkDecision(allowed=True)

    def summary(self, now: datetime) -> dict:
        window = self.attendance_window
        return {
            "id": self.session_id,
            "classroom_id": self.classroom_id,
            "title": self.title,
            "scheduled_date": self.scheduled_date.isoformat(),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat(),
            "attendance_window": {"start": window.start.isoformat(), "end": window.end.isoformat()},
            "status": self.status.value,
            "statistics": self.statistics.to_dict(),
            "is_active": self.is_currently_active(now),
            "is_attendance_window_open": self.is_window_open(now),
        }
