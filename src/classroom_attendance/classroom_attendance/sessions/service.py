from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional, Sequence

from ..attendance.sweep import AbsentSweeper
from ..common.datetime_utils import now_local
from ..common.locks import KeyedLocks
from ..common.validators import require_int_range, require_non_empty
from ..core.constants import (
    DEFAULT_GEOFENCE_RADIUS_METERS,
    DEFAULT_WINDOW_MINUTES,
    MAX_GEOFENCE_RADIUS_METERS,
    MAX_WINDOW_MINUTES,
    MIN_GEOFENCE_RADIUS_METERS,
    MIN_WINDOW_MINUTES,
)
from ..core.enums import EventKind, Role
from ..core.exceptions import AuthorizationError, InvalidInput, NotFoundError, WindowClosed
from ..events.publisher import EventPublisher
from ..geo.distance import validate_coordinates
from ..reports.service import StatisticsAggregator
from .model import AttendanceSession, SessionLocation, SessionSettings
from .repository import SessionRepository

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NewSession:
    classroom_id: int
    teacher_id: int
    title: str
    scheduled_date: date
    start_time: datetime
    end_time: datetime
    location_name: str
    latitude: float
    longitude: float
    radius: int = DEFAULT_GEOFENCE_RADIUS_METERS
    window_minutes: int = DEFAULT_WINDOW_MINUTES
    allow_late_attendance: bool = False
    require_location: bool = True
    require_biometric: bool = False
    auto_mark_absent: bool = True
    description: Optional[str] = None


class SessionService:
    def __init__(
        self,
        sessions: SessionRepository,
        sweeper: AbsentSweeper,
        statistics: StatisticsAggregator,
        publisher: EventPublisher,
        *,
        locks: Optional[KeyedLocks] = None,
    ):
        self._sessions = sessions
        self._sweeper = sweeper
        self._statistics = statistics
        self._publisher = publisher
        self._locks = locks or KeyedLocks()

    def _load(self, session_id: int) -> AttendanceSession:
        session = self._sessions.get_by_id(int(session_id))
        if not session:
            raise NotFoundError("Session not found")
        return session

    @staticmethod
    def _require_owner(session: AttendanceSession, *, actor_id: int, current_role: Role) -> None:
        if current_role == Role.ADMIN:
            return
        if current_role == Role.TEACHER and session.teacher_id == int(actor_id):
            return
        raise AuthorizationError("Only the session's teacher or an admin may do this")

    def _announce(self, session: AttendanceSession) -> None:
        self._publisher.publish(
            session.classroom_id,
            EventKind.SESSION_STATUS,
            {"session_id": session.session_id, "status": session.status.value},
        )

    def schedule_session(self, data: NewSession, *, current_role: Role, actor_id: int) -> AttendanceSession:
        if current_role not in (Role.TEACHER, Role.ADMIN):
            raise AuthorizationError("Only teachers or admins may schedule sessions")

        title = require_non_empty(data.title, "Title")
        location_name = require_non_empty(data.location_name, "Location name")
        window_minutes = require_int_range(data.window_minutes, "Window minutes", MIN_WINDOW_MINUTES, MAX_WINDOW_MINUTES)
        radius = require_int_range(data.radius, "Radius", MIN_GEOFENCE_RADIUS_METERS, MAX_GEOFENCE_RADIUS_METERS)
        center = validate_coordinates(data.latitude, data.longitude)
        if data.end_time <= data.start_time:
            raise InvalidInput("End time must be after start time")

        session = self._sessions.create(
            classroom_id=int(data.classroom_id),
            teacher_id=int(data.teacher_id),
            title=title,
            scheduled_date=data.scheduled_date,
            start_time=data.start_time,
            end_time=data.end_time,
            location=SessionLocation(name=location_name, coordinates=center, radius=radius),
            settings=SessionSettings(
                allow_late_attendance=bool(data.allow_late_attendance),
                require_location=bool(data.require_location),
                require_biometric=bool(data.require_biometric),
                auto_mark_absent=bool(data.auto_mark_absent),
                window_minutes=window_minutes,
            ),
            description=(data.description or "").strip() or None,
            created_by=int(actor_id),
        )
        logger.info("Session %s scheduled for classroom %s", session.session_id, session.classroom_id)
        return session

    def start_session(
        self, session_id: int, *, current_role: Role, actor_id: int, now: Optional[datetime] = None
    ) -> AttendanceSession:
        now = now or now_local()
        with self._locks.hold(int(session_id)):
            session = self._load(session_id)
            self._require_owner(session, actor_id=actor_id, current_role=current_role)
            started = session.start(now)
            self._sessions.transition(started, expected=session.status)

        self._announce(started)
        logger.info("Session %s started, window closes at %s", session_id, started.attendance_window.end)
        return started

    def end_session(
        self, session_id: int, *, current_role: Role, actor_id: int, now: Optional[datetime] = None
    ) -> AttendanceSession:
        now = now or now_local()
        with self._locks.hold(int(session_id)):
            session = self._load(session_id)
            self._require_owner(session, actor_id=actor_id, current_role=current_role)
            ended = session.end(now)
            self._sessions.transition(ended, expected=session.status)

            if ended.settings.auto_mark_absent:
                self._sweeper.sweep(ended.session_id, now=now)
            self._statistics.recompute(ended.session_id)
            ended = self._load(session_id)

        self._announce(ended)
        logger.info("Session %s completed: %s", session_id, ended.statistics)
        return ended

    def cancel_session(self, session_id: int, *, current_role: Role, actor_id: int) -> AttendanceSession:
        # Holding the session lock means no check-in is between its re-check and insert.
        with self._locks.hold(int(session_id)):
            session = self._load(session_id)
            self._require_owner(session, actor_id=actor_id, current_role=current_role)
            cancelled = session.cancel()
            self._sessions.transition(cancelled, expected=session.status)

        self._announce(cancelled)
        logger.info("Session %s cancelled", session_id)
        return cancelled

    def trigger_attendance(
        self, session_id: int, *, current_role: Role, actor_id: int, now: Optional[datetime] = None
    ) -> None:
        """Ask every student in the classroom to check in now."""
        now = now or now_local()
        session = self._load(session_id)
        self._require_owner(session, actor_id=actor_id, current_role=current_role)
        if not session.is_window_open(now):
            raise WindowClosed("Attendance window is closed")

        window = session.attendance_window
        self._publisher.publish(
            session.classroom_id,
            EventKind.ATTENDANCE_REQUEST,
            {
                "session_id": session.session_id,
                "title": session.title,
                "window_end": window.end.isoformat(),
                "location": session.location.name,
            },
        )

    def sweep_absent(self, session_id: int, *, now: Optional[datetime] = None) -> int:
        """Background entry point; returns how many absent records were created."""
        created = self._sweeper.sweep(int(session_id), now=now)
        if created:
            self._statistics.recompute(int(session_id))
        return created

    def get_summary(self, session_id: int, *, now: Optional[datetime] = None) -> dict:
        return self._load(session_id).summary(now or now_local())

    def list_active(self, *, now: Optional[datetime] = None) -> Sequence[AttendanceSession]:
        return self._sessions.list_active(now or now_local())

    def list_by_date_range(
        self, start: date, end: date, *, classroom_id: Optional[int] = None
    ) -> Sequence[AttendanceSession]:
        if end < start:
            raise InvalidInput("End date must not be before start date")
        return self._sessions.list_by_date_range(start, end, classroom_id=classroom_id)
