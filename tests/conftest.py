from __future__ import annotations

import threading
from dataclasses import replace
from datetime import date, datetime
from typing import Optional

import pytest

from src.classroom_attendance.classroom_attendance.attendance.model import AttendanceRecord, NewAttendanceRecord
from src.classroom_attendance.classroom_attendance.common.rate_limit import SlidingWindowRateLimiter
from src.classroom_attendance.classroom_attendance.container import build_services
from src.classroom_attendance.classroom_attendance.core.enums import AttendanceStatus, Role, SessionStatus
from src.classroom_attendance.classroom_attendance.core.exceptions import (
    DuplicateAttendance,
    InvalidTransition,
    SessionNotActive,
)
from src.classroom_attendance.classroom_attendance.identity.provider import BiometricEvidence, BiometricResult
from src.classroom_attendance.classroom_attendance.reports.model import AttendanceSummary
from src.classroom_attendance.classroom_attendance.sessions.model import AttendanceRef, AttendanceSession
from src.classroom_attendance.classroom_attendance.sessions.service import NewSession

CLASSROOM_ID = 10
TEACHER_ID = 7
STUDENTS = (101, 102, 103, 104, 105)

# Hanoi, roughly the centre of a campus
CENTER = (21.0285, 105.8542)

T0 = datetime(2025, 3, 3, 9, 0, 0)


class InMemorySessions:
    """Session rows only; attendance refs are read back from ``records``."""

    def __init__(self):
        self._lock = threading.Lock()
        self._items: dict[int, AttendanceSession] = {}
        self._id = 0
        self.records: Optional["InMemoryAttendance"] = None

    def create(self, *, classroom_id, teacher_id, title, scheduled_date, start_time, end_time, location, settings,
               description=None, created_by=None) -> AttendanceSession:
        with self._lock:
            self._id += 1
            session = AttendanceSession(
                session_id=self._id,
                classroom_id=classroom_id,
                teacher_id=teacher_id,
                title=title,
                scheduled_date=scheduled_date,
                start_time=start_time,
                end_time=end_time,
                location=location,
                settings=settings,
                description=description,
                created_by=created_by,
            )
            self._items[session.session_id] = session
            return session

    def _with_refs(self, session: AttendanceSession) -> AttendanceSession:
        if self.records is None:
            return session
        refs = tuple(
            AttendanceRef(attendance_id=r.attendance_id, student_id=r.student_id)
            for r in self.records.list_for_session(session.session_id)
        )
        return replace(session, attendance=refs)

    def status_of(self, session_id: int) -> Optional[SessionStatus]:
        with self._lock:
            session = self._items.get(session_id)
        return session.status if session else None

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        with self._lock:
            session = self._items.get(session_id)
        return self._with_refs(session) if session else None

    def transition(self, session: AttendanceSession, *, expected: SessionStatus) -> None:
        with self._lock:
            current = self._items[session.session_id]
            if current.status != expected:
                raise InvalidTransition(f"Session is no longer {expected.value}")
            self._items[session.session_id] = replace(
                current, status=session.status, start_time=session.start_time, end_time=session.end_time
            )

    def save_statistics(self, session_id: int, summary: AttendanceSummary) -> None:
        with self._lock:
            self._items[session_id] = replace(self._items[session_id], statistics=summary)

    def list_active(self, now: datetime):
        with self._lock:
            items = [s for s in self._items.values() if s.status == SessionStatus.ACTIVE]
        return [self._with_refs(s) for s in items]

    def list_by_date_range(self, start: date, end: date, *, classroom_id=None):
        with self._lock:
            items = [
                s for s in self._items.values()
                if start <= s.scheduled_date <= end and (classroom_id is None or s.classroom_id == classroom_id)
            ]
        return [self._with_refs(s) for s in items]


class InMemoryAttendance:
    """Dict keyed by (session_id, student_id); the lock plays the unique index."""

    def __init__(self, sessions: InMemorySessions):
        self._sessions = sessions
        self._lock = threading.Lock()
        self._by_pair: dict[tuple[int, int], AttendanceRecord] = {}
        self._id = 0

    def insert_if_absent(self, record: NewAttendanceRecord, *, require_active_session: bool = True) -> AttendanceRecord:
        with self._lock:
            if require_active_session:
                if self._sessions.status_of(record.session_id) != SessionStatus.ACTIVE:
                    raise SessionNotActive("Session is no longer active")
            key = (record.session_id, record.student_id)
            if key in self._by_pair:
                raise DuplicateAttendance("Attendance already marked for this session")
            self._id += 1
            saved = AttendanceRecord.from_new(self._id, record)
            self._by_pair[key] = saved
            return saved

    def _all(self):
        with self._lock:
            return sorted(self._by_pair.values(), key=lambda r: r.attendance_id)

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        return next((r for r in self._all() if r.attendance_id == attendance_id), None)

    def get_for_session_and_student(self, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        with self._lock:
            return self._by_pair.get((session_id, student_id))

    def list_for_session(self, session_id: int):
        return [r for r in self._all() if r.session_id == session_id]

    def list_for_student(self, student_id: int, *, classroom_id=None, start=None, end=None):
        items = [
            r for r in self._all()
            if r.student_id == student_id
            and (classroom_id is None or r.classroom_id == classroom_id)
            and (start is None or r.marked_at >= start)
            and (end is None or r.marked_at <= end)
        ]
        items.sort(key=lambda r: r.marked_at, reverse=True)
        return items

    def list_for_classroom(self, classroom_id: int, *, session_id=None):
        return [
            r for r in self._all()
            if r.classroom_id == classroom_id and (session_id is None or r.session_id == session_id)
        ]

    def apply_edit(self, *, attendance_id, status, edited_by, edited_at, edit_reason):
        with self._lock:
            for key, r in self._by_pair.items():
                if r.attendance_id == attendance_id:
                    updated = replace(
                        r, status=status, is_edited=True, edited_by=edited_by, edited_at=edited_at,
                        edit_reason=edit_reason,
                    )
                    self._by_pair[key] = updated
                    return updated
        return None

    def add(self, record: NewAttendanceRecord) -> AttendanceRecord:
        return self.insert_if_absent(record, require_active_session=False)


class InMemoryClassrooms:
    def __init__(self, enrolment: dict[int, list[int]]):
        self._enrolment = enrolment

    def list_student_ids(self, classroom_id: int):
        return list(self._enrolment.get(classroom_id, []))

    def is_enrolled(self, classroom_id: int, student_id: int) -> bool:
        return student_id in self._enrolment.get(classroom_id, [])


class FakeIdentity:
    def __init__(self, *, otp: str = "123456", match: float = 0.92, verified: bool = True, delay: float = 0.0):
        self.otp = otp
        self.match = match
        self.verified = verified
        self.delay = delay
        self.calls = 0

    def _wait(self):
        self.calls += 1
        if self.delay:
            threading.Event().wait(self.delay)

    def current_otp(self, session_id: int) -> str:
        self._wait()
        return self.otp

    def verify_biometric(self, evidence: BiometricEvidence) -> BiometricResult:
        self._wait()
        return BiometricResult(match=self.match, verified=self.verified)


def new_session(**overrides) -> NewSession:
    data = dict(
        classroom_id=CLASSROOM_ID,
        teacher_id=TEACHER_ID,
        title="Algorithms 101",
        scheduled_date=T0.date(),
        start_time=T0,
        end_time=T0.replace(hour=10, minute=30),
        location_name="Room A2",
        latitude=CENTER[0],
        longitude=CENTER[1],
    )
    data.update(overrides)
    return NewSession(**data)


class World:
    """Fakes plus the services wired over them."""

    def __init__(
        self,
        identity: Optional[FakeIdentity] = None,
        identity_timeout: float = 1.0,
        checkin_limiter: Optional[SlidingWindowRateLimiter] = None,
    ):
        self.sessions = InMemorySessions()
        self.attendance = InMemoryAttendance(self.sessions)
        self.sessions.records = self.attendance
        self.classrooms = InMemoryClassrooms({CLASSROOM_ID: list(STUDENTS)})
        self.identity = identity or FakeIdentity()
        self.container = build_services(
            sessions_repo=self.sessions,
            attendance_repo=self.attendance,
            classrooms_repo=self.classrooms,
            identity=self.identity,
            identity_timeout=identity_timeout,
            checkin_limiter=checkin_limiter,
        )
        self.session_service = self.container.session_service
        self.attendance_service = self.container.attendance_service
        self.statistics = self.container.statistics

    def scheduled(self, **overrides) -> AttendanceSession:
        return self.session_service.schedule_session(
            new_session(**overrides), current_role=Role.TEACHER, actor_id=TEACHER_ID
        )

    def started(self, at: datetime = T0, **overrides) -> AttendanceSession:
        session = self.scheduled(**overrides)
        return self.session_service.start_session(
            session.session_id, current_role=Role.TEACHER, actor_id=TEACHER_ID, now=at
        )

    def statuses(self, session_id: int) -> dict[int, AttendanceStatus]:
        return {r.student_id: r.status for r in self.attendance.list_for_session(session_id)}


@pytest.fixture
def world() -> World:
    return World()
