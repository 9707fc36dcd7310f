from dataclasses import replace
from datetime import date, datetime, timedelta

import pytest

from src.classroom_attendance.classroom_attendance.core.enums import SessionStatus
from src.classroom_attendance.classroom_attendance.core.exceptions import InvalidTransition
from src.classroom_attendance.classroom_attendance.geo.distance import Coordinates
from src.classroom_attendance.classroom_attendance.sessions.model import (
    ALREADY_MARKED,
    WINDOW_CLOSED,
    AttendanceRef,
    AttendanceSession,
    SessionLocation,
    SessionSettings,
)

T = datetime(2025, 3, 3, 9, 0, 0)


def _session(**overrides) -> AttendanceSession:
    data = dict(
        session_id=1,
        classroom_id=10,
        teacher_id=7,
        title="Physics",
        scheduled_date=date(2025, 3, 3),
        start_time=T,
        end_time=T + timedelta(minutes=90),
        location=SessionLocation(name="Lab", coordinates=Coordinates(21.0, 105.0)),
    )
    data.update(overrides)
    return AttendanceSession(**data)


def test_window_is_start_plus_window_minutes():
    window = _session().attendance_window
    assert window.start == T
    assert window.end == T + timedelta(minutes=5)


def test_window_follows_actual_start_time():
    s = _session(settings=SessionSettings(window_minutes=10))
    started = s.start(T + timedelta(minutes=3))

    assert started.status == SessionStatus.ACTIVE
    assert started.start_time == T + timedelta(minutes=3)
    assert started.attendance_window.end == T + timedelta(minutes=13)
    # the original instance is untouched
    assert s.status == SessionStatus.SCHEDULED


def test_end_records_actual_end_time():
    ended = _session().start(T).end(T + timedelta(minutes=40))
    assert ended.status == SessionStatus.COMPLETED
    assert ended.end_time == T + timedelta(minutes=40)


def test_cancel_allowed_from_scheduled_and_active():
    assert _session().cancel().status == SessionStatus.CANCELLED
    assert _session().start(T).cancel().status == SessionStatus.CANCELLED


@pytest.mark.parametrize(
    "build, action",
    [
        (lambda: _session().start(T), lambda s: s.start(T)),
        (lambda: _session(), lambda s: s.end(T)),
        (lambda: _session().start(T).end(T), lambda s: s.cancel()),
        (lambda: _session().cancel(), lambda s: s.cancel()),
        (lambda: _session().cancel(), lambda s: s.start(T)),
        (lambda: _session().start(T).end(T), lambda s: s.start(T)),
    ],
)
def test_invalid_transitions_raise(build, action):
    with pytest.raises(InvalidTransition):
        action(build())


def test_can_mark_only_inside_window():
    s = _session().start(T)

    assert s.can_mark_attendance(101, T).allowed
    assert s.can_mark_attendance(101, T + timedelta(minutes=5)).allowed

    before = s.can_mark_attendance(101, T - timedelta(seconds=1))
    after = s.can_mark_attendance(101, T + timedelta(minutes=5, seconds=1))
    assert (before.allowed, before.reason) == (False, WINDOW_CLOSED)
    assert (after.allowed, after.reason) == (False, WINDOW_CLOSED)


def test_can_mark_rejects_student_already_marked():
    s = replace(_session().start(T), attendance=(AttendanceRef(attendance_id=1, student_id=101),))

    decision = s.can_mark_attendance(101, T + timedelta(minutes=1))
    assert (decision.allowed, decision.reason) == (False, ALREADY_MARKED)
    assert s.can_mark_attendance(102, T + timedelta(minutes=1)).allowed


def test_scheduled_session_never_accepts_marks():
    assert not _session().can_mark_attendance(101, T).allowed


def test_late_period_only_when_allowed():
    late_ok = _session(settings=SessionSettings(allow_late_attendance=True)).start(T)
    strict = _session().start(T)
    moment = T + timedelta(minutes=20)

    assert late_ok.is_late_period(moment)
    assert late_ok.can_mark_attendance(101, moment).allowed
    assert not strict.is_late_period(moment)
    assert not late_ok.is_late_period(T + timedelta(minutes=91))


def test_summary_flags():
    s = _session().start(T)
    data = s.summary(T + timedelta(minutes=2))

    assert data["status"] == "active"
    assert data["is_active"] is True
    assert data["is_attendance_window_open"] is True
    assert data["attendance_window"]["end"] == (T + timedelta(minutes=5)).isoformat()
    assert data["statistics"]["total"] == 0
