import threading
from datetime import timedelta

import pytest

from conftest import CENTER, CLASSROOM_ID, T0, TEACHER_ID
from src.classroom_attendance.classroom_attendance.attendance import service as attendance_service
from src.classroom_attendance.classroom_attendance.attendance.service import CheckInRequest
from src.classroom_attendance.classroom_attendance.attendance.strategies.base import CheckInEvidence
from src.classroom_attendance.classroom_attendance.container import build_services
from src.classroom_attendance.classroom_attendance.core.enums import (
    AttendanceStatus,
    EventKind,
    MarkedBy,
    Role,
    SessionStatus,
    VerificationMethod,
)
from src.classroom_attendance.classroom_attendance.core.exceptions import (
    AuthorizationError,
    DuplicateAttendance,
    LocationRequired,
    SessionNotActive,
    WindowClosed,
)

HERE = CheckInEvidence(latitude=CENTER[0] + 0.0003, longitude=CENTER[1] + 0.0003)


def _checkin(world, session, student_id, *, at=None, evidence=HERE, method=VerificationMethod.LOCATION):
    return world.attendance_service.mark_attendance(
        CheckInRequest(session_id=session.session_id, student_id=student_id, method=method, evidence=evidence),
        now=at or T0 + timedelta(minutes=2),
    )


def test_checkin_inside_window_is_present(world):
    session = world.started()
    record = _checkin(world, session, 101)

    assert record.status == AttendanceStatus.PRESENT
    assert record.marked_by == MarkedBy.STUDENT
    assert record.location.is_within_geofence is True

    stored = world.sessions.get_by_id(session.session_id)
    assert stored.has_student(101)
    assert stored.statistics.present == 1
    assert stored.statistics.attendance_percentage == 100.0


def test_checkin_publishes_update_with_statistics(world):
    session = world.started()
    seen = []
    world.container.broker.subscribe(CLASSROOM_ID, seen.append)

    _checkin(world, session, 101)

    update = seen[-1]
    assert update.kind == EventKind.ATTENDANCE_UPDATE
    assert update.payload["student_id"] == 101
    assert update.payload["statistics"]["present"] == 1


def test_second_checkin_is_duplicate(world):
    session = world.started()
    _checkin(world, session, 101)

    with pytest.raises(DuplicateAttendance):
        _checkin(world, session, 101, at=T0 + timedelta(minutes=3))
    assert len(world.attendance.list_for_session(session.session_id)) == 1


def test_checkin_after_window_is_rejected(world):
    session = world.started()
    with pytest.raises(WindowClosed):
        _checkin(world, session, 101, at=T0 + timedelta(minutes=6))


def test_checkin_in_late_period_is_late(world):
    session = world.started(allow_late_attendance=True)
    record = _checkin(world, session, 101, at=T0 + timedelta(minutes=30))
    assert record.status == AttendanceStatus.LATE


def test_checkin_on_cancelled_session(world):
    session = world.started()
    world.session_service.cancel_session(session.session_id, current_role=Role.TEACHER, actor_id=TEACHER_ID)

    with pytest.raises(SessionNotActive):
        _checkin(world, session, 101)


def test_checkin_by_student_outside_classroom(world):
    session = world.started()
    with pytest.raises(AuthorizationError):
        _checkin(world, session, 999)


def test_checkin_missing_location_creates_nothing(world):
    session = world.started()
    with pytest.raises(LocationRequired):
        _checkin(world, session, 101, evidence=CheckInEvidence())
    assert world.attendance.list_for_session(session.session_id) == []


def test_concurrent_checkins_for_same_student_store_one_record(world):
    session = world.started()
    barrier = threading.Barrier(8)
    results = []
    lock = threading.Lock()

    def attempt():
        barrier.wait()
        try:
            _checkin(world, session, 101)
            outcome = "ok"
        except DuplicateAttendance:
            outcome = "duplicate"
        with lock:
            results.append(outcome)

    threads = [threading.Thread(target=attempt) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(results) == ["duplicate"] * 7 + ["ok"]
    assert len(world.attendance.list_for_session(session.session_id)) == 1
    assert world.sessions.get_by_id(session.session_id).statistics.total == 1


def test_cancel_racing_checkins_leaves_no_record_after_cancel(world):
    session = world.started()
    barrier = threading.Barrier(6)
    errors = []

    def checkin(student_id):
        barrier.wait()
        try:
            _checkin(world, session, student_id)
        except SessionNotActive as exc:
            errors.append(exc)

    def cancel():
        barrier.wait()
        world.session_service.cancel_session(session.session_id, current_role=Role.TEACHER, actor_id=TEACHER_ID)

    threads = [threading.Thread(target=checkin, args=(sid,)) for sid in (101, 102, 103, 104, 105)]
    threads.append(threading.Thread(target=cancel))
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    stored = len(world.attendance.list_for_session(session.session_id))
    assert stored + len(errors) == 5


class _CancelAfterInsert:
    """Attendance store where another worker cancels the session right after each insert commits."""

    def __init__(self, inner, cancel):
        self._inner = inner
        self._cancel = cancel

    def insert_if_absent(self, record, *, require_active_session=True):
        saved = self._inner.insert_if_absent(record, require_active_session=require_active_session)
        self._cancel(record.session_id)
        return saved

    def __getattr__(self, name):
        return getattr(self._inner, name)


def test_cancel_by_other_worker_after_insert_stays_cancelled(world):
    session = world.started()
    # Separate containers means separate lock registries, like two processes.
    other_worker = build_services(
        sessions_repo=world.sessions,
        attendance_repo=world.attendance,
        classrooms_repo=world.classrooms,
        identity=world.identity,
    )
    this_worker = build_services(
        sessions_repo=world.sessions,
        attendance_repo=_CancelAfterInsert(
            world.attendance,
            lambda sid: other_worker.session_service.cancel_session(
                sid, current_role=Role.TEACHER, actor_id=TEACHER_ID
            ),
        ),
        classrooms_repo=world.classrooms,
        identity=world.identity,
    )

    this_worker.attendance_service.mark_attendance(
        CheckInRequest(session_id=session.session_id, student_id=101, method=VerificationMethod.LOCATION,
                       evidence=HERE),
        now=T0 + timedelta(minutes=2),
    )

    stored = world.sessions.get_by_id(session.session_id)
    assert stored.status == SessionStatus.CANCELLED
    assert stored.statistics.present == 1
    with pytest.raises(SessionNotActive):
        _checkin(world, session, 102)


class _Clock:
    """Hands out readings in order, then keeps returning the last one."""

    def __init__(self, *readings):
        self._readings = list(readings)

    def __call__(self):
        if len(self._readings) > 1:
            return self._readings.pop(0)
        return self._readings[0]


def _checkin_on_clock(world, session, student_id):
    return world.attendance_service.mark_attendance(
        CheckInRequest(session_id=session.session_id, student_id=student_id, method=VerificationMethod.LOCATION,
                       evidence=HERE)
    )


def test_window_closing_during_verification_rejects_checkin(world, monkeypatch):
    session = world.started()
    arrived, committed = T0 + timedelta(minutes=4, seconds=59), T0 + timedelta(minutes=5, seconds=1)
    monkeypatch.setattr(attendance_service, "now_local", _Clock(arrived, committed))

    with pytest.raises(WindowClosed):
        _checkin_on_clock(world, session, 101)
    assert world.attendance.list_for_session(session.session_id) == []


def test_window_closing_during_verification_turns_present_into_late(world, monkeypatch):
    session = world.started(allow_late_attendance=True)
    committed_at = T0 + timedelta(minutes=5, seconds=1)
    monkeypatch.setattr(attendance_service, "now_local", _Clock(T0 + timedelta(minutes=4, seconds=59), committed_at))

    record = _checkin_on_clock(world, session, 101)

    assert record.status == AttendanceStatus.LATE
    assert record.marked_at == committed_at


def test_teacher_marks_excused_without_location(world):
    session = world.started()
    record = world.attendance_service.mark_by_teacher(
        current_role=Role.TEACHER,
        session_id=session.session_id,
        student_id=102,
        status=AttendanceStatus.EXCUSED,
        now=T0 + timedelta(minutes=20),
    )
    assert record.status == AttendanceStatus.EXCUSED
    assert record.marked_by == MarkedBy.TEACHER
    assert record.verification.method == VerificationMethod.MANUAL
    assert record.location.has_coordinates is False


def test_teacher_marking_present_needs_location(world):
    session = world.started()
    with pytest.raises(LocationRequired):
        world.attendance_service.mark_by_teacher(
            current_role=Role.TEACHER,
            session_id=session.session_id,
            student_id=102,
            status=AttendanceStatus.PRESENT,
        )


def test_teacher_marking_present_without_reason_is_proxy(world):
    session = world.started()
    record = world.attendance_service.mark_by_teacher(
        current_role=Role.ADMIN,
        session_id=session.session_id,
        student_id=103,
        status=AttendanceStatus.PRESENT,
        evidence=HERE,
        now=T0 + timedelta(minutes=50),
    )
    assert record.is_proxy is True
    assert record.marked_by == MarkedBy.ADMIN


def test_student_cannot_mark_by_teacher(world):
    session = world.started()
    with pytest.raises(AuthorizationError):
        world.attendance_service.mark_by_teacher(
            current_role=Role.STUDENT,
            session_id=session.session_id,
            student_id=101,
            status=AttendanceStatus.PRESENT,
            evidence=HERE,
        )


def test_can_mark_attendance_reflects_existing_record(world):
    session = world.started()
    at = T0 + timedelta(minutes=1)
    assert world.attendance_service.can_mark_attendance(session.session_id, 101, now=at).allowed

    _checkin(world, session, 101, at=at)
    decision = world.attendance_service.can_mark_attendance(session.session_id, 101, now=at)
    assert decision.reason == "already marked"


def test_student_history_is_newest_first(world):
    first = world.started()
    next_day = T0 + timedelta(days=1)
    second = world.started(
        at=next_day, scheduled_date=next_day.date(), start_time=next_day, end_time=next_day + timedelta(minutes=90)
    )
    _checkin(world, first, 101)
    _checkin(world, second, 101, at=T0 + timedelta(days=1, minutes=1))

    history = world.attendance_service.student_history(101, limit=1)
    assert [r.session_id for r in history] == [second.session_id]
