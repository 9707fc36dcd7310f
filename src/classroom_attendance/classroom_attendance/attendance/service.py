from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Optional, Sequence

from ..classrooms.repository import ClassroomRepository
from ..common.datetime_utils import now_local
from ..common.locks import KeyedLocks
from ..common.validators import require_non_empty
from ..core.constants import DEFAULT_HISTORY_LIMIT
from ..core.enums import AttendanceStatus, EventKind, MarkedBy, Role, SessionStatus, VerificationMethod
from ..core.exceptions import (
    AuthorizationError,
    DuplicateAttendance,
    LocationRequired,
    NotFoundError,
    SessionNotActive,
    WindowClosed,
)
from ..events.publisher import EventPublisher
from ..geo.distance import validate_coordinates
from ..reports.service import StatisticsAggregator
from ..sessions.model import ALREADY_MARKED, AttendanceSession, MarkDecision
from ..sessions.repository import SessionRepository
from .model import AttendanceRecord, NewAttendanceRecord, RecordLocation, Verification
from .repository import AttendanceRepository
from .strategies.base import CheckInEvidence
from .verification import VerificationEvaluator, VerificationOutcome

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckInRequest:
    session_id: int
    student_id: int
    method: VerificationMethod
    evidence: CheckInEvidence = field(default_factory=CheckInEvidence)
    notes: Optional[str] = None


class AttendanceService:
    """Use cases around attendance records: check-in, teacher marking, edits."""

    def __init__(
        self,
        attendance: AttendanceRepository,
        sessions: SessionRepository,
        classrooms: ClassroomRepository,
        evaluator: VerificationEvaluator,
        statistics: StatisticsAggregator,
        publisher: EventPublisher,
        *,
        locks: Optional[KeyedLocks] = None,
    ):
        self._attendance = attendance
        self._sessions = sessions
        self._classrooms = classrooms
        self._evaluator = evaluator
        self._statistics = statistics
        self._publisher = publisher
        self._locks = locks or KeyedLocks()

    def _load_session(self, session_id: int) -> AttendanceSession:
        session = self._sessions.get_by_id(int(session_id))
        if not session:
            raise NotFoundError("Session not found")
        return session

    @staticmethod
    def _raise_for(decision: MarkDecision, session: AttendanceSession) -> None:
        if decision.allowed:
            return
        if decision.reason == ALREADY_MARKED:
            raise DuplicateAttendance("Attendance already marked for this session")
        if session.status != SessionStatus.ACTIVE:
            raise SessionNotActive(f"Session is {session.status.value}")
        raise WindowClosed("Attendance window is closed")

    def mark_attendance(self, request: CheckInRequest, *, now: Optional[datetime] = None) -> AttendanceRecord:
        """Student self check-in.

        The in-memory checks only exit early; the storage insert is what
        guarantees one record per (session, student). Unless ``now`` is given,
        the window is judged again against the clock once the lock is held.
        """
        clock_driven = now is None
        now = now or now_local()
        session = self._load_session(request.session_id)

        if not self._classrooms.is_enrolled(session.classroom_id, request.student_id):
            raise AuthorizationError("Student is not enrolled in this classroom")

        self._raise_for(session.can_mark_attendance(request.student_id, now), session)

        outcome = self._evaluator.evaluate(
            session=session,
            method=request.method,
            evidence=request.evidence,
            marked_by=MarkedBy.STUDENT,
            now=now,
        )

        with self._locks.hold(session.session_id):
            # The session may have been cancelled or ended while we verified.
            session = self._load_session(session.session_id)
            if clock_driven:
                now = now_local()
            self._raise_for(session.can_mark_attendance(request.student_id, now), session)
            outcome = replace(outcome, status=self._evaluator.derive_status(session, now))
            record = self._insert(
                session,
                student_id=request.student_id,
                outcome=outcome,
                marked_by=MarkedBy.STUDENT,
                marked_at=now,
                notes=request.notes,
                require_active_session=True,
            )

        self._after_change(session, record)
        logger.info(
            "Student %s marked %s in session %s via %s",
            record.student_id, record.status.value, record.session_id, record.verification.method.value,
        )
        return record

    def mark_by_teacher(
        self,
        *,
        current_role: Role,
        session_id: int,
        student_id: int,
        status: AttendanceStatus,
        evidence: Optional[CheckInEvidence] = None,
        now: Optional[datetime] = None,
    ) -> AttendanceRecord:
        """Manual marking by a teacher or admin, with an explicit status."""
        if current_role not in (Role.TEACHER, Role.ADMIN):
            raise AuthorizationError("Only teachers or admins may mark attendance manually")

        now = now or now_local()
        evidence = evidence or CheckInEvidence()
        marked_by = MarkedBy(current_role.value)
        session = self._load_session(session_id)

        if session.status not in (SessionStatus.ACTIVE, SessionStatus.COMPLETED):
            raise SessionNotActive(f"Session is {session.status.value}")
        if not self._classrooms.is_enrolled(session.classroom_id, student_id):
            raise NotFoundError("Student is not enrolled in this classroom")

        if status.requires_location:
            outcome = self._evaluator.evaluate(
                session=session,
                method=VerificationMethod.MANUAL,
                evidence=evidence,
                marked_by=marked_by,
                now=now,
                status=status,
            )
        else:
            outcome = self._override_outcome(status, evidence)

        with self._locks.hold(session.session_id):
            session = self._load_session(session.session_id)
            if session.status == SessionStatus.CANCELLED:
                raise SessionNotActive("Session was cancelled")
            if session.has_student(student_id):
                raise DuplicateAttendance("Attendance already marked for this session")
            record = self._insert(
                session,
                student_id=student_id,
                outcome=outcome,
                marked_by=marked_by,
                marked_at=now,
                notes=(evidence.reason or "").strip() or None,
                require_active_session=False,
            )

        self._after_change(session, record)
        logger.info("%s marked student %s %s in session %s", marked_by.value, student_id, status.value, session_id)
        return record

    @staticmethod
    def _override_outcome(status: AttendanceStatus, evidence: CheckInEvidence) -> VerificationOutcome:
        location = RecordLocation()
        if evidence.latitude is not None and evidence.longitude is not None:
            point = validate_coordinates(evidence.latitude, evidence.longitude)
            location = RecordLocation(
                latitude=point.latitude,
                longitude=point.longitude,
                accuracy=evidence.accuracy,
                address=evidence.address,
            )
        return VerificationOutcome(
            status=status,
            verification=Verification(method=VerificationMethod.MANUAL, device_info=evidence.device_info),
            location=location,
        )

    def _insert(
        self,
        session: AttendanceSession,
        *,
        student_id: int,
        outcome: VerificationOutcome,
        marked_by: MarkedBy,
        marked_at: datetime,
        notes: Optional[str],
        require_active_session: bool,
    ) -> AttendanceRecord:
        new = NewAttendanceRecord(
            classroom_id=session.classroom_id,
            student_id=int(student_id),
            teacher_id=session.teacher_id,
            session_id=session.session_id,
            status=outcome.status,
            marked_at=marked_at,
            verification=outcome.verification,
            location=outcome.location,
            marked_by=marked_by,
            is_proxy=outcome.is_proxy,
            proxy_reason=outcome.proxy_reason,
            notes=notes,
        )
        return self._attendance.insert_if_absent(new, require_active_session=require_active_session)

    def _after_change(self, session: AttendanceSession, record: AttendanceRecord) -> None:
        summary = self._statistics.recompute(session.session_id)
        self._publisher.publish(
            session.classroom_id,
            EventKind.ATTENDANCE_UPDATE,
            {
                "session_id": session.session_id,
                "student_id": record.student_id,
                "status": record.status.value,
                "is_edited": record.is_edited,
                "statistics": summary.to_dict(),
            },
        )

    def edit_attendance(
        self,
        *,
        current_role: Role,
        actor_id: int,
        attendance_id: int,
        new_status: AttendanceStatus,
        reason: str,
        now: Optional[datetime] = None,
    ) -> AttendanceRecord:
        if current_role not in (Role.TEACHER, Role.ADMIN):
            raise AuthorizationError("Only teachers or admins may edit attendance")

        reason = require_non_empty(reason, "Edit reason")
        now = now or now_local()

        record = self._attendance.get_by_id(int(attendance_id))
        if not record:
            raise NotFoundError("Attendance record not found")

        if new_status.requires_location and not record.location.has_coordinates:
            raise LocationRequired(f"Record has no location and cannot be marked {new_status.value}")

        with self._locks.hold(record.session_id):
            updated = self._attendance.apply_edit(
                attendance_id=record.attendance_id,
                status=new_status,
                edited_by=int(actor_id),
                edited_at=now,
                edit_reason=reason,
            )
        if not updated:
            raise NotFoundError("Attendance record not found")

        session = self._load_session(updated.session_id)
        self._after_change(session, updated)
        logger.info(
            "Record %s edited by %s: %s -> %s", attendance_id, actor_id, record.status.value, new_status.value
        )
        return updated

    def can_mark_attendance(self, session_id: int, student_id: int, *, now: Optional[datetime] = None) -> MarkDecision:
        return self._load_session(session_id).can_mark_attendance(int(student_id), now or now_local())

    def session_records(self, session_id: int) -> Sequence[AttendanceRecord]:
        return self._attendance.list_for_session(int(session_id))

    def student_history(self, student_id: int, *, limit: int = DEFAULT_HISTORY_LIMIT) -> Sequence[AttendanceRecord]:
        return list(self._attendance.list_for_student(int(student_id)))[: int(limit)]
