from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from ..classrooms.repository import ClassroomRepository
from ..common.datetime_utils import now_local
from ..common.locks import KeyedLocks
from ..core.enums import AttendanceStatus, MarkedBy, SessionStatus, VerificationMethod
from ..core.exceptions import DuplicateAttendance, InvalidTransition, NotFoundError
from ..sessions.repository import SessionRepository
from .model import NewAttendanceRecord, Verification
from .repository import AttendanceRepository

logger = logging.getLogger(__name__)

SWEEP_NOTE = "Marked absent automatically when the session closed"


class AbsentSweeper:
    """Mark every enrolled student without a record as absent.

    Safe to run any number of times: students that already have a record,
    including ones that slipped in concurrently, are skipped.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        sessions: SessionRepository,
        classrooms: ClassroomRepository,
        *,
        locks: Optional[KeyedLocks] = None,
    ):
        self._attendance = attendance
        self._sessions = sessions
        self._classrooms = classrooms
        self._locks = locks or KeyedLocks()

    def sweep(self, session_id: int, *, now: Optional[datetime] = None) -> int:
        now = now or now_local()

        with self._locks.hold(int(session_id)):
            session = self._sessions.get_by_id(int(session_id))
            if not session:
                raise NotFoundError("Session not found")
            if session.status != SessionStatus.COMPLETED:
                raise InvalidTransition("Absent sweep only runs on completed sessions")
            if not session.settings.auto_mark_absent:
                return 0

            marked = {r.student_id for r in self._attendance.list_for_session(session.session_id)}
            created = 0
            for student_id in self._classrooms.list_student_ids(session.classroom_id):
                if student_id in marked:
                    continue
                record = NewAttendanceRecord(
                    classroom_id=session.classroom_id,
                    student_id=int(student_id),
                    teacher_id=session.teacher_id,
                    session_id=session.session_id,
                    status=AttendanceStatus.ABSENT,
                    marked_at=now,
                    verification=Verification(method=VerificationMethod.MANUAL),
                    marked_by=MarkedBy.ADMIN,
                    notes=SWEEP_NOTE,
                )
                try:
                    self._attendance.insert_if_absent(record, require_active_session=False)
                except DuplicateAttendance:
                    continue
                created += 1

        logger.info("Absent sweep for session %s created %d record(s)", session_id, created)
        return created
