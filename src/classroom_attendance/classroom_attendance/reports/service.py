from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable, Optional

from ..attendance.model import AttendanceRecord
from ..attendance.repository import AttendanceRepository
from ..common.locks import KeyedLocks
from ..core.enums import AttendanceStatus
from ..core.exceptions import NotFoundError
from ..sessions.repository import SessionRepository
from .model import AttendanceSummary, ClassroomSummary

logger = logging.getLogger(__name__)


def tally(records: Iterable[AttendanceRecord]) -> AttendanceSummary:
    """Single pass over the records into the four status buckets."""
    counts = {status: 0 for status in AttendanceStatus}
    total = 0
    for r in records:
        counts[r.status] += 1
        total += 1

    present = counts[AttendanceStatus.PRESENT]
    percentage = round(present * 100.0 / total, 2) if total else 0.0
    return AttendanceSummary(
        total=total,
        present=present,
        absent=counts[AttendanceStatus.ABSENT],
        late=counts[AttendanceStatus.LATE],
        excused=counts[AttendanceStatus.EXCUSED],
        attendance_percentage=percentage,
    )


class StatisticsAggregator:
    """Read-side aggregations over attendance records.

    Only the session's cached statistics columns are ever written here; status
    and records are never touched.
    """

    def __init__(
        self,
        attendance: AttendanceRepository,
        sessions: SessionRepository,
        *,
        locks: Optional[KeyedLocks] = None,
    ):
        self._attendance = attendance
        self._sessions = sessions
        self._locks = locks or KeyedLocks()

    def recompute(self, session_id: int) -> AttendanceSummary:
        # Same lock as check-ins, so no record is half-written while we read.
        with self._locks.hold(session_id):
            session = self._sessions.get_by_id(int(session_id))
            if not session:
                raise NotFoundError("Session not found")

            summary = tally(self._attendance.list_for_session(session.session_id))
            self._sessions.save_statistics(session.session_id, summary)

        logger.debug("Session %s statistics: %s", session_id, summary)
        return summary

    def student_summary(
        self,
        student_id: int,
        *,
        classroom_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> AttendanceSummary:
        records = self._attendance.list_for_student(int(student_id), classroom_id=classroom_id, start=start, end=end)
        return tally(records)

    def classroom_summary(self, classroom_id: int, *, session_id: Optional[int] = None) -> ClassroomSummary:
        records = list(self._attendance.list_for_classroom(int(classroom_id), session_id=session_id))
        present_students = {r.student_id for r in records if r.status == AttendanceStatus.PRESENT}
        return ClassroomSummary(summary=tally(records), unique_present_students=len(present_students))
