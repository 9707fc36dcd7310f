from __future__ import annotations

from datetime import datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import AttendanceStatus
from .model import AttendanceRecord, NewAttendanceRecord


class AttendanceRepository(Protocol):
    """Storage contract for attendance records.

    ``insert_if_absent`` must be atomic per (session_id, student_id): of two
    concurrent inserts for the same pair exactly one succeeds.
    """

    def insert_if_absent(self, record: NewAttendanceRecord, *, require_active_session: bool = True) -> AttendanceRecord:
        """Insert or raise DuplicateAttendance; SessionNotActive if the session left 'active'."""

        raise NotImplementedError

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def get_for_session_and_student(self, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        raise NotImplementedError

    def list_for_session(self, session_id: int) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_for_student(
        self,
        student_id: int,
        *,
        classroom_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def list_for_classroom(self, classroom_id: int, *, session_id: Optional[int] = None) -> Sequence[AttendanceRecord]:
        raise NotImplementedError

    def apply_edit(
        self,
        *,
        attendance_id: int,
        status: AttendanceStatus,
        edited_by: int,
        edited_at: datetime,
        edit_reason: str,
    ) -> Optional[AttendanceRecord]:
        """Set status and all four audit fields in one write; None if no such record."""

        raise NotImplementedError
