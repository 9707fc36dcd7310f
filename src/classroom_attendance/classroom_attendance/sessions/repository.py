from __future__ import annotations

from datetime import date, datetime
from typing import Optional, Protocol, Sequence

from ..core.enums import SessionStatus
from ..reports.model import AttendanceSummary
from .model import AttendanceSession, SessionLocation, SessionSettings


class SessionRepository(Protocol):
    def create(
        self,
        *,
        classroom_id: int,
        teacher_id: int,
        title: str,
        scheduled_date: date,
        start_time: datetime,
        end_time: datetime,
        location: SessionLocation,
        settings: SessionSettings,
        description: Optional[str] = None,
        created_by: Optional[int] = None,
    ) -> AttendanceSession:
        raise NotImplementedError

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        """Load a session together with its attendance references."""

        raise NotImplementedError

    def transition(self, session: AttendanceSession, *, expected: SessionStatus) -> None:
        """Write status and times only if the stored status is still ``expected``.

        Raises ``InvalidTransition`` when another writer moved the session first.
        """

        raise NotImplementedError

    def save_statistics(self, session_id: int, summary: AttendanceSummary) -> None:
        """Overwrite the cached statistics columns; status is left alone."""

        raise NotImplementedError

    def list_active(self, now: datetime) -> Sequence[AttendanceSession]:
        raise NotImplementedError

    def list_by_date_range(
        self,
        start: date,
        end: date,
        *,
        classroom_id: Optional[int] = None,
    ) -> Sequence[AttendanceSession]:
        raise NotImplementedError
