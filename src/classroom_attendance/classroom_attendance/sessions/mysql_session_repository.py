from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional, Sequence

from ..core.enums import SessionStatus
from ..core.exceptions import InvalidTransition
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from ..geo.distance import Coordinates
from ..reports.model import AttendanceSummary
from .model import AttendanceRef, AttendanceSession, SessionLocation, SessionSettings
from .repository import SessionRepository

_COLUMNS = """
    session_id, classroom_id, teacher_id, title, description, scheduled_date, start_time, end_time, status,
    allow_late_attendance, require_location, require_biometric, auto_mark_absent, window_minutes,
    location_name, latitude, longitude, radius,
    total_students, present_count, absent_count, late_count, excused_count, attendance_percentage,
    notes, created_by
"""


def _to_session(r: dict[str, Any], refs: tuple[AttendanceRef, ...]) -> AttendanceSession:
    return AttendanceSession(
        session_id=int(r["session_id"]),
        classroom_id=int(r["classroom_id"]),
        teacher_id=int(r["teacher_id"]),
        title=r["title"],
        description=r.get("description"),
        scheduled_date=r["scheduled_date"],
        start_time=r["start_time"],
        end_time=r["end_time"],
        status=SessionStatus(r["status"]),
        settings=SessionSettings(
            allow_late_attendance=bool(r["allow_late_attendance"]),
            require_location=bool(r["require_location"]),
            require_biometric=bool(r["require_biometric"]),
            auto_mark_absent=bool(r["auto_mark_absent"]),
            window_minutes=int(r["window_minutes"]),
        ),
        location=SessionLocation(
            name=r["location_name"],
            coordinates=Coordinates(latitude=float(r["latitude"]), longitude=float(r["longitude"])),
            radius=int(r["radius"]),
        ),
        attendance=refs,
        statistics=AttendanceSummary(
            total=int(r["total_students"] or 0),
            present=int(r["present_count"] or 0),
            absent=int(r["absent_count"] or 0),
            late=int(r["late_count"] or 0),
            excused=int(r["excused_count"] or 0),
            attendance_percentage=float(r["attendance_percentage"] or 0),
        ),
        notes=r.get("notes"),
        created_by=int(r["created_by"]) if r.get("created_by") is not None else None,
    )


class MySQLSessionRepository(SessionRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def _refs(self, cur, session_id: int) -> tuple[AttendanceRef, ...]:
        cur.execute(
            "SELECT attendance_id, student_id FROM attendance_records WHERE session_id=%s ORDER BY attendance_id",
            (int(session_id),),
        )
        return tuple(
            AttendanceRef(attendance_id=int(r["attendance_id"]), student_id=int(r["student_id"])) for r in fetchall(cur)
        )

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
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                INSERT INTO attendance_sessions(
                    classroom_id, teacher_id, title, description, scheduled_date, start_time, end_time, status,
                    allow_late_attendance, require_location, require_biometric, auto_mark_absent, window_minutes,
                    location_name, latitude, longitude, radius, created_by
                )
                VALUES(%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s,%s)
                """,
                (
                    int(classroom_id), int(teacher_id), title, description, scheduled_date, start_time, end_time,
                    SessionStatus.SCHEDULED.value,
                    int(settings.allow_late_attendance), int(settings.require_location),
                    int(settings.require_biometric), int(settings.auto_mark_absent), int(settings.window_minutes),
                    location.name, location.coordinates.latitude, location.coordinates.longitude, int(location.radius),
                    created_by,
                ),
            )
            session_id = int(cur.lastrowid)

        return AttendanceSession(
            session_id=session_id,
            classroom_id=int(classroom_id),
            teacher_id=int(teacher_id),
            title=title,
            description=description,
            scheduled_date=scheduled_date,
            start_time=start_time,
            end_time=end_time,
            location=location,
            settings=settings,
            created_by=created_by,
        )

    def get_by_id(self, session_id: int) -> Optional[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_sessions WHERE session_id=%s", (int(session_id),))
            r = fetchone(cur)
            if not r:
                return None
            return _to_session(r, self._refs(cur, int(session_id)))

    def transition(self, session: AttendanceSession, *, expected: SessionStatus) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_sessions
                SET status=%s, start_time=%s, end_time=%s
                WHERE session_id=%s AND status=%s
                """,
                (
                    session.status.value, session.start_time, session.end_time,
                    session.session_id, expected.value,
                ),
            )
            if cur.rowcount == 0:
                raise InvalidTransition(f"Session is no longer {expected.value}")

    def save_statistics(self, session_id: int, summary: AttendanceSummary) -> None:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_sessions
                SET total_students=%s, present_count=%s, absent_count=%s, late_count=%s, excused_count=%s,
                    attendance_percentage=%s
                WHERE session_id=%s
                """,
                (
                    summary.total, summary.present, summary.absent, summary.late, summary.excused,
                    summary.attendance_percentage,
                    int(session_id),
                ),
            )

    def list_active(self, now: datetime) -> Sequence[AttendanceSession]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_sessions
                WHERE status=%s AND start_time <= %s AND end_time >= %s
                ORDER BY start_time ASC
                """,
                (SessionStatus.ACTIVE.value, now, now),
            )
            rows = fetchall(cur)
            return [_to_session(r, self._refs(cur, int(r["session_id"]))) for r in rows]

    def list_by_date_range(
        self,
        start: date,
        end: date,
        *,
        classroom_id: Optional[int] = None,
    ) -> Sequence[AttendanceSession]:
        clauses = ["scheduled_date BETWEEN %s AND %s"]
        params: list[object] = [start, end]
        if classroom_id is not None:
            clauses.append("classroom_id=%s")
            params.append(int(classroom_id))

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_sessions WHERE {where} ORDER BY scheduled_date DESC",
                tuple(params),
            )
            rows = fetchall(cur)
            return [_to_session(r, self._refs(cur, int(r["session_id"]))) for r in rows]
