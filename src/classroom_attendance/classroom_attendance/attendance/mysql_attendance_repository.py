from __future__ import annotations

from datetime import datetime
from typing import Any, Optional, Sequence

import mysql.connector

from ..core.enums import AttendanceStatus, MarkedBy, SessionStatus, VerificationMethod
from ..core.exceptions import DuplicateAttendance, SessionNotActive
from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone, is_duplicate_key
from .model import AttendanceRecord, DeviceInfo, NewAttendanceRecord, RecordLocation, Verification
from .repository import AttendanceRepository

_COLUMNS = """
    attendance_id, classroom_id, student_id, teacher_id, session_id, status, marked_at, marked_by,
    latitude, longitude, accuracy, address, is_within_geofence,
    verification_method, otp_code, biometric_verified, face_match, user_agent, platform, ip_address,
    is_proxy, proxy_reason, notes, is_edited, edited_by, edited_at, edit_reason
"""

_INSERT_COLUMNS = """
    classroom_id, student_id, teacher_id, session_id, status, marked_at, marked_by,
    latitude, longitude, accuracy, address, is_within_geofence,
    verification_method, otp_code, biometric_verified, face_match, user_agent, platform, ip_address,
    is_proxy, proxy_reason, notes
"""


def _to_record(r: dict[str, Any]) -> AttendanceRecord:
    return AttendanceRecord(
        attendance_id=int(r["attendance_id"]),
        classroom_id=int(r["classroom_id"]),
        student_id=int(r["student_id"]),
        teacher_id=int(r["teacher_id"]),
        session_id=int(r["session_id"]),
        status=AttendanceStatus(r["status"]),
        marked_at=r["marked_at"],
        marked_by=MarkedBy(r["marked_by"]),
        location=RecordLocation(
            latitude=float(r["latitude"]) if r.get("latitude") is not None else None,
            longitude=float(r["longitude"]) if r.get("longitude") is not None else None,
            accuracy=float(r["accuracy"]) if r.get("accuracy") is not None else None,
            address=r.get("address"),
            is_within_geofence=bool(r.get("is_within_geofence")),
        ),
        verification=Verification(
            method=VerificationMethod(r["verification_method"]),
            otp_code=r.get("otp_code"),
            biometric_verified=bool(r.get("biometric_verified")),
            face_match=float(r["face_match"]) if r.get("face_match") is not None else None,
            device_info=DeviceInfo(
                user_agent=r.get("user_agent"),
                platform=r.get("platform"),
                ip_address=r.get("ip_address"),
            ),
        ),
        is_proxy=bool(r.get("is_proxy")),
        proxy_reason=r.get("proxy_reason"),
        notes=r.get("notes"),
        is_edited=bool(r.get("is_edited")),
        edited_by=int(r["edited_by"]) if r.get("edited_by") is not None else None,
        edited_at=r.get("edited_at"),
        edit_reason=r.get("edit_reason"),
    )


def _insert_params(rec: NewAttendanceRecord) -> tuple:
    loc = rec.location
    ver = rec.verification
    dev = ver.device_info
    return (
        rec.classroom_id, rec.student_id, rec.teacher_id, rec.session_id, rec.status.value,
        rec.marked_at, rec.marked_by.value,
        loc.latitude, loc.longitude, loc.accuracy, loc.address, int(loc.is_within_geofence),
        ver.method.value, ver.otp_code, int(ver.biometric_verified), ver.face_match,
        dev.user_agent, dev.platform, dev.ip_address,
        int(rec.is_proxy), rec.proxy_reason, rec.notes,
    )


class MySQLAttendanceRepository(AttendanceRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def insert_if_absent(self, record: NewAttendanceRecord, *, require_active_session: bool = True) -> AttendanceRecord:
        params = _insert_params(record)
        try:
            with db_cursor(self._conn_factory) as (_, cur):
                if require_active_session:
                    # Status check and insert in one statement: a cancel that
                    # commits first makes this insert a no-op.
                    placeholders = ", ".join(["%s"] * len(params))
                    cur.execute(
                        f"""
                        INSERT INTO attendance_records ({_INSERT_COLUMNS})
                        SELECT {placeholders}
                        FROM attendance_sessions
                        WHERE session_id=%s AND status=%s
                        """,
                        params + (record.session_id, SessionStatus.ACTIVE.value),
                    )
                    if cur.rowcount == 0:
                        raise SessionNotActive("Session is no longer active")
                else:
                    placeholders = ", ".join(["%s"] * len(params))
                    cur.execute(
                        f"INSERT INTO attendance_records ({_INSERT_COLUMNS}) VALUES ({placeholders})",
                        params,
                    )
                attendance_id = int(cur.lastrowid)
        except mysql.connector.IntegrityError as exc:
            if is_duplicate_key(exc):
                raise DuplicateAttendance("Attendance already marked for this session") from exc
            raise
        return AttendanceRecord.from_new(attendance_id, record)

    def get_by_id(self, attendance_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
            r = fetchone(cur)
            return _to_record(r) if r else None

    def get_for_session_and_student(self, session_id: int, student_id: int) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE session_id=%s AND student_id=%s",
                (int(session_id), int(student_id)),
            )
            r = fetchone(cur)
            return _to_record(r) if r else None

    def list_for_session(self, session_id: int) -> Sequence[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"""
                SELECT {_COLUMNS}
                FROM attendance_records
                WHERE session_id=%s
                ORDER BY marked_at ASC, attendance_id ASC
                """,
                (int(session_id),),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_for_student(
        self,
        student_id: int,
        *,
        classroom_id: Optional[int] = None,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> Sequence[AttendanceRecord]:
        clauses = ["student_id=%s"]
        params: list[object] = [int(student_id)]

        if classroom_id is not None:
            clauses.append("classroom_id=%s")
            params.append(int(classroom_id))
        if start is not None:
            clauses.append("marked_at >= %s")
            params.append(start)
        if end is not None:
            clauses.append("marked_at <= %s")
            params.append(end)

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE {where} ORDER BY marked_at DESC",
                tuple(params),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def list_for_classroom(self, classroom_id: int, *, session_id: Optional[int] = None) -> Sequence[AttendanceRecord]:
        clauses = ["classroom_id=%s"]
        params: list[object] = [int(classroom_id)]
        if session_id is not None:
            clauses.append("session_id=%s")
            params.append(int(session_id))

        where = " AND ".join(clauses)
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                f"SELECT {_COLUMNS} FROM attendance_records WHERE {where} ORDER BY marked_at DESC",
                tuple(params),
            )
            return [_to_record(r) for r in fetchall(cur)]

    def apply_edit(
        self,
        *,
        attendance_id: int,
        status: AttendanceStatus,
        edited_by: int,
        edited_at: datetime,
        edit_reason: str,
    ) -> Optional[AttendanceRecord]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                UPDATE attendance_records
                SET status=%s, is_edited=1, edited_by=%s, edited_at=%s, edit_reason=%s
                WHERE attendance_id=%s
                """,
                (status.value, int(edited_by), edited_at, edit_reason, int(attendance_id)),
            )
            # rowcount is unreliable here (MySQL reports 0 for unchanged rows)
            cur.execute(f"SELECT {_COLUMNS} FROM attendance_records WHERE attendance_id=%s", (int(attendance_id),))
            r = fetchone(cur)
            return _to_record(r) if r else None
