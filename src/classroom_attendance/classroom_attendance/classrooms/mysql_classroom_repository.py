from __future__ import annotations

from typing import Sequence

from ..database.connection import DatabaseConnection
from ..database.mysql_base import db_cursor, fetchall, fetchone
from .repository import ClassroomRepository


class MySQLClassroomRepository(ClassroomRepository):
    def __init__(self, conn_factory: DatabaseConnection):
        self._conn_factory = conn_factory

    def list_student_ids(self, classroom_id: int) -> Sequence[int]:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                """
                SELECT student_id
                FROM classroom_students
                WHERE classroom_id=%s
                ORDER BY student_id
                """,
                (int(classroom_id),),
            )
            return [int(r["student_id"]) for r in fetchall(cur)]

    def is_enrolled(self, classroom_id: int, student_id: int) -> bool:
        with db_cursor(self._conn_factory) as (_, cur):
            cur.execute(
                "SELECT 1 AS ok FROM classroom_students WHERE classroom_id=%s AND student_id=%s",
                (int(classroom_id), int(student_id)),
            )
            return fetchone(cur) is not None
