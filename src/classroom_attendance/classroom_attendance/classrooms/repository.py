from __future__ import annotations

from typing import Protocol, Sequence


class ClassroomRepository(Protocol):
    """Read-only view of classroom enrolment, owned by the classroom module."""

    def list_student_ids(self, classroom_id: int) -> Sequence[int]:
        raise NotImplementedError

    def is_enrolled(self, classroom_id: int, student_id: int) -> bool:
        raise NotImplementedError
