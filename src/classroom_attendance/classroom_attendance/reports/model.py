from __future__ import annotations

from dataclasses import asdict, dataclass


@dataclass(frozen=True)
class AttendanceSummary:
    """Four-bucket tally plus percentage. Always recomputable from records."""

    total: int = 0
    present: int = 0
    absent: int = 0
    late: int = 0
    excused: int = 0
    attendance_percentage: float = 0.0

    @classmethod
    def empty(cls) -> "AttendanceSummary":
        return cls()

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ClassroomSummary:
    summary: AttendanceSummary
    unique_present_students: int = 0

    def to_dict(self) -> dict:
        data = self.summary.to_dict()
        data["unique_present_students"] = self.unique_present_students
        return data
