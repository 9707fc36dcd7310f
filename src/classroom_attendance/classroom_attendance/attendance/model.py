from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from ..core.enums import AttendanceStatus, MarkedBy, VerificationMethod


@dataclass(frozen=True)
class RecordLocation:
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    address: Optional[str] = None
    is_within_geofence: bool = False

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(frozen=True)
class DeviceInfo:
    user_agent: Optional[str] = None
    platform: Optional[str] = None
    ip_address: Optional[str] = None


@dataclass(frozen=True)
class Verification:
    method: VerificationMethod
    otp_code: Optional[str] = None
    biometric_verified: bool = False
    face_match: Optional[float] = None
    device_info: DeviceInfo = field(default_factory=DeviceInfo)


@dataclass(frozen=True)
class NewAttendanceRecord:
    """Everything needed to insert a record; storage assigns the id."""

    classroom_id: int
    student_id: int
    teacher_id: int
    session_id: int
    status: AttendanceStatus
    marked_at: datetime
    verification: Verification
    location: RecordLocation = field(default_factory=RecordLocation)
    marked_by: MarkedBy = MarkedBy.STUDENT
    is_proxy: bool = False
    proxy_reason: Optional[str] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class AttendanceRecord:
    """Domain entity: one student's status for one session."""

    attendance_id: int
    classroom_id: int
    student_id: int
    teacher_id: int
    session_id: int
    status: AttendanceStatus
    marked_at: datetime
    verification: Verification
    location: RecordLocation = field(default_factory=RecordLocation)
    marked_by: MarkedBy = MarkedBy.STUDENT
    is_proxy: bool = False
    proxy_reason: Optional[str] = None
    notes: Optional[str] = None
    is_edited: bool = False
    edited_by: Optional[int] = None
    edited_at: Optional[datetime] = None
    edit_reason: Optional[str] = None

    @classmethod
    def from_new(cls, attendance_id: int, new: NewAttendanceRecord) -> "AttendanceRecord":
        return cls(
            attendance_id=attendance_id,
            classroom_id=new.classroom_id,
            student_id=new.student_id,
            teacher_id=new.teacher_id,
            session_id=new.session_id,
            status=new.status,
            marked_at=new.marked_at,
            verification=new.verification,
            location=new.location,
            marked_by=new.marked_by,
            is_proxy=new.is_proxy,
            proxy_reason=new.proxy_reason,
            notes=new.notes,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.attendance_id,
            "classroom_id": self.classroom_id,
            "student_id": self.student_id,
            "teacher_id": self.teacher_id,
            "session_id": self.session_id,
            "status": self.status.value,
            "marked_at": self.marked_at.isoformat(),
            "marked_by": self.marked_by.value,
            "location": {
                "latitude": self.location.latitude,
                "longitude": self.location.longitude,
                "accuracy": self.location.accuracy,
                "address": self.location.address,
                "is_within_geofence": self.location.is_within_geofence,
            },
            "verification": {
                "method": self.verification.method.value,
                "biometric_verified": self.verification.biometric_verified,
                "face_match": self.verification.face_match,
            },
            "is_proxy": self.is_proxy,
            "proxy_reason": self.proxy_reason,
            "notes": self.notes,
            "is_edited": self.is_edited,
            "edited_by": self.edited_by,
            "edited_at": self.edited_at.isoformat() if self.edited_at else None,
            "edit_reason": self.edit_reason,
        }
