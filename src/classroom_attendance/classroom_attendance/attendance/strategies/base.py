from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Optional

from ...core.enums import MarkedBy, VerificationMethod
from ...geo.distance import Coordinates
from ...sessions.model import AttendanceSession
from ..model import DeviceInfo, Verification


@dataclass(frozen=True)
class CheckInEvidence:
    """Raw evidence submitted with a check-in."""

    latitude: Optional[float] = None
    longitude: Optional[float] = None
    accuracy: Optional[float] = None
    address: Optional[str] = None
    otp_code: Optional[str] = None
    face_match: Optional[float] = None
    biometric_verified: bool = False
    biometric_template: Optional[str] = None
    reason: Optional[str] = None
    device_info: DeviceInfo = field(default_factory=DeviceInfo)


@dataclass(frozen=True)
class VerificationContext:
    session: AttendanceSession
    marked_by: MarkedBy
    point: Optional[Coordinates]
    within_geofence: bool
    distance_meters: Optional[float]


@dataclass(frozen=True)
class MethodResult:
    verification: Verification
    is_proxy: bool = False
    proxy_reason: Optional[str] = None


class VerificationStrategy(ABC):
    """Strategy Pattern: one way of proving a student is really there."""

    method: VerificationMethod

    @abstractmethod
    def verify(self, evidence: CheckInEvidence, ctx: VerificationContext) -> MethodResult:
        raise NotImplementedError
