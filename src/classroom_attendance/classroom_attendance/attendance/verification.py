from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from ..core.enums import AttendanceStatus, MarkedBy, SessionStatus, VerificationMethod
from ..core.exceptions import InvalidInput, LocationRequired, SessionNotActive, VerificationRequired, WindowClosed
from ..geo.distance import Coordinates, distance_meters, validate_coordinates, within_geofence
from ..sessions.model import AttendanceSession
from .factory import VerificationStrategyFactory
from .model import RecordLocation, Verification
from .strategies.base import CheckInEvidence, VerificationContext


@dataclass(frozen=True)
class VerificationOutcome:
    status: AttendanceStatus
    verification: Verification
    location: RecordLocation
    is_proxy: bool = False
    proxy_reason: Optional[str] = None


class VerificationEvaluator:
    """Decide whether a check-in passes and which status it earns.

    Rules evaluated in order:
      1. timing: inside the attendance window -> present, late period -> late
      2. session-wide requirements (require_location, require_biometric)
      3. present/late records must carry coordinates
      4. the claimed method's own check (see strategies/)
    """

    def __init__(self, factory: VerificationStrategyFactory):
        self._factory = factory

    @staticmethod
    def derive_status(session: AttendanceSession, now: datetime) -> AttendanceStatus:
        if session.status != SessionStatus.ACTIVE:
            raise SessionNotActive(f"Session is {session.status.value}")
        if session.is_window_open(now):
            return AttendanceStatus.PRESENT
        if session.is_late_period(now):
            return AttendanceStatus.LATE
        raise WindowClosed("Attendance window is closed")

    @staticmethod
    def _point(evidence: CheckInEvidence) -> Optional[Coordinates]:
        has_lat = evidence.latitude is not None
        has_lon = evidence.longitude is not None
        if has_lat != has_lon:
            raise InvalidInput("Latitude and longitude must be sent together")
        if not has_lat:
            return None
        return validate_coordinates(evidence.latitude, evidence.longitude)

    def evaluate(
        self,
        *,
        session: AttendanceSession,
        method: VerificationMethod,
        evidence: CheckInEvidence,
        marked_by: MarkedBy,
        now: datetime,
        status: Optional[AttendanceStatus] = None,
    ) -> VerificationOutcome:
        """Run every check; ``status`` skips timing for explicit teacher marks."""
        if status is None:
            status = self.derive_status(session, now)

        point = self._point(evidence)
        fence = session.location
        distance = None
        if point is not None:
            distance = distance_meters(
                point.latitude, point.longitude, fence.coordinates.latitude, fence.coordinates.longitude
            )
        inside = within_geofence(point, fence.coordinates, fence.radius)

        settings = session.settings
        if settings.require_location and point is None:
            raise LocationRequired("This session requires your location")
        if settings.require_biometric and method not in (VerificationMethod.BIOMETRIC, VerificationMethod.MANUAL):
            raise VerificationRequired("This session requires biometric verification")
        if status.requires_location and point is None:
            raise LocationRequired(f"Location is required to be marked {status.value}")

        ctx = VerificationContext(
            session=session,
            marked_by=marked_by,
            point=point,
            within_geofence=inside,
            distance_meters=distance,
        )
        result = self._factory.for_method(method).verify(evidence, ctx)

        location = RecordLocation(
            latitude=point.latitude if point else None,
            longitude=point.longitude if point else None,
            accuracy=evidence.accuracy,
            address=evidence.address,
            is_within_geofence=inside,
        )
        return VerificationOutcome(
            status=status,
            verification=result.verification,
            location=location,
            is_proxy=result.is_proxy,
            proxy_reason=result.proxy_reason,
        )
