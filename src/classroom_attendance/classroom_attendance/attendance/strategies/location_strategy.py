from __future__ import annotations

from ...core.enums import VerificationMethod
from ...core.exceptions import GeofenceViolation, LocationRequired
from ..model import Verification
from .base import CheckInEvidence, MethodResult, VerificationContext, VerificationStrategy


class LocationStrategy(VerificationStrategy):
    """Pass iff the reported position is inside the classroom geofence."""

    method = VerificationMethod.LOCATION

    def verify(self, evidence: CheckInEvidence, ctx: VerificationContext) -> MethodResult:
        if ctx.point is None:
            raise LocationRequired("Location is required for location check-in")
        if not ctx.within_geofence:
            fence = ctx.session.location
            raise GeofenceViolation(
                f"You are {ctx.distance_meters:.0f} m from {fence.name}, allowed radius is {fence.radius} m",
                distance_meters=ctx.distance_meters,
            )
        return MethodResult(verification=Verification(method=self.method, device_info=evidence.device_info))
