from __future__ import annotations

from ...core.enums import MarkedBy, VerificationMethod
from ...core.exceptions import AuthorizationError
from ..model import Verification
from .base import CheckInEvidence, MethodResult, VerificationContext, VerificationStrategy

MISSING_REASON = "Manual check-in without a reason"


class ManualStrategy(VerificationStrategy):
    """Teacher/admin override; skips OTP, biometric and geofence checks.

    A manual mark without a reason is kept but flagged as possible proxy
    attendance for later audit.
    """

    method = VerificationMethod.MANUAL

    def verify(self, evidence: CheckInEvidence, ctx: VerificationContext) -> MethodResult:
        if ctx.marked_by not in (MarkedBy.TEACHER, MarkedBy.ADMIN):
            raise AuthorizationError("Only teachers or admins may mark attendance manually")

        verification = Verification(method=self.method, device_info=evidence.device_info)
        reason = (evidence.reason or "").strip()
        if reason:
            return MethodResult(verification=verification, is_proxy=False)

        proxy_reason = MISSING_REASON
        if ctx.point is not None and not ctx.within_geofence:
            proxy_reason = f"{MISSING_REASON}, reported location outside the geofence"
        return MethodResult(verification=verification, is_proxy=True, proxy_reason=proxy_reason)
