from __future__ import annotations

import hmac

from ...common.timeouts import call_with_timeout
from ...core.enums import VerificationMethod
from ...core.exceptions import VerificationRequired
from ...identity.provider import IdentityProvider
from ..model import Verification
from .base import CheckInEvidence, MethodResult, VerificationContext, VerificationStrategy


class OtpStrategy(VerificationStrategy):
    """Code read off the teacher's screen must match the session's current code."""

    method = VerificationMethod.OTP

    def __init__(self, identity: IdentityProvider, *, timeout: float):
        self._identity = identity
        self._timeout = float(timeout)

    def verify(self, evidence: CheckInEvidence, ctx: VerificationContext) -> MethodResult:
        code = (evidence.otp_code or "").strip()
        if not code:
            raise VerificationRequired("OTP code is required")

        session_id = ctx.session.session_id
        expected = call_with_timeout(
            lambda: self._identity.current_otp(session_id),
            self._timeout,
            what="OTP lookup",
        )
        if not hmac.compare_digest(code.encode("utf-8"), str(expected).encode("utf-8")):
            raise VerificationRequired("Invalid OTP code")

        return MethodResult(
            verification=Verification(method=self.method, otp_code=code, device_info=evidence.device_info)
        )
