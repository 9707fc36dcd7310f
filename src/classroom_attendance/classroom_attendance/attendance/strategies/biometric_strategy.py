from __future__ import annotations

from ...common.timeouts import call_with_timeout
from ...core.constants import BIOMETRIC_MATCH_THRESHOLD
from ...core.enums import VerificationMethod
from ...core.exceptions import VerificationRequired
from ...identity.provider import BiometricEvidence, IdentityProvider
from ..model import Verification
from .base import CheckInEvidence, MethodResult, VerificationContext, VerificationStrategy


class BiometricStrategy(VerificationStrategy):
    method = VerificationMethod.BIOMETRIC

    def __init__(self, identity: IdentityProvider, *, timeout: float, threshold: float = BIOMETRIC_MATCH_THRESHOLD):
        self._identity = identity
        self._timeout = float(timeout)
        self._threshold = float(threshold)

    def verify(self, evidence: CheckInEvidence, ctx: VerificationContext) -> MethodResult:
        payload = BiometricEvidence(
            face_match=evidence.face_match,
            biometric_verified=evidence.biometric_verified,
            template=evidence.biometric_template,
        )
        result = call_with_timeout(
            lambda: self._identity.verify_biometric(payload),
            self._timeout,
            what="Biometric verification",
        )
        if not result.verified:
            raise VerificationRequired("Biometric verification failed")
        if result.match < self._threshold:
            raise VerificationRequired(
                f"Face match {result.match:.2f} is below the required {self._threshold:.2f}"
            )

        return MethodResult(
            verification=Verification(
                method=self.method,
                biometric_verified=True,
                face_match=result.match,
                device_info=evidence.device_info,
            )
        )
