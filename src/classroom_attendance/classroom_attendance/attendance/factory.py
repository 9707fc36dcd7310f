from __future__ import annotations

from dataclasses import dataclass

from ..core.constants import BIOMETRIC_MATCH_THRESHOLD, DEFAULT_IDENTITY_TIMEOUT_SECONDS
from ..core.enums import VerificationMethod
from ..core.exceptions import InvalidInput
from ..identity.provider import IdentityProvider
from .strategies.base import VerificationStrategy
from .strategies.biometric_strategy import BiometricStrategy
from .strategies.location_strategy import LocationStrategy
from .strategies.manual_strategy import ManualStrategy
from .strategies.otp_strategy import OtpStrategy


@dataclass
class VerificationStrategyFactory:
    """Factory Pattern: choose the strategy matching the claimed method."""

    identity: IdentityProvider
    timeout: float = DEFAULT_IDENTITY_TIMEOUT_SECONDS
    biometric_threshold: float = BIOMETRIC_MATCH_THRESHOLD

    def for_method(self, method: VerificationMethod) -> VerificationStrategy:
        if method == VerificationMethod.LOCATION:
            return LocationStrategy()
        if method == VerificationMethod.OTP:
            return OtpStrategy(self.identity, timeout=self.timeout)
        if method == VerificationMethod.BIOMETRIC:
            return BiometricStrategy(self.identity, timeout=self.timeout, threshold=self.biometric_threshold)
        if method == VerificationMethod.MANUAL:
            return ManualStrategy()
        raise InvalidInput(f"Unsupported verification method: {method}")
