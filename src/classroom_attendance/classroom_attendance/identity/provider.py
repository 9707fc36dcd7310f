from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Protocol


@dataclass(frozen=True)
class BiometricEvidence:
    """Whatever the client device produced for a face check."""

    face_match: Optional[float] = None
    biometric_verified: bool = False
    template: Optional[str] = None


@dataclass(frozen=True)
class BiometricResult:
    match: float
    verified: bool


class IdentityProvider(Protocol):
    """Source of session secrets and biometric verdicts.

    Implementations may hit the network; callers bound every call with a timeout.
    """

    def current_otp(self, session_id: int) -> str:
        raise NotImplementedError

    def verify_biometric(self, evidence: BiometricEvidence) -> BiometricResult:
        raise NotImplementedError
