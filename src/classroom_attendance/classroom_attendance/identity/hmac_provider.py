from __future__ import annotations

import hashlib
import hmac
import struct
import time
from typing import Callable

from ..core.constants import DEFAULT_OTP_STEP_SECONDS, OTP_DIGITS
from .provider import BiometricEvidence, BiometricResult, IdentityProvider


class HmacIdentityProvider(IdentityProvider):
    """Rotating per-session codes derived from a shared secret.

    The code for a session changes every ``step_seconds``; a teacher's screen and
    the verifying server compute the same value without storing it.
    """

    def __init__(
        self,
        secret: str,
        *,
        step_seconds: int = DEFAULT_OTP_STEP_SECONDS,
        clock: Callable[[], float] = time.time,
    ):
        if not secret:
            raise ValueError("OTP secret must not be empty")
        self._secret = secret.encode("utf-8")
        self._step = int(step_seconds)
        self._clock = clock

    def code_for(self, session_id: int, counter: int) -> str:
        msg = struct.pack(">QQ", int(session_id), int(counter))
        digest = hmac.new(self._secret, msg, hashlib.sha256).digest()
        # Dynamic truncation as in RFC 4226.
        offset = digest[-1] & 0x0F
        value = struct.unpack(">I", digest[offset:offset + 4])[0] & 0x7FFFFFFF
        return str(value % (10 ** OTP_DIGITS)).zfill(OTP_DIGITS)

    def current_otp(self, session_id: int) -> str:
        return self.code_for(session_id, int(self._clock() // self._step))

    def verify_biometric(self, evidence: BiometricEvidence) -> BiometricResult:
        # Face matching happens on the device; we only normalise its verdict.
        match = float(evidence.face_match) if evidence.face_match is not None else 0.0
        return BiometricResult(match=max(0.0, min(match, 1.0)), verified=bool(evidence.biometric_verified))
