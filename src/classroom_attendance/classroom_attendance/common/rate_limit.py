from __future__ import annotations

import math
import threading
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Callable, Hashable

from ..core.constants import (
    DEFAULT_CHECKIN_MAX_ATTEMPTS,
    DEFAULT_CHECKIN_WINDOW_SECONDS,
    DEFAULT_RATE_LIMIT_MAX_USERS,
)


@dataclass(frozen=True)
class RateDecision:
    allowed: bool
    retry_after: int = 0


class SlidingWindowRateLimiter:
    """Per-user sliding window over a bounded buffer of recent attempts.

    At most ``max_users`` users are tracked; the least recently seen user is
    evicted first, and each user's buffer never holds more than ``max_attempts``
    timestamps, so memory stays bounded however many users show up.
    """

    def __init__(
        self,
        *,
        max_attempts: int = DEFAULT_CHECKIN_MAX_ATTEMPTS,
        window_seconds: float = DEFAULT_CHECKIN_WINDOW_SECONDS,
        max_users: int = DEFAULT_RATE_LIMIT_MAX_USERS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if max_attempts < 1 or window_seconds <= 0 or max_users < 1:
            raise ValueError("Rate limiter bounds must be positive")
        self._max_attempts = int(max_attempts)
        self._window = float(window_seconds)
        self._max_users = int(max_users)
        self._clock = clock
        self._lock = threading.Lock()
        self._attempts: "OrderedDict[Hashable, deque[float]]" = OrderedDict()

    def hit(self, key: Hashable) -> RateDecision:
        now = self._clock()
        with self._lock:
            bucket = self._attempts.get(key)
            if bucket is None:
                bucket = deque(maxlen=self._max_attempts)
                self._attempts[key] = bucket
            self._attempts.move_to_end(key)

            while bucket and now - bucket[0] >= self._window:
                bucket.popleft()

            if len(bucket) >= self._max_attempts:
                retry_after = max(1, math.ceil(bucket[0] + self._window - now))
                return RateDecision(allowed=False, retry_after=retry_after)

            bucket.append(now)
            while len(self._attempts) > self._max_users:
                self._attempts.popitem(last=False)
            return RateDecision(allowed=True)

    def sweep(self) -> int:
        """Drop users whose attempts all fell out of the window; returns how many."""
        now = self._clock()
        removed = 0
        with self._lock:
            for key in list(self._attempts):
                bucket = self._attempts[key]
                if not bucket or now - bucket[-1] >= self._window:
                    del self._attempts[key]
                    removed += 1
        return removed

    def __len__(self) -> int:
        with self._lock:
            return len(self._attempts)
