from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import Callable, TypeVar

from ..core.exceptions import TransientError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_executor = ThreadPoolExecutor(max_workers=8, thread_name_prefix="bounded-call")


def call_with_timeout(fn: Callable[[], T], timeout: float, *, what: str = "external call") -> T:
    """Run ``fn`` and give up after ``timeout`` seconds with a TransientError.

    Only use for read-style calls: the worker keeps running after a timeout.
    """
    future = _executor.submit(fn)
    try:
        return future.result(timeout=timeout)
    except FutureTimeout:
        future.cancel()
        logger.warning("%s timed out after %.2fs", what, timeout)
        raise TransientError(f"{what} timed out, please retry")
