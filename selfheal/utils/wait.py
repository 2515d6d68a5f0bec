from __future__ import annotations

import time
from typing import Callable, TypeVar

T = TypeVar("T")


def wait_until(predicate: Callable[[], T], timeout: float, interval: float = 0.1) -> T:
    """Polls a predicate until it returns a truthy value or the timeout expires.

    The predicate is always evaluated at least once, so a zero timeout is a
    single non-blocking check.
    """

    deadline = time.monotonic() + max(timeout, 0.0)
    while time.monotonic() < deadline:
        result = predicate()
        if result:
            return result
        time.sleep(min(interval, max(deadline - time.monotonic(), 0.0)))
    return predicate()
