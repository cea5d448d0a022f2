from __future__ import annotations

import logging
import time
from typing import Callable

L = logging.getLogger("dropcam.recorder")


def wait_until_ready(
    is_ready: Callable[[], bool],
    *,
    retries: int,
    interval_s: float,
    label: str = "",
    sleep: Callable[[float], None] = time.sleep,
) -> bool:
    """Poll `is_ready` up to `retries` extra times, `interval_s` apart.

    Returns False after the budget is exhausted; callers treat that as a
    warning, not a failure.
    """
    attempts = max(0, int(retries)) + 1
    for attempt in range(attempts):
        if is_ready():
            if attempt:
                L.debug("Artifact ready after %d retries: %s", attempt, label)
            return True
        if attempt + 1 < attempts:
            sleep(interval_s)
    L.warning("Artifact not ready after %d retries; giving up: %s", retries, label)
    return False


__all__ = ["wait_until_ready"]
