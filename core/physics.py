"""Free-fall timing used to schedule the recording start."""

from __future__ import annotations

import math

GRAVITY = 9.81  # m/s^2


def drop_time(height_m: float) -> float:
    """Seconds for a drop released at rest to fall `height_m` metres."""
    h = float(height_m)
    if h < 0:
        raise ValueError("drop height must be >= 0")
    return math.sqrt(2.0 * h / GRAVITY)


def scheduling_delay(drop_time_s: float, pre_impact_margin_s: float) -> float:
    """Delay between trigger and recording start; never negative."""
    return max(0.0, float(drop_time_s) - float(pre_impact_margin_s))


__all__ = ["GRAVITY", "drop_time", "scheduling_delay"]
