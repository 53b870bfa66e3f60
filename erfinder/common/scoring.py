"""Numeric helpers shared by the ranking model."""

from __future__ import annotations


def clamp(value: float, *, minimum: float, maximum: float) -> float:
    return max(minimum, min(maximum, value))


def lerp_descending(value: float, *, low: float, high: float, maximum: float) -> float:
    """Map ``low`` to ``maximum`` and ``high`` to zero, linearly."""
    if high == low:
        return maximum
    ratio = 1 - (value - low) / (high - low)
    return clamp(ratio * maximum, minimum=0.0, maximum=maximum)
