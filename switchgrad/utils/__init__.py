"""Interval lookup, interpolation and numerical checks."""

from switchgrad.utils.interval import (
    ActiveIntervalFinder,
    WEAK_EPSILON,
    find_active_interval_index,
)
from switchgrad.utils.interpolation import LinearInterpolation

__all__ = [
    "ActiveIntervalFinder",
    "WEAK_EPSILON",
    "find_active_interval_index",
    "LinearInterpolation",
]
