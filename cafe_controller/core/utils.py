"""Core utility functions shared across modules."""

from __future__ import annotations

import time


def monotonic_ms() -> int:
    """Return the monotonic clock in whole milliseconds."""
    return time.monotonic_ns() // 1_000_000


def seconds_to_ms(seconds: float) -> int:
    """Convert a duration in seconds to the nearest whole millisecond.

    Examples:
        >>> seconds_to_ms(2.5)
        2500
        >>> seconds_to_ms(0.0104)
        10
    """
    return int(round(seconds * 1000))
