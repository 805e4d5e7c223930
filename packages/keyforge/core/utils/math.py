"""Math utilities for common operations."""

from __future__ import annotations

from typing import TypeVar

import numpy as np

Number = TypeVar("Number", int, float, np.number)


def clamp(value: Number, min_val: Number, max_val: Number) -> Number:
    """Clamp value to range [min_val, max_val].

    Args:
        value: Value to clamp
        min_val: Minimum allowed value
        max_val: Maximum allowed value

    Returns:
        Clamped value
    """
    return max(min_val, min(max_val, value))


def frame_grid(start: float, end: float, step: float) -> np.ndarray:
    """Evenly spaced frames from ``start`` to ``end`` inclusive, at most ``step`` apart.

    Example:
        >>> frame_grid(0.0, 2.0, 1.0).tolist()
        [0.0, 1.0, 2.0]
    """
    span = end - start
    if span <= 0 or step <= 0:
        return np.array([start], dtype=float)
    count = int(np.ceil(span / step - 1e-9)) + 1
    return np.linspace(start, end, count)
