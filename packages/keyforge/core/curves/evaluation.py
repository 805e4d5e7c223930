"""Curve evaluation.

``evaluate`` is called once per animated parameter on every playback tick,
so it is total: any track, any frame, always a finite float for finite
keyframe data and never an exception.
"""

from __future__ import annotations

from bisect import bisect_right
from collections.abc import Iterable, Sequence

import numpy as np

from keyforge.core.curves.models import Interpolation, Keyframe, Track


def bezier_1d(t: float, p0: float, p1: float, p2: float, p3: float) -> float:
    """Evaluate a one-dimensional cubic Bernstein polynomial at ``t``.

    Example:
        >>> bezier_1d(0.5, 0.0, 0.0, 1.0, 1.0)
        0.5
    """
    u = 1.0 - t
    return (u * u * u * p0) + (3.0 * u * u * t * p1) + (3.0 * u * t * t * p2) + (t * t * t * p3)


def ordered_keyframes(keys: Track | Sequence[Keyframe]) -> list[Keyframe]:
    """Return keyframes in ascending frame order.

    Already-sorted input is returned without re-sorting.
    """
    keyframes = keys.keyframes if isinstance(keys, Track) else keys
    if all(keyframes[i].frame <= keyframes[i + 1].frame for i in range(len(keyframes) - 1)):
        return list(keyframes)
    return sorted(keyframes, key=lambda k: k.frame)


def find_segment(sorted_keys: Sequence[Keyframe], frame: float) -> tuple[Keyframe, Keyframe] | None:
    """Find the bounding pair with ``start.frame <= frame < end.frame``.

    Returns None when ``frame`` lies outside the keyed range.
    """
    if len(sorted_keys) < 2:
        return None
    frames = [k.frame for k in sorted_keys]
    idx = bisect_right(frames, frame) - 1
    if idx < 0 or idx >= len(sorted_keys) - 1:
        return None
    return sorted_keys[idx], sorted_keys[idx + 1]


def interpolate_segment(start: Keyframe, end: Keyframe, frame: float) -> float:
    """Interpolate between two keyframes using the start key's mode."""
    if start.interpolation == Interpolation.STEP:
        return start.value

    duration = end.frame - start.frame
    if duration <= 1e-9:
        return start.value
    t = (frame - start.frame) / duration

    if start.interpolation == Interpolation.LINEAR:
        return start.value + (end.value - start.value) * t

    # Missing handles behave as flat
    p1 = start.value + (start.right_tangent.dy if start.right_tangent else 0.0)
    p2 = end.value + (end.left_tangent.dy if end.left_tangent else 0.0)
    return bezier_1d(t, start.value, p1, p2, end.value)


def evaluate_sorted(sorted_keys: Sequence[Keyframe], frame: float) -> float:
    """Evaluate keyframes already in ascending frame order."""
    if not sorted_keys:
        return 0.0

    first = sorted_keys[0]
    last = sorted_keys[-1]
    if frame != frame or frame <= first.frame:  # NaN clamps to the start
        return first.value
    if frame >= last.frame:
        return last.value

    segment = find_segment(sorted_keys, frame)
    if segment is None:
        return last.value
    return interpolate_segment(segment[0], segment[1], frame)


def evaluate(track: Track | Sequence[Keyframe], frame: float) -> float:
    """Evaluate a track's curve at ``frame``.

    Outside the keyed range the value clamps to the nearest end key. Empty
    tracks evaluate to 0.0.

    Args:
        track: A Track or a list of keyframes in any order.
        frame: Frame to evaluate at.

    Returns:
        The curve value at ``frame``.

    Example:
        >>> keys = [
        ...     Keyframe(id="a", frame=0, value=3, interpolation=Interpolation.STEP),
        ...     Keyframe(id="b", frame=10, value=7, interpolation=Interpolation.STEP),
        ... ]
        >>> evaluate(keys, 9), evaluate(keys, 10)
        (3.0, 7.0)
    """
    return evaluate_sorted(ordered_keyframes(track), frame)


def evaluate_many(track: Track | Sequence[Keyframe], frames: Iterable[float]) -> np.ndarray:
    """Evaluate a track at many frames, returning a float array."""
    sorted_keys = ordered_keyframes(track)
    return np.array([evaluate_sorted(sorted_keys, f) for f in frames], dtype=float)
