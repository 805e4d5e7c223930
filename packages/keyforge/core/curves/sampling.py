"""Curve sampling and baking.

This module provides functions for sampling an existing curve densely
(the input to simplification) and for rebaking a curve into keyframes at a
fixed frame interval.
"""

from __future__ import annotations

import logging
import math
import uuid
from collections.abc import Iterable, Sequence

import numpy as np

from keyforge.core.curves.evaluation import evaluate_sorted, ordered_keyframes
from keyforge.core.curves.models import Interpolation, Keyframe, Track, TrackReplacement
from keyforge.core.curves.tangents import calculate_tangents
from keyforge.core.utils.logging import log_performance
from keyforge.core.utils.math import frame_grid

logger = logging.getLogger(__name__)

DEFAULT_SAMPLE_STEP = 1.0
DEFAULT_MIN_SAMPLES = 50


def dense_samples(
    keys: Track | Sequence[Keyframe],
    step: float = DEFAULT_SAMPLE_STEP,
    min_samples: int = DEFAULT_MIN_SAMPLES,
) -> tuple[np.ndarray, np.ndarray]:
    """Sample a curve across its full keyed range.

    The step is ``step`` frames, reduced for short spans so that at least
    ``min_samples`` intervals are taken. Both end frames are always included.

    Args:
        keys: Track or keyframes in any order.
        step: Nominal sampling step in frames.
        min_samples: Minimum number of sampling intervals.

    Returns:
        Tuple of (frames, values) arrays of equal length. Both are empty for
        a track without keyframes.

    Example:
        >>> frames, values = dense_samples(keys, step=1.0, min_samples=4)
    """
    sorted_keys = ordered_keyframes(keys)
    if not sorted_keys:
        return np.array([], dtype=float), np.array([], dtype=float)

    start = sorted_keys[0].frame
    end = sorted_keys[-1].frame
    span = end - start
    actual_step = min(step, span / max(1, min_samples)) if span > 0 else step

    frames = frame_grid(start, end, actual_step)
    values = np.array([evaluate_sorted(sorted_keys, f) for f in frames], dtype=float)
    return frames, values


def bake_frames(start: float, end: float, step: float) -> list[float]:
    """Frames at every multiple of ``step`` within [start, end], plus both ends.

    Raises:
        ValueError: If step is not positive.

    Example:
        >>> bake_frames(0, 23, 5)
        [0.0, 5.0, 10.0, 15.0, 20.0, 23.0]
    """
    if step <= 0:
        raise ValueError(f"step must be > 0, got {step}")

    frames = {float(start), float(end)}
    first = math.ceil(start / step - 1e-9)
    last = math.floor(end / step + 1e-9)
    for n in range(first, last + 1):
        frame = n * step
        if start <= frame <= end:
            frames.add(float(frame))

    ordered = sorted(frames)
    # Drop near-duplicates produced by float multiples landing beside an end
    result = [ordered[0]]
    for frame in ordered[1:]:
        if frame - result[-1] > 1e-9:
            result.append(frame)
    return result


def resample_track(
    track: Track,
    step: float,
    interpolation: Interpolation = Interpolation.LINEAR,
) -> TrackReplacement | None:
    """Rebake one track into keyframes at a fixed interval.

    Args:
        track: Track to bake.
        step: Interval in frames; must be > 0.
        interpolation: Interpolation of the new keys. Bezier keys receive
            automatic tangents.

    Returns:
        Replacement keyframes with fresh ids, or None for an empty track.

    Raises:
        ValueError: If step is not positive.
    """
    sorted_keys = ordered_keyframes(track)
    if not sorted_keys:
        return None

    frames = bake_frames(sorted_keys[0].frame, sorted_keys[-1].frame, step)
    baked = [
        Keyframe(
            id=uuid.uuid4().hex,
            frame=frame,
            value=evaluate_sorted(sorted_keys, frame),
            interpolation=interpolation,
            auto_tangent=interpolation == Interpolation.BEZIER,
        )
        for frame in frames
    ]

    if interpolation == Interpolation.BEZIER:
        with_tangents = []
        for i, key in enumerate(baked):
            prev = baked[i - 1] if i > 0 else None
            nxt = baked[i + 1] if i < len(baked) - 1 else None
            left, right = calculate_tangents(key, prev, nxt)
            with_tangents.append(key.model_copy(update={"left_tangent": left, "right_tangent": right}))
        baked = with_tangents

    return TrackReplacement(track_id=track.id, keyframes=baked)


@log_performance
def resample(
    tracks: Iterable[Track],
    step: float,
    interpolation: Interpolation = Interpolation.LINEAR,
) -> list[TrackReplacement]:
    """Bake every given track at a fixed interval.

    Raises:
        ValueError: If step is not positive.
    """
    if step <= 0:
        raise ValueError(f"step must be > 0, got {step}")

    replacements: list[TrackReplacement] = []
    for track in tracks:
        replacement = resample_track(track, step, interpolation)
        if replacement is not None:
            replacements.append(replacement)

    logger.debug(
        "Baked %d tracks at step %s (%s)", len(replacements), step, interpolation.value
    )
    return replacements
