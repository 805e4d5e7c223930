"""Adaptive Bezier curve simplification.

This module reduces a densely keyed curve to a small number of Bezier
keyframes. The existing curve is first sampled densely, then segments are
fitted with a cubic whose inner control values are found by least squares
and blended toward straight-line handles by a fit strength. Segments that
deviate from the samples by more than the error threshold are split at the
point of worst deviation and fitted again.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Collection, Sequence
from typing import Any

import numpy as np

from keyforge.core.curves.evaluation import ordered_keyframes
from keyforge.core.curves.models import Interpolation, Keyframe, Tangent, Track, TrackReplacement
from keyforge.core.curves.sampling import DEFAULT_MIN_SAMPLES, DEFAULT_SAMPLE_STEP, dense_samples
from keyforge.core.utils.logging import log_performance
from keyforge.core.utils.math import clamp

logger = logging.getLogger(__name__)

VARIANCE_THRESHOLD = 1e-9
DETERMINANT_THRESHOLD = 1e-9

# Float noise allowed on top of the error threshold
FIT_TOLERANCE = 1e-9

# Segments shorter than this (in frames) are accepted without testing
MIN_SEGMENT_FRAMES = 1.0

# Neutral outer handles of the first and last emitted keys
EDGE_LEFT = Tangent(dx=-1.0, dy=0.0)
EDGE_RIGHT = Tangent(dx=1.0, dy=0.0)


def linear_handles(start_value: float, end_value: float) -> tuple[float, float]:
    """Inner control values that make the cubic a straight ramp.

    Example:
        >>> linear_handles(0.0, 3.0)
        (1.0, 2.0)
    """
    diff = end_value - start_value
    return start_value + diff / 3.0, start_value + 2.0 * diff / 3.0


def least_squares_handles(
    t: np.ndarray,
    values: np.ndarray,
    p0: float,
    p3: float,
    *,
    variance_threshold: float = VARIANCE_THRESHOLD,
    determinant_threshold: float = DETERMINANT_THRESHOLD,
) -> tuple[float, float] | None:
    """Least-squares inner control values for a cubic with fixed endpoints.

    Solves the 2x2 normal equations for ``p1`` and ``p2`` using the
    Bernstein basis terms ``3(1-t)^2 t`` and ``3(1-t) t^2``.

    Args:
        t: Normalised sample times in [0, 1].
        values: Sample values.
        p0: Fixed start value.
        p3: Fixed end value.
        variance_threshold: Below this sample variance the data is treated
            as flat.
        determinant_threshold: Below this the system is treated as singular.

    Returns:
        Tuple of (p1, p2), or None when the data is flat or ill-conditioned
        and straight-line handles should be used instead.
    """
    if values.size == 0 or float(np.var(values)) < variance_threshold:
        return None

    u = 1.0 - t
    b1 = 3.0 * u * u * t
    b2 = 3.0 * u * t * t
    target = values - (u**3 * p0 + t**3 * p3)

    c11 = float(np.dot(b1, b1))
    c12 = float(np.dot(b1, b2))
    c22 = float(np.dot(b2, b2))
    r1 = float(np.dot(target, b1))
    r2 = float(np.dot(target, b2))

    det = c11 * c22 - c12 * c12
    if abs(det) < determinant_threshold:
        return None

    return (c22 * r1 - c12 * r2) / det, (c11 * r2 - c12 * r1) / det


def fit_segment(
    t: np.ndarray,
    values: np.ndarray,
    fit_strength: float,
    *,
    variance_threshold: float = VARIANCE_THRESHOLD,
    determinant_threshold: float = DETERMINANT_THRESHOLD,
) -> tuple[float, float]:
    """Blend straight-line and least-squares control values by ``fit_strength``."""
    start_value = float(values[0])
    end_value = float(values[-1])
    lin1, lin2 = linear_handles(start_value, end_value)

    solved = least_squares_handles(
        t,
        values,
        start_value,
        end_value,
        variance_threshold=variance_threshold,
        determinant_threshold=determinant_threshold,
    )
    if solved is None:
        logger.debug("Least-squares fit fell back to linear handles")
        return lin1, lin2

    ls1, ls2 = solved
    return lin1 + fit_strength * (ls1 - lin1), lin2 + fit_strength * (ls2 - lin2)


def _max_deviation(t: np.ndarray, values: np.ndarray, p1: float, p2: float) -> tuple[float, int]:
    """Largest interior deviation from the fitted cubic and its index."""
    if len(values) <= 2:
        return 0.0, -1
    inner_t = t[1:-1]
    u = 1.0 - inner_t
    fitted = (
        u**3 * values[0]
        + 3.0 * u * u * inner_t * p1
        + 3.0 * u * inner_t * inner_t * p2
        + inner_t**3 * values[-1]
    )
    deviation = np.abs(fitted - values[1:-1])
    idx = int(np.argmax(deviation))
    return float(deviation[idx]), idx + 1


def _key(frame: float, value: float, left: Tangent, right: Tangent) -> Keyframe:
    return Keyframe(
        id=uuid.uuid4().hex,
        frame=frame,
        value=value,
        interpolation=Interpolation.BEZIER,
        left_tangent=left,
        right_tangent=right,
    )


def _mark_broken(key: Keyframe) -> Keyframe:
    left, right = key.left_tangent, key.right_tangent
    if left is None or right is None:
        return key
    mirrored = abs(left.dx + right.dx) <= 1e-9 and abs(left.dy + right.dy) <= 1e-9
    return key.model_copy(update={"broken_tangents": not mirrored})


@log_performance
def simplify(
    keyframes: Sequence[Keyframe],
    error_threshold: float = 0.01,
    fit_strength: float = 1.0,
    *,
    sample_step: float = DEFAULT_SAMPLE_STEP,
    min_samples: int = DEFAULT_MIN_SAMPLES,
    variance_threshold: float = VARIANCE_THRESHOLD,
    determinant_threshold: float = DETERMINANT_THRESHOLD,
) -> list[Keyframe]:
    """Replace keyframes with a minimal set of fitted Bezier keyframes.

    Args:
        keyframes: Keyframes of one track (any order).
        error_threshold: Maximum allowed deviation from the original curve.
        fit_strength: 0 keeps straight-line handles, 1 uses the best fit.
            Clamped to [0, 1].
        sample_step: Nominal dense sampling step in frames.
        min_samples: Minimum number of dense sampling intervals.
        variance_threshold: Flat-data threshold of the least-squares fit.
        determinant_threshold: Singular-system threshold of the fit.

    Returns:
        New keyframes with fresh ids. Fewer than two input keys are returned
        unchanged.

    Example:
        >>> result = simplify(keys, error_threshold=float("inf"))
        >>> len(result)
        2
    """
    sorted_keys = ordered_keyframes(keyframes)
    if len(sorted_keys) < 2:
        return list(sorted_keys)

    fit_strength = clamp(float(fit_strength), 0.0, 1.0)
    frames, values = dense_samples(sorted_keys, sample_step, min_samples)
    if len(frames) < 2:
        return list(sorted_keys)

    result = [_key(float(frames[0]), float(values[0]), EDGE_LEFT, EDGE_RIGHT)]

    # Explicit work stack; the left half is always processed first
    stack: list[tuple[int, int]] = [(0, len(frames) - 1)]
    while stack:
        lo, hi = stack.pop()
        seg_frames = frames[lo : hi + 1]
        seg_values = values[lo : hi + 1]
        duration = float(seg_frames[-1] - seg_frames[0])
        start_value = float(seg_values[0])
        end_value = float(seg_values[-1])

        t = (seg_frames - seg_frames[0]) / duration if duration > 0 else np.zeros_like(seg_frames)
        p1, p2 = fit_segment(
            t,
            seg_values,
            fit_strength,
            variance_threshold=variance_threshold,
            determinant_threshold=determinant_threshold,
        )
        if duration < MIN_SEGMENT_FRAMES:
            deviation, split = 0.0, -1
        else:
            deviation, split = _max_deviation(t, seg_values, p1, p2)

        if deviation <= error_threshold + FIT_TOLERANCE or len(seg_values) <= 2 or split <= 0:
            handle_dx = duration / 3.0
            result[-1] = result[-1].model_copy(
                update={"right_tangent": Tangent(dx=handle_dx, dy=p1 - start_value)}
            )
            result.append(
                _key(
                    float(seg_frames[-1]),
                    end_value,
                    Tangent(dx=-handle_dx, dy=p2 - end_value),
                    EDGE_RIGHT,
                )
            )
        else:
            mid = lo + split
            stack.append((mid, hi))
            stack.append((lo, mid))

    result[0] = result[0].model_copy(update={"left_tangent": EDGE_LEFT})
    result[-1] = result[-1].model_copy(update={"right_tangent": EDGE_RIGHT})
    result = [_mark_broken(k) for k in result]

    logger.debug(
        "Simplified %d keys to %d (threshold=%s, fit_strength=%.2f)",
        len(sorted_keys),
        len(result),
        error_threshold,
        fit_strength,
    )
    return result


def simplify_track_selection(
    track: Track,
    key_ids: Collection[str],
    error_threshold: float = 0.01,
    fit_strength: float = 1.0,
    **kwargs: Any,
) -> TrackReplacement | None:
    """Simplify only the selected span of a track.

    Keys before and after the selected span are kept untouched; keys inside
    the span are replaced by the simplified curve of the selected keys.

    Returns:
        The merged keyframes, or None when fewer than two keys are selected.
    """
    selected = set(key_ids)
    chosen = [k for k in ordered_keyframes(track) if k.id in selected]
    if len(chosen) < 2:
        return None

    start_frame = chosen[0].frame
    end_frame = chosen[-1].frame
    before = [k for k in track.keyframes if k.frame < start_frame - 0.0001]
    after = [k for k in track.keyframes if k.frame > end_frame + 0.0001]

    simplified = simplify(chosen, error_threshold, fit_strength, **kwargs)
    merged = sorted([*before, *simplified, *after], key=lambda k: k.frame)
    return TrackReplacement(track_id=track.id, keyframes=merged)
