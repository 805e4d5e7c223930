"""Interactive value filters.

Two scrub-style filters driven by a radius the user drags out:

- ``kernel_smooth``: gaussian weighted moving average over neighbouring keys
- ``spring_bounce``: a damped spring chases the curve, adding overshoot

Both read a gesture-start track and return value patches, so the radius
can change on every pointer move without the result compounding.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Collection

import numpy as np

from keyforge.core.curves.evaluation import evaluate_sorted, ordered_keyframes
from keyforge.core.curves.models import Keyframe, KeyframePatch, Track
from keyforge.core.curves.smoothing import CHANGE_EPSILON, contiguous_runs

logger = logging.getLogger(__name__)

TENSION_BASE = 0.5
FRICTION_BASE = 0.6

# Radius at which the spring reaches its loosest setting
SPRING_RADIUS_LIMIT = 5.0

# Frame tolerance when matching spring steps to keys
KEY_MATCH_TOLERANCE = 0.1


def gaussian_kernel(radius: float) -> np.ndarray:
    """Normalised gaussian weights for offsets ``-ceil(radius)..ceil(radius)``.

    Example:
        >>> gaussian_kernel(1.0).round(3).tolist()
        [0.04, 0.919, 0.04]
    """
    sigma = max(0.1, radius / 2.5)
    half_width = math.ceil(radius)
    offsets = np.arange(-half_width, half_width + 1, dtype=float)
    weights = np.exp(-(offsets * offsets) / (2.0 * sigma * sigma))
    return weights / weights.sum()


def _current_values(current: Track | None) -> dict[str, float]:
    if current is None:
        return {}
    return {k.id: k.value for k in current.keyframes}


def restore_values(
    source: Track,
    current: Track,
    selected_key_ids: Collection[str] | None = None,
    epsilon: float = CHANGE_EPSILON,
) -> list[KeyframePatch]:
    """Patches putting keys of ``current`` back to their ``source`` values."""
    selected = set(selected_key_ids) if selected_key_ids else None
    now = _current_values(current)
    patches: list[KeyframePatch] = []
    for key in source.keyframes:
        if selected is not None and key.id not in selected:
            continue
        if key.id in now and abs(now[key.id] - key.value) > epsilon:
            patches.append(KeyframePatch(track_id=source.id, key_id=key.id, changes={"value": key.value}))
    return patches


def kernel_smooth(
    track: Track,
    selected_key_ids: Collection[str] | None = None,
    radius: float = 1.0,
    *,
    current: Track | None = None,
    epsilon: float = CHANGE_EPSILON,
) -> list[KeyframePatch]:
    """Gaussian-smooth key values over neighbouring keys.

    Each contiguous block of selected keys is smoothed independently; the
    kernel reads unselected neighbours but never moves them. Values past the
    ends of the track repeat the end values.

    Args:
        track: Gesture-start track the values are read from.
        selected_key_ids: Keys to smooth; None or empty smooths every key.
        radius: Kernel radius in keys. 0 restores the start values.
        current: Live track the patches are compared against. Defaults to
            ``track``.
        epsilon: Minimum value change worth a patch.

    Returns:
        Value patches for keys that changed.
    """
    radius = abs(radius)
    if radius == 0:
        return restore_values(track, current, selected_key_ids, epsilon) if current is not None else []

    keys = ordered_keyframes(track)
    if len(keys) < 2:
        return []

    if selected_key_ids:
        selected = set(selected_key_ids)
        indices = [i for i, k in enumerate(keys) if k.id in selected]
    else:
        indices = list(range(len(keys)))

    kernel = gaussian_kernel(radius)
    half_width = len(kernel) // 2
    values = np.array([k.value for k in keys], dtype=float)
    padded = np.pad(values, half_width, mode="edge")
    smoothed = np.convolve(padded, kernel, mode="valid")

    now = _current_values(current) if current is not None else {k.id: k.value for k in keys}
    patches: list[KeyframePatch] = []
    for block in contiguous_runs(indices):
        for idx in block:
            key = keys[idx]
            new_value = float(smoothed[idx])
            if key.id in now and abs(new_value - now[key.id]) > epsilon:
                patches.append(KeyframePatch(track_id=track.id, key_id=key.id, changes={"value": new_value}))

    logger.debug("Kernel smoothed %s at radius %.2f: %d keys changed", track.id, radius, len(patches))
    return patches


def _shortest(diff: float) -> float:
    if diff > math.pi:
        return diff - 2.0 * math.pi
    if diff < -math.pi:
        return diff + 2.0 * math.pi
    return diff


def _key_at(keys: list[Keyframe], frame: float) -> Keyframe | None:
    return next((k for k in keys if abs(k.frame - frame) < KEY_MATCH_TOLERANCE), None)


def spring_bounce(
    track: Track,
    selected_key_ids: Collection[str] | None = None,
    radius: float = 1.0,
    *,
    tension_base: float = TENSION_BASE,
    friction_base: float = FRICTION_BASE,
    is_angle: bool | None = None,
) -> list[KeyframePatch]:
    """Rewrite selected keys with a damped spring following the curve.

    The spring steps one frame at a time from the first key to the last,
    pulled toward the evaluated curve. Larger radii loosen it (lower tension
    and friction) for more overshoot. Unselected keys re-anchor the spring
    at their own value.

    Args:
        track: Gesture-start track.
        selected_key_ids: Keys to rewrite; None or empty rewrites every key.
        radius: Looseness; clamped to 5.
        tension_base: Tension at radius 0.
        friction_base: Friction at radius 0.
        is_angle: Follow angles along the shortest path. Defaults to the
            track's semantic tag.

    Returns:
        Value patches for the rewritten keys.
    """
    keys = ordered_keyframes(track)
    if len(keys) < 2:
        return []

    angle = track.is_angle if is_angle is None else is_angle
    selected = set(selected_key_ids) if selected_key_ids else None

    t = min(abs(radius), SPRING_RADIUS_LIMIT) / SPRING_RADIUS_LIMIT
    tension = tension_base * (1.0 - t * 0.9)
    friction = friction_base * (1.0 - t * 0.8)

    def step_toward(pos: float, frame: float) -> float:
        diff = evaluate_sorted(keys, frame) - pos
        return _shortest(diff) if angle else diff

    start_frame = keys[0].frame
    end_frame = keys[-1].frame
    pos = keys[0].value
    vel = step_toward(pos, start_frame + 1.0)

    patches: list[KeyframePatch] = []
    frame = start_frame
    while frame <= end_frame:
        force = step_toward(pos, frame) * tension
        vel += force - vel * friction
        pos += vel

        key = _key_at(keys, frame)
        if key is not None:
            if selected is None or key.id in selected:
                patches.append(KeyframePatch(track_id=track.id, key_id=key.id, changes={"value": pos}))
            else:
                pos = key.value
                vel = step_toward(pos, frame + 1.0)
        frame += 1.0

    logger.debug(
        "Spring bounce on %s: tension=%.3f friction=%.3f, %d keys rewritten",
        track.id,
        tension,
        friction,
        len(patches),
    )
    return patches
