"""Soft selection weighting.

Distance-based falloff that lets an edit on directly selected keys pull
nearby unselected keys along with it.
"""

from __future__ import annotations

import math
from collections.abc import Collection, Iterable

from keyforge.core.curves.models import SoftFalloff, Track


def falloff(distance: float, radius: float, shape: SoftFalloff = SoftFalloff.LINEAR) -> float:
    """Weight in [0, 1] for a key ``distance`` frames from a selected key.

    The weight is 1 at distance 0, non-increasing with distance and 0 at or
    beyond ``radius``.

    Example:
        >>> falloff(5.0, 10.0, SoftFalloff.LINEAR)
        0.5
        >>> falloff(12.0, 10.0)
        0.0
    """
    distance = abs(distance)
    if distance == 0.0:
        return 1.0
    if distance >= radius:
        return 0.0
    t = distance / radius

    if shape == SoftFalloff.DOME:
        return math.sqrt(1.0 - t * t)
    if shape == SoftFalloff.PINPOINT:
        return (1.0 - t) ** 4
    if shape == SoftFalloff.S_CURVE:
        return 0.5 * (1.0 + math.cos(t * math.pi))
    return 1.0 - t


def soft_weight(
    frame: float,
    primary_frames: Iterable[float],
    radius: float,
    shape: SoftFalloff = SoftFalloff.LINEAR,
) -> float:
    """Strongest falloff weight from any primary key."""
    return max((falloff(frame - p, radius, shape) for p in primary_frames), default=0.0)


def soft_selection_weights(
    track: Track,
    primary_key_ids: Collection[str],
    radius: float,
    shape: SoftFalloff = SoftFalloff.LINEAR,
) -> dict[str, float]:
    """Weights for every key on a track that an edit should move.

    Primary keys always weigh 1. Other keys get the maximum falloff over all
    primary keys on the same track; keys with weight 0 are omitted.

    Args:
        track: Track at gesture start.
        primary_key_ids: Ids of directly manipulated keys on this track.
        radius: Falloff radius in frames.
        shape: Falloff curve shape.

    Returns:
        Mapping of key id to weight.
    """
    primary_frames = [k.frame for k in track.keyframes if k.id in primary_key_ids]
    weights: dict[str, float] = {}
    for key in track.keyframes:
        if key.id in primary_key_ids:
            weights[key.id] = 1.0
            continue
        if radius <= 0:
            continue
        w = soft_weight(key.frame, primary_frames, radius, shape)
        if w > 0.0:
            weights[key.id] = w
    return weights
