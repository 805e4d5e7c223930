"""Bezier handle math.

Stateless helpers for computing, constraining and rescaling keyframe
handles. All functions return new Tangent values or ``changes`` dicts
suitable for a KeyframePatch; nothing is mutated in place.
"""

from __future__ import annotations

import math
from typing import Any

from keyforge.core.curves.models import Interpolation, Keyframe, Tangent, TangentMode

# Handles reach one third of the interval for a standard cubic segment
TANGENT_WEIGHT = 1.0 / 3.0

# Outer handle length for keys without a neighbour on that side
EDGE_HANDLE_FRAMES = 10.0

MIN_GAP = 1e-5


def gap_ratio(old_gap: float, new_gap: float) -> float | None:
    """Ratio ``new_gap / old_gap``, or None when either gap is degenerate."""
    if abs(old_gap) <= MIN_GAP or abs(new_gap) <= MIN_GAP:
        return None
    return new_gap / old_gap


def calculate_tangents(
    key: Keyframe,
    prev: Keyframe | None,
    next_key: Keyframe | None,
    mode: TangentMode = TangentMode.AUTO,
) -> tuple[Tangent, Tangent]:
    """Compute automatic (left, right) handles from a key's neighbours.

    ``AUTO`` produces interval-weighted smooth tangents that flatten at
    peaks and valleys and limit overshoot. ``EASE`` produces flat handles.

    Args:
        key: Keyframe to compute handles for.
        prev: Previous keyframe, if any.
        next_key: Next keyframe, if any.
        mode: AUTO or EASE.

    Returns:
        Tuple of (left_tangent, right_tangent).

    Example:
        >>> k = Keyframe(id="k", frame=10, value=5)
        >>> left, right = calculate_tangents(k, None, None, TangentMode.EASE)
        >>> left.dx, right.dx
        (-10.0, 10.0)
    """
    if mode == TangentMode.EASE:
        lx = (key.frame - prev.frame) * TANGENT_WEIGHT if prev else EDGE_HANDLE_FRAMES
        rx = (next_key.frame - key.frame) * TANGENT_WEIGHT if next_key else EDGE_HANDLE_FRAMES
        return Tangent(dx=-lx, dy=0.0), Tangent(dx=rx, dy=0.0)

    if prev is None and next_key is None:
        return Tangent(dx=-EDGE_HANDLE_FRAMES, dy=0.0), Tangent(dx=EDGE_HANDLE_FRAMES, dy=0.0)

    if prev is None:
        assert next_key is not None
        span = next_key.frame - key.frame
        m = (next_key.value - key.value) / span if span else 0.0
        rx = span * TANGENT_WEIGHT
        return Tangent(dx=-EDGE_HANDLE_FRAMES, dy=0.0), Tangent(dx=rx, dy=rx * m)

    if next_key is None:
        span = key.frame - prev.frame
        m = (key.value - prev.value) / span if span else 0.0
        lx = span * TANGENT_WEIGHT
        return Tangent(dx=-lx, dy=-lx * m), Tangent(dx=EDGE_HANDLE_FRAMES, dy=0.0)

    dt1 = key.frame - prev.frame
    dt2 = next_key.frame - key.frame
    m1 = (key.value - prev.value) / dt1 if dt1 else 0.0
    m2 = (next_key.value - key.value) / dt2 if dt2 else 0.0
    lx = dt1 * TANGENT_WEIGHT
    rx = dt2 * TANGENT_WEIGHT

    # Peak or valley: flat handles prevent overshoot
    if m1 * m2 <= 0:
        return Tangent(dx=-lx, dy=0.0), Tangent(dx=rx, dy=0.0)

    dt_total = next_key.frame - prev.frame
    m = (next_key.value - prev.value) / dt_total if dt_total else 0.0
    limit = 3.0 * min(abs(m1), abs(m2))
    if abs(m) > limit:
        m = math.copysign(limit, m)

    return Tangent(dx=-lx, dy=-lx * m), Tangent(dx=rx, dy=rx * m)


def _limit_handle(handle: Tangent, gap: float, max_reach: float, outward_sign: float) -> Tangent | None:
    """Limit one handle to ``max_reach * gap`` frames and keep it on its own side."""
    if gap <= 0.001:
        return None
    limited = handle
    max_len = gap * max_reach
    if abs(handle.dx) > max_len:
        limited = handle.scaled(max_len / abs(handle.dx))
    if limited.dx * outward_sign < 0:
        limited = Tangent(dx=0.0, dy=limited.dy)
    return limited if limited != handle else None


def constrain_handles(
    key: Keyframe,
    prev: Keyframe | None,
    next_key: Keyframe | None,
    max_reach: float = TANGENT_WEIGHT,
) -> dict[str, Any]:
    """Keep a key's handles from reaching past its neighbours.

    Each handle's frame offset is limited to ``max_reach`` of the gap to the
    adjacent key (scaling the value offset proportionally), and a handle
    never points across its own key.

    Returns:
        Changes for the key; empty when nothing needed constraining.
    """
    changes: dict[str, Any] = {}

    if key.left_tangent is not None and prev is not None:
        limited = _limit_handle(key.left_tangent, key.frame - prev.frame, max_reach, -1.0)
        if limited is not None:
            changes["left_tangent"] = limited

    if key.right_tangent is not None and next_key is not None:
        limited = _limit_handle(key.right_tangent, next_key.frame - key.frame, max_reach, 1.0)
        if limited is not None:
            changes["right_tangent"] = limited

    return changes


def scale_handles(
    key: Keyframe,
    prev: Keyframe | None,
    next_key: Keyframe | None,
    new_frame: float,
    moved_prev: Keyframe | None = None,
    moved_next: Keyframe | None = None,
) -> dict[str, Any]:
    """Rescale a key's handles after it moved from ``key.frame`` to ``new_frame``.

    Both handle components scale by the change in gap to the neighbour on
    that side, so the handle angle is preserved. ``prev`` and ``next_key``
    are the neighbours before the move; ``moved_prev`` and ``moved_next``
    give their positions afterwards when they moved as well. A handle is
    left alone when its gap collapses or flips sign.
    """
    changes: dict[str, Any] = {}
    if key.interpolation != Interpolation.BEZIER:
        return changes

    if prev is not None and key.left_tangent is not None:
        prev_now = moved_prev if moved_prev is not None else prev
        ratio = gap_ratio(key.frame - prev.frame, new_frame - prev_now.frame)
        if ratio is not None and ratio > 0:
            changes["left_tangent"] = key.left_tangent.scaled(ratio)

    if next_key is not None and key.right_tangent is not None:
        next_now = moved_next if moved_next is not None else next_key
        ratio = gap_ratio(next_key.frame - key.frame, next_now.frame - new_frame)
        if ratio is not None and ratio > 0:
            changes["right_tangent"] = key.right_tangent.scaled(ratio)

    return changes


def unify_tangents(key: Keyframe) -> Tangent | None:
    """Right handle re-aligned to mirror the left one, keeping its own length."""
    left, right = key.left_tangent, key.right_tangent
    if left is None or right is None:
        return right
    right_len = math.hypot(right.dx, right.dy)
    left_len = max(0.001, math.hypot(left.dx, left.dy))
    return left.mirrored().scaled(right_len / left_len)


def tangent_stats(handle: Tangent | None, time_dist: float | None, is_left: bool) -> tuple[float, float]:
    """Express a handle as (angle in degrees, length in percent of the interval).

    Left handles are flipped so both sides report the outgoing direction.
    Without a usable interval the length falls back to ``|dx| * 10``.
    """
    if handle is None:
        return 0.0, 0.0

    vx = -handle.dx if is_left else handle.dx
    vy = -handle.dy if is_left else handle.dy
    angle = math.degrees(math.atan2(vy, vx))

    if time_dist and abs(time_dist) > 1e-9:
        length_pct = abs(handle.dx) / abs(time_dist) * 100.0
    else:
        length_pct = abs(handle.dx) * 10.0
    return angle, length_pct


def tangent_from_stats(is_left: bool, angle: float, length_pct: float, time_dist: float) -> Tangent:
    """Inverse of ``tangent_stats``; the angle is clamped to ±89.9 degrees."""
    safe_angle = max(-89.9, min(89.9, angle))
    rad = math.radians(safe_angle)
    dist = 10.0 if abs(time_dist) < 0.0001 else abs(time_dist)

    sign = -1.0 if is_left else 1.0
    dx = sign * (length_pct / 100.0) * dist
    dy = abs(dx) * math.tan(rad) * sign
    return Tangent(dx=dx, dy=dy)
