"""Rotation continuity (euler) filtering.

Angle tracks recorded from orientations wrap at ±π, producing spurious
full-turn jumps between adjacent keys. Unwrapping adds multiples of 2π so
no adjacent pair differs by more than π while every value stays congruent
to its original modulo 2π.

Whether a track holds angles comes from its ``semantic`` tag. Name-based
detection is available only through explicitly configured patterns.
"""

from __future__ import annotations

import logging
import math
import re
from collections.abc import Collection, Iterable

from keyforge.core.curves.evaluation import ordered_keyframes
from keyforge.core.curves.models import KeyframePatch, KeyRef, Track

logger = logging.getLogger(__name__)

CYCLE = 2.0 * math.pi

# Name heuristics of earlier versions of the tool; opt-in only
LEGACY_ANGLE_PATTERNS: tuple[str, ...] = (r"rotation|rot|phase|twist", r"param[C-F]")


def is_angle_track(track: Track, angle_patterns: Iterable[str] = ()) -> bool:
    """True if the track is tagged as an angle or its id matches a pattern."""
    if track.is_angle:
        return True
    return any(re.search(p, track.id, re.IGNORECASE) for p in angle_patterns)


def unwrap_values(values: list[float]) -> list[float]:
    """Remove jumps larger than π by shifting values in whole turns.

    Example:
        >>> [round(v, 3) for v in unwrap_values([0.0, 3.2, -3.2])]
        [0.0, -3.083, -3.2]
    """
    unwrapped = list(values)
    for i in range(1, len(unwrapped)):
        d = unwrapped[i] - unwrapped[i - 1]
        if abs(d) > math.pi:
            d -= round(d / CYCLE) * CYCLE
        unwrapped[i] = unwrapped[i - 1] + d
    return unwrapped


def track_needs_fix(track: Track, key_ids: Collection[str] | None = None) -> bool:
    """True if any adjacent pair of (optionally selected) keys jumps by more than π."""
    keys = ordered_keyframes(track)
    if key_ids is not None:
        keys = [k for k in keys if k.id in key_ids]
    return any(abs(b.value - a.value) > math.pi for a, b in zip(keys, keys[1:], strict=False))


def unwrap_track(track: Track) -> list[KeyframePatch]:
    """Value patches that unwrap one track; only changed keys are patched."""
    keys = ordered_keyframes(track)
    if len(keys) < 2:
        return []

    unwrapped = unwrap_values([k.value for k in keys])
    return [
        KeyframePatch(track_id=track.id, key_id=k.id, changes={"value": v})
        for k, v in zip(keys, unwrapped, strict=True)
        if abs(k.value - v) > 1e-9
    ]


def _selected_by_track(selection: Collection[KeyRef] | None) -> dict[str, set[str]] | None:
    if selection is None:
        return None
    by_track: dict[str, set[str]] = {}
    for ref in selection:
        by_track.setdefault(ref.track_id, set()).add(ref.key_id)
    return by_track


def needs_euler_filter(
    tracks: Iterable[Track],
    angle_patterns: Iterable[str] = (),
    selection: Collection[KeyRef] | None = None,
) -> bool:
    """Check whether any angle track would be changed by the euler filter.

    Args:
        tracks: Tracks to scan; non-angle tracks are ignored.
        angle_patterns: Optional regexes marking untagged tracks as angles.
        selection: If given, only these keys are scanned.
    """
    patterns = tuple(angle_patterns)
    selected = _selected_by_track(selection)
    for track in tracks:
        if not is_angle_track(track, patterns):
            continue
        if selected is not None and track.id not in selected:
            continue
        if track_needs_fix(track, selected[track.id] if selected is not None else None):
            return True
    return False


def apply_euler_filter(
    tracks: Iterable[Track],
    angle_patterns: Iterable[str] = (),
    selection: Collection[KeyRef] | None = None,
) -> list[KeyframePatch]:
    """Unwrap every angle track, returning value patches for changed keys.

    Args:
        tracks: Tracks to filter; non-angle tracks are left untouched.
        angle_patterns: Optional regexes marking untagged tracks as angles.
        selection: If given, only tracks owning a selected key are filtered.

    Returns:
        Patches for keys whose value changed.
    """
    patterns = tuple(angle_patterns)
    selected = _selected_by_track(selection)
    patches: list[KeyframePatch] = []
    for track in tracks:
        if not is_angle_track(track, patterns):
            continue
        if selected is not None and track.id not in selected:
            continue
        track_patches = unwrap_track(track)
        if track_patches:
            logger.debug("Euler filter: %d keys unwrapped on %s", len(track_patches), track.id)
        patches.extend(track_patches)
    return patches
