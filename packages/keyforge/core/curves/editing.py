"""Sequence write paths.

Pure functions that take a Sequence and return a new one (or patches to
apply to one). The host store owns history and calls these between
snapshots; nothing here mutates its input.

Unknown track or key ids are ignored rather than raised, so a stale patch
from a cancelled gesture can never break the store.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Collection, Iterable
from typing import Any

from keyforge.core.curves.evaluation import ordered_keyframes
from keyforge.core.curves.models import (
    Interpolation,
    Keyframe,
    KeyframePatch,
    KeyRef,
    Sequence,
    Tangent,
    TangentMode,
    Track,
    TrackReplacement,
    TrackSemantic,
)
from keyforge.core.curves.tangents import calculate_tangents, constrain_handles, unify_tangents

logger = logging.getLogger(__name__)

# Keys closer than this many frames are the same key
FRAME_TOLERANCE = 0.001

# A new last key pulls its predecessor's outgoing handle to this share of the gap
EXTEND_HANDLE_SHARE = 0.3


def _with_tracks(sequence: Sequence, tracks: dict[str, Track]) -> Sequence:
    return sequence.model_copy(update={"tracks": tracks})


def _with_keyframes(sequence: Sequence, track: Track, keyframes: list[Keyframe]) -> Sequence:
    tracks = dict(sequence.tracks)
    tracks[track.id] = track.model_copy(update={"keyframes": keyframes})
    return _with_tracks(sequence, tracks)


def _patched(key: Keyframe, changes: dict[str, Any]) -> Keyframe:
    if not changes:
        return key
    updates = dict(changes)
    if updates.get("interpolation") == Interpolation.BEZIER and key.interpolation != Interpolation.BEZIER:
        updates["auto_tangent"] = True
    return Keyframe.model_validate({**key.model_dump(), **updates})


def apply_patches(sequence: Sequence, patches: Iterable[KeyframePatch]) -> Sequence:
    """Apply keyframe patches, returning a new sequence.

    Patches are applied in order; later patches to the same key win. Touched
    tracks are re-sorted by frame. Switching a key to Bezier turns its
    auto tangents on.

    Example:
        >>> patch = KeyframePatch(track_id="a", key_id="k1", changes={"value": 2.0})
        >>> seq = apply_patches(seq, [patch])
    """
    by_track: dict[str, dict[str, dict[str, Any]]] = {}
    for patch in patches:
        by_track.setdefault(patch.track_id, {}).setdefault(patch.key_id, {}).update(patch.changes)

    tracks = dict(sequence.tracks)
    for track_id, key_changes in by_track.items():
        track = tracks.get(track_id)
        if track is None:
            logger.debug("Ignoring patches for unknown track %s", track_id)
            continue
        keyframes = [_patched(k, key_changes.get(k.id, {})) for k in track.keyframes]
        keyframes.sort(key=lambda k: k.frame)
        tracks[track_id] = track.model_copy(update={"keyframes": keyframes})
    return _with_tracks(sequence, tracks)


def replace_keyframes(sequence: Sequence, replacements: Iterable[TrackReplacement]) -> Sequence:
    """Substitute whole keyframe lists produced by simplify or bake."""
    tracks = dict(sequence.tracks)
    for replacement in replacements:
        track = tracks.get(replacement.track_id)
        if track is None:
            continue
        keyframes = sorted(replacement.keyframes, key=lambda k: k.frame)
        tracks[replacement.track_id] = track.model_copy(update={"keyframes": keyframes})
    return _with_tracks(sequence, tracks)


def add_track(
    sequence: Sequence,
    track_id: str,
    label: str = "",
    semantic: TrackSemantic = TrackSemantic.SCALAR,
) -> Sequence:
    """Add an empty track; an existing track with the same id is kept."""
    if track_id in sequence.tracks:
        return sequence
    tracks = dict(sequence.tracks)
    tracks[track_id] = Track(id=track_id, label=label, semantic=semantic)
    return _with_tracks(sequence, tracks)


def remove_track(sequence: Sequence, track_id: str) -> Sequence:
    if track_id not in sequence.tracks:
        return sequence
    tracks = {tid: t for tid, t in sequence.tracks.items() if tid != track_id}
    return _with_tracks(sequence, tracks)


def infer_interpolation(keyframes: Iterable[Keyframe], frame: float) -> Interpolation:
    """Interpolation of the nearest key before ``frame``; Linear when there is none."""
    earlier = [k for k in keyframes if k.frame < frame]
    if not earlier:
        return Interpolation.LINEAR
    return max(earlier, key=lambda k: k.frame).interpolation


def update_neighbors(sorted_keys: list[Keyframe], idx: int) -> list[Keyframe]:
    """Refresh the handles of the keys either side of a newly inserted key.

    Auto-tangent neighbours get recomputed tangents; others have their
    handles constrained to the new gap. When the new key is the last one,
    the previous key's outgoing handle is extended to at least 30% of the
    gap so the curve does not overshoot into the new key.

    Args:
        sorted_keys: Keys in frame order, including the new key.
        idx: Index of the new key.

    Returns:
        A new list with updated neighbours.
    """
    keys = list(sorted_keys)
    new_key = keys[idx]

    prev_idx = idx - 1
    if prev_idx >= 0 and keys[prev_idx].interpolation == Interpolation.BEZIER:
        prev = keys[prev_idx]
        before_prev = keys[prev_idx - 1] if prev_idx > 0 else None
        if prev.auto_tangent:
            left, right = calculate_tangents(prev, before_prev, new_key)
            prev = prev.model_copy(update={"left_tangent": left, "right_tangent": right})
        else:
            prev = prev.model_copy(update=constrain_handles(prev, before_prev, new_key))

        gap = new_key.frame - prev.frame
        if idx == len(keys) - 1 and gap > 0.0001:
            target_dx = gap * EXTEND_HANDLE_SHARE
            current = prev.right_tangent or Tangent(dx=10.0, dy=0.0)
            if current.dx < target_dx:
                ratio = target_dx / max(0.0001, abs(current.dx))
                prev = prev.model_copy(update={"right_tangent": Tangent(dx=target_dx, dy=current.dy * ratio)})
        keys[prev_idx] = prev

    next_idx = idx + 1
    if next_idx < len(keys) and keys[next_idx].interpolation == Interpolation.BEZIER:
        nxt = keys[next_idx]
        after_next = keys[next_idx + 1] if next_idx + 1 < len(keys) else None
        if nxt.auto_tangent:
            left, right = calculate_tangents(nxt, new_key, after_next)
            nxt = nxt.model_copy(update={"left_tangent": left, "right_tangent": right})
        else:
            nxt = nxt.model_copy(update=constrain_handles(nxt, new_key, after_next))
        keys[next_idx] = nxt

    return keys


def add_keyframe(
    sequence: Sequence,
    track_id: str,
    frame: float,
    value: float,
    interpolation: Interpolation | None = None,
) -> Sequence:
    """Insert a keyframe, replacing any key at the same frame.

    Without an explicit interpolation the mode is inherited from the
    previous key. Bezier keys get automatic tangents, and the neighbours'
    handles are refreshed around the new key.

    Args:
        sequence: Sequence to edit.
        track_id: Track to key; unknown tracks leave the sequence unchanged.
        frame: Frame of the new key.
        value: Value of the new key.
        interpolation: Explicit interpolation mode.

    Returns:
        New sequence.
    """
    track = sequence.get_track(track_id)
    if track is None:
        logger.debug("add_keyframe ignored: unknown track %s", track_id)
        return sequence

    mode = interpolation or infer_interpolation(track.keyframes, frame)
    new_key = Keyframe(
        id=uuid.uuid4().hex,
        frame=frame,
        value=value,
        interpolation=mode,
        auto_tangent=mode == Interpolation.BEZIER,
    )

    others = [k for k in track.keyframes if abs(k.frame - frame) > FRAME_TOLERANCE]
    keys = sorted([*others, new_key], key=lambda k: k.frame)
    idx = next(i for i, k in enumerate(keys) if k.id == new_key.id)

    if mode == Interpolation.BEZIER:
        prev = keys[idx - 1] if idx > 0 else None
        nxt = keys[idx + 1] if idx < len(keys) - 1 else None
        left, right = calculate_tangents(new_key, prev, nxt)
        keys[idx] = new_key.model_copy(update={"left_tangent": left, "right_tangent": right})

    return _with_keyframes(sequence, track, update_neighbors(keys, idx))


def remove_keyframe(sequence: Sequence, track_id: str, key_id: str) -> Sequence:
    track = sequence.get_track(track_id)
    if track is None:
        return sequence
    return _with_keyframes(sequence, track, [k for k in track.keyframes if k.id != key_id])


def remove_keyframes(sequence: Sequence, refs: Collection[KeyRef]) -> Sequence:
    """Remove every referenced keyframe."""
    doomed = set(refs)
    tracks = {
        tid: t.model_copy(update={"keyframes": [k for k in t.keyframes if KeyRef(tid, k.id) not in doomed]})
        for tid, t in sequence.tracks.items()
    }
    return _with_tracks(sequence, tracks)


def record_batch(
    sequence: Sequence,
    frame: float,
    values: Iterable[tuple[str, float]],
    interpolation: Interpolation | None = None,
) -> Sequence:
    """Write one recorded value per track at ``frame``.

    Built for recording forward in time: a frame past the last key is
    appended, a frame on the last key overwrites it (keeping its id), and
    anything earlier is inserted in order, replacing a key at that frame.
    Missing tracks are created. Handles of existing keys are left alone.

    Args:
        sequence: Sequence to write into.
        frame: Frame being recorded.
        values: (track_id, value) pairs.
        interpolation: Mode of the new keys; defaults to Linear.

    Returns:
        New sequence.

    Example:
        >>> seq = record_batch(seq, 12, [("pos.x", 0.5), ("pos.y", 1.0)])
    """
    mode = interpolation or Interpolation.LINEAR
    tracks = dict(sequence.tracks)

    for track_id, value in values:
        track = tracks.get(track_id)
        if track is None:
            track = Track(id=track_id, label=track_id)

        new_key = Keyframe(
            id=uuid.uuid4().hex,
            frame=frame,
            value=value,
            interpolation=mode,
            auto_tangent=mode == Interpolation.BEZIER,
        )
        keyframes = list(track.keyframes)
        last = keyframes[-1] if keyframes else None

        if last is not None and abs(frame - last.frame) < FRAME_TOLERANCE:
            keyframes[-1] = new_key.model_copy(update={"id": last.id})
        elif last is None or frame > last.frame:
            keyframes.append(new_key)
        else:
            keyframes = [k for k in keyframes if abs(k.frame - frame) > FRAME_TOLERANCE]
            keyframes.append(new_key)
            keyframes.sort(key=lambda k: k.frame)

        tracks[track_id] = track.model_copy(update={"keyframes": keyframes})

    return _with_tracks(sequence, tracks)


def set_tangent_mode(
    sequence: Sequence,
    selection: Iterable[KeyRef],
    mode: TangentMode,
) -> list[KeyframePatch]:
    """Patches switching the selected keys to a tangent mode.

    - ``Auto`` / ``Ease``: recompute both handles from the neighbours
    - ``Split``: break the handles so they move independently
    - ``Unified``: re-align the right handle to mirror the left one
    """
    patches: list[KeyframePatch] = []
    for ref in selection:
        track = sequence.get_track(ref.track_id)
        if track is None:
            continue
        keys = ordered_keyframes(track)
        idx = next((i for i, k in enumerate(keys) if k.id == ref.key_id), None)
        if idx is None:
            continue
        key = keys[idx]

        changes: dict[str, Any]
        if mode == TangentMode.SPLIT:
            changes = {"broken_tangents": True, "auto_tangent": False}
        elif mode == TangentMode.UNIFIED:
            changes = {"right_tangent": unify_tangents(key), "broken_tangents": False, "auto_tangent": False}
        else:
            prev = keys[idx - 1] if idx > 0 else None
            nxt = keys[idx + 1] if idx < len(keys) - 1 else None
            left, right = calculate_tangents(key, prev, nxt, mode)
            changes = {
                "left_tangent": left,
                "right_tangent": right,
                "auto_tangent": mode == TangentMode.AUTO,
                "broken_tangents": False,
            }
        patches.append(KeyframePatch(track_id=ref.track_id, key_id=ref.key_id, changes=changes))
    return patches
