"""Interactive drag gestures.

A gesture captures the sequence once when the pointer goes down and every
pointer move recomputes the result from that capture, as
``start + total_delta * weight``. Nothing accumulates between moves, so
hundreds of moves in one drag cannot drift, and cancelling simply means
discarding the gesture object.

Three gestures are provided:
- KeyDragGesture: move keys, keeping Bezier handles proportional
- KeyDragGesture with a soft radius: move keys and pull neighbours along
- HandleDragGesture: reshape a single handle
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any, Literal

from keyforge.core.curves.evaluation import ordered_keyframes
from keyforge.core.curves.models import (
    Keyframe,
    KeyframePatch,
    KeyRef,
    Sequence,
    SoftFalloff,
    Tangent,
)
from keyforge.core.curves.soft_selection import soft_selection_weights
from keyforge.core.curves.tangents import constrain_handles, gap_ratio, scale_handles

logger = logging.getLogger(__name__)

HandleSide = Literal["left", "right"]


@dataclass(frozen=True)
class _DraggedKey:
    ref: KeyRef
    start: Keyframe
    prev: Keyframe | None
    next: Keyframe | None


@dataclass
class _NeighborKey:
    ref: KeyRef
    start: Keyframe
    # Dragged keys this neighbour's handles reach toward
    right_reference: KeyRef | None = None
    left_reference: KeyRef | None = None


@dataclass
class KeyDragGesture:
    """Drag of one or more keyframes, computed from the drag-start snapshot.

    Create with ``KeyDragGesture.begin`` on pointer down, call ``move`` with
    the total delta since pointer down on every pointer move, and drop the
    object on pointer up.

    Example:
        >>> gesture = KeyDragGesture.begin(sequence, [KeyRef("pos.x", "k2")])
        >>> patches = gesture.move(delta_frame=4, delta_value=0.5)
    """

    snapshot: Sequence
    dragged: dict[KeyRef, _DraggedKey]
    neighbors: dict[KeyRef, _NeighborKey] = field(default_factory=dict)
    soft_radius: float = 0.0
    soft_falloff: SoftFalloff = SoftFalloff.LINEAR
    max_reach: float = 1.0
    soft_weights: dict[KeyRef, float] = field(default_factory=dict)

    @classmethod
    def begin(
        cls,
        sequence: Sequence,
        primary_keys: Iterable[KeyRef],
        *,
        soft_radius: float = 0.0,
        soft_falloff: SoftFalloff = SoftFalloff.LINEAR,
        max_reach: float = 1.0,
    ) -> KeyDragGesture:
        """Capture the drag-start state.

        Args:
            sequence: Live sequence at pointer down; it is deep-copied.
            primary_keys: Directly dragged keys. Unknown refs are ignored.
            soft_radius: Soft selection radius in frames; 0 disables it.
            soft_falloff: Soft selection falloff shape.
            max_reach: Handle frame offsets are limited to this fraction of
                the gap to the adjacent key.
        """
        snapshot = sequence.snapshot()
        primary = set(primary_keys)
        dragged: dict[KeyRef, _DraggedKey] = {}
        neighbors: dict[KeyRef, _NeighborKey] = {}

        for ref in sorted(primary):
            track = snapshot.get_track(ref.track_id)
            if track is None:
                continue
            keys = ordered_keyframes(track)
            idx = next((i for i, k in enumerate(keys) if k.id == ref.key_id), None)
            if idx is None:
                continue
            prev = keys[idx - 1] if idx > 0 else None
            nxt = keys[idx + 1] if idx < len(keys) - 1 else None
            dragged[ref] = _DraggedKey(ref=ref, start=keys[idx], prev=prev, next=nxt)

            if prev is not None and KeyRef(ref.track_id, prev.id) not in primary:
                n_ref = KeyRef(ref.track_id, prev.id)
                neighbors.setdefault(n_ref, _NeighborKey(ref=n_ref, start=prev)).right_reference = ref
            if nxt is not None and KeyRef(ref.track_id, nxt.id) not in primary:
                n_ref = KeyRef(ref.track_id, nxt.id)
                neighbors.setdefault(n_ref, _NeighborKey(ref=n_ref, start=nxt)).left_reference = ref

        soft_weights: dict[KeyRef, float] = {}
        if soft_radius > 0:
            for track_id in {ref.track_id for ref in dragged}:
                track = snapshot.require_track(track_id)
                on_track = {ref.key_id for ref in dragged if ref.track_id == track_id}
                weights = soft_selection_weights(track, on_track, soft_radius, soft_falloff)
                soft_weights.update({KeyRef(track_id, kid): w for kid, w in weights.items()})

        logger.debug(
            "Drag started: %d keys, %d neighbours, %d soft-weighted",
            len(dragged),
            len(neighbors),
            len(soft_weights),
        )
        return cls(
            snapshot=snapshot,
            dragged=dragged,
            neighbors=neighbors,
            soft_radius=soft_radius,
            soft_falloff=soft_falloff,
            max_reach=max_reach,
            soft_weights=soft_weights,
        )

    @property
    def is_soft(self) -> bool:
        return self.soft_radius > 0

    def _start_key(self, ref: KeyRef) -> Keyframe:
        return self.snapshot.require_track(ref.track_id).require_keyframe(ref.key_id)

    def _new_frame(self, ref: KeyRef, delta_frame: float) -> float:
        return float(max(0, round(self.dragged[ref].start.frame + delta_frame)))

    def move(self, delta_frame: float, delta_value: float) -> list[KeyframePatch]:
        """Patches for the gesture at a total offset from the drag start.

        Args:
            delta_frame: Total frame offset since pointer down.
            delta_value: Total value offset since pointer down.

        Returns:
            Patches positioning every affected key; applying them to the
            live sequence reproduces the same result for the same delta.
        """
        if self.is_soft:
            return self._soft_move(delta_frame, delta_value)
        return self._rigid_move(delta_frame, delta_value)

    def _soft_move(self, delta_frame: float, delta_value: float) -> list[KeyframePatch]:
        patches: list[KeyframePatch] = []
        for ref, weight in self.soft_weights.items():
            if ref in self.dragged:
                start = self.dragged[ref].start
                changes = {
                    "frame": self._new_frame(ref, delta_frame),
                    "value": start.value + delta_value,
                }
            else:
                start = self._start_key(ref)
                changes = {
                    "frame": round(max(0.0, start.frame + delta_frame * weight), 2),
                    "value": start.value + delta_value * weight,
                }
            patches.append(KeyframePatch(track_id=ref.track_id, key_id=ref.key_id, changes=changes))
        return patches

    def _position_after(self, key: Keyframe | None, track_id: str, delta_frame: float) -> Keyframe | None:
        """A neighbour as it sits after this move (dragged neighbours move too)."""
        if key is None:
            return None
        ref = KeyRef(track_id, key.id)
        if ref in self.dragged:
            return key.model_copy(update={"frame": self._new_frame(ref, delta_frame)})
        return key

    def _rigid_move(self, delta_frame: float, delta_value: float) -> list[KeyframePatch]:
        patches: list[KeyframePatch] = []

        for ref, item in self.dragged.items():
            start = item.start
            new_frame = self._new_frame(ref, delta_frame)
            changes: dict[str, Any] = {"frame": new_frame, "value": start.value + delta_value}

            prev = self._position_after(item.prev, ref.track_id, delta_frame)
            nxt = self._position_after(item.next, ref.track_id, delta_frame)

            scaled = scale_handles(start, item.prev, item.next, new_frame, prev, nxt)
            left = scaled.get("left_tangent", start.left_tangent)
            right = scaled.get("right_tangent", start.right_tangent)

            moved = start.model_copy(update={"frame": new_frame, "left_tangent": left, "right_tangent": right})
            constrained = constrain_handles(moved, prev, nxt, self.max_reach)
            left = constrained.get("left_tangent", left)
            right = constrained.get("right_tangent", right)

            if left is not None:
                changes["left_tangent"] = left
            if right is not None:
                changes["right_tangent"] = right
            patches.append(KeyframePatch(track_id=ref.track_id, key_id=ref.key_id, changes=changes))

        for n_ref, neighbor in self.neighbors.items():
            changes = self._neighbor_changes(neighbor, delta_frame)
            if changes:
                patches.append(KeyframePatch(track_id=n_ref.track_id, key_id=n_ref.key_id, changes=changes))

        return patches

    def _neighbor_changes(self, neighbor: _NeighborKey, delta_frame: float) -> dict[str, Any]:
        """Rescale an unmoved neighbour's handle that reaches toward a dragged key."""
        changes: dict[str, Any] = {}
        start = neighbor.start

        if neighbor.right_reference is not None and start.right_tangent is not None:
            dragged_start = self.dragged[neighbor.right_reference].start.frame
            dragged_now = self._new_frame(neighbor.right_reference, delta_frame)
            ratio = gap_ratio(dragged_start - start.frame, dragged_now - start.frame)
            scaled = start.right_tangent
            if ratio is not None and ratio > 0:
                scaled = scaled.scaled(ratio)
            changes["right_tangent"] = scaled

        if neighbor.left_reference is not None and start.left_tangent is not None:
            dragged_start = self.dragged[neighbor.left_reference].start.frame
            dragged_now = self._new_frame(neighbor.left_reference, delta_frame)
            ratio = gap_ratio(start.frame - dragged_start, start.frame - dragged_now)
            scaled = start.left_tangent
            if ratio is not None and ratio > 0:
                scaled = scaled.scaled(ratio)
            changes["left_tangent"] = scaled

        return changes


@dataclass(frozen=True)
class HandleDragGesture:
    """Drag of one Bezier handle of one keyframe."""

    ref: KeyRef
    side: HandleSide
    start: Keyframe
    initial_handle: Tangent

    @classmethod
    def begin(cls, sequence: Sequence, ref: KeyRef, side: HandleSide) -> HandleDragGesture:
        """Capture the handle at pointer down.

        Raises:
            TrackNotFoundError: If the track does not exist.
            KeyframeNotFoundError: If the keyframe does not exist.
        """
        key = sequence.require_track(ref.track_id).require_keyframe(ref.key_id)
        handle = key.left_tangent if side == "left" else key.right_tangent
        return cls(ref=ref, side=side, start=key, initial_handle=handle or Tangent())

    def move(
        self,
        handle_dx: float,
        handle_dy: float,
        *,
        lock_angle: bool = False,
        break_tangents: bool = False,
    ) -> KeyframePatch:
        """Patch placing the handle at (``handle_dx``, ``handle_dy``) from its key.

        Args:
            handle_dx: Handle frame offset proposed by the pointer.
            handle_dy: Handle value offset proposed by the pointer.
            lock_angle: Project the proposal onto the initial handle direction.
            break_tangents: Stop mirroring the opposite handle.
        """
        if lock_angle:
            v0 = self.initial_handle
            length0 = (v0.dx * v0.dx + v0.dy * v0.dy) ** 0.5
            if length0 > 0.0001:
                nx, ny = v0.dx / length0, v0.dy / length0
                projected = handle_dx * nx + handle_dy * ny
                handle_dx, handle_dy = nx * projected, ny * projected

        handle = Tangent(dx=handle_dx, dy=handle_dy)
        broken = break_tangents or self.start.broken_tangents
        changes: dict[str, Any] = {"auto_tangent": False}
        if broken != self.start.broken_tangents:
            changes["broken_tangents"] = broken

        if self.side == "left":
            changes["left_tangent"] = handle
            if not broken and self.start.right_tangent is not None:
                changes["right_tangent"] = handle.mirrored()
        else:
            changes["right_tangent"] = handle
            if not broken and self.start.left_tangent is not None:
                changes["left_tangent"] = handle.mirrored()

        return KeyframePatch(track_id=self.ref.track_id, key_id=self.ref.key_id, changes=changes)
