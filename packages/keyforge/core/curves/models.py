"""Keyframe curve data model.

This module defines the animation primitives every curve algorithm works on:
- Tangent: a relative (frame offset, value offset) Bezier handle
- Keyframe: a timed value sample with optional handles
- Track: an ordered list of keyframes driving one parameter
- Sequence: the collection of tracks owned by the host store
- KeyframePatch / TrackReplacement: the outputs of batch algorithms

Keyframes and tangents are immutable; edits produce copies via
``model_copy(update=...)``. Serialisation uses the camelCase field names
of the persisted sequence format.
"""

from __future__ import annotations

from enum import Enum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from keyforge.core.errors import KeyframeNotFoundError, TrackNotFoundError


class Interpolation(str, Enum):
    """Interpolation mode of the segment that starts at a keyframe."""

    STEP = "Step"
    LINEAR = "Linear"
    BEZIER = "Bezier"


class TrackSemantic(str, Enum):
    """What the values of a track represent."""

    SCALAR = "scalar"
    ANGLE = "angle"  # radians, eligible for euler unwrapping


class SoftFalloff(str, Enum):
    """Falloff shapes for soft selection."""

    LINEAR = "Linear"
    DOME = "Dome"
    PINPOINT = "Pinpoint"
    S_CURVE = "S-Curve"


class TangentMode(str, Enum):
    """Tangent editing modes applied to selected keys."""

    AUTO = "Auto"
    EASE = "Ease"
    SPLIT = "Split"
    UNIFIED = "Unified"


class KeyRef(NamedTuple):
    """Reference to a keyframe within a sequence."""

    track_id: str
    key_id: str


class _CurveModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Tangent(BaseModel):
    """Bezier handle relative to its keyframe.

    Attributes:
        dx: Frame offset from the owning keyframe.
        dy: Value offset from the owning keyframe.

    Example:
        >>> Tangent(dx=3.0, dy=1.5).mirrored()
        Tangent(dx=-3.0, dy=-1.5)
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    dx: float = Field(default=0.0, alias="x")
    dy: float = Field(default=0.0, alias="y")

    def mirrored(self) -> Tangent:
        """Return the handle pointing the opposite way."""
        return Tangent(dx=-self.dx, dy=-self.dy)

    def scaled(self, ratio: float) -> Tangent:
        """Scale both components, preserving the handle angle."""
        return Tangent(dx=self.dx * ratio, dy=self.dy * ratio)


class Keyframe(_CurveModel):
    """A single animation key.

    Tangents are relative offsets, not absolute points. Unless
    ``broken_tangents`` is set, ``left_tangent`` mirrors ``right_tangent``.
    """

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str = Field(..., min_length=1)
    frame: float = Field(..., ge=0.0)
    value: float
    interpolation: Interpolation = Interpolation.BEZIER
    left_tangent: Tangent | None = None
    right_tangent: Tangent | None = None
    broken_tangents: bool = False
    auto_tangent: bool = False


class Track(_CurveModel):
    """Ordered keyframes driving one animated parameter."""

    id: str = Field(..., min_length=1)
    label: str = ""
    keyframes: list[Keyframe] = Field(default_factory=list)
    semantic: TrackSemantic = TrackSemantic.SCALAR
    hidden: bool = False
    locked: bool = False

    def sorted_keyframes(self) -> list[Keyframe]:
        """Keyframes in ascending frame order."""
        return sorted(self.keyframes, key=lambda k: k.frame)

    def find_keyframe(self, key_id: str) -> Keyframe | None:
        return next((k for k in self.keyframes if k.id == key_id), None)

    def require_keyframe(self, key_id: str) -> Keyframe:
        """Return the keyframe with ``key_id``.

        Raises:
            KeyframeNotFoundError: If the track has no such keyframe.
        """
        key = self.find_keyframe(key_id)
        if key is None:
            raise KeyframeNotFoundError(f"Keyframe '{key_id}' not found on track '{self.id}'")
        return key

    @property
    def is_angle(self) -> bool:
        return self.semantic == TrackSemantic.ANGLE


class Sequence(_CurveModel):
    """All animated tracks of a scene.

    Example:
        >>> seq = Sequence.from_dict({"tracks": {"a": {"id": "a", "keyframes": []}}})
        >>> seq.require_track("a").label
        ''
    """

    duration_frames: int = Field(default=300, ge=1)
    fps: int = Field(default=30, ge=1)
    tracks: dict[str, Track] = Field(default_factory=dict)

    def get_track(self, track_id: str) -> Track | None:
        return self.tracks.get(track_id)

    def require_track(self, track_id: str) -> Track:
        """Return the track with ``track_id``.

        Raises:
            TrackNotFoundError: If the sequence has no such track.
        """
        track = self.tracks.get(track_id)
        if track is None:
            raise TrackNotFoundError(f"Track '{track_id}' not found")
        return track

    def snapshot(self) -> Sequence:
        """Deep copy suitable as a gesture-start reference."""
        return self.model_copy(deep=True)

    def to_dict(self) -> dict[str, Any]:
        """Persisted shape of the sequence (camelCase keys, unset tangents omitted)."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Sequence:
        return cls.model_validate(data)


class KeyframePatch(BaseModel):
    """Field changes for one existing keyframe.

    Attributes:
        track_id: Track owning the keyframe.
        key_id: Keyframe to change.
        changes: Keyframe field names (snake_case) mapped to new values.
    """

    model_config = ConfigDict(frozen=True)

    track_id: str
    key_id: str
    changes: dict[str, Any] = Field(default_factory=dict)

    @property
    def ref(self) -> KeyRef:
        return KeyRef(self.track_id, self.key_id)


class TrackReplacement(BaseModel):
    """A full replacement keyframe list for one track."""

    model_config = ConfigDict(frozen=True)

    track_id: str
    keyframes: list[Keyframe]
