"""Shared pytest fixtures for keyforge tests."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

import pytest

from keyforge.core.curves.models import (
    Interpolation,
    Keyframe,
    Sequence,
    Tangent,
    Track,
    TrackSemantic,
)

KeyFactory = Callable[..., Keyframe]

# ============================================================================
# Path Fixtures
# ============================================================================


@pytest.fixture
def project_root() -> Path:
    """Get project root directory."""
    return Path(__file__).parent.parent


# ============================================================================
# Keyframe Fixtures
# ============================================================================


@pytest.fixture
def make_key() -> KeyFactory:
    """Factory for keyframes with optional (dx, dy) tangent tuples."""

    def _make(
        key_id: str,
        frame: float,
        value: float,
        interpolation: Interpolation = Interpolation.LINEAR,
        left: tuple[float, float] | None = None,
        right: tuple[float, float] | None = None,
        **kwargs: object,
    ) -> Keyframe:
        return Keyframe(
            id=key_id,
            frame=frame,
            value=value,
            interpolation=interpolation,
            left_tangent=Tangent(dx=left[0], dy=left[1]) if left else None,
            right_tangent=Tangent(dx=right[0], dy=right[1]) if right else None,
            **kwargs,
        )

    return _make


@pytest.fixture
def linear_ramp_track(make_key: KeyFactory) -> Track:
    """Linear ramp: frames [0, 10, 20], values [0, 10, 20]."""
    return Track(
        id="pos.x",
        label="Position X",
        keyframes=[
            make_key("r0", 0, 0.0),
            make_key("r1", 10, 10.0),
            make_key("r2", 20, 20.0),
        ],
    )


@pytest.fixture
def bezier_track(make_key: KeyFactory) -> Track:
    """Three Bezier keys forming a hill with mirrored handles."""
    return Track(
        id="pos.y",
        label="Position Y",
        keyframes=[
            make_key("a", 0, 0.0, Interpolation.BEZIER, left=(-3, 0), right=(3, 0)),
            make_key("b", 10, 10.0, Interpolation.BEZIER, left=(-3, -3), right=(3, 3)),
            make_key("c", 20, 0.0, Interpolation.BEZIER, left=(-3, 0), right=(3, 0)),
        ],
    )


@pytest.fixture
def angle_track(make_key: KeyFactory) -> Track:
    """Angle-tagged track with a wrap between its first two keys."""
    return Track(
        id="camera.roll",
        semantic=TrackSemantic.ANGLE,
        keyframes=[
            make_key("e0", 0, 0.0),
            make_key("e1", 10, 3.2),
            make_key("e2", 20, -3.2),
        ],
    )


@pytest.fixture
def sequence(linear_ramp_track: Track, bezier_track: Track, angle_track: Track) -> Sequence:
    """Sequence holding the ramp, bezier and angle tracks."""
    return Sequence(
        tracks={
            linear_ramp_track.id: linear_ramp_track,
            bezier_track.id: bezier_track,
            angle_track.id: angle_track,
        }
    )
