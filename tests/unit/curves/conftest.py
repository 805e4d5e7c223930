"""Shared pytest fixtures for curve tests."""

from __future__ import annotations

import pytest

from keyforge.core.curves.models import Interpolation, Track


@pytest.fixture
def zigzag_track(make_key) -> Track:
    """Linear zigzag over 60 frames."""
    return Track(
        id="zigzag",
        keyframes=[
            make_key("z0", 0, 0.0),
            make_key("z1", 15, 10.0),
            make_key("z2", 30, 0.0),
            make_key("z3", 45, -10.0),
            make_key("z4", 60, 0.0),
        ],
    )


@pytest.fixture
def flat_track(make_key) -> Track:
    """Four keys at the same value."""
    return Track(
        id="flat",
        keyframes=[make_key(f"f{i}", i * 10, 5.0) for i in range(4)],
    )


@pytest.fixture
def step_track(make_key) -> Track:
    """Step keys at frames [0, 10] with values [3, 7]."""
    return Track(
        id="step",
        keyframes=[
            make_key("s0", 0, 3.0, Interpolation.STEP),
            make_key("s1", 10, 7.0, Interpolation.STEP),
        ],
    )


@pytest.fixture
def spaced_track(make_key) -> Track:
    """Linear keys at frames 0, 5, 10 and 30."""
    return Track(
        id="spaced",
        keyframes=[
            make_key("p0", 0, 0.0),
            make_key("p5", 5, 1.0),
            make_key("p10", 10, 2.0),
            make_key("p30", 30, 3.0),
        ],
    )
