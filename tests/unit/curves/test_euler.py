"""Tests for the euler continuity filter."""

from __future__ import annotations

import math

import pytest

from keyforge.core.curves.editing import apply_patches
from keyforge.core.curves.euler import (
    LEGACY_ANGLE_PATTERNS,
    apply_euler_filter,
    is_angle_track,
    needs_euler_filter,
    track_needs_fix,
    unwrap_values,
)
from keyforge.core.curves.models import KeyRef, Sequence, Track


def _congruent(a: float, b: float) -> bool:
    turns = (a - b) / (2 * math.pi)
    return abs(turns - round(turns)) < 1e-9


class TestUnwrapValues:
    """Tests for unwrap_values."""

    def test_removes_wrap(self) -> None:
        """No adjacent pair differs by more than pi afterwards."""
        original = [0.0, 3.2, -3.2]
        result = unwrap_values(original)
        for a, b in zip(result, result[1:]):
            assert abs(b - a) <= math.pi
        for new, old in zip(result, original):
            assert _congruent(new, old)

    def test_multiple_turns(self) -> None:
        """Jumps of several turns are removed in one step."""
        result = unwrap_values([0.0, 13.0])
        assert result[1] == pytest.approx(13.0 - 4 * math.pi)

    def test_small_steps_untouched(self) -> None:
        assert unwrap_values([0.0, 1.0, 2.0, 3.0]) == [0.0, 1.0, 2.0, 3.0]

    def test_adjustment_propagates(self) -> None:
        """Later keys follow the shifted key rather than their raw value."""
        result = unwrap_values([3.0, -3.0, -2.5])
        assert result[1] == pytest.approx(-3.0 + 2 * math.pi)
        assert result[2] == pytest.approx(-2.5 + 2 * math.pi)


class TestAngleDetection:
    """Tests for is_angle_track."""

    def test_semantic_tag(self, angle_track: Track, linear_ramp_track: Track) -> None:
        assert is_angle_track(angle_track)
        assert not is_angle_track(linear_ramp_track)

    def test_patterns_are_opt_in(self) -> None:
        """Track names only matter when patterns are configured."""
        track = Track(id="camera.rotation.y")
        assert not is_angle_track(track)
        assert is_angle_track(track, LEGACY_ANGLE_PATTERNS)
        assert is_angle_track(Track(id="paramD"), LEGACY_ANGLE_PATTERNS)


class TestEulerFilter:
    """Tests for needs_euler_filter and apply_euler_filter."""

    def test_needs_fix(self, angle_track: Track) -> None:
        assert track_needs_fix(angle_track)
        assert needs_euler_filter([angle_track])

    def test_scalar_tracks_ignored(self, make_key) -> None:
        """Big jumps on scalar tracks are not angle wraps."""
        track = Track(id="scale", keyframes=[make_key("a", 0, 0.0), make_key("b", 10, 50.0)])
        assert not needs_euler_filter([track])
        assert apply_euler_filter([track]) == []

    def test_patches_only_changed_keys(self, angle_track: Track) -> None:
        """Only keys whose value changed are patched."""
        patches = apply_euler_filter([angle_track])
        assert [p.key_id for p in patches] == ["e1"]
        assert _congruent(patches[0].changes["value"], 3.2)

    def test_result_is_continuous(self, sequence: Sequence) -> None:
        """Applying the patches leaves no jump above pi."""
        patched = apply_patches(sequence, apply_euler_filter(sequence.tracks.values()))
        values = [k.value for k in patched.require_track("camera.roll").keyframes]
        assert all(abs(b - a) <= math.pi for a, b in zip(values, values[1:]))
        assert not needs_euler_filter(patched.tracks.values())

    def test_selection_scopes_scan(self, angle_track: Track) -> None:
        """With a selection only selected keys are compared."""
        selection = [KeyRef("camera.roll", "e1"), KeyRef("camera.roll", "e2")]
        assert not needs_euler_filter([angle_track], selection=[KeyRef("camera.roll", "e0")])
        assert needs_euler_filter([angle_track], selection=selection)
        assert apply_euler_filter([angle_track], selection=[KeyRef("other", "x")]) == []

    def test_short_track(self, make_key) -> None:
        track = Track(id="r", semantic="angle", keyframes=[make_key("a", 0, 10.0)])
        assert apply_euler_filter([track]) == []
