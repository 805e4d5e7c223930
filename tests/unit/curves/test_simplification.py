"""Tests for adaptive Bezier simplification."""

from __future__ import annotations

import numpy as np
import pytest

from keyforge.core.curves.evaluation import bezier_1d, evaluate
from keyforge.core.curves.models import Interpolation, Keyframe, Track
from keyforge.core.curves.sampling import dense_samples
from keyforge.core.curves.simplification import (
    EDGE_LEFT,
    EDGE_RIGHT,
    fit_segment,
    least_squares_handles,
    linear_handles,
    simplify,
    simplify_track_selection,
)


def _shape(keys: list[Keyframe]) -> list[tuple]:
    """Keyframes without their generated ids."""
    return [(k.frame, k.value, k.left_tangent, k.right_tangent) for k in keys]


def _max_error(original: Track, simplified: list[Keyframe]) -> float:
    frames, values = dense_samples(original)
    return max(abs(evaluate(simplified, f) - v) for f, v in zip(frames, values, strict=True))


class TestHandles:
    """Tests for the handle fitting helpers."""

    def test_linear_handles(self) -> None:
        assert linear_handles(0.0, 3.0) == (1.0, 2.0)

    def test_least_squares_recovers_cubic(self) -> None:
        """Samples of an exact cubic give back its control values."""
        t = np.linspace(0.0, 1.0, 21)
        values = np.array([bezier_1d(x, 0.0, 2.0, -1.0, 1.0) for x in t])
        p1, p2 = least_squares_handles(t, values, 0.0, 1.0)
        assert p1 == pytest.approx(2.0)
        assert p2 == pytest.approx(-1.0)

    def test_flat_data_falls_back(self) -> None:
        """Flat samples have no least-squares solution worth using."""
        t = np.linspace(0.0, 1.0, 11)
        assert least_squares_handles(t, np.full(11, 4.0), 4.0, 4.0) is None
        assert fit_segment(t, np.full(11, 4.0), 1.0) == (4.0, 4.0)

    def test_too_few_samples_are_singular(self) -> None:
        t = np.array([0.0, 1.0])
        assert least_squares_handles(t, np.array([0.0, 5.0]), 0.0, 5.0) is None

    def test_fit_strength_blends(self) -> None:
        """Strength 0 gives straight handles, 1 the least-squares fit."""
        t = np.linspace(0.0, 1.0, 21)
        values = np.array([bezier_1d(x, 0.0, 2.0, -1.0, 1.0) for x in t])
        assert fit_segment(t, values, 0.0) == pytest.approx(linear_handles(0.0, 1.0))
        assert fit_segment(t, values, 1.0) == pytest.approx((2.0, -1.0))
        half = fit_segment(t, values, 0.5)
        assert half[0] == pytest.approx((1 / 3 + 2.0) / 2)


class TestSimplify:
    """Tests for simplify."""

    def test_infinite_threshold_keeps_endpoints(self, zigzag_track: Track) -> None:
        """An infinite threshold collapses to the two endpoint keys."""
        result = simplify(zigzag_track.keyframes, error_threshold=float("inf"))
        assert [(k.frame, k.value) for k in result] == [(0.0, 0.0), (60.0, 0.0)]

    @pytest.mark.parametrize("fit_strength", [0.0, 0.5, 1.0])
    def test_ramp_collapses(self, linear_ramp_track: Track, fit_strength: float) -> None:
        """A straight ramp becomes a single segment for any fit strength."""
        result = simplify(linear_ramp_track.keyframes, 0.01, fit_strength)
        assert len(result) == 2
        assert _max_error(linear_ramp_track, result) <= 0.01

    @pytest.mark.parametrize("fit_strength", [0.0, 0.5, 1.0])
    def test_ramp_collapses_at_zero_threshold(self, linear_ramp_track: Track, fit_strength: float) -> None:
        """Rounding noise on an exact fit does not force extra splits."""
        result = simplify(linear_ramp_track.keyframes, 0.0, fit_strength)
        assert [(k.frame, k.value) for k in result] == [(0.0, 0.0), (20.0, 20.0)]

    @pytest.mark.parametrize("fit_strength", [0.0, 0.5, 1.0])
    def test_error_within_threshold(self, zigzag_track: Track, fit_strength: float) -> None:
        """The simplified curve stays within the threshold at every sample."""
        result = simplify(zigzag_track.keyframes, 0.05, fit_strength)
        assert _max_error(zigzag_track, result) <= 0.05 + 1e-9
        assert all(k.interpolation == Interpolation.BEZIER for k in result)

    def test_keys_in_frame_order(self, zigzag_track: Track) -> None:
        result = simplify(list(reversed(zigzag_track.keyframes)), 0.05)
        frames = [k.frame for k in result]
        assert frames == sorted(frames)
        assert frames[0] == 0.0
        assert frames[-1] == 60.0

    def test_edge_handles(self, zigzag_track: Track) -> None:
        """The outer handles of the first and last key are neutral."""
        result = simplify(zigzag_track.keyframes, 0.05)
        assert result[0].left_tangent == EDGE_LEFT
        assert result[-1].right_tangent == EDGE_RIGHT

    def test_inner_handles_span_a_third(self, linear_ramp_track: Track) -> None:
        result = simplify(linear_ramp_track.keyframes, 0.01)
        assert result[0].right_tangent.dx == pytest.approx(20 / 3)
        assert result[1].left_tangent.dx == pytest.approx(-20 / 3)

    def test_fresh_ids(self, zigzag_track: Track) -> None:
        result = simplify(zigzag_track.keyframes, 0.05)
        ids = [k.id for k in result]
        assert len(set(ids)) == len(ids)
        assert not set(ids) & {k.id for k in zigzag_track.keyframes}

    def test_flat_track(self, flat_track: Track) -> None:
        """A flat curve needs only its endpoints."""
        result = simplify(flat_track.keyframes)
        assert [(k.frame, k.value) for k in result] == [(0.0, 5.0), (30.0, 5.0)]

    def test_fewer_than_two_keys_unchanged(self, make_key) -> None:
        key = make_key("only", 5, 1.0)
        assert simplify([key]) == [key]
        assert simplify([]) == []

    def test_fit_strength_clamped(self, zigzag_track: Track) -> None:
        """Out-of-range strengths behave like the nearest bound."""
        over = simplify(zigzag_track.keyframes, 0.05, 7.0)
        one = simplify(zigzag_track.keyframes, 0.05, 1.0)
        assert _shape(over) == _shape(one)

    def test_edge_keys_marked_broken(self, zigzag_track: Track) -> None:
        """Neutral outer handles do not mirror the fitted inner ones."""
        result = simplify(zigzag_track.keyframes, error_threshold=float("inf"))
        assert result[0].broken_tangents is True
        assert result[-1].broken_tangents is True


class TestSimplifyTrackSelection:
    """Tests for simplify_track_selection."""

    def test_keeps_keys_outside_span(self, zigzag_track: Track) -> None:
        replacement = simplify_track_selection(zigzag_track, {"z1", "z2", "z3"}, 0.01)
        keys = replacement.keyframes

        assert replacement.track_id == "zigzag"
        assert keys[0].id == "z0"
        assert keys[-1].id == "z4"
        assert [k.frame for k in keys] == [0.0, 15.0, 45.0, 60.0]

    def test_selected_span_simplified(self, zigzag_track: Track) -> None:
        """The straight run between the selected keys collapses to two keys."""
        replacement = simplify_track_selection(zigzag_track, {"z1", "z2", "z3"}, 0.01)
        inner = replacement.keyframes[1:-1]
        assert [(k.frame, k.value) for k in inner] == [(15.0, 10.0), (45.0, -10.0)]
        assert all(k.id not in {"z1", "z2", "z3"} for k in inner)

    def test_needs_two_selected(self, zigzag_track: Track) -> None:
        assert simplify_track_selection(zigzag_track, {"z2"}) is None
        assert simplify_track_selection(zigzag_track, {"missing"}) is None
