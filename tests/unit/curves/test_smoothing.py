"""Tests for constrained variational smoothing."""

from __future__ import annotations

import math

import numpy as np
import pytest

from keyforge.core.curves.models import KeyRef, Sequence, Track
from keyforge.core.curves.smoothing import contiguous_runs, smooth, smooth_tracks, solve_tridiagonal


def _track(make_key, values: list[float], track_id: str = "t") -> Track:
    return Track(id=track_id, keyframes=[make_key(f"k{i}", i * 10, v) for i, v in enumerate(values)])


def _values(patches) -> dict[str, float]:
    return {p.key_id: p.changes["value"] for p in patches}


class TestSolveTridiagonal:
    """Tests for solve_tridiagonal."""

    def test_matches_dense_solve(self) -> None:
        lower = np.array([0.0, -1.0, -1.0, -1.0])
        main = np.array([3.0, 3.0, 3.0, 3.0])
        upper = np.array([-1.0, -1.0, -1.0, 0.0])
        rhs = np.array([1.0, 2.0, 3.0, 4.0])

        dense = np.diag(main) + np.diag(lower[1:], -1) + np.diag(upper[:-1], 1)
        expected = np.linalg.solve(dense, rhs)
        np.testing.assert_allclose(solve_tridiagonal(lower, main, upper, rhs), expected)

    def test_singular_first_pivot(self) -> None:
        """A zero first pivot yields zeros instead of dividing."""
        result = solve_tridiagonal(np.zeros(2), np.zeros(2), np.zeros(2), np.ones(2))
        assert result.tolist() == [0.0, 0.0]

    def test_empty(self) -> None:
        assert solve_tridiagonal(np.array([]), np.array([]), np.array([]), np.array([])).size == 0


class TestContiguousRuns:
    """Tests for contiguous_runs."""

    def test_groups(self) -> None:
        assert contiguous_runs([1, 2, 3, 6, 7, 9]) == [[1, 2, 3], [6, 7], [9]]

    def test_empty(self) -> None:
        assert contiguous_runs([]) == []


class TestSmooth:
    """Tests for smooth."""

    def test_zero_strength_is_noop(self, make_key) -> None:
        track = _track(make_key, [0, 10, 0, 10, 0])
        assert smooth(track, {"k1", "k2", "k3"}, 0.0) == []

    def test_interior_key_dirichlet(self, make_key) -> None:
        """Fixed neighbours fold into the right-hand side."""
        track = _track(make_key, [0, 10, 0])
        values = _values(smooth(track, {"k1"}, 1.0))
        assert values == {"k1": pytest.approx(10 / 3)}

    def test_track_start_neumann(self, make_key) -> None:
        """A run at the track start uses a reflective boundary."""
        track = _track(make_key, [10, 0, 0, 0])
        values = _values(smooth(track, {"k0", "k1"}, 1.0))
        assert values["k0"] == pytest.approx(30 / 7)
        assert values["k1"] == pytest.approx(10 / 7)

    def test_lone_end_key_skipped(self, make_key) -> None:
        """A single selected key at either end has no curvature to reduce."""
        track = _track(make_key, [0, 10, 0])
        assert smooth(track, {"k2"}, 1.0) == []
        assert smooth(track, {"k0"}, 1.0) == []

    def test_unselected_keys_untouched(self, make_key) -> None:
        track = _track(make_key, [0, 10, 0, 10, 0, 10])
        patches = smooth(track, {"k1", "k4"}, 2.0)
        assert {p.key_id for p in patches} <= {"k1", "k4"}

    def test_runs_solved_independently(self, make_key) -> None:
        """Two separate runs give the same result as smoothing each alone."""
        track = _track(make_key, [0, 10, 0, 5, 0, 8, 0])
        together = _values(smooth(track, {"k1", "k5"}, 1.5))
        alone = {**_values(smooth(track, {"k1"}, 1.5)), **_values(smooth(track, {"k5"}, 1.5))}
        assert together == pytest.approx(alone)

    @pytest.mark.parametrize(
        "values,selected",
        [
            ([5.0], {"k0"}),
            ([0.0, 10.0], {"k0", "k1"}),
            ([3.0, 3.0, 3.0, 3.0], {"k0", "k1", "k2", "k3"}),
        ],
    )
    def test_degenerate_inputs_stay_finite(self, make_key, values, selected) -> None:
        """Tiny and flat tracks never produce NaN or infinity."""
        patches = smooth(_track(make_key, values), selected, 10.0)
        assert all(math.isfinite(v) for v in _values(patches).values())

    def test_flat_track_unchanged(self, make_key) -> None:
        track = _track(make_key, [3.0, 3.0, 3.0, 3.0])
        assert smooth(track, {"k0", "k1", "k2", "k3"}, 5.0) == []

    def test_min_track_keys(self, make_key) -> None:
        """Tracks below the minimum key count are skipped."""
        track = _track(make_key, [0, 10, 0, 10])
        assert smooth(track, {"k1"}, 1.0, min_track_keys=5) == []

    def test_repeatable_from_snapshot(self, make_key) -> None:
        """Scrubbing the strength never compounds."""
        track = _track(make_key, [0, 10, 0, 10, 0])
        first = smooth(track, {"k1", "k2", "k3"}, 0.7)
        smooth(track, {"k1", "k2", "k3"}, 3.0)
        assert smooth(track, {"k1", "k2", "k3"}, 0.7) == first

    def test_stronger_is_smoother(self, make_key) -> None:
        """Higher strength pulls the peak further down."""
        track = _track(make_key, [0, 0, 10, 0, 0])
        weak = _values(smooth(track, {"k2"}, 0.5))["k2"]
        strong = _values(smooth(track, {"k2"}, 5.0))["k2"]
        assert strong < weak < 10.0


class TestSmoothTracks:
    """Tests for smooth_tracks."""

    def test_groups_selection_by_track(self, make_key) -> None:
        seq = Sequence(
            tracks={
                "a": _track(make_key, [0, 10, 0], "a"),
                "b": _track(make_key, [0, -10, 0], "b"),
            }
        )
        selection = [KeyRef("a", "k1"), KeyRef("b", "k1"), KeyRef("missing", "k1")]
        patches = smooth_tracks(seq, selection, 1.0)
        assert {(p.track_id, p.key_id) for p in patches} == {("a", "k1"), ("b", "k1")}

    def test_forwards_options(self, make_key) -> None:
        seq = Sequence(tracks={"a": _track(make_key, [0, 10, 0], "a")})
        assert smooth_tracks(seq, [KeyRef("a", "k1")], 1.0, min_track_keys=4) == []
