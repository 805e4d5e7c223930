"""Tests for dense sampling and baking."""

from __future__ import annotations

import pytest

from keyforge.core.curves.evaluation import evaluate
from keyforge.core.curves.models import Interpolation, Track
from keyforge.core.curves.sampling import bake_frames, dense_samples, resample, resample_track


class TestDenseSamples:
    """Tests for dense_samples."""

    def test_long_span_uses_nominal_step(self, make_key) -> None:
        track = Track(id="t", keyframes=[make_key("a", 0, 0.0), make_key("b", 100, 1.0)])
        frames, values = dense_samples(track)
        assert len(frames) == 101
        assert frames[1] == pytest.approx(1.0)
        assert values[-1] == 1.0

    def test_short_span_is_refined(self, linear_ramp_track: Track, make_key) -> None:
        """Short spans shrink the step so enough samples are taken."""
        track = Track(id="t", keyframes=[make_key("a", 0, 0.0), make_key("b", 10, 1.0)])
        frames, _ = dense_samples(track)
        assert len(frames) == 51
        assert frames[0] == 0.0
        assert frames[-1] == 10.0

    def test_values_follow_curve(self, bezier_track: Track) -> None:
        frames, values = dense_samples(bezier_track, step=2.0, min_samples=4)
        for frame, value in zip(frames, values, strict=True):
            assert value == pytest.approx(evaluate(bezier_track, frame))

    def test_empty_track(self) -> None:
        frames, values = dense_samples(Track(id="t"))
        assert frames.size == 0
        assert values.size == 0


class TestBakeFrames:
    """Tests for bake_frames."""

    def test_multiples_plus_ends(self) -> None:
        assert bake_frames(0, 23, 5) == [0.0, 5.0, 10.0, 15.0, 20.0, 23.0]

    def test_offset_start(self) -> None:
        """The first key is kept even when it is off the grid."""
        assert bake_frames(3, 12, 5) == [3.0, 5.0, 10.0, 12.0]

    def test_fractional_step(self) -> None:
        assert bake_frames(0, 1, 0.25) == [0.0, 0.25, 0.5, 0.75, 1.0]

    def test_single_frame(self) -> None:
        assert bake_frames(4, 4, 2) == [4.0]

    @pytest.mark.parametrize("step", [0, -1])
    def test_step_must_be_positive(self, step: float) -> None:
        with pytest.raises(ValueError, match="step must be > 0"):
            bake_frames(0, 10, step)


class TestResample:
    """Tests for resample_track and resample."""

    def test_values_match_curve(self, bezier_track: Track) -> None:
        """Baked keys sit on the original curve."""
        replacement = resample_track(bezier_track, 5)
        assert [k.frame for k in replacement.keyframes] == [0.0, 5.0, 10.0, 15.0, 20.0]
        for key in replacement.keyframes:
            assert key.value == pytest.approx(evaluate(bezier_track, key.frame))
            assert key.interpolation == Interpolation.LINEAR

    def test_fresh_ids(self, linear_ramp_track: Track) -> None:
        replacement = resample_track(linear_ramp_track, 5)
        ids = [k.id for k in replacement.keyframes]
        assert len(set(ids)) == len(ids)
        assert not set(ids) & {"r0", "r1", "r2"}

    def test_bezier_keys_get_auto_tangents(self, linear_ramp_track: Track) -> None:
        replacement = resample_track(linear_ramp_track, 5, Interpolation.BEZIER)
        for key in replacement.keyframes:
            assert key.interpolation == Interpolation.BEZIER
            assert key.auto_tangent is True
            assert key.left_tangent is not None
            assert key.right_tangent is not None

    def test_empty_track_skipped(self, linear_ramp_track: Track) -> None:
        replacements = resample([Track(id="empty"), linear_ramp_track], 10)
        assert [r.track_id for r in replacements] == ["pos.x"]

    def test_invalid_step(self, linear_ramp_track: Track) -> None:
        with pytest.raises(ValueError):
            resample([linear_ramp_track], 0)
