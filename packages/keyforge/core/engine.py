"""Curve engine facade.

CurveEngine binds an EngineConfig to the curve operations so callers (the
timeline store, the recording layer, the graph editor) do not thread
thresholds and tolerances through every call. Every method is a thin
wrapper over a pure function in ``keyforge.core.curves``; explicit
arguments always win over configured defaults.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable
from pathlib import Path

import numpy as np

from keyforge.core.config.loader import load_engine_config
from keyforge.core.config.models import EngineConfig
from keyforge.core.curves import editing, euler, filters, sampling, simplification, smoothing
from keyforge.core.curves.evaluation import evaluate, evaluate_many
from keyforge.core.curves.gesture import HandleDragGesture, HandleSide, KeyDragGesture
from keyforge.core.curves.models import (
    Interpolation,
    Keyframe,
    KeyframePatch,
    KeyRef,
    Sequence,
    SoftFalloff,
    TangentMode,
    Track,
    TrackReplacement,
)

logger = logging.getLogger(__name__)


class CurveEngine:
    """Configured entry point to the keyframe curve operations.

    Example:
        >>> engine = CurveEngine.from_file("keyforge.yaml")
        >>> patches = engine.smooth(track, {"k2", "k3"}, strength=0.8)
        >>> sequence = engine.apply_patches(sequence, patches)
    """

    def __init__(self, config: EngineConfig | None = None) -> None:
        self.config = config or EngineConfig()

    @classmethod
    def from_file(cls, path: str | Path | None = None) -> CurveEngine:
        return cls(load_engine_config(path))

    # --- Evaluation ---

    def evaluate(self, track: Track, frame: float) -> float:
        return evaluate(track, frame)

    def evaluate_many(self, track: Track, frames: Iterable[float]) -> np.ndarray:
        return evaluate_many(track, frames)

    # --- Euler filter ---

    def needs_euler_filter(
        self, tracks: Iterable[Track], selection: Collection[KeyRef] | None = None
    ) -> bool:
        return euler.needs_euler_filter(tracks, self.config.euler.angle_track_patterns, selection)

    def apply_euler_filter(
        self, tracks: Iterable[Track], selection: Collection[KeyRef] | None = None
    ) -> list[KeyframePatch]:
        return euler.apply_euler_filter(tracks, self.config.euler.angle_track_patterns, selection)

    # --- Smoothing ---

    def smooth(self, track: Track, selected_key_ids: Collection[str], strength: float) -> list[KeyframePatch]:
        """Constrained smoothing of one track; see ``smoothing.smooth``."""
        cfg = self.config.smoothing
        return smoothing.smooth(
            track,
            selected_key_ids,
            strength,
            epsilon=cfg.epsilon,
            pivot_epsilon=cfg.pivot_epsilon,
            min_track_keys=cfg.min_track_keys,
        )

    def smooth_selection(
        self, sequence: Sequence, selection: Collection[KeyRef], strength: float
    ) -> list[KeyframePatch]:
        cfg = self.config.smoothing
        return smoothing.smooth_tracks(
            sequence,
            selection,
            strength,
            epsilon=cfg.epsilon,
            pivot_epsilon=cfg.pivot_epsilon,
            min_track_keys=cfg.min_track_keys,
        )

    def kernel_smooth(
        self,
        track: Track,
        selected_key_ids: Collection[str] | None,
        radius: float,
        current: Track | None = None,
    ) -> list[KeyframePatch]:
        return filters.kernel_smooth(
            track, selected_key_ids, radius, current=current, epsilon=self.config.smoothing.epsilon
        )

    def spring_bounce(
        self, track: Track, selected_key_ids: Collection[str] | None, radius: float
    ) -> list[KeyframePatch]:
        cfg = self.config.smoothing
        is_angle = euler.is_angle_track(track, self.config.euler.angle_track_patterns)
        return filters.spring_bounce(
            track,
            selected_key_ids,
            radius,
            tension_base=cfg.tension_base,
            friction_base=cfg.friction_base,
            is_angle=is_angle,
        )

    # --- Simplify / bake ---

    def simplify(
        self,
        keyframes: Collection[Keyframe],
        error_threshold: float | None = None,
        fit_strength: float | None = None,
    ) -> list[Keyframe]:
        cfg = self.config.simplify
        return simplification.simplify(
            list(keyframes),
            cfg.error_threshold if error_threshold is None else error_threshold,
            cfg.fit_strength if fit_strength is None else fit_strength,
            sample_step=cfg.sample_step,
            min_samples=cfg.min_samples,
            variance_threshold=cfg.variance_threshold,
            determinant_threshold=cfg.determinant_threshold,
        )

    def simplify_selection(
        self, sequence: Sequence, selection: Collection[KeyRef], fit_strength: float | None = None
    ) -> list[TrackReplacement]:
        """Simplify the selected span of every track with at least two selected keys."""
        cfg = self.config.simplify
        by_track: dict[str, set[str]] = {}
        for ref in selection:
            by_track.setdefault(ref.track_id, set()).add(ref.key_id)

        replacements: list[TrackReplacement] = []
        for track_id, key_ids in by_track.items():
            track = sequence.get_track(track_id)
            if track is None:
                continue
            replacement = simplification.simplify_track_selection(
                track,
                key_ids,
                cfg.error_threshold,
                cfg.fit_strength if fit_strength is None else fit_strength,
                sample_step=cfg.sample_step,
                min_samples=cfg.min_samples,
                variance_threshold=cfg.variance_threshold,
                determinant_threshold=cfg.determinant_threshold,
            )
            if replacement is not None:
                replacements.append(replacement)
        return replacements

    def resample(
        self,
        tracks: Iterable[Track],
        step: float | None = None,
        interpolation: Interpolation | None = None,
    ) -> list[TrackReplacement]:
        cfg = self.config.bake
        return sampling.resample(
            tracks,
            cfg.step if step is None else step,
            interpolation or cfg.interpolation,
        )

    # --- Gestures ---

    def begin_drag(
        self,
        sequence: Sequence,
        primary_keys: Iterable[KeyRef],
        *,
        soft: bool = False,
        soft_radius: float | None = None,
        soft_falloff: SoftFalloff | None = None,
    ) -> KeyDragGesture:
        """Start a key drag; with ``soft`` nearby keys follow by falloff weight."""
        cfg = self.config.soft_selection
        radius = (cfg.radius if soft_radius is None else soft_radius) if soft else 0.0
        return KeyDragGesture.begin(
            sequence,
            primary_keys,
            soft_radius=radius,
            soft_falloff=soft_falloff or cfg.falloff,
            max_reach=self.config.tangents.drag_max_reach,
        )

    def begin_handle_drag(self, sequence: Sequence, ref: KeyRef, side: HandleSide) -> HandleDragGesture:
        return HandleDragGesture.begin(sequence, ref, side)

    # --- Model writes ---

    def apply_patches(self, sequence: Sequence, patches: Iterable[KeyframePatch]) -> Sequence:
        return editing.apply_patches(sequence, patches)

    def replace_keyframes(self, sequence: Sequence, replacements: Iterable[TrackReplacement]) -> Sequence:
        return editing.replace_keyframes(sequence, replacements)

    def add_keyframe(
        self,
        sequence: Sequence,
        track_id: str,
        frame: float,
        value: float,
        interpolation: Interpolation | None = None,
    ) -> Sequence:
        return editing.add_keyframe(sequence, track_id, frame, value, interpolation)

    def record_batch(
        self,
        sequence: Sequence,
        frame: float,
        values: Iterable[tuple[str, float]],
        interpolation: Interpolation | None = None,
    ) -> Sequence:
        return editing.record_batch(sequence, frame, values, interpolation)

    def set_tangent_mode(
        self, sequence: Sequence, selection: Iterable[KeyRef], mode: TangentMode
    ) -> list[KeyframePatch]:
        return editing.set_tangent_mode(sequence, selection, mode)
