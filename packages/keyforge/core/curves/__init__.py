"""Keyframe curve model and editing algorithms."""

from keyforge.core.curves.editing import (
    add_keyframe,
    add_track,
    apply_patches,
    record_batch,
    remove_keyframe,
    remove_track,
    replace_keyframes,
    set_tangent_mode,
)
from keyforge.core.curves.euler import apply_euler_filter, needs_euler_filter
from keyforge.core.curves.evaluation import evaluate, evaluate_many
from keyforge.core.curves.filters import kernel_smooth, spring_bounce
from keyforge.core.curves.gesture import HandleDragGesture, KeyDragGesture
from keyforge.core.curves.models import (
    Interpolation,
    Keyframe,
    KeyframePatch,
    KeyRef,
    Sequence,
    SoftFalloff,
    Tangent,
    TangentMode,
    Track,
    TrackReplacement,
    TrackSemantic,
)
from keyforge.core.curves.sampling import resample
from keyforge.core.curves.simplification import simplify, simplify_track_selection
from keyforge.core.curves.smoothing import smooth, smooth_tracks

__all__ = [
    "HandleDragGesture",
    "Interpolation",
    "KeyDragGesture",
    "KeyRef",
    "Keyframe",
    "KeyframePatch",
    "Sequence",
    "SoftFalloff",
    "Tangent",
    "TangentMode",
    "Track",
    "TrackReplacement",
    "TrackSemantic",
    "add_keyframe",
    "add_track",
    "apply_euler_filter",
    "apply_patches",
    "evaluate",
    "evaluate_many",
    "kernel_smooth",
    "needs_euler_filter",
    "record_batch",
    "remove_keyframe",
    "remove_track",
    "replace_keyframes",
    "resample",
    "set_tangent_mode",
    "simplify",
    "simplify_track_selection",
    "smooth",
    "smooth_tracks",
    "spring_bounce",
]
