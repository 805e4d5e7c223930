"""Constrained variational smoothing.

Selected keys are pulled toward a smoother curve by solving an implicit
heat-equation step per contiguous run of selected keys:

    -s * x[i-1] + (1 + 2s) * x[i] - s * x[i+1] = original[i]

Unselected neighbours act as fixed (Dirichlet) boundary values. A run that
reaches the first or last key of the track uses a reflective (Neumann)
boundary instead. Each run is a tridiagonal system solved in O(n) with the
Thomas algorithm.
"""

from __future__ import annotations

import logging
from collections.abc import Collection, Iterable
from typing import Any

import numpy as np

from keyforge.core.curves.evaluation import ordered_keyframes
from keyforge.core.curves.models import Keyframe, KeyframePatch, KeyRef, Sequence, Track
from keyforge.core.utils.logging import log_performance

logger = logging.getLogger(__name__)

PIVOT_EPSILON = 1e-12
CHANGE_EPSILON = 1e-9
MIN_TRACK_KEYS = 3


def solve_tridiagonal(
    lower: np.ndarray,
    main: np.ndarray,
    upper: np.ndarray,
    rhs: np.ndarray,
    pivot_epsilon: float = PIVOT_EPSILON,
) -> np.ndarray:
    """Solve ``A x = d`` for a tridiagonal ``A`` with the Thomas algorithm.

    Rows whose pivot is near zero are skipped during elimination instead of
    dividing; a near-zero first pivot returns all zeros.

    Args:
        lower: Sub-diagonal; ``lower[0]`` is unused.
        main: Main diagonal.
        upper: Super-diagonal; ``upper[-1]`` is unused.
        rhs: Right-hand side.
        pivot_epsilon: Pivot magnitude below which a row is skipped.

    Returns:
        Solution vector.

    Example:
        >>> solve_tridiagonal(
        ...     np.array([0.0, -1.0]), np.array([2.0, 2.0]),
        ...     np.array([-1.0, 0.0]), np.array([1.0, 1.0]),
        ... ).tolist()
        [1.0, 1.0]
    """
    n = len(main)
    x = np.zeros(n)
    if n == 0:
        return x
    cp = np.zeros(n)
    dp = np.zeros(n)

    if abs(main[0]) < pivot_epsilon:
        logger.debug("Tridiagonal solve aborted: singular first pivot")
        return x
    cp[0] = upper[0] / main[0]
    dp[0] = rhs[0] / main[0]

    for i in range(1, n):
        denom = main[i] - lower[i] * cp[i - 1]
        if abs(denom) < pivot_epsilon:
            logger.debug("Tridiagonal solve skipped near-singular pivot at row %d", i)
            continue
        if i < n - 1:
            cp[i] = upper[i] / denom
        dp[i] = (rhs[i] - lower[i] * dp[i - 1]) / denom

    x[n - 1] = dp[n - 1]
    for i in range(n - 2, -1, -1):
        x[i] = dp[i] - cp[i] * x[i + 1]
    return x


def contiguous_runs(indices: Iterable[int]) -> list[list[int]]:
    """Group sorted indices into maximal runs of consecutive values.

    Example:
        >>> contiguous_runs([1, 2, 3, 6, 7, 9])
        [[1, 2, 3], [6, 7], [9]]
    """
    runs: list[list[int]] = []
    for idx in indices:
        if runs and idx == runs[-1][-1] + 1:
            runs[-1].append(idx)
        else:
            runs.append([idx])
    return runs


def _solve_run(
    keys: list[Keyframe],
    run: list[int],
    strength: float,
    pivot_epsilon: float,
) -> np.ndarray | None:
    n = len(run)
    start_idx, end_idx = run[0], run[-1]
    at_track_start = start_idx == 0
    at_track_end = end_idx == len(keys) - 1

    # Curvature is undefined for a lone key at a track end
    if n == 1 and (at_track_start or at_track_end):
        return None

    lower = np.zeros(n)
    main = np.zeros(n)
    upper = np.zeros(n)
    rhs = np.zeros(n)

    for i, global_idx in enumerate(run):
        a = -strength
        b = 1.0 + 2.0 * strength
        c = -strength
        d = keys[global_idx].value

        if i == 0:
            if not at_track_start:
                d -= a * keys[start_idx - 1].value
                a = 0.0
            else:
                c = -2.0 * strength
                a = 0.0

        if i == n - 1:
            if not at_track_end:
                d -= c * keys[end_idx + 1].value
                c = 0.0
            else:
                a = -2.0 * strength
                c = 0.0

        main[i] = b
        if i > 0:
            lower[i] = a
        if i < n - 1:
            upper[i] = c
        rhs[i] = d

    return solve_tridiagonal(lower, main, upper, rhs, pivot_epsilon)


@log_performance
def smooth(
    track: Track,
    selected_key_ids: Collection[str],
    strength: float,
    *,
    epsilon: float = CHANGE_EPSILON,
    pivot_epsilon: float = PIVOT_EPSILON,
    min_track_keys: int = MIN_TRACK_KEYS,
) -> list[KeyframePatch]:
    """Smooth selected keys of one track toward a lower-curvature curve.

    Always pass the gesture-start track: results are absolute, so repeated
    calls with a changing strength never compound.

    Args:
        track: Track snapshot.
        selected_key_ids: Keys allowed to move.
        strength: Smoothing strength ``s >= 0``; 0 is a no-op.
        epsilon: Minimum value change worth a patch.
        pivot_epsilon: Pivot threshold of the tridiagonal solver.
        min_track_keys: Tracks with fewer keys are left alone.

    Returns:
        Value patches for keys that moved.
    """
    if strength <= 0 or len(track.keyframes) < min_track_keys:
        return []

    keys = ordered_keyframes(track)
    selected = set(selected_key_ids)
    indices = [i for i, k in enumerate(keys) if k.id in selected]
    if not indices:
        return []

    patches: list[KeyframePatch] = []
    for run in contiguous_runs(indices):
        solution = _solve_run(keys, run, strength, pivot_epsilon)
        if solution is None:
            continue
        for global_idx, new_value in zip(run, solution, strict=True):
            key = keys[global_idx]
            if abs(new_value - key.value) > epsilon:
                patches.append(
                    KeyframePatch(track_id=track.id, key_id=key.id, changes={"value": float(new_value)})
                )

    logger.debug("Smoothed %s: %d keys changed at strength %.3f", track.id, len(patches), strength)
    return patches


def smooth_tracks(
    sequence: Sequence,
    selection: Collection[KeyRef],
    strength: float,
    **kwargs: Any,
) -> list[KeyframePatch]:
    """Run ``smooth`` on every track owning a selected key."""
    by_track: dict[str, set[str]] = {}
    for ref in selection:
        by_track.setdefault(ref.track_id, set()).add(ref.key_id)

    patches: list[KeyframePatch] = []
    for track_id, key_ids in by_track.items():
        track = sequence.get_track(track_id)
        if track is None:
            continue
        patches.extend(smooth(track, key_ids, strength, **kwargs))
    return patches
