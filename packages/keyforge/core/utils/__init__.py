"""Shared utilities for Keyforge."""

from keyforge.core.utils.math import clamp, frame_grid

__all__ = [
    "clamp",
    "frame_grid",
]
