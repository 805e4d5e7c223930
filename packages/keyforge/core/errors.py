"""Exceptions raised by the curve engine.

Numerical trouble inside the batch algorithms is never raised; it is
logged and handled by falling back to a safe result. These exceptions
cover strict lookups a caller explicitly asks for.
"""


class CurveEngineError(Exception):
    """Base class for curve engine errors."""


class TrackNotFoundError(CurveEngineError, KeyError):
    """Raised when a strict lookup names a track that does not exist."""


class KeyframeNotFoundError(CurveEngineError, KeyError):
    """Raised when a strict lookup names a keyframe that does not exist."""
