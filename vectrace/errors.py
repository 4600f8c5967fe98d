"""
Vectrace error types.

Malformed inputs raise immediately. Conditions where no good vectorization
exists (zero surviving contours, cancelled runs) are not errors: they come
back as empty but valid results so callers can pick another algorithm.
"""

from typing import List, Optional


class VectraceError(Exception):
    """Base class for all vectrace errors."""


class InvalidInputError(VectraceError, ValueError):
    """Raised for malformed raster images or edge maps."""


class ConfigurationError(VectraceError, ValueError):
    """Raised when a VectorizationConfig fails validation."""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Invalid configuration: " + "; ".join(self.errors))


class ResourceExceededError(VectraceError):
    """
    Raised by callers whose resource pre-check rejects an image.

    The engine itself never raises this; it only reports processing stats
    (see ``vectrace.preprocess.processing_stats``).
    """

    def __init__(self, message: str, limit: Optional[int] = None, actual: Optional[int] = None):
        self.limit = limit
        self.actual = actual
        super().__init__(message)
