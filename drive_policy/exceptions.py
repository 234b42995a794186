"""
Exception types for the drive policy optimizer.

Configuration and consistency problems are fatal to a run. Values that fall
outside a discretization grid are not errors: they are clamped by the
potential builder and the simulator.
"""

from typing import Optional


class DrivePolicyError(Exception):
    """Base class for all errors raised by this package."""


class ConfigurationError(DrivePolicyError, ValueError):
    """Invalid grid bounds, point counts or weights."""


class ConsistencyError(DrivePolicyError, RuntimeError):
    """A marginalization found utility without any reachable probability mass."""

    def __init__(self, message: str, segment: Optional[int] = None):
        if segment is not None:
            message = f"segment {segment}: {message}"
        super().__init__(message)
        self.segment = segment


class TrackDataError(DrivePolicyError, ValueError):
    """Track input that cannot be turned into segments."""
