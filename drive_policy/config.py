"""
Solver configuration for the drive policy optimizer.

All options must be known before any grid or potential is built. A changed
configuration means a new solver: grids and potentials are never patched.
"""

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict

from .exceptions import ConfigurationError


PERCENTILE_SCOPES = ('global', 'segment')


@dataclass(frozen=True)
class SolverConfig:
    """Discretization bounds and solver options."""

    # Speed grid (km/h)
    min_speed: float = 18.0
    max_speed: float = 360.0
    speed_points: int = 114

    # Acceleration grid (m/s^2)
    min_acceleration: float = -60.0
    max_acceleration: float = 20.0
    acceleration_points: int = 80

    # Pedal grid (-1 full brake, +1 full throttle)
    min_pedal: float = -1.0
    max_pedal: float = 1.0
    pedal_points: int = 20

    # Objective
    fuel_weight: float = 1.0  # 1.0 = minimize time only
    reference_pedal: float = 1.0  # pedal used when tabulating utility
    utility_percentile: float = 99.0
    percentile_scope: str = 'global'

    # Track discretization
    segment_length: float = 10.0  # m
    max_lateral_acceleration: float = 40.0  # m/s^2
    v_gap: float = 40.0  # km/h, width of the permitted speed window

    def validate(self):
        """Raise ConfigurationError on the first invalid option."""
        for name, lower, upper, points in (
            ('speed', self.min_speed, self.max_speed, self.speed_points),
            ('acceleration', self.min_acceleration, self.max_acceleration,
             self.acceleration_points),
            ('pedal', self.min_pedal, self.max_pedal, self.pedal_points),
        ):
            if lower >= upper:
                raise ConfigurationError(
                    f"{name} grid: minimum {lower} must be below maximum {upper}")
            if points <= 0:
                raise ConfigurationError(
                    f"{name} grid: point count must be positive, got {points}")

        if self.min_speed < 0:
            raise ConfigurationError("min_speed must not be negative")
        if not 0.0 <= self.fuel_weight <= 1.0:
            raise ConfigurationError(
                f"fuel_weight must lie in [0, 1], got {self.fuel_weight}")
        if not self.min_pedal <= self.reference_pedal <= self.max_pedal:
            raise ConfigurationError("reference_pedal lies outside the pedal range")
        if not 0.0 < self.utility_percentile <= 100.0:
            raise ConfigurationError(
                f"utility_percentile must lie in (0, 100], got {self.utility_percentile}")
        if self.percentile_scope not in PERCENTILE_SCOPES:
            raise ConfigurationError(
                f"percentile_scope must be one of {PERCENTILE_SCOPES}, "
                f"got {self.percentile_scope!r}")
        if self.segment_length <= 0:
            raise ConfigurationError("segment_length must be positive")
        if self.max_lateral_acceleration <= 0:
            raise ConfigurationError("max_lateral_acceleration must be positive")
        if self.v_gap < 0:
            raise ConfigurationError("v_gap must not be negative")

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for export."""
        return asdict(self)

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'SolverConfig':
        """Build a config from a mapping, rejecting unknown keys."""
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(values) - known)
        if unknown:
            raise ConfigurationError(f"unknown configuration keys: {', '.join(unknown)}")
        return cls(**values)
