"""
Discretization grids for speed, acceleration and pedal position.
"""

import logging
from typing import Iterator, NamedTuple

import numpy as np

from .config import SolverConfig
from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)

# Rounding of the grid step per quantity
SPEED_DECIMALS = 2
ACCELERATION_DECIMALS = 1
PEDAL_DECIMALS = 1


class DiscretizationGrid:
    """Immutable, strictly increasing grid with a uniform step."""

    def __init__(self, name: str, values: np.ndarray, step: float):
        values = np.array(values, dtype=float)
        if values.ndim != 1 or len(values) < 2:
            raise ConfigurationError(
                f"{name} grid: needs a one-dimensional array of at least two values")
        if not np.all(np.diff(values) > 0):
            raise ConfigurationError(f"{name} grid: values must be strictly increasing")
        if step <= 0:
            raise ConfigurationError(f"{name} grid: step must be positive, got {step}")
        values.setflags(write=False)
        self.name = name
        self.values = values
        self.step = float(step)

    @property
    def min(self) -> float:
        return float(self.values[0])

    @property
    def max(self) -> float:
        return float(self.values[-1])

    @property
    def size(self) -> int:
        return len(self.values)

    def __len__(self) -> int:
        return len(self.values)

    def __iter__(self) -> Iterator[float]:
        return iter(self.values.tolist())

    def __repr__(self) -> str:
        return (f"DiscretizationGrid({self.name!r}, {self.min}..{self.max}, "
                f"step={self.step}, size={self.size})")


class Grids(NamedTuple):
    speed: DiscretizationGrid
    acceleration: DiscretizationGrid
    pedal: DiscretizationGrid


def make_grid(name: str, lower: float, upper: float, points: int,
              decimals: int) -> DiscretizationGrid:
    """
    Build a grid covering [lower, upper].

    Args:
        name: Quantity name, used in error messages
        lower: First grid value
        upper: Upper bound of the grid
        points: Number of steps; the grid holds points + 1 values
        decimals: Rounding precision of the step and the values

    Returns:
        DiscretizationGrid
    """
    if lower >= upper:
        raise ConfigurationError(
            f"{name} grid: minimum {lower} must be below maximum {upper}")
    if points <= 0:
        raise ConfigurationError(
            f"{name} grid: point count must be positive, got {points}")

    step = round((upper - lower) / points, decimals)
    if step <= 0:
        raise ConfigurationError(
            f"{name} grid: step rounds to zero at {decimals} decimals")

    values = np.round(lower + step * np.arange(points + 1), decimals)
    return DiscretizationGrid(name, values, step)


def build_grids(config: SolverConfig) -> Grids:
    """Validate the configuration and build all three grids."""
    config.validate()
    grids = Grids(
        speed=make_grid('speed', config.min_speed, config.max_speed,
                        config.speed_points, SPEED_DECIMALS),
        acceleration=make_grid('acceleration', config.min_acceleration,
                               config.max_acceleration, config.acceleration_points,
                               ACCELERATION_DECIMALS),
        pedal=make_grid('pedal', config.min_pedal, config.max_pedal,
                        config.pedal_points, PEDAL_DECIMALS),
    )
    for grid in grids:
        logger.debug("Built %r", grid)
    return grids
