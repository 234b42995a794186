"""
Interpolation and utility potentials for the influence diagram.

A deterministic mapping between two grids is stored as a lower target bin
plus the share of mass on that bin, the rest going to the next bin. Every
table is padded with one trailing slot (index n of an n-point grid) so the
"next bin" always exists; that slot carries no mass and no utility.
"""

import logging
from typing import Optional

import numpy as np

from .grids import DiscretizationGrid, Grids
from .vehicle_model import VehicleDynamics

logger = logging.getLogger(__name__)


class InterpolationPotential:
    """
    Lower target bin and weight for every source point.

    Attributes:
        index: Lower target bin, in [0, target_size - 1]
        weight: Share of mass on `index`, in [0, 1]; 1 - weight goes to index + 1
        target_size: Number of points of the target grid
    """

    def __init__(self, index: np.ndarray, weight: np.ndarray, target_size: int):
        self.index = index
        self.weight = weight
        self.target_size = target_size
        self.index.setflags(write=False)
        self.weight.setflags(write=False)

    @property
    def shape(self):
        return self.index.shape

    @property
    def upper_index(self) -> np.ndarray:
        return self.index + 1

    def spread(self, values: np.ndarray) -> np.ndarray:
        """
        Expectation of a padded target vector over the two candidate bins.

        Args:
            values: Vector of length target_size + 1

        Returns:
            Array shaped like the potential
        """
        return (self.weight * values[self.index]
                + (1.0 - self.weight) * values[self.upper_index])


def locate(grid: DiscretizationGrid, values) -> InterpolationPotential:
    """
    Find the covering bin and interpolation weight of each value.

    Values at or beyond either end of the grid are clamped to the end bin
    with weight 1.
    """
    points = grid.values
    n = len(points)
    values = np.asarray(values, dtype=float)

    index = np.searchsorted(points, values, side='right') - 1
    index = np.clip(index, 0, n - 2)
    lower = points[index]
    upper = points[index + 1]
    weight = (upper - values) / (upper - lower)

    below = values <= points[0]
    above = values >= points[-1]
    index = np.where(above, n - 1, index)
    weight = np.where(below | above, 1.0, np.clip(weight, 0.0, 1.0))

    return InterpolationPotential(index.astype(np.intp), weight, n)


def build_speed_potential(grids: Grids, dynamics: VehicleDynamics,
                          distance: float) -> InterpolationPotential:
    """
    Next-speed potential over (speed, acceleration) for one segment length.

    Args:
        grids: Discretization grids
        dynamics: Vehicle dynamics model
        distance: Segment length in m

    Returns:
        InterpolationPotential shaped (speed, acceleration) into the speed grid
    """
    speeds = grids.speed.values
    columns = [dynamics.next_speed(speeds, a, distance)
               for a in grids.acceleration.values]
    next_speeds = np.stack(columns, axis=1)
    return locate(grids.speed, next_speeds)


def build_acceleration_potential(grids: Grids, dynamics: VehicleDynamics,
                                 slope: float) -> InterpolationPotential:
    """
    Acceleration potential over (speed, pedal) for one slope.

    Depends on the slope, so it has to be rebuilt whenever the slope changes.
    """
    speeds = grids.speed.values[:, np.newaxis]
    pedals = grids.pedal.values[np.newaxis, :]
    accelerations = dynamics.acceleration(speeds, slope, pedals)
    return locate(grids.acceleration, accelerations)


class UtilityPotential:
    """
    Savings table over (acceleration, speed).

    savings = max(threshold - utility, 0), with `threshold` a high percentile
    of the finite utility values. Minimizing utility becomes maximizing
    savings and extreme cells stop dominating the maximization. The table
    has one extra acceleration row and one extra speed column held at 0.
    """

    def __init__(self, table: np.ndarray, threshold: float):
        table.setflags(write=False)
        self.table = table
        self.threshold = threshold

    @property
    def shape(self):
        return self.table.shape


def savings_transform(raw: np.ndarray, percentile: float,
                      threshold: Optional[float] = None):
    """
    Turn a utility table into clamped savings.

    Only finite cells enter the percentile; non-finite cells get 0 savings.
    A table without finite cells gives all zeros.

    Returns:
        (savings, threshold)
    """
    finite = np.isfinite(raw)
    if threshold is None:
        threshold = float(np.percentile(raw[finite], percentile)) if finite.any() else 0.0
    with np.errstate(invalid='ignore'):
        savings = np.where(finite, np.maximum(threshold - raw, 0.0), 0.0)
    return savings, threshold


def build_utility_potential(grids: Grids, dynamics: VehicleDynamics, distance: float,
                            fuel_weight: float, reference_pedal: float,
                            percentile: float,
                            threshold: Optional[float] = None) -> UtilityPotential:
    """
    Utility potential over (acceleration, speed) for one segment length.

    Args:
        grids: Discretization grids
        dynamics: Vehicle dynamics model
        distance: Segment length in m
        fuel_weight: Weight of time against the fuel proxy
        reference_pedal: Pedal value the fuel proxy is evaluated at
        percentile: Percentile defining the savings threshold
        threshold: Reuse a threshold instead of computing the percentile

    Returns:
        UtilityPotential padded to (acceleration + 1, speed + 1)
    """
    accelerations = grids.acceleration.values[:, np.newaxis]
    speeds = grids.speed.values[np.newaxis, :]

    times = dynamics.travel_time(speeds, accelerations, distance)
    raw = dynamics.utility(reference_pedal, times, fuel_weight)
    savings, threshold = savings_transform(np.asarray(raw, dtype=float),
                                           percentile, threshold)

    table = np.zeros((grids.acceleration.size + 1, grids.speed.size + 1))
    table[:-1, :-1] = savings
    logger.debug("Utility potential for %.2f m: threshold %.4f", distance, threshold)
    return UtilityPotential(table, threshold)
