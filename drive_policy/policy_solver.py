"""
Policy Solver for the drive policy optimizer

This module solves the throttle/brake influence diagram by backward
induction over the track segments:
- Next speed is marginalized out using the segment's speed evidence
- Acceleration is marginalized out and the pedal maximized per speed
- The optimal pedal per speed becomes the segment's policy column

Each step takes the separator pair of the already solved suffix of the track
and returns a new one; nothing is carried between steps implicitly.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from .config import SolverConfig
from .evidence import build_evidence
from .exceptions import ConsistencyError
from .grids import Grids, build_grids
from .potentials import (
    InterpolationPotential,
    UtilityPotential,
    build_acceleration_potential,
    build_speed_potential,
    build_utility_potential,
)
from .track_analysis import TrackSegment
from .vehicle_model import VehicleConfig, VehicleDynamics

logger = logging.getLogger(__name__)


@dataclass(frozen=True, eq=False)
class SeparatorPair:
    """
    Summary of the solved suffix of the track, per starting speed.

    phi: Probability mass that stays inside all remaining speed evidence
    psi: Mass-weighted best utility-to-go
    Both have one trailing sentinel slot.
    """

    phi: np.ndarray
    psi: np.ndarray

    @classmethod
    def initial(cls, speed_points: int) -> 'SeparatorPair':
        phi = np.ones(speed_points + 1)
        phi[-1] = 0.0
        return cls(phi=phi, psi=np.zeros(speed_points + 1))


class Policy:
    """Optimal pedal per (speed, segment); read-only once solved."""

    def __init__(self, speeds: np.ndarray, matrix: np.ndarray):
        speeds = np.array(speeds, dtype=float)
        matrix = np.array(matrix, dtype=float)
        if matrix.ndim != 2 or matrix.shape[0] != len(speeds):
            raise ValueError(
                f"policy matrix {matrix.shape} does not match {len(speeds)} speeds")
        speeds.setflags(write=False)
        matrix.setflags(write=False)
        self.speeds = speeds
        self.matrix = matrix

    @property
    def num_segments(self) -> int:
        return self.matrix.shape[1]

    def column(self, segment: int) -> np.ndarray:
        """Optimal pedal per speed for one segment."""
        return self.matrix[:, segment]

    def to_frame(self) -> pd.DataFrame:
        """One row per speed, one column per segment."""
        frame = pd.DataFrame(self.matrix,
                             index=pd.Index(self.speeds, name='speed_kmh'),
                             columns=range(self.num_segments))
        return frame

    def to_csv(self, path, sep: str = ';', float_format: str = '%.6g'):
        """Write the policy as delimiter-separated text."""
        self.to_frame().to_csv(path, sep=sep, float_format=float_format)

    @classmethod
    def from_csv(cls, path, sep: str = ';') -> 'Policy':
        frame = pd.read_csv(path, sep=sep, index_col=0)
        return cls(frame.index.to_numpy(dtype=float), frame.to_numpy(dtype=float))


def marginalize_next_speed(separator: SeparatorPair, speed_evidence: np.ndarray,
                           speed_potential: InterpolationPotential,
                           segment: Optional[int] = None
                           ) -> Tuple[np.ndarray, np.ndarray]:
    """
    Sum the next speed out of the speed transition.

    Args:
        separator: Separator pair of the following segment
        speed_evidence: Evidence over the next speed (with sentinel slot)
        speed_potential: Next-speed potential shaped (speed, acceleration)
        segment: Segment index, for error reporting

    Returns:
        (phi_new, psi_new) shaped (speed, acceleration + 1); the trailing
        acceleration column carries no mass
    """
    phi = speed_potential.spread(separator.phi * speed_evidence)
    psi = speed_potential.spread(separator.psi * speed_evidence)

    broken = (phi == 0) & (psi != 0)
    if broken.any():
        speed_bin, accel_bin = np.argwhere(broken)[0]
        raise ConsistencyError(
            f"utility {psi[speed_bin, accel_bin]:.6g} without reachable mass at "
            f"speed bin {speed_bin}, acceleration bin {accel_bin}", segment)

    pad = np.zeros((phi.shape[0], 1))
    return np.hstack([phi, pad]), np.hstack([psi, pad])


def maximize_pedal(phi_new: np.ndarray, psi_new: np.ndarray,
                   acceleration_potential: InterpolationPotential,
                   utility: UtilityPotential,
                   pedal_values: np.ndarray) -> Tuple[np.ndarray, SeparatorPair]:
    """
    Sum acceleration out and maximize over the pedal for every speed.

    The joint value of (speed, pedal) is the weighted sum, over the two
    candidate acceleration bins, of phi_new * utility + psi_new. Ties go to
    the first pedal in grid order.

    Returns:
        (optimal pedal per speed, separator pair for the previous segment)
    """
    n_speed = phi_new.shape[0]
    rows = np.arange(n_speed)[:, np.newaxis]
    low = acceleration_potential.index
    high = acceleration_potential.upper_index
    weight = acceleration_potential.weight

    # utility table is (acceleration, speed)
    savings = utility.table[:, :n_speed].T
    value = phi_new * savings + psi_new

    joint = weight * value[rows, low] + (1.0 - weight) * value[rows, high]
    mass = weight * phi_new[rows, low] + (1.0 - weight) * phi_new[rows, high]

    best = np.argmax(joint, axis=1)
    pedals = pedal_values[best]

    phi = np.zeros(n_speed + 1)
    psi = np.zeros(n_speed + 1)
    phi[:-1] = mass.max(axis=1)
    psi[:-1] = joint[np.arange(n_speed), best]
    psi[phi == 0] = 0.0

    return pedals, SeparatorPair(phi=phi, psi=psi)


def backward_step(separator: SeparatorPair, speed_evidence: np.ndarray,
                  speed_potential: InterpolationPotential,
                  acceleration_potential: InterpolationPotential,
                  utility: UtilityPotential, pedal_values: np.ndarray,
                  segment: Optional[int] = None) -> Tuple[np.ndarray, SeparatorPair]:
    """Solve one segment given the separator pair of the next one."""
    phi_new, psi_new = marginalize_next_speed(separator, speed_evidence,
                                              speed_potential, segment)
    return maximize_pedal(phi_new, psi_new, acceleration_potential,
                          utility, pedal_values)


class PolicySolver:
    """Build potentials and solve the policy for a track by backward induction."""

    def __init__(self, config: Optional[SolverConfig] = None,
                 vehicle_config: Optional[VehicleConfig] = None):
        """
        Initialize solver.

        Args:
            config: Grid bounds and solver options
            vehicle_config: Vehicle parameters for the dynamics model
        """
        self.config = config or SolverConfig()
        self.dynamics = VehicleDynamics(vehicle_config)
        self.grids: Grids = build_grids(self.config)

        self._acceleration_cache: Optional[Tuple[float, InterpolationPotential]] = None
        self._speed_potentials: Dict[float, InterpolationPotential] = {}
        self._utilities: Dict[float, UtilityPotential] = {}

        # Base utility table at the configured segment length
        self.base_utility = self.utility_potential(self.config.segment_length)

    def acceleration_potential(self, slope: float) -> InterpolationPotential:
        """Acceleration potential for a slope, rebuilt only when the slope changes."""
        cached = self._acceleration_cache
        if cached is None or cached[0] != slope:
            logger.debug("Building acceleration potential for slope %.5f", slope)
            cached = (slope, build_acceleration_potential(self.grids, self.dynamics, slope))
            self._acceleration_cache = cached
        return cached[1]

    def speed_potential(self, distance: float) -> InterpolationPotential:
        if distance not in self._speed_potentials:
            logger.debug("Building speed potential for %.3f m", distance)
            self._speed_potentials[distance] = build_speed_potential(
                self.grids, self.dynamics, distance)
        return self._speed_potentials[distance]

    def utility_potential(self, distance: float) -> UtilityPotential:
        """
        Utility potential for a segment length.

        With the 'global' percentile scope every table reuses the threshold of
        the base table; with 'segment' each table computes its own.
        """
        if distance not in self._utilities:
            c = self.config
            threshold = None
            if c.percentile_scope == 'global' and self._utilities:
                threshold = self.base_utility.threshold
            self._utilities[distance] = build_utility_potential(
                self.grids, self.dynamics, distance, c.fuel_weight,
                c.reference_pedal, c.utility_percentile, threshold)
        return self._utilities[distance]

    def speed_evidence(self, segment: TrackSegment) -> np.ndarray:
        return build_evidence(self.grids.speed, segment.vmin, segment.vdop)

    def solve(self, segments: Sequence[TrackSegment]) -> Policy:
        """
        Run backward induction over the segments.

        Args:
            segments: Track segments in travel order; the evidence of a
                segment constrains the speed at its end

        Returns:
            Policy with one column per segment
        """
        segments = list(segments)
        n_speed = self.grids.speed.size
        pedal_values = self.grids.pedal.values
        matrix = np.zeros((n_speed, len(segments)))

        logger.info("Solving policy: %d segments, %d speeds, %d accelerations, %d pedals",
                    len(segments), n_speed, self.grids.acceleration.size,
                    self.grids.pedal.size)

        separator = SeparatorPair.initial(n_speed)
        stranded = None
        for i in range(len(segments) - 1, -1, -1):
            segment = segments[i]
            pedals, separator = backward_step(
                separator,
                self.speed_evidence(segment),
                self.speed_potential(segment.length),
                self.acceleration_potential(segment.slope),
                self.utility_potential(segment.length),
                pedal_values,
                segment=i,
            )
            matrix[:, i] = pedals
            reachable = separator.phi[:-1].max()
            logger.debug("Segment %d: reachable mass %.3f", i, reachable)
            if reachable == 0 and stranded is None:
                stranded = i
                logger.warning(
                    "Segment %d: no speed can satisfy the remaining speed bounds "
                    "(window %.1f-%.1f km/h); the policy from here back is full brake",
                    i, segment.vmin, segment.vdop)

        logger.info("Policy solved")
        return Policy(self.grids.speed.values, matrix)


def solve_policy(segments: Sequence[TrackSegment],
                 config: Optional[SolverConfig] = None,
                 vehicle_config: Optional[VehicleConfig] = None) -> Policy:
    """
    Convenience function to solve a policy.

    Args:
        segments: Track segments in travel order
        config: Solver configuration
        vehicle_config: Vehicle configuration

    Returns:
        Policy
    """
    return PolicySolver(config, vehicle_config).solve(segments)
