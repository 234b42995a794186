"""
DrivePolicy — throttle/brake policy optimization over a discretized track

Source package containing the vehicle model, discretization grids,
influence-diagram potentials, the backward induction solver and the
forward lap simulator.
"""

from .config import SolverConfig
from .exceptions import (
    DrivePolicyError,
    ConfigurationError,
    ConsistencyError,
    TrackDataError,
)
from .vehicle_model import VehicleConfig, VehicleDynamics
from .grids import DiscretizationGrid, Grids, build_grids, make_grid
from .potentials import (
    InterpolationPotential,
    UtilityPotential,
    locate,
    build_speed_potential,
    build_acceleration_potential,
    build_utility_potential,
)
from .evidence import build_evidence
from .track_analysis import Track, TrackSegment
from .policy_solver import (
    Policy,
    PolicySolver,
    SeparatorPair,
    backward_step,
    solve_policy,
)
from .simulator import SimulationTrace, pedal_lookup, simulate

__all__ = [
    "SolverConfig",
    "DrivePolicyError",
    "ConfigurationError",
    "ConsistencyError",
    "TrackDataError",
    "VehicleConfig",
    "VehicleDynamics",
    "DiscretizationGrid",
    "Grids",
    "build_grids",
    "make_grid",
    "InterpolationPotential",
    "UtilityPotential",
    "locate",
    "build_speed_potential",
    "build_acceleration_potential",
    "build_utility_potential",
    "build_evidence",
    "Track",
    "TrackSegment",
    "Policy",
    "PolicySolver",
    "SeparatorPair",
    "backward_step",
    "solve_policy",
    "SimulationTrace",
    "pedal_lookup",
    "simulate",
]
