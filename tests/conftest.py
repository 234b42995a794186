"""Shared fixtures: a coarse solver setup that keeps the tensors small."""

import pytest

from drive_policy.config import SolverConfig
from drive_policy.policy_solver import PolicySolver
from drive_policy.track_analysis import TrackSegment
from drive_policy.vehicle_model import VehicleDynamics


@pytest.fixture
def small_config():
    # speed step 9 km/h, acceleration step 2 m/s^2, pedal step 0.2
    return SolverConfig(speed_points=38, acceleration_points=40, pedal_points=10,
                        segment_length=50.0)


@pytest.fixture
def solver(small_config):
    return PolicySolver(small_config)


@pytest.fixture
def dynamics():
    return VehicleDynamics()


@pytest.fixture
def make_segments():
    """Factory for uniform segments sharing one speed window."""
    def _make(count, vmin, vdop, length=50.0, slope=0.0):
        return [TrackSegment(distance=i * length, length=length, vmin=vmin,
                             vdop=vdop, slope=slope)
                for i in range(count)]
    return _make
