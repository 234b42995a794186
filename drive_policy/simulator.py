"""
Forward lap simulation driven by a solved policy.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from scipy.interpolate import interp1d

from .policy_solver import Policy
from .track_analysis import TrackSegment
from .vehicle_model import VehicleDynamics

logger = logging.getLogger(__name__)


def pedal_lookup(speed: float, speeds: np.ndarray, policy_row: np.ndarray) -> float:
    """
    Pedal for a continuous speed from one segment's policy column.

    Linear interpolation between the two bracketing grid speeds; outside the
    grid the end value is held rather than extrapolated.

    Note: this blends two optimal pedal values, which is not necessarily the
    optimal control at the intermediate speed.
    """
    lookup = interp1d(speeds, policy_row, kind='linear', bounds_error=False,
                      fill_value=(policy_row[0], policy_row[-1]), assume_sorted=True)
    return float(lookup(speed))


@dataclass
class SimulationTrace:
    """Speed, time and pedal per segment of a simulated lap."""

    speeds: List[float] = field(default_factory=list)  # km/h, start plus one per segment
    times: List[float] = field(default_factory=list)  # s, cumulative, starts at 0
    pedals: List[float] = field(default_factory=list)  # one per segment
    segment_times: List[float] = field(default_factory=list)
    distances: List[float] = field(default_factory=list)  # m, segment end

    def append(self, distance: float, pedal: float, speed: float, segment_time: float):
        self.distances.append(distance)
        self.pedals.append(pedal)
        self.speeds.append(speed)
        self.segment_times.append(segment_time)
        self.times.append(self.times[-1] + segment_time)

    @property
    def lap_time(self) -> float:
        return float(sum(self.segment_times))

    @property
    def final_speed(self) -> float:
        return self.speeds[-1]

    def to_frame(self) -> pd.DataFrame:
        """One row per segment with the speed and time at its end."""
        return pd.DataFrame({
            'segment': range(len(self.pedals)),
            'distance_m': self.distances,
            'pedal': self.pedals,
            'speed_kmh': self.speeds[1:],
            'segment_time_s': self.segment_times,
            'time_s': self.times[1:],
        })

    def to_csv(self, path, sep: str = ','):
        self.to_frame().to_csv(path, sep=sep, index=False, float_format='%.4f')


def simulate(policy: Policy, segments: Sequence[TrackSegment], start_speed: float,
             dynamics: Optional[VehicleDynamics] = None,
             speed_bounds: Optional[Tuple[float, float]] = None) -> SimulationTrace:
    """
    Replay a lap with the policy.

    Args:
        policy: Solved policy, one column per segment
        segments: Track segments in travel order
        start_speed: Speed at the start line in km/h
        dynamics: Vehicle dynamics model
        speed_bounds: Speed range the next speed is clamped to; defaults to
            the policy's speed grid

    Returns:
        SimulationTrace
    """
    segments = list(segments)
    if len(segments) != policy.num_segments:
        raise ValueError(
            f"policy has {policy.num_segments} columns for {len(segments)} segments")
    dynamics = dynamics or VehicleDynamics()
    low, high = speed_bounds or (policy.speeds[0], policy.speeds[-1])

    speed = float(np.clip(start_speed, low, high))
    trace = SimulationTrace(speeds=[speed], times=[0.0])

    for i, segment in enumerate(segments):
        pedal = pedal_lookup(speed, policy.speeds, policy.column(i))
        accel = float(dynamics.acceleration(speed, segment.slope, pedal))
        segment_time = dynamics.travel_time(speed, accel, segment.length)
        next_speed = float(dynamics.next_speed(speed, accel, segment.length))
        speed = float(np.clip(next_speed, low, high))
        trace.append(segment.distance + segment.length, pedal, speed, segment_time)
        logger.debug("Segment %d: pedal %+.2f, %.1f km/h, %.3f s",
                     i, pedal, speed, segment_time)

    logger.info("Simulated lap: %.3f s, final speed %.1f km/h",
                trace.lap_time, trace.final_speed)
    return trace
