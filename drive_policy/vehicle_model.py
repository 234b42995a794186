"""
Vehicle Model for the drive policy optimizer

This module defines the vehicle parameters and the physics used both when
building transition potentials and when replaying a lap:
- Constant-acceleration kinematics (next speed, travel time)
- Longitudinal acceleration from pedal, slope and aerodynamic drag
- Utility of a segment (time, optionally blended with a fuel proxy)
- Cornering speed limit from radius

Speeds are given in km/h at the interface and converted to m/s internally.
All functions broadcast over numpy arrays.
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional

KMH_PER_MS = 3.6


@dataclass(frozen=True)
class VehicleConfig:
    """Vehicle configuration parameters (open-wheel race car)."""

    # Mass properties
    mass: float = 800.0  # kg, with driver

    # Aerodynamics
    frontal_area: float = 1.5  # m^2
    cd: float = 0.95  # Drag coefficient
    rho: float = 1.225  # Air density kg/m^3

    # Tires
    crr: float = 0.015  # Rolling resistance coefficient

    # Actuators at full pedal travel
    max_drive_force: float = 12000.0  # N
    max_brake_force: float = 36000.0  # N

    # Environment
    gravity: float = 9.81  # m/s^2


def to_ms(speed_kmh):
    return np.asarray(speed_kmh, dtype=float) / KMH_PER_MS


def to_kmh(speed_ms):
    return np.asarray(speed_ms, dtype=float) * KMH_PER_MS


class VehicleDynamics:
    """Stateless dynamics calculations for one vehicle configuration."""

    def __init__(self, config: Optional[VehicleConfig] = None):
        self.config = config or VehicleConfig()

    def aero_drag_force(self, speed):
        """
        Calculate aerodynamic drag force.

        F_drag = 0.5 * rho * Cd * A * v^2

        Args:
            speed: Vehicle speed in km/h

        Returns:
            Drag force in N (positive, opposing motion)
        """
        c = self.config
        v = to_ms(speed)
        return 0.5 * c.rho * c.cd * c.frontal_area * v**2

    def grade_force(self, slope):
        """
        Calculate gravitational force component along road.

        Args:
            slope: Road inclination angle in radians, positive = uphill

        Returns:
            Grade force in N (positive = resisting motion)
        """
        c = self.config
        return c.mass * c.gravity * np.sin(slope)

    def rolling_resistance_force(self, slope):
        c = self.config
        return c.crr * c.mass * c.gravity * np.cos(slope)

    def acceleration(self, speed, slope, pedal):
        """
        Longitudinal acceleration for a pedal position.

        Negative pedal values brake, non-negative values drive. The two
        magnitudes are mutually exclusive.

        Args:
            speed: Vehicle speed in km/h
            slope: Road inclination angle in radians
            pedal: Pedal position in [-1, 1]

        Returns:
            Acceleration in m/s^2
        """
        c = self.config
        pedal = np.asarray(pedal, dtype=float)
        brake = np.maximum(-pedal, 0.0)
        throttle = np.maximum(pedal, 0.0)

        force = (throttle * c.max_drive_force
                 - brake * c.max_brake_force
                 - self.aero_drag_force(speed)
                 - self.rolling_resistance_force(slope)
                 - self.grade_force(slope))
        return force / c.mass

    def next_speed(self, initial_speed, acceleration, distance):
        """
        Speed after travelling a distance under constant acceleration.

        v1^2 = v0^2 + 2 * a * s. When the radicand is negative the vehicle
        stops before covering the distance and the result is 0.

        Args:
            initial_speed: Speed in km/h
            acceleration: Acceleration in m/s^2
            distance: Distance in m

        Returns:
            Speed in km/h
        """
        v0 = to_ms(initial_speed)
        radicand = v0**2 + 2.0 * np.asarray(acceleration, dtype=float) * distance
        return to_kmh(np.sqrt(np.maximum(radicand, 0.0)))

    def travel_time(self, initial_speed, acceleration, distance):
        """
        Time to cover a distance under constant acceleration.

        t = 2 * s / (v0 + v1). A standing vehicle (both speeds zero) returns
        inf instead of dividing by zero.

        Returns:
            Time in s
        """
        v0 = to_ms(initial_speed)
        v1 = to_ms(self.next_speed(initial_speed, acceleration, distance))
        total = v0 + v1
        moving = total > 0
        with np.errstate(divide='ignore', invalid='ignore'):
            time = np.where(moving, 2.0 * distance / np.where(moving, total, 1.0), np.inf)
        return time if time.ndim else float(time)

    @staticmethod
    def utility(pedal, time, fuel_weight):
        """
        Cost of a segment: fuel_weight * time + (1 - fuel_weight) * fuel.

        The fuel proxy is the squared throttle position; braking burns nothing.
        With fuel_weight == 1 the time is returned unchanged.
        """
        if fuel_weight == 1.0:
            return time
        fuel = np.maximum(np.asarray(pedal, dtype=float), 0.0) ** 2
        return fuel_weight * np.asarray(time, dtype=float) + (1.0 - fuel_weight) * fuel

    @staticmethod
    def max_cornering_speed(radius, max_lateral_acceleration):
        """
        Maximum cornering speed for a given radius.

        v_max = sqrt(a_lat * R)

        Args:
            radius: Corner radius in m (inf or <= 0 for a straight)
            max_lateral_acceleration: Lateral grip limit in m/s^2

        Returns:
            Speed in km/h (inf on a straight)
        """
        radius = np.asarray(radius, dtype=float)
        straight = ~np.isfinite(radius) | (radius <= 0)
        safe_radius = np.where(straight, 1.0, radius)
        speed = np.where(straight, np.inf,
                         to_kmh(np.sqrt(max_lateral_acceleration * safe_radius)))
        return speed if speed.ndim else float(speed)
