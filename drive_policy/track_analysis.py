"""
Track Analysis for the drive policy optimizer

This module turns raw track data into solver segments:
- Loading distance / radius / slope samples from CSV
- Resampling to a uniform segment length
- Speed bounds per segment from cornering radius and lateral grip, or from
  an explicit minimum speed column
"""

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd

from .config import SolverConfig
from .exceptions import TrackDataError
from .vehicle_model import VehicleDynamics

logger = logging.getLogger(__name__)

REQUIRED_COLUMNS = ('distance', 'radius')


@dataclass(frozen=True)
class TrackSegment:
    """Segment of track between two resampled points."""
    distance: float  # Distance from start line to segment start in m
    length: float  # m
    vmin: float  # Minimum allowed speed at segment end in km/h
    vdop: float  # Maximum speed at segment end in km/h (cornering limit)
    slope: float = 0.0  # rad
    radius: float = float('inf')  # m, at segment end


class Track:
    """Track samples and segment construction."""

    def __init__(self, distances, curvatures, slopes=None, vmins=None,
                 name: str = 'track'):
        """
        Args:
            distances: Distance from start line in m, strictly increasing
            curvatures: 1/radius in 1/m (0 on straights)
            slopes: Inclination in rad, defaults to flat
            vmins: Minimum speed in km/h per sample, nan where unset;
                None derives the bounds from the corners
            name: Label used in summaries
        """
        self.distances = np.asarray(distances, dtype=float)
        self.curvatures = np.asarray(curvatures, dtype=float)
        if slopes is None:
            slopes = np.zeros_like(self.distances)
        self.slopes = np.asarray(slopes, dtype=float)
        self.vmins = None if vmins is None else np.asarray(vmins, dtype=float)
        self.name = name

        if self.distances.ndim != 1 or len(self.distances) < 2:
            raise TrackDataError("track needs at least two samples")
        if not (len(self.curvatures) == len(self.slopes) == len(self.distances)):
            raise TrackDataError("distance, radius and slope columns differ in length")
        if self.vmins is not None and len(self.vmins) != len(self.distances):
            raise TrackDataError("vmin column differs in length from distance")
        if np.any(np.diff(self.distances) <= 0):
            raise TrackDataError("track distances must be strictly increasing")
        if not np.all(np.isfinite(self.curvatures)) or not np.all(np.isfinite(self.slopes)):
            raise TrackDataError("track contains non-finite curvature or slope values")

    @classmethod
    def from_arrays(cls, distances, radii, slopes=None, vmins=None,
                    name: str = 'track') -> 'Track':
        """Build a track from radii; inf, nan or non-positive radius means straight."""
        radii = np.asarray(radii, dtype=float)
        straight = ~np.isfinite(radii) | (radii <= 0)
        curvatures = np.where(straight, 0.0, 1.0 / np.where(straight, 1.0, radii))
        return cls(distances, curvatures, slopes, vmins, name)

    @classmethod
    def from_csv(cls, csv_path) -> 'Track':
        """
        Load track samples from CSV.

        Columns: 'distance' (m), 'radius' (m, empty or 0 on straights) and
        optionally 'slope' (rad) and 'vmin' (km/h, empty where unset).
        """
        csv_path = Path(csv_path)
        try:
            df = pd.read_csv(csv_path)
        except (OSError, pd.errors.ParserError, pd.errors.EmptyDataError) as e:
            raise TrackDataError(f"cannot read track file {csv_path}: {e}") from e

        # Handle column names with BOM or spaces
        df.columns = df.columns.str.strip().str.replace('\ufeff', '').str.lower()
        missing = [c for c in REQUIRED_COLUMNS if c not in df.columns]
        if missing:
            raise TrackDataError(f"{csv_path}: missing columns {', '.join(missing)}")

        slopes = df['slope'].fillna(0.0).to_numpy(dtype=float) if 'slope' in df else None
        vmins = df['vmin'].to_numpy(dtype=float) if 'vmin' in df else None
        track = cls.from_arrays(df['distance'].to_numpy(dtype=float),
                                df['radius'].to_numpy(dtype=float),
                                slopes, vmins, name=csv_path.stem)
        logger.info("Loaded %d track points, total distance: %.1f m",
                    len(track.distances), track.total_distance)
        return track

    @property
    def total_distance(self) -> float:
        return float(self.distances[-1] - self.distances[0])

    def curvature_at(self, distance):
        return np.interp(distance, self.distances, self.curvatures)

    def slope_at(self, distance):
        return np.interp(distance, self.distances, self.slopes)

    def radius_at(self, distance):
        """Corner radius at a distance (inf on straights)."""
        curv = np.abs(self.curvature_at(distance))
        with np.errstate(divide='ignore'):
            return np.where(curv < 1e-6, np.inf, 1.0 / np.maximum(curv, 1e-12))

    def in_corner(self, distance):
        """True where both samples around a distance lie in a corner."""
        distance = np.atleast_1d(np.asarray(distance, dtype=float))
        k = np.searchsorted(self.distances, distance, side='right') - 1
        k = np.clip(k, 0, len(self.distances) - 2)
        curved = np.abs(self.curvatures) > 0
        return curved[k] & curved[k + 1]

    def resample(self, segment_length: float) -> np.ndarray:
        """
        Segment start distances at a uniform spacing.

        The last segment covers the remainder of the track and may be shorter.

        Returns:
            Start distances; segment i ends at start[i + 1] (or the finish)
        """
        if segment_length <= 0:
            raise TrackDataError("segment length must be positive")
        start = self.distances[0]
        count = int(np.ceil(np.round(self.total_distance / segment_length, 9)))
        return start + segment_length * np.arange(max(count, 1))

    def segments(self, config: Optional[SolverConfig] = None,
                 dynamics: Optional[VehicleDynamics] = None) -> List[TrackSegment]:
        """
        Build solver segments with speed bounds.

        vdop is the cornering speed at the segment end, capped at max_speed.
        Without a vmin column, vmin lies v_gap below vdop where the segment
        ends inside a corner whose grip limit binds, and is min_speed
        elsewhere. A vmin column overrides this; unset samples and the
        floor fall back to min_speed.
        """
        config = config or SolverConfig()
        dynamics = dynamics or VehicleDynamics()

        starts = self.resample(config.segment_length)
        ends = np.append(starts[1:], self.distances[-1])
        lengths = ends - starts

        radii = self.radius_at(ends)
        cornering = dynamics.max_cornering_speed(radii, config.max_lateral_acceleration)
        vdop = np.minimum(cornering, config.max_speed)
        if self.vmins is not None:
            vmin = np.interp(ends, self.distances,
                             np.nan_to_num(self.vmins, nan=config.min_speed))
        else:
            limited = self.in_corner(ends) & (cornering < config.max_speed)
            vmin = np.where(limited, vdop - config.v_gap, config.min_speed)
        vmin = np.maximum(vmin, config.min_speed)
        slopes = self.slope_at(starts)

        segments = [
            TrackSegment(distance=float(starts[i]), length=float(round(lengths[i], 6)),
                         vmin=float(vmin[i]), vdop=float(vdop[i]),
                         slope=float(slopes[i]), radius=float(radii[i]))
            for i in range(len(starts))
        ]
        logger.info("Built %d segments of %.1f m", len(segments), config.segment_length)
        return segments

    def summary(self, segments: Optional[List[TrackSegment]] = None) -> str:
        """Generate track summary."""
        curvatures = np.abs(self.curvatures)
        max_curv = float(curvatures.max())
        text = f"""
Track Summary ({self.name}):
  Total distance: {self.total_distance:.1f} m
  Samples: {len(self.distances)}
  Max slope: {np.degrees(self.slopes.max()):.2f} deg uphill, {np.degrees(self.slopes.min()):.2f} deg downhill
  Tightest radius: {(1 / max_curv) if max_curv > 0 else float('inf'):.1f} m
"""
        if segments:
            slowest = min(segments, key=lambda s: s.vdop)
            text += (f"  Segments: {len(segments)}\n"
                     f"  Slowest point: {slowest.vdop:.1f} km/h at {slowest.distance:.1f} m\n")
        return text
