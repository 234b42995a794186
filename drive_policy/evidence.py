"""
Speed evidence: a permitted speed interval as a soft indicator over the speed grid.
"""

import numpy as np

from .grids import DiscretizationGrid


def build_evidence(speed_grid: DiscretizationGrid, lower: float, upper: float) -> np.ndarray:
    """
    Soft indicator of the interval [lower, upper] over the speed grid.

    Grid speeds inside the interval get 1. The grid speed just below `lower`
    and the one just above `upper` get the fraction of their step towards
    the interval that lies inside it, so the indicator falls off linearly
    within one step. Everything else is 0. An empty interval (lower > upper)
    gives all zeros.

    Args:
        speed_grid: Speed grid in km/h
        lower: Minimum allowed speed in km/h
        upper: Maximum allowed speed in km/h

    Returns:
        Vector of length len(speed_grid) + 1; the last slot is the sentinel (0)
    """
    points = speed_grid.values
    n = len(points)
    result = np.zeros(n + 1)
    if not lower <= upper:
        return result

    lower = min(max(lower, points[0]), points[-1])
    upper = min(max(upper, points[0]), points[-1])

    inside = (points >= lower) & (points <= upper)
    result[:n][inside] = 1.0

    # First grid point below the interval
    j = np.searchsorted(points, lower, side='left') - 1
    if j >= 0:
        step = points[j + 1] - points[j]
        result[j] = max(min(points[j + 1], upper) - lower, 0.0) / step

    # First grid point above the interval
    k = np.searchsorted(points, upper, side='right')
    if k < n:
        step = points[k] - points[k - 1]
        result[k] = max(upper - max(points[k - 1], lower), 0.0) / step

    return result
