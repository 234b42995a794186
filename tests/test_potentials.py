"""Tests for interpolation and utility potentials."""

from dataclasses import replace

import numpy as np
import pytest

from drive_policy.grids import make_grid
from drive_policy.policy_solver import PolicySolver
from drive_policy.potentials import locate, savings_transform


@pytest.fixture
def speed_grid():
    return make_grid('speed', 18.0, 360.0, 38, 2)


class TestLocate:
    def test_on_grid_point(self, speed_grid):
        potential = locate(speed_grid, [27.0])
        assert potential.index[0] == 1
        assert potential.weight[0] == pytest.approx(1.0)

    def test_between_points(self, speed_grid):
        potential = locate(speed_grid, [31.5])
        assert potential.index[0] == 1
        assert potential.weight[0] == pytest.approx(0.5)

    def test_clamped_below(self, speed_grid):
        potential = locate(speed_grid, [0.0, 18.0])
        assert list(potential.index) == [0, 0]
        assert list(potential.weight) == [1.0, 1.0]

    def test_clamped_above(self, speed_grid):
        potential = locate(speed_grid, [360.0, 500.0])
        assert list(potential.index) == [speed_grid.size - 1] * 2
        assert list(potential.weight) == [1.0, 1.0]

    def test_spread_reconstructs_clamped_value(self, speed_grid):
        values = np.array([5.0, 18.0, 40.0, 123.4, 355.0, 360.0, 420.0])
        potential = locate(speed_grid, values)
        padded = np.append(speed_grid.values, 0.0)
        np.testing.assert_allclose(potential.spread(padded),
                                   np.clip(values, speed_grid.min, speed_grid.max))


class TestTransitionPotentials:
    def _check(self, potential, target_size):
        assert np.all(potential.weight >= 0.0)
        assert np.all(potential.weight <= 1.0)
        assert potential.index.min() >= 0
        assert potential.index.max() <= target_size - 1
        assert potential.upper_index.max() <= target_size
        assert potential.target_size == target_size

    def test_speed_potential_is_well_formed(self, solver):
        potential = solver.speed_potential(50.0)
        grids = solver.grids
        assert potential.shape == (grids.speed.size, grids.acceleration.size)
        self._check(potential, grids.speed.size)

    def test_acceleration_potential_is_well_formed(self, solver):
        potential = solver.acceleration_potential(0.0)
        grids = solver.grids
        assert potential.shape == (grids.speed.size, grids.pedal.size)
        self._check(potential, grids.acceleration.size)

    def test_speed_potential_matches_dynamics(self, solver):
        grids = solver.grids
        potential = solver.speed_potential(50.0)
        expected = np.stack([solver.dynamics.next_speed(grids.speed.values, a, 50.0)
                             for a in grids.acceleration.values], axis=1)
        padded = np.append(grids.speed.values, 0.0)
        np.testing.assert_allclose(potential.spread(padded),
                                   np.clip(expected, grids.speed.min, grids.speed.max))

    def test_uphill_shifts_acceleration_down(self, solver):
        flat = solver.acceleration_potential(0.0)
        uphill = solver.acceleration_potential(0.1)
        assert np.all(uphill.index <= flat.index)

    def test_acceleration_potential_rebuilt_only_on_slope_change(self, solver):
        first = solver.acceleration_potential(0.0)
        assert solver.acceleration_potential(0.0) is first
        sloped = solver.acceleration_potential(0.02)
        assert sloped is not first
        assert solver.acceleration_potential(0.02) is sloped


class TestUtilityPotential:
    def test_shape_and_terminal_padding(self, solver):
        utility = solver.base_utility
        grids = solver.grids
        assert utility.shape == (grids.acceleration.size + 1, grids.speed.size + 1)
        assert np.all(utility.table[-1, :] == 0.0)
        assert np.all(utility.table[:, -1] == 0.0)

    def test_savings_are_non_negative(self, solver):
        assert np.all(solver.base_utility.table >= 0.0)

    def test_faster_cells_save_more(self, solver):
        table = solver.base_utility.table
        grids = solver.grids
        zero = int(np.argmin(np.abs(grids.acceleration.values)))
        savings = table[zero, :-1]
        assert np.all(np.diff(savings) >= 0)

    def test_global_threshold_is_shared(self, solver):
        shorter = solver.utility_potential(25.0)
        assert shorter.threshold == solver.base_utility.threshold

    def test_segment_threshold_is_recomputed(self, small_config):
        solver = PolicySolver(replace(small_config, percentile_scope='segment'))
        shorter = solver.utility_potential(25.0)
        assert shorter.threshold < solver.base_utility.threshold


class TestSavingsTransform:
    def test_non_finite_cells_are_skipped(self):
        raw = np.array([[1.0, 2.0, np.inf], [3.0, np.nan, 4.0]])
        savings, threshold = savings_transform(raw, 100.0)
        assert threshold == 4.0
        np.testing.assert_array_equal(savings, [[3.0, 2.0, 0.0], [1.0, 0.0, 0.0]])

    def test_values_above_threshold_clamp_to_zero(self):
        raw = np.arange(1.0, 101.0)
        savings, threshold = savings_transform(raw, 50.0)
        assert np.all(savings[raw >= threshold] == 0.0)
        assert np.all(savings >= 0.0)

    def test_all_non_finite_table(self):
        savings, threshold = savings_transform(np.full((2, 2), np.inf), 99.0)
        assert threshold == 0.0
        assert np.all(savings == 0.0)

    def test_reuses_given_threshold(self):
        savings, threshold = savings_transform(np.array([1.0, 2.0]), 99.0, threshold=5.0)
        assert threshold == 5.0
        np.testing.assert_array_equal(savings, [4.0, 3.0])
