#!/usr/bin/env python3
"""
Drive Policy Optimization

Main entry point for solving the optimal throttle/brake policy of a track
and replaying a lap with it.

Usage:
    python optimize_drive.py --track track.csv [options]

This will:
1. Load the track data
2. Build segments with speed bounds from the cornering radius
3. Solve the policy by backward induction
4. Simulate a lap from the start speed
5. Export the policy table and the lap trace
"""

import argparse
import json
import logging
from pathlib import Path

from drive_policy.config import SolverConfig
from drive_policy.exceptions import DrivePolicyError, ConfigurationError
from drive_policy.policy_solver import Policy, PolicySolver
from drive_policy.simulator import SimulationTrace, simulate
from drive_policy.track_analysis import Track


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(
        description='Optimal throttle/brake policy for a discretized track',
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python optimize_drive.py --track monza.csv
  python optimize_drive.py --track monza.csv --start-speed 120 --fuel-weight 0.8
  python optimize_drive.py --track monza.csv --config solver.json --output results/
        """
    )

    # Track data
    parser.add_argument('--track', type=str, required=True,
                        help='Path to track CSV file (distance, radius, slope)')
    parser.add_argument('--start-speed', type=float, default=100.0,
                        help='Speed at the start line in km/h (default: 100)')

    # Solver configuration
    parser.add_argument('--config', type=str, default=None,
                        help='JSON file with solver configuration fields')
    parser.add_argument('--speed-points', type=int, default=None,
                        help='Number of speed grid steps')
    parser.add_argument('--acceleration-points', type=int, default=None,
                        help='Number of acceleration grid steps')
    parser.add_argument('--pedal-points', type=int, default=None,
                        help='Number of pedal grid steps')
    parser.add_argument('--segment-length', type=float, default=None,
                        help='Track resampling distance in m')
    parser.add_argument('--fuel-weight', type=float, default=None,
                        help='Time weight against fuel use, 0-1 (1 = time only)')

    # Output options
    parser.add_argument('--output', type=str, default='results',
                        help='Output directory for results')
    parser.add_argument('--sep', type=str, default=';',
                        help='Delimiter of the exported policy table')
    parser.add_argument('-v', '--verbose', action='store_true',
                        help='Log per-segment details')

    return parser.parse_args(argv)


def load_config(args) -> SolverConfig:
    """Combine the JSON config file with command line overrides."""
    values = {}
    if args.config:
        try:
            with open(args.config) as f:
                values = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"cannot read config {args.config}: {e}") from e

    overrides = {
        'speed_points': args.speed_points,
        'acceleration_points': args.acceleration_points,
        'pedal_points': args.pedal_points,
        'segment_length': args.segment_length,
        'fuel_weight': args.fuel_weight,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    return SolverConfig.from_dict(values)


def run_optimization(args):
    """Run the full optimization pipeline."""

    print("=" * 60)
    print("DRIVE POLICY OPTIMIZATION")
    print("=" * 60)

    config = load_config(args)

    # Load track
    print("\n[1] Loading track data...")
    track = Track.from_csv(args.track)

    # Build solver and segments
    print("\n[2] Building grids and potentials...")
    solver = PolicySolver(config)
    grids = solver.grids
    print(f"  Speed: {grids.speed.min}-{grids.speed.max} km/h, {grids.speed.size} points")
    print(f"  Acceleration: {grids.acceleration.min}-{grids.acceleration.max} m/s², "
          f"{grids.acceleration.size} points")
    print(f"  Pedal: {grids.pedal.min}-{grids.pedal.max}, {grids.pedal.size} points")
    print(f"  Fuel weight: {config.fuel_weight}")

    segments = track.segments(config, solver.dynamics)
    print(track.summary(segments))

    # Solve
    print("[3] Solving policy by backward induction...")
    policy = solver.solve(segments)

    # Simulate
    print("\n[4] Simulating lap...")
    trace = simulate(policy, segments, args.start_speed, solver.dynamics,
                     (grids.speed.min, grids.speed.max))

    return config, policy, trace


def export_results(config: SolverConfig, policy: Policy, trace: SimulationTrace, args):
    """Export results to files."""

    output_dir = Path(args.output)
    output_dir.mkdir(parents=True, exist_ok=True)

    print("\n[5] Exporting results...")

    policy_path = output_dir / 'policy.csv'
    policy.to_csv(policy_path, sep=args.sep)
    print(f"  Saved policy: {policy_path}")

    trace_path = output_dir / 'trace.csv'
    trace.to_csv(trace_path)
    print(f"  Saved trace: {trace_path}")

    config_path = output_dir / 'solver_config.json'
    with open(config_path, 'w') as f:
        json.dump(config.to_dict(), f, indent=2)
    print(f"  Saved config: {config_path}")


def main(argv=None):
    """Main entry point."""
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s')

    try:
        config, policy, trace = run_optimization(args)
        export_results(config, policy, trace, args)
    except DrivePolicyError as e:
        print(f"\nError: {e}")
        return 1

    braking = sum(1 for p in trace.pedals if p < 0)

    print("\n" + "=" * 60)
    print("OPTIMIZATION COMPLETE")
    print("=" * 60)
    print(f"  Lap time: {trace.lap_time:.3f} s")
    print(f"  Final speed: {trace.final_speed:.1f} km/h")
    print(f"  Top speed: {max(trace.speeds):.1f} km/h")
    print(f"  Braking segments: {braking} of {len(trace.pedals)}")
    print(f"\nResults saved to: {args.output}")

    return 0


if __name__ == "__main__":
    exit(main())
