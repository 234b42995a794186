"""End-to-end tests for the command line entry point."""

import json

import pandas as pd
import pytest

import optimize_drive
from drive_policy.config import SolverConfig
from drive_policy.exceptions import ConfigurationError

COARSE = ['--speed-points', '38', '--acceleration-points', '40',
          '--pedal-points', '10', '--segment-length', '50']


@pytest.fixture
def track_csv(tmp_path):
    path = tmp_path / 'oval.csv'
    path.write_text('distance,radius,slope\n'
                    '0,,0\n'
                    '150,,0\n'
                    '250,80,0\n'
                    '350,,0\n'
                    '400,,0\n')
    return path


class TestMain:
    def test_writes_policy_and_trace(self, track_csv, tmp_path, capsys):
        out = tmp_path / 'out'
        code = optimize_drive.main(['--track', str(track_csv), '--output', str(out),
                                    '--start-speed', '150'] + COARSE)
        assert code == 0

        policy = pd.read_csv(out / 'policy.csv', sep=';', index_col=0)
        assert policy.shape == (39, 8)
        trace = pd.read_csv(out / 'trace.csv')
        assert len(trace) == 8
        assert (trace['segment_time_s'] > 0).all()
        # the policy must drive, not brake down to the grid minimum
        assert (trace['pedal'] > 0).any()
        assert (trace['speed_kmh'] > 18.0).all()
        assert trace['speed_kmh'].max() > 150.0
        # 400 m at 18 km/h takes 80 s
        assert trace['time_s'].iloc[-1] < 20.0

        saved = json.loads((out / 'solver_config.json').read_text())
        assert saved['speed_points'] == 38
        assert 'OPTIMIZATION COMPLETE' in capsys.readouterr().out

    def test_missing_track_returns_error(self, tmp_path, capsys):
        code = optimize_drive.main(['--track', str(tmp_path / 'none.csv'),
                                    '--output', str(tmp_path / 'out')])
        assert code == 1
        assert 'Error' in capsys.readouterr().out


class TestLoadConfig:
    def test_file_and_overrides(self, tmp_path):
        path = tmp_path / 'solver.json'
        path.write_text(json.dumps({'speed_points': 57, 'fuel_weight': 0.9}))
        args = optimize_drive.parse_args(['--track', 'x.csv', '--config', str(path),
                                          '--fuel-weight', '0.5'])
        config = optimize_drive.load_config(args)
        assert config == SolverConfig(speed_points=57, fuel_weight=0.5)

    def test_unknown_key_in_file(self, tmp_path):
        path = tmp_path / 'solver.json'
        path.write_text(json.dumps({'speed_steps': 57}))
        args = optimize_drive.parse_args(['--track', 'x.csv', '--config', str(path)])
        with pytest.raises(ConfigurationError):
            optimize_drive.load_config(args)
