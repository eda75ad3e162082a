"""
Tests for configuration objects, YAML run configs and dataset validation.
"""

import numpy as np
import polars as pl
import pytest

from gridwindow import run_config
from gridwindow.core.config import (
    GridSpec,
    GridStrategy,
    OnEmpty,
    OnError,
    RunOptions,
    WindowSpec,
)
from gridwindow.core.parallel import JoblibExecutor, SequentialExecutor
from gridwindow.io import load_config, parse_config
from gridwindow.validation import InvalidParameterError, validate_dataset


class TestGridSpec:
    """Validation of grid parameters."""

    def test_defaults(self):
        spec = GridSpec(dimensions=['x', 'y'])

        assert spec.target_point_count == 100
        assert spec.strategy is GridStrategy.IDENTICAL
        assert spec.alpha is None
        assert spec.n_dims == 2

    def test_strategy_from_string(self):
        spec = GridSpec(dimensions=['x', 'y'], strategy='ahull_fill')
        assert spec.strategy is GridStrategy.AHULL_FILL
        assert spec.strategy.planar_only
        assert spec.strategy.uses_boundary

    def test_single_dimension_string(self):
        assert GridSpec(dimensions='t').dimensions == ['t']

    @pytest.mark.parametrize("kwargs", [
        {'dimensions': []},
        {'dimensions': ['x', 'x']},
        {'dimensions': ['x'], 'target_point_count': 0},
        {'dimensions': ['x'], 'target_point_count': 2.5},
        {'dimensions': ['x'], 'target_point_count': True},
        {'dimensions': ['x'], 'strategy': 'hexagonal'},
        {'dimensions': ['x'], 'alpha': 0.0},
        {'dimensions': ['x'], 'alpha': -2.0},
        {'dimensions': ['x'], 'tolerance': 1.5},
        {'dimensions': ['x'], 'max_iter': 0},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidParameterError):
            GridSpec(**kwargs)


class TestWindowSpec:
    """Radius and half-width windows."""

    def test_exactly_one_form(self):
        with pytest.raises(InvalidParameterError):
            WindowSpec()
        with pytest.raises(InvalidParameterError):
            WindowSpec(radius=1.0, half_widths=(1.0,))

    @pytest.mark.parametrize("kwargs", [
        {'radius': 0.0},
        {'radius': -1.0},
        {'radius': float('inf')},
        {'half_widths': ()},
        {'half_widths': (1.0, -1.0)},
        {'half_widths': {'x': 0.0}},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidParameterError):
            WindowSpec(**kwargs)

    def test_coerce(self):
        assert WindowSpec.coerce(2.5).radius == 2.5
        assert WindowSpec.coerce([1.0, 2.0]).half_widths == (1.0, 2.0)
        assert WindowSpec.coerce(np.array([1.0, 2.0])).half_widths == (1.0, 2.0)
        assert WindowSpec.coerce({'radius': 3.0}).radius == 3.0
        assert WindowSpec.coerce({'x': 1.0}).half_widths == {'x': 1.0}

        spec = WindowSpec(radius=1.0)
        assert WindowSpec.coerce(spec) is spec

    def test_resolve_half_widths(self):
        spec = WindowSpec(half_widths={'y': 2.0, 'x': 1.0})
        assert spec.resolve_half_widths(['x', 'y']) == (1.0, 2.0)

        with pytest.raises(InvalidParameterError):
            spec.resolve_half_widths(['x', 'y', 'z'])
        with pytest.raises(InvalidParameterError):
            WindowSpec(radius=1.0).resolve_half_widths(['x'])


class TestRunOptions:

    def test_coercion(self):
        options = RunOptions(on_empty='fill', on_error='skip')
        assert options.on_empty is OnEmpty.FILL
        assert options.on_error is OnError.SKIP
        assert options.to_dict()['executor'] == 'sequential'

    @pytest.mark.parametrize("kwargs", [
        {'on_empty': 'drop'},
        {'on_error': 'ignore'},
        {'progress': 'not callable'},
    ])
    def test_invalid(self, kwargs):
        with pytest.raises(InvalidParameterError):
            RunOptions(**kwargs)


class TestRunConfig:
    """YAML run configuration."""

    CONFIG = (
        "grid:\n"
        "  strategy: squaretile\n"
        "  dimensions: [x, y]\n"
        "  target_point_count: 25\n"
        "window:\n"
        "  half_widths: {x: 1.0, y: 2.0}\n"
        "run:\n"
        "  on_empty: fill\n"
        "  n_jobs: 2\n"
        "  backend: threading\n"
    )

    def test_load_file(self, tmp_path):
        path = tmp_path / 'sites.yaml'
        path.write_text(self.CONFIG)

        config = load_config(str(path))

        assert config.grid.strategy is GridStrategy.SQUARETILE
        assert config.grid.dimensions == ['x', 'y']
        assert config.grid.target_point_count == 25
        assert config.window.half_widths == {'x': 1.0, 'y': 2.0}
        assert config.options.on_empty is OnEmpty.FILL
        assert isinstance(config.options.executor, JoblibExecutor)
        assert config.options.executor.backend == 'threading'

    def test_load_directory(self, tmp_path):
        (tmp_path / 'gridwindow.yaml').write_text(self.CONFIG)
        config = load_config(str(tmp_path))
        assert config.grid.target_point_count == 25

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path))

    def test_sequential_by_default(self):
        config = parse_config({'grid': {'dimensions': ['t']}, 'window': {'radius': 1.0}})
        assert isinstance(config.options.executor, SequentialExecutor)

    @pytest.mark.parametrize("raw", [
        {'grid': {'dimensions': ['t']}},
        {'window': {'radius': 1.0}},
        {'grid': {'strategy': 'identical'}, 'window': {'radius': 1.0}},
        {'grid': {'dimensions': ['t'], 'shape': 'hex'}, 'window': {'radius': 1.0}},
        {'grid': {'dimensions': ['t']}, 'window': {'radius': 1.0}, 'output': {}},
        {'grid': ['t'], 'window': {'radius': 1.0}},
    ])
    def test_invalid(self, raw):
        with pytest.raises(InvalidParameterError):
            parse_config(raw)

    def test_run_config(self, tmp_path):
        path = tmp_path / 'gridwindow.yaml'
        path.write_text(
            "grid:\n"
            "  dimensions: [t]\n"
            "  target_point_count: 4\n"
            "window:\n"
            "  radius: 2.0\n"
        )
        df = pl.DataFrame({'t': [float(v) for v in range(1, 13)], 'v': [1.0] * 11 + [100.0]})

        table = run_config(df, str(path), lambda d: {'mean_v': d['v'].mean()})

        assert table.height == 4
        assert table['mean_v'].to_list()[-1] == pytest.approx(34.0)


class TestValidateDataset:
    """Dataset checks before gridding."""

    def test_report(self):
        df = pl.DataFrame({
            'x': [0.0, 1.0, None, 3.0],
            'y': [5.0, float('nan'), 7.0, 8.0],
            'v': ['a', 'b', 'c', 'd'],
        })

        report = validate_dataset(df, ['x', 'y'])

        assert report.total_rows == 4
        assert report.usable_rows == 2
        assert report.non_finite_rows == 2
        assert report.bounds['x'] == (0.0, 3.0)
        assert report.bounds['y'] == (5.0, 8.0)
        assert report.to_dict()['usable_rows'] == 2

    def test_missing_column(self):
        with pytest.raises(InvalidParameterError):
            validate_dataset(pl.DataFrame({'x': [1.0]}), ['x', 'y'])

    def test_non_numeric_column(self):
        with pytest.raises(InvalidParameterError):
            validate_dataset(pl.DataFrame({'x': ['a']}), ['x'])

    def test_unsupported_dataset_type(self):
        with pytest.raises(InvalidParameterError):
            validate_dataset({'x': [1.0]}, ['x'])
