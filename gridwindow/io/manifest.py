"""
Run Configuration: parse a YAML file into GridSpec, WindowSpec and RunOptions.

Layout:
    grid:
      strategy: ahull_fill
      dimensions: [x, y]
      target_point_count: 500
      alpha: 2.0
      verbose: true
    window:
      radius: 1.5                 # or half_widths: [1.0, 2.0] / {x: 1.0, y: 2.0}
    run:
      on_empty: fill
      on_error: skip
      n_jobs: 4
      backend: loky
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict

import yaml

from gridwindow.core.config import GridSpec, RunOptions, WindowSpec
from gridwindow.core.parallel.executor import make_executor
from gridwindow.validation.errors import InvalidParameterError

CONFIG_FILENAME = 'gridwindow.yaml'

_GRID_KEYS = {'strategy', 'dimensions', 'target_point_count', 'alpha', 'verbose', 'tolerance', 'max_iter'}
_WINDOW_KEYS = {'radius', 'half_widths'}
_RUN_KEYS = {'on_empty', 'on_error', 'n_jobs', 'backend', 'chunks_per_worker'}
_SECTIONS = {'grid': _GRID_KEYS, 'window': _WINDOW_KEYS, 'run': _RUN_KEYS}


@dataclass
class RunConfig:
    """Everything a run needs besides the data and the callback."""
    grid: GridSpec
    window: WindowSpec
    options: RunOptions


def _section(raw: Dict[str, Any], name: str, required: bool) -> Dict[str, Any]:
    section = raw.get(name)
    if section is None:
        if required:
            raise InvalidParameterError(name, None, f"config section '{name}' is required")
        return {}
    if not isinstance(section, dict):
        raise InvalidParameterError(name, section, "config section must be a mapping")

    unknown = sorted(set(section) - _SECTIONS[name])
    if unknown:
        raise InvalidParameterError(
            name, unknown, f"unknown keys (allowed: {sorted(_SECTIONS[name])})"
        )
    return dict(section)


def parse_config(raw: Dict[str, Any]) -> RunConfig:
    """Build a RunConfig from an already-loaded mapping."""
    if not isinstance(raw, dict):
        raise InvalidParameterError('config', type(raw).__name__, "expected a mapping")
    unknown = sorted(set(raw) - set(_SECTIONS))
    if unknown:
        raise InvalidParameterError('config', unknown, f"unknown sections (allowed: {sorted(_SECTIONS)})")

    grid_raw = _section(raw, 'grid', required=True)
    window_raw = _section(raw, 'window', required=True)
    run_raw = _section(raw, 'run', required=False)

    if 'dimensions' not in grid_raw:
        raise InvalidParameterError('grid.dimensions', None, "is required")
    grid = GridSpec(**grid_raw)
    window = WindowSpec(**window_raw)

    n_jobs = run_raw.pop('n_jobs', None)
    executor_kwargs = {'backend': run_raw.pop('backend', 'loky')}
    if 'chunks_per_worker' in run_raw:
        executor_kwargs['chunks_per_worker'] = run_raw.pop('chunks_per_worker')
    executor = make_executor(n_jobs, **executor_kwargs)
    options = RunOptions(executor=executor, **run_raw)

    return RunConfig(grid=grid, window=window, options=options)


def load_config(path: str) -> RunConfig:
    """
    Load a run configuration.

    Tries:
        1. path itself (if it's a .yaml/.yml file)
        2. path/gridwindow.yaml
    """
    p = Path(path)
    if p.is_file() and p.suffix in ('.yaml', '.yml'):
        config_path = p
    else:
        config_path = p / CONFIG_FILENAME

    if not config_path.exists():
        raise FileNotFoundError(f"No {CONFIG_FILENAME} in {path}")

    with open(config_path) as f:
        raw = yaml.safe_load(f) or {}

    return parse_config(raw)

