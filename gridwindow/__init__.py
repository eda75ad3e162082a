"""
gridwindow: windowed split-apply-combine over coordinate grids.

Public API:
    from gridwindow import run, GridSpec, WindowSpec
    run(dataset, GridSpec(dimensions=['x', 'y'], strategy='ahull_fill'), 2.5, fn)
    run_detailed(...)   same call, returns an ApplyReport with failures

Layers:
    gridwindow.core        Compute: grids, boundaries, windows, engine
    gridwindow.io          YAML run configuration
    gridwindow.validation  Error taxonomy and dataset checks

Grid strategies:
    identical    k per axis, Cartesian product (any D)
    squaretile   square cells over the bounding box (2-D)
    ahull_crop   squaretile cropped to the data's alpha-shape (2-D)
    ahull_fill   crop with a density search to hit the target count (2-D)
"""

from gridwindow.run import run, run_detailed, run_config
from gridwindow.core import (
    GridStrategy,
    GridSpec,
    WindowSpec,
    RunOptions,
    Grid,
    build_grid,
    build_grid_identical,
    build_grid_squaretile,
    build_grid_ahull_crop,
    build_grid_ahull_fill,
    WindowApplyEngine,
    JoblibExecutor,
    SequentialExecutor,
)
from gridwindow.io import load_config
from gridwindow.validation import (
    GridWindowError,
    InvalidParameterError,
    DegenerateInputError,
    UnsupportedDimensionError,
    NonConvergenceError,
    CallbackError,
    SchemaMismatchError,
)

__all__ = [
    'run',
    'run_detailed',
    'run_config',
    'load_config',
    'GridStrategy',
    'GridSpec',
    'WindowSpec',
    'RunOptions',
    'Grid',
    'build_grid',
    'build_grid_identical',
    'build_grid_squaretile',
    'build_grid_ahull_crop',
    'build_grid_ahull_fill',
    'WindowApplyEngine',
    'JoblibExecutor',
    'SequentialExecutor',
    'GridWindowError',
    'InvalidParameterError',
    'DegenerateInputError',
    'UnsupportedDimensionError',
    'NonConvergenceError',
    'CallbackError',
    'SchemaMismatchError',
]
