"""
gridwindow core
===============

Compute layer: DataFrames and arrays in, DataFrames and grids out, no file I/O.

Structure:
    config.py        - GridSpec, WindowSpec, RunOptions, strategy enums
    boundary.py      - Alpha-shape construction and membership
    grid.py          - Grid type and the four grid strategies
    neighborhood.py  - Window queries (radius or per-dimension half-widths)
    assemble.py      - Schema-checked concatenation of window results
    apply.py         - WindowApplyEngine (split-apply-combine over a grid)
    parallel/        - Executor policies (sequential, joblib)
"""

from gridwindow.core.config import (
    GridStrategy,
    GridSpec,
    WindowSpec,
    RunOptions,
    OnEmpty,
    OnError,
)
from gridwindow.core import boundary
from gridwindow.core.boundary import AlphaShape
from gridwindow.core.grid import (
    Grid,
    build_grid,
    build_grid_identical,
    build_grid_squaretile,
    build_grid_ahull_crop,
    build_grid_ahull_fill,
)
from gridwindow.core.neighborhood import NeighborhoodSelector, select
from gridwindow.core.assemble import ResultAssembler, assemble, normalize_result
from gridwindow.core.apply import WindowApplyEngine, ApplyReport, WindowFailure
from gridwindow.core.parallel import (
    ExecutorPolicy,
    SequentialExecutor,
    JoblibExecutor,
    make_executor,
)

__all__ = [
    # Configuration
    'GridStrategy',
    'GridSpec',
    'WindowSpec',
    'RunOptions',
    'OnEmpty',
    'OnError',
    # Boundary
    'boundary',
    'AlphaShape',
    # Grids
    'Grid',
    'build_grid',
    'build_grid_identical',
    'build_grid_squaretile',
    'build_grid_ahull_crop',
    'build_grid_ahull_fill',
    # Windows
    'NeighborhoodSelector',
    'select',
    # Assembly
    'ResultAssembler',
    'assemble',
    'normalize_result',
    # Engine
    'WindowApplyEngine',
    'ApplyReport',
    'WindowFailure',
    # Execution
    'ExecutorPolicy',
    'SequentialExecutor',
    'JoblibExecutor',
    'make_executor',
]
