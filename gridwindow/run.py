"""
gridwindow Runner
=================

One-call orchestration: build (or reuse) the grid, then run the window engine.
Pure orchestration, no computation here.

Usage:
    from gridwindow import run, GridSpec, WindowSpec

    table = run(
        df,
        GridSpec(dimensions=['t'], target_point_count=4),
        WindowSpec(radius=2.0),
        lambda d: {'mean_v': d['v'].mean()},
    )

    config = load_config('domains/sites/gridwindow.yaml')
    table = run_config(df, config, my_fn)
"""

import logging
import time
from typing import Any, Callable, Optional, Union

import polars as pl

from gridwindow.core.apply import ApplyReport, WindowApplyEngine
from gridwindow.core.config import GridSpec, RunOptions
from gridwindow.core.grid import Grid, build_grid
from gridwindow.io.manifest import RunConfig, load_config
from gridwindow.validation.errors import InvalidParameterError
from gridwindow.validation.input_validation import as_frame

logger = logging.getLogger(__name__)


def run(
    dataset: Any,
    grid_spec: Union[GridSpec, Grid],
    window: Any,
    fn: Callable,
    *fn_args: Any,
    options: Optional[RunOptions] = None,
    **fn_kwargs: Any,
) -> pl.DataFrame:
    """
    Grid the dataset, apply fn to every window, combine the results.

    Args:
        dataset: polars or pandas DataFrame
        grid_spec: GridSpec, or a ready Grid
        window: WindowSpec, scalar radius, or half-width sequence/mapping
        fn: Callback, fn(subset, *fn_args, **fn_kwargs)
        options: RunOptions

    Returns:
        polars.DataFrame in grid order
    """
    return run_detailed(
        dataset, grid_spec, window, fn, *fn_args, options=options, **fn_kwargs,
    ).table


def run_detailed(
    dataset: Any,
    grid_spec: Union[GridSpec, Grid],
    window: Any,
    fn: Callable,
    *fn_args: Any,
    options: Optional[RunOptions] = None,
    **fn_kwargs: Any,
) -> ApplyReport:
    """
    Same as run(), returning an ApplyReport.

    The report carries the table plus the empty-window count and, with
    on_error='skip', the WindowFailure of every skipped grid point.
    """
    df = as_frame(dataset)
    t0 = time.time()

    if isinstance(grid_spec, Grid):
        grid = grid_spec
        dimensions = list(grid.dimensions)
    elif isinstance(grid_spec, GridSpec):
        grid = build_grid(df, grid_spec)
        dimensions = grid_spec.dimensions
    else:
        raise InvalidParameterError('grid_spec', type(grid_spec).__name__, "expected a GridSpec or Grid")

    t1 = time.time()
    report = WindowApplyEngine(options).run_detailed(
        df, grid, window, fn,
        fn_args=fn_args, fn_kwargs=fn_kwargs, dimensions=dimensions,
    )
    t2 = time.time()

    logger.info(
        f"gridwindow: {len(grid)} grid points ({t1 - t0:.2f}s), "
        f"{report.table.height} output rows ({t2 - t1:.2f}s)"
    )
    return report


def run_config(
    dataset: Any,
    config: Union[RunConfig, str],
    fn: Callable,
    *fn_args: Any,
    **fn_kwargs: Any,
) -> pl.DataFrame:
    """run() driven by a RunConfig or the path of a YAML run configuration."""
    if not isinstance(config, RunConfig):
        config = load_config(config)
    return run(
        dataset, config.grid, config.window, fn, *fn_args,
        options=config.options, **fn_kwargs,
    )
