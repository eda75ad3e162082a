"""
Window Apply Engine
===================

Split-apply-combine over a reference grid.

For every grid point, in grid order:
    1. select the rows inside the window of the point
    2. empty window -> skip | fill | call        (RunOptions.on_empty)
    3. fn(subset, *fn_args, **fn_kwargs)
       failure -> CallbackError | recorded skip  (RunOptions.on_error)
    4. hand the result to the ResultAssembler

Work is spread by an ExecutorPolicy. Results come back in submission order
and are assembled in grid order, so sequential and pooled runs give the
same table. With on_error='raise' the first failing point (in grid order)
stops dispatching and its CallbackError propagates.

Usage:
    engine = WindowApplyEngine(RunOptions(on_empty='fill'))
    table = engine.run(df, grid, WindowSpec(radius=2.0), lambda d: {'mean': d['v'].mean()})
"""

import logging
import traceback
from dataclasses import dataclass, field
from functools import partial
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import polars as pl

from gridwindow.core.assemble import ResultAssembler, normalize_result
from gridwindow.core.config import OnEmpty, OnError, RunOptions, WindowSpec
from gridwindow.core.grid import Grid
from gridwindow.core.neighborhood import NeighborhoodSelector
from gridwindow.core.parallel.executor import SequentialExecutor
from gridwindow.validation.errors import CallbackError, InvalidParameterError
from gridwindow.validation.input_validation import as_frame, coordinate_matrix

logger = logging.getLogger(__name__)


@dataclass
class WindowFailure:
    """A grid point skipped because the callback failed."""
    index: int
    point: Dict[str, float]
    error: BaseException
    traceback: str = ""


@dataclass
class ApplyReport:
    """Output table plus run diagnostics."""
    table: Optional[pl.DataFrame] = None
    n_points: int = 0
    n_empty: int = 0
    n_evaluated: int = 0
    failures: List[WindowFailure] = field(default_factory=list)

    def summary(self) -> str:
        lines = [
            f"Grid points: {self.n_points}",
            f"  Evaluated: {self.n_evaluated}",
            f"  Empty windows: {self.n_empty}",
            f"  Failed (skipped): {len(self.failures)}",
        ]
        if self.table is not None:
            lines.append(f"Output: {self.table.height} rows x {self.table.width} cols")
        for failure in self.failures[:10]:
            lines.append(
                f"  - point {failure.index}: {type(failure.error).__name__}: {failure.error}"
            )
        if len(self.failures) > 10:
            lines.append(f"  ... and {len(self.failures) - 10} more")
        return "\n".join(lines)


# ============================================================
# WORKER SIDE
# ============================================================

@dataclass
class _Outcome:
    index: int
    status: str  # 'ok', 'empty' or 'error'
    empty: bool = False
    frame: Optional[pl.DataFrame] = None
    error: Optional[BaseException] = None
    traceback: str = ""


@dataclass(frozen=True)
class _WindowContext:
    """Read-only state shared by every task of a run."""
    dataset: pl.DataFrame
    selector: NeighborhoodSelector
    points: np.ndarray
    fn: Callable
    fn_args: Tuple[Any, ...]
    fn_kwargs: Dict[str, Any]
    on_empty: OnEmpty
    stop_on_error: bool


def _run_chunk(context: _WindowContext, indices: np.ndarray) -> List[_Outcome]:
    """Process a contiguous run of grid points; designed for parallel execution."""
    outcomes = []
    for i in indices:
        i = int(i)
        subset = context.selector.select(context.dataset, context.points[i])
        empty = subset.height == 0
        if empty and context.on_empty is not OnEmpty.CALL:
            outcomes.append(_Outcome(i, 'empty', empty=True))
            continue

        try:
            result = context.fn(subset, *context.fn_args, **context.fn_kwargs)
            frame = normalize_result(result)
        except Exception as e:
            outcomes.append(_Outcome(i, 'error', empty=empty, error=e, traceback=traceback.format_exc()))
            if context.stop_on_error:
                break
            continue

        outcomes.append(_Outcome(i, 'ok', empty=empty, frame=frame))
    return outcomes


# ============================================================
# ENGINE
# ============================================================

class WindowApplyEngine:
    """
    Runs a callback over the windows of a grid.

    The engine keeps no state between runs; every run builds its own
    selector and assembler.

    Args:
        options: RunOptions (default: skip empty windows, raise on failure,
            sequential execution)
    """

    def __init__(self, options: Optional[RunOptions] = None):
        self.options = options if options is not None else RunOptions()

    def run(
        self,
        dataset: Any,
        grid: Grid,
        window: Any,
        fn: Callable,
        fn_args: Sequence[Any] = (),
        fn_kwargs: Optional[Mapping[str, Any]] = None,
        dimensions: Optional[Sequence[str]] = None,
    ) -> pl.DataFrame:
        """
        Apply fn to every window and return the combined table.

        Args:
            dataset: polars or pandas DataFrame
            grid: Reference grid
            window: WindowSpec, scalar radius, or half-width sequence/mapping
            fn: Callback, fn(subset, *fn_args, **fn_kwargs) -> result
            fn_args: Extra positional arguments for fn
            fn_kwargs: Extra keyword arguments for fn
            dimensions: Dataset coordinate columns matching the grid
                (default: grid.dimensions)

        Returns:
            polars.DataFrame: grid coordinates then callback columns, grid order
        """
        return self.run_detailed(
            dataset, grid, window, fn,
            fn_args=fn_args, fn_kwargs=fn_kwargs, dimensions=dimensions,
        ).table

    def run_detailed(
        self,
        dataset: Any,
        grid: Grid,
        window: Any,
        fn: Callable,
        fn_args: Sequence[Any] = (),
        fn_kwargs: Optional[Mapping[str, Any]] = None,
        dimensions: Optional[Sequence[str]] = None,
    ) -> ApplyReport:
        """Same as run(), returning an ApplyReport with diagnostics."""
        if not callable(fn):
            raise InvalidParameterError('fn', fn, "must be callable")
        if not isinstance(grid, Grid):
            raise InvalidParameterError('grid', type(grid).__name__, "expected a Grid")

        df = as_frame(dataset)
        dims = list(dimensions) if dimensions is not None else list(grid.dimensions)
        if len(dims) != grid.n_dims:
            raise InvalidParameterError(
                'dimensions', dims, f"grid has {grid.n_dims} dimensions {list(grid.dimensions)}"
            )

        window = WindowSpec.coerce(window)
        selector = NeighborhoodSelector(coordinate_matrix(df, dims), window, dims)

        options = self.options
        executor = options.executor if options.executor is not None else SequentialExecutor()
        stop_on_error = options.on_error is OnError.RAISE
        context = _WindowContext(
            dataset=df,
            selector=selector,
            points=grid.points,
            fn=fn,
            fn_args=tuple(fn_args),
            fn_kwargs=dict(fn_kwargs or {}),
            on_empty=options.on_empty,
            stop_on_error=stop_on_error,
        )

        n = len(grid)
        chunks = np.array_split(np.arange(n), executor.n_tasks(n)) if n else []
        logger.debug(f"window apply: {n} grid points in {len(chunks)} tasks via {executor!r}")

        assembler = ResultAssembler(dims)
        report = ApplyReport(n_points=n)
        done = 0

        results = executor.map(partial(_run_chunk, context), chunks)
        try:
            for outcomes in results:
                for outcome in outcomes:
                    point = dict(zip(dims, grid[outcome.index]))
                    if outcome.empty:
                        report.n_empty += 1

                    if outcome.status == 'error':
                        if stop_on_error:
                            raise CallbackError(point, outcome.error, index=outcome.index) from outcome.error
                        logger.warning(
                            f"window apply: skipping grid point {outcome.index} {point}: "
                            f"{type(outcome.error).__name__}: {outcome.error}"
                        )
                        report.failures.append(
                            WindowFailure(outcome.index, point, outcome.error, outcome.traceback)
                        )
                    elif outcome.status == 'empty':
                        if options.on_empty is OnEmpty.FILL:
                            assembler.add_missing(point)
                    else:
                        report.n_evaluated += 1
                        assembler.add(point, outcome.frame)

                    done += 1
                    if options.progress is not None:
                        options.progress(done, n)
        finally:
            close = getattr(results, 'close', None)
            if close is not None:
                close()

        report.table = assembler.assemble()
        if report.failures:
            logger.warning(f"window apply: {len(report.failures)} of {n} grid points failed and were skipped")
        return report
