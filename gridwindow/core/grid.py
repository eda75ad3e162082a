"""
Grid Builder
============

Reference grids over the coordinate domain of a dataset.

Strategies (GridStrategy):
    identical   k = ceil(N^(1/D)) evenly spaced values per axis over the
                observed min..max, Cartesian product -> k^D points. Any D.
    squaretile  one spacing s for both axes, s = sqrt(width * height / N),
                cell-centre lattice centred on the bounding box. D = 2.
    ahull_crop  squaretile lattice, keep only points inside the alpha-shape
                of the data. D = 2.
    ahull_fill  repeat the crop while refining the spacing until the kept
                count lands within tolerance of N. D = 2.

Every builder ignores rows with missing or non-finite coordinates.

Usage:
    grid = build_grid(df, GridSpec(dimensions=['x', 'y'], target_point_count=500,
                                   strategy='ahull_fill'))
    grid = build_grid_squaretile(df.select('x', 'y'), 400)

Grids are immutable. Build an expensive one once (ahull_fill) and pass it back
through GridSpec(grid=...) to reuse it with other aggregation functions.
"""

import logging
import math
import warnings
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

import numpy as np
import polars as pl

from gridwindow.core import boundary
from gridwindow.core.config import (
    DEFAULT_FILL_MAX_ITER,
    DEFAULT_FILL_TOLERANCE,
    GridSpec,
    GridStrategy,
    positive_float,
    positive_int,
)
from gridwindow.validation.errors import (
    DegenerateInputError,
    InvalidParameterError,
    NonConvergenceError,
    UnsupportedDimensionError,
)
from gridwindow.validation.input_validation import as_frame, coordinate_matrix, finite_rows

logger = logging.getLogger(__name__)

ReferencePoint = Tuple[float, ...]

# Refuse lattices larger than this (runaway spacing refinement)
MAX_LATTICE_POINTS = 20_000_000


# ============================================================
# GRID
# ============================================================

@dataclass(frozen=True, eq=False)
class Grid:
    """
    Ordered, immutable set of reference points.

    Attributes:
        points: (n, D) read-only float64 array
        dimensions: Coordinate names, one per column of points
        strategy: Name of the strategy that produced the grid (None if external)
        metadata: Strategy details (spacing, alpha, lattice size, history, ...)
    """
    points: np.ndarray
    dimensions: Tuple[str, ...]
    strategy: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        dims = (self.dimensions,) if isinstance(self.dimensions, str) else tuple(self.dimensions)
        pts = np.array(self.points, dtype=np.float64)
        if pts.ndim == 1 and (pts.size == 0 or len(dims) == 1):
            pts = pts.reshape(-1, len(dims))
        if pts.ndim != 2 or pts.shape[1] != len(dims):
            raise InvalidParameterError(
                'grid', pts.shape, f"expected (n, {len(dims)}) points for dimensions {list(dims)}"
            )
        if not np.all(np.isfinite(pts)):
            raise InvalidParameterError('grid', pts.shape, "grid points must be finite")
        pts.setflags(write=False)
        object.__setattr__(self, 'points', pts)
        object.__setattr__(self, 'dimensions', dims)
        object.__setattr__(self, 'metadata', dict(self.metadata))

    def __len__(self) -> int:
        return self.points.shape[0]

    def __iter__(self) -> Iterator[ReferencePoint]:
        for row in self.points:
            yield tuple(float(v) for v in row)

    def __getitem__(self, index: int) -> ReferencePoint:
        return tuple(float(v) for v in self.points[index])

    def __repr__(self) -> str:
        return f"Grid(n={len(self)}, dimensions={list(self.dimensions)}, strategy={self.strategy!r})"

    @property
    def n_dims(self) -> int:
        return len(self.dimensions)

    @property
    def is_empty(self) -> bool:
        return len(self) == 0

    def point_dict(self, index: int) -> Dict[str, float]:
        """Coordinates of one point keyed by dimension name."""
        return dict(zip(self.dimensions, self[index]))

    def to_frame(self) -> pl.DataFrame:
        """Grid as a polars frame, one Float64 column per dimension."""
        return pl.DataFrame(
            {dim: self.points[:, i] for i, dim in enumerate(self.dimensions)},
            schema={dim: pl.Float64 for dim in self.dimensions},
        )

    @classmethod
    def from_frame(
        cls,
        frame: Any,
        dimensions: Optional[Sequence[str]] = None,
        strategy: Optional[str] = None,
    ) -> 'Grid':
        """Build a grid from the coordinate columns of a polars or pandas frame."""
        df = as_frame(frame)
        dims = list(dimensions) if dimensions is not None else list(df.columns)
        return cls(coordinate_matrix(df, dims), tuple(dims), strategy=strategy)


# ============================================================
# HELPERS
# ============================================================

def _default_names(n_dims: int) -> Tuple[str, ...]:
    if n_dims <= 3:
        return ('x', 'y', 'z')[:n_dims]
    return tuple(f"dim_{i}" for i in range(n_dims))


def _coordinates(data: Any, dimensions: Optional[Sequence[str]] = None) -> Tuple[np.ndarray, Tuple[str, ...]]:
    """Finite coordinate rows of a frame or array, plus dimension names."""
    if isinstance(data, (pl.DataFrame,)) or hasattr(data, 'columns'):
        df = as_frame(data)
        dims = tuple(dimensions) if dimensions is not None else tuple(df.columns)
        arr = coordinate_matrix(df, dims)
    else:
        arr = np.asarray(data, dtype=np.float64)
        if arr.ndim == 1:
            arr = arr.reshape(-1, 1)
        if arr.ndim != 2:
            raise InvalidParameterError('coords', arr.shape, "expected an (n, D) array")
        dims = tuple(dimensions) if dimensions is not None else _default_names(arr.shape[1])
        if len(dims) != arr.shape[1]:
            raise InvalidParameterError(
                'dimensions', list(dims), f"array has {arr.shape[1]} columns"
            )

    arr = arr[finite_rows(arr)]
    if len(arr) == 0:
        raise DegenerateInputError("no rows with finite coordinates", n_points=0)
    return arr, dims


def _require_planar(arr: np.ndarray, operation: str) -> None:
    if arr.shape[1] != 2:
        raise UnsupportedDimensionError(operation, arr.shape[1])


def _points_per_axis(n_points: int, n_dims: int) -> int:
    """Smallest k with k ** n_dims >= n_points, in integer arithmetic."""
    k = max(1, int(round(n_points ** (1.0 / n_dims))))
    while k ** n_dims < n_points:
        k += 1
    while k > 1 and (k - 1) ** n_dims >= n_points:
        k -= 1
    return k


def _tile_spacing(lo: np.ndarray, hi: np.ndarray, n_points: int) -> float:
    """Square cell size giving about n_points cells over the box."""
    width, height = hi - lo
    if width > 0 and height > 0:
        return math.sqrt(width * height / n_points)
    span = max(width, height)
    if span > 0:
        return span / n_points
    return 0.0


def _lattice_shape(lo: np.ndarray, hi: np.ndarray, spacing: float) -> Tuple[int, int]:
    """Cells per axis for a square lattice of the given spacing."""
    if spacing <= 0:
        return 1, 1
    width, height = hi - lo
    return max(1, int(round(width / spacing))), max(1, int(round(height / spacing)))


def _square_lattice(lo: np.ndarray, hi: np.ndarray, spacing: float) -> np.ndarray:
    """Cell-centre lattice of the given spacing, centred on the box."""
    centre = (lo + hi) / 2.0
    if spacing <= 0:
        return centre[None, :]
    nx, ny = _lattice_shape(lo, hi, spacing)
    if nx * ny > MAX_LATTICE_POINTS:
        raise InvalidParameterError(
            'spacing', spacing, f"lattice would hold {nx * ny:,} points (limit {MAX_LATTICE_POINTS:,})"
        )
    xs = centre[0] + (np.arange(nx) - (nx - 1) / 2.0) * spacing
    ys = centre[1] + (np.arange(ny) - (ny - 1) / 2.0) * spacing
    gx, gy = np.meshgrid(xs, ys, indexing='ij')
    return np.column_stack([gx.ravel(), gy.ravel()])


# ============================================================
# STRATEGIES
# ============================================================

def build_grid_identical(
    coords: Any,
    n_points: int,
    dimensions: Optional[Sequence[str]] = None,
) -> Grid:
    """
    k evenly spaced values per axis, k = ceil(n_points ** (1/D)).

    An axis whose observed range is zero contributes its single value, so the
    grid then holds fewer than k ** D points.

    Args:
        coords: Frame (coordinate columns) or (n, D) array
        n_points: Target point count
        dimensions: Coordinate column names (default: all frame columns)

    Returns:
        Grid with the first dimension varying slowest
    """
    n_points = positive_int('n_points', n_points)
    arr, dims = _coordinates(coords, dimensions)
    k = _points_per_axis(n_points, arr.shape[1])
    lo, hi = arr.min(axis=0), arr.max(axis=0)

    axes = [
        np.linspace(lo[i], hi[i], k) if hi[i] > lo[i] else np.array([lo[i]])
        for i in range(arr.shape[1])
    ]
    mesh = np.meshgrid(*axes, indexing='ij')
    points = np.column_stack([m.ravel() for m in mesh])

    logger.debug(f"identical: {len(points)} points ({k} per axis) for target {n_points}")
    return Grid(
        points, dims,
        strategy=GridStrategy.IDENTICAL.value,
        metadata={'target_point_count': n_points, 'points_per_axis': k},
    )


def build_grid_squaretile(
    coords: Any,
    n_points: int,
    dimensions: Optional[Sequence[str]] = None,
) -> Grid:
    """
    Square cells of a single spacing over the bounding box (2-D only).

    Args:
        coords: Frame (coordinate columns) or (n, 2) array
        n_points: Target point count
        dimensions: Coordinate column names

    Returns:
        Grid of cell centres, about n_points of them
    """
    n_points = positive_int('n_points', n_points)
    arr, dims = _coordinates(coords, dimensions)
    _require_planar(arr, GridStrategy.SQUARETILE.value)

    lo, hi = arr.min(axis=0), arr.max(axis=0)
    spacing = _tile_spacing(lo, hi, n_points)
    points = _square_lattice(lo, hi, spacing)

    logger.debug(f"squaretile: {len(points)} points at spacing {spacing:.6g} for target {n_points}")
    return Grid(
        points, dims,
        strategy=GridStrategy.SQUARETILE.value,
        metadata={'target_point_count': n_points, 'spacing': spacing},
    )


def build_grid_ahull_crop(
    coords: Any,
    n_points: int,
    alpha: Optional[float] = None,
    dimensions: Optional[Sequence[str]] = None,
    shape: Optional[boundary.AlphaShape] = None,
) -> Grid:
    """
    Squaretile lattice cropped to the alpha-shape of the data (2-D only).

    The kept count is usually below n_points and is not adjusted.

    Args:
        coords: Frame (coordinate columns) or (n, 2) array
        n_points: Target point count for the uncropped lattice
        alpha: Alpha-shape radius (None = boundary.default_alpha)
        dimensions: Coordinate column names
        shape: Pre-built AlphaShape; skips boundary construction

    Returns:
        Grid of lattice points inside the shape

    Raises:
        DegenerateInputError: no lattice point falls inside the shape
    """
    n_points = positive_int('n_points', n_points)
    arr, dims = _coordinates(coords, dimensions)
    _require_planar(arr, GridStrategy.AHULL_CROP.value)
    if shape is None:
        shape = boundary.build(arr, alpha)

    lo, hi = arr.min(axis=0), arr.max(axis=0)
    spacing = _tile_spacing(lo, hi, n_points)
    lattice = _square_lattice(lo, hi, spacing)
    points = lattice[shape.contains(lattice)]

    if len(points) == 0:
        raise DegenerateInputError(
            f"ahull_crop: none of {len(lattice)} lattice points fall inside the "
            f"alpha-shape (alpha={shape.alpha:.6g}); raise n_points or alpha"
        )
    logger.debug(f"ahull_crop: kept {len(points)}/{len(lattice)} lattice points")

    return Grid(
        points, dims,
        strategy=GridStrategy.AHULL_CROP.value,
        metadata={
            'target_point_count': n_points,
            'spacing': spacing,
            'alpha': shape.alpha,
            'lattice_size': len(lattice),
        },
    )


def build_grid_ahull_fill(
    coords: Any,
    n_points: int,
    alpha: Optional[float] = None,
    dimensions: Optional[Sequence[str]] = None,
    tolerance: float = DEFAULT_FILL_TOLERANCE,
    max_iter: int = DEFAULT_FILL_MAX_ITER,
    verbose: bool = False,
) -> Grid:
    """
    Cropped lattice whose kept count is within tolerance of n_points (2-D only).

    Search:
        Start from the squaretile spacing (ignores boundary loss). After each
        crop, propose s * sqrt(count / n_points) since the count scales with
        1 / s^2. Spacings known to give too many points (fine) and too few
        (coarse) bracket the answer; a proposal outside the bracket is
        replaced by its midpoint. An empty crop halves the spacing.

    Stops when |count - n_points| <= max(1, tolerance * n_points).

    If max_iter runs out first, or the next spacing would need a lattice
    larger than MAX_LATTICE_POINTS, NonConvergenceError is issued as a
    warning and the evaluated candidate closest to n_points is returned with
    metadata['converged'] = False. With no non-empty candidate at that
    point, DegenerateInputError is raised instead.

    Args:
        coords: Frame (coordinate columns) or (n, 2) array
        n_points: Target number of kept points
        alpha: Alpha-shape radius (None = boundary.default_alpha)
        dimensions: Coordinate column names
        tolerance: Acceptance band as a fraction of n_points, in (0, 1)
        max_iter: Iteration budget
        verbose: Log every iteration at INFO instead of DEBUG

    Returns:
        Grid; metadata['history'] lists (spacing, count) per iteration
    """
    n_points = positive_int('n_points', n_points)
    tolerance = positive_float('tolerance', tolerance)
    if tolerance >= 1:
        raise InvalidParameterError('tolerance', tolerance, "must be below 1")
    max_iter = positive_int('max_iter', max_iter)

    arr, dims = _coordinates(coords, dimensions)
    _require_planar(arr, GridStrategy.AHULL_FILL.value)
    shape = boundary.build(arr, alpha)

    lo, hi = arr.min(axis=0), arr.max(axis=0)
    band = max(1.0, tolerance * n_points)
    level = logging.INFO if verbose else logging.DEBUG

    spacing = _tile_spacing(lo, hi, n_points)
    fine: Optional[float] = None
    coarse: Optional[float] = None
    best = None  # (distance to target, points, spacing, lattice size)
    history: List[Tuple[float, int]] = []
    converged = False

    for iteration in range(1, max_iter + 1):
        nx, ny = _lattice_shape(lo, hi, spacing)
        if nx * ny > MAX_LATTICE_POINTS:
            logger.warning(
                f"ahull_fill: stopping at iteration {iteration}, spacing={spacing:.6g} "
                f"would need {nx * ny:,} lattice points (limit {MAX_LATTICE_POINTS:,})"
            )
            break
        lattice = _square_lattice(lo, hi, spacing)
        points = lattice[shape.contains(lattice)]
        count = len(points)
        history.append((spacing, count))
        logger.log(
            level,
            f"ahull_fill iteration {iteration}: spacing={spacing:.6g} "
            f"points={count} target={n_points}",
        )

        distance = abs(count - n_points)
        if count > 0 and (best is None or distance < best[0]):
            best = (distance, points, spacing, len(lattice))
        if count > 0 and distance <= band:
            converged = True
            break

        if count > n_points:
            fine = spacing if fine is None else max(fine, spacing)
        else:
            coarse = spacing if coarse is None else min(coarse, spacing)

        proposal = spacing * math.sqrt(count / n_points) if count > 0 else spacing / 2.0
        if fine is not None and coarse is not None:
            if not (fine < proposal < coarse):
                proposal = 0.5 * (fine + coarse)
            if abs(coarse - fine) <= 1e-12 * max(abs(coarse), abs(fine)):
                break
        spacing = proposal

    if best is None:
        raise DegenerateInputError(
            f"ahull_fill: the alpha-shape (alpha={shape.alpha:g}) retained no lattice "
            f"points in {len(history)} iterations"
        )

    _, points, best_spacing, lattice_size = best
    grid = Grid(
        points, dims,
        strategy=GridStrategy.AHULL_FILL.value,
        metadata={
            'target_point_count': n_points,
            'spacing': best_spacing,
            'alpha': shape.alpha,
            'lattice_size': lattice_size,
            'tolerance': tolerance,
            'iterations': len(history),
            'history': history,
            'converged': converged,
        },
    )

    if not converged:
        warnings.warn(
            NonConvergenceError(n_points, len(grid), len(history), grid=grid),
            stacklevel=2,
        )
    else:
        logger.log(level, f"ahull_fill: converged to {len(grid)} points in {len(history)} iterations")
    return grid


# ============================================================
# DISPATCH
# ============================================================

_STRATEGY_BUILDERS: Dict[GridStrategy, Callable[[pl.DataFrame, GridSpec], Grid]] = {
    GridStrategy.IDENTICAL: lambda df, spec: build_grid_identical(
        df, spec.target_point_count, dimensions=spec.dimensions,
    ),
    GridStrategy.SQUARETILE: lambda df, spec: build_grid_squaretile(
        df, spec.target_point_count, dimensions=spec.dimensions,
    ),
    GridStrategy.AHULL_CROP: lambda df, spec: build_grid_ahull_crop(
        df, spec.target_point_count, alpha=spec.alpha, dimensions=spec.dimensions,
    ),
    GridStrategy.AHULL_FILL: lambda df, spec: build_grid_ahull_fill(
        df, spec.target_point_count, alpha=spec.alpha, dimensions=spec.dimensions,
        tolerance=spec.tolerance, max_iter=spec.max_iter, verbose=spec.verbose,
    ),
}


def build_grid(dataset: Any, spec: GridSpec) -> Grid:
    """
    Build the reference grid described by spec.

    A pre-built spec.grid is returned unchanged, without touching the dataset.

    Args:
        dataset: polars or pandas DataFrame holding the coordinate columns
        spec: GridSpec

    Returns:
        Grid
    """
    if spec.grid is not None:
        grid = spec.grid
        if not isinstance(grid, Grid):
            raise InvalidParameterError('grid', type(grid).__name__, "expected a Grid")
        if list(grid.dimensions) != list(spec.dimensions):
            raise InvalidParameterError(
                'grid', list(grid.dimensions),
                f"pre-built grid dimensions differ from {spec.dimensions}"
            )
        return grid

    df = as_frame(dataset)
    return _STRATEGY_BUILDERS[spec.strategy](df, spec)
