"""
Grid and Window Configuration
=============================

Single source of truth for run configuration:

    GridStrategy   identical | squaretile | ahull_crop | ahull_fill
    GridSpec       what to grid over and how
    WindowSpec     circular radius XOR per-dimension half-widths
    RunOptions     empty/error policy, executor, progress hook

All values are validated at construction; bad values raise
InvalidParameterError immediately rather than deep inside a run.
"""

import math
import operator
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

from gridwindow.validation.errors import InvalidParameterError

# ============================================================
# DEFAULTS
# ============================================================

DEFAULT_TARGET_POINT_COUNT: int = 100

# AhullFill: accepted band around the target, as a fraction of it
DEFAULT_FILL_TOLERANCE: float = 0.1

# AhullFill: spacing refinements before giving up
DEFAULT_FILL_MAX_ITER: int = 25

# Default alpha = ALPHA_EDGE_FACTOR * median Delaunay edge length
ALPHA_EDGE_FACTOR: float = 2.0


class GridStrategy(str, Enum):
    """Grid generation strategies."""
    IDENTICAL = "identical"      # k points per axis, Cartesian product
    SQUARETILE = "squaretile"    # square cells over the bounding box (2-D)
    AHULL_CROP = "ahull_crop"    # squaretile cropped to the alpha-shape (2-D)
    AHULL_FILL = "ahull_fill"    # density search so the crop hits the target (2-D)

    @property
    def planar_only(self) -> bool:
        return self is not GridStrategy.IDENTICAL

    @property
    def uses_boundary(self) -> bool:
        return self in (GridStrategy.AHULL_CROP, GridStrategy.AHULL_FILL)


class OnEmpty(str, Enum):
    """What to do with a grid point whose window holds no rows."""
    SKIP = "skip"      # no output row
    FILL = "fill"      # one row of missing values
    CALL = "call"      # call the function on the empty subset anyway


class OnError(str, Enum):
    """What to do when the callback fails for a grid point."""
    RAISE = "raise"
    SKIP = "skip"


def _coerce_enum(enum_cls, value, name: str):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).lower())
    except ValueError:
        choices = [e.value for e in enum_cls]
        raise InvalidParameterError(name, value, f"expected one of {choices}") from None


def positive_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise InvalidParameterError(name, value, "must be a positive number")
    try:
        value = float(value)
    except (TypeError, ValueError):
        raise InvalidParameterError(name, value, "must be a positive number") from None
    if not math.isfinite(value) or value <= 0:
        raise InvalidParameterError(name, value, "must be a positive finite number")
    return value


def positive_int(name: str, value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidParameterError(name, value, "must be a positive integer")
    try:
        value = operator.index(value)
    except TypeError:
        raise InvalidParameterError(name, value, "must be a positive integer") from None
    if value < 1:
        raise InvalidParameterError(name, value, "must be a positive integer")
    return value


# ============================================================
# GRID SPEC
# ============================================================

@dataclass
class GridSpec:
    """
    How to build the reference grid.

    Attributes:
        dimensions: Coordinate column names, in grid order
        target_point_count: Approximate number of grid points wanted
        strategy: GridStrategy (or its string value)
        alpha: Alpha-shape radius for ahull strategies (None = data-derived)
        verbose: Log every AhullFill iteration at INFO
        grid: Pre-built Grid; when set, no grid is computed
        tolerance: AhullFill acceptance band as a fraction of the target
        max_iter: AhullFill iteration budget
    """
    dimensions: List[str]
    target_point_count: int = DEFAULT_TARGET_POINT_COUNT
    strategy: GridStrategy = GridStrategy.IDENTICAL
    alpha: Optional[float] = None
    verbose: bool = False
    grid: Optional[Any] = None
    tolerance: float = DEFAULT_FILL_TOLERANCE
    max_iter: int = DEFAULT_FILL_MAX_ITER

    def __post_init__(self):
        if isinstance(self.dimensions, str):
            self.dimensions = [self.dimensions]
        self.dimensions = list(self.dimensions)
        if not self.dimensions:
            raise InvalidParameterError('dimensions', self.dimensions, "at least one dimension is required")
        if len(set(self.dimensions)) != len(self.dimensions):
            raise InvalidParameterError('dimensions', self.dimensions, "dimension names must be unique")

        self.strategy = _coerce_enum(GridStrategy, self.strategy, 'strategy')
        self.target_point_count = positive_int('target_point_count', self.target_point_count)
        if self.alpha is not None:
            self.alpha = positive_float('alpha', self.alpha)

        self.tolerance = positive_float('tolerance', self.tolerance)
        if self.tolerance >= 1:
            raise InvalidParameterError('tolerance', self.tolerance, "must be below 1")
        self.max_iter = positive_int('max_iter', self.max_iter)
        self.verbose = bool(self.verbose)

    @property
    def n_dims(self) -> int:
        return len(self.dimensions)


# ============================================================
# WINDOW SPEC
# ============================================================

@dataclass(frozen=True)
class WindowSpec:
    """
    Window around a reference point.

    Exactly one of:
        radius: Euclidean distance threshold over all gridded dimensions
        half_widths: Per-dimension half-widths (sequence in dimension order,
                     or mapping of dimension name to half-width)

    Both forms are boundary inclusive.
    """
    radius: Optional[float] = None
    half_widths: Optional[Union[Tuple[float, ...], Mapping[str, float]]] = None

    def __post_init__(self):
        if (self.radius is None) == (self.half_widths is None):
            raise InvalidParameterError(
                'window', (self.radius, self.half_widths),
                "give exactly one of radius or half_widths"
            )
        if self.radius is not None:
            object.__setattr__(self, 'radius', positive_float('radius', self.radius))
            return

        if isinstance(self.half_widths, Mapping):
            widths = {str(k): positive_float(f'half_widths[{k}]', v) for k, v in self.half_widths.items()}
            if not widths:
                raise InvalidParameterError('half_widths', self.half_widths, "must not be empty")
            object.__setattr__(self, 'half_widths', widths)
        else:
            try:
                values = list(self.half_widths)
            except TypeError:
                raise InvalidParameterError('half_widths', self.half_widths, "must be a sequence") from None
            if not values:
                raise InvalidParameterError('half_widths', self.half_widths, "must not be empty")
            object.__setattr__(
                self, 'half_widths',
                tuple(positive_float(f'half_widths[{i}]', v) for i, v in enumerate(values)),
            )

    @classmethod
    def coerce(cls, value: Any) -> 'WindowSpec':
        """Scalar -> radius window, sequence or mapping -> box window."""
        if isinstance(value, WindowSpec):
            return value
        if isinstance(value, Mapping):
            if set(value) <= {'radius', 'half_widths'}:
                return cls(**value)
            return cls(half_widths=value)
        if isinstance(value, (list, tuple)) or hasattr(value, 'tolist'):
            values = value.tolist() if hasattr(value, 'tolist') else value
            if isinstance(values, (list, tuple)):
                return cls(half_widths=tuple(values))
            return cls(radius=values)
        return cls(radius=value)

    @property
    def is_radius(self) -> bool:
        return self.radius is not None

    def resolve_half_widths(self, dimensions: Sequence[str]) -> Tuple[float, ...]:
        """Half-widths in dimension order; checks they cover every dimension."""
        if self.half_widths is None:
            raise InvalidParameterError('half_widths', None, "window is a radius window")
        if isinstance(self.half_widths, Mapping):
            missing = [d for d in dimensions if d not in self.half_widths]
            extra = [k for k in self.half_widths if k not in dimensions]
            if missing or extra:
                raise InvalidParameterError(
                    'half_widths', dict(self.half_widths),
                    f"keys must match dimensions {list(dimensions)} (missing {missing}, unexpected {extra})"
                )
            return tuple(self.half_widths[d] for d in dimensions)
        if len(self.half_widths) != len(dimensions):
            raise InvalidParameterError(
                'half_widths', self.half_widths,
                f"expected {len(dimensions)} values, one per dimension {list(dimensions)}"
            )
        return tuple(self.half_widths)


# ============================================================
# RUN OPTIONS
# ============================================================

ProgressHook = Callable[[int, int], None]


@dataclass
class RunOptions:
    """
    Engine behaviour for one run.

    Attributes:
        on_empty: skip | fill | call
        on_error: raise | skip
        executor: ExecutorPolicy (None = sequential)
        progress: Optional hook called as progress(done, total)
    """
    on_empty: OnEmpty = OnEmpty.SKIP
    on_error: OnError = OnError.RAISE
    executor: Optional[Any] = None
    progress: Optional[ProgressHook] = None

    def __post_init__(self):
        self.on_empty = _coerce_enum(OnEmpty, self.on_empty, 'on_empty')
        self.on_error = _coerce_enum(OnError, self.on_error, 'on_error')
        if self.progress is not None and not callable(self.progress):
            raise InvalidParameterError('progress', self.progress, "must be callable")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'on_empty': self.on_empty.value,
            'on_error': self.on_error.value,
            'executor': repr(self.executor) if self.executor is not None else 'sequential',
        }
