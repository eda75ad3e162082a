"""
Error Taxonomy
==============

Every failure raised by gridwindow derives from GridWindowError.

Fatal:
    InvalidParameterError      bad configuration (non-positive alpha/radius, ...)
    DegenerateInputError       too few usable points for a grid or boundary
    UnsupportedDimensionError  2-D only strategy asked for D != 2
    CallbackError              user function failed for one grid point
    SchemaMismatchError        callback output columns differ between windows

Warning-level:
    NonConvergenceError        AhullFill ran out of iterations. Issued through
                               warnings.warn; the best candidate grid is returned.
"""

from typing import Any, Dict, List, Optional, Sequence


def _format_point(point: Optional[Dict[str, float]]) -> str:
    if point is None:
        return "<unknown>"
    return "(" + ", ".join(f"{k}={v:g}" for k, v in point.items()) + ")"


class GridWindowError(Exception):
    """Base class for all gridwindow errors."""


class InvalidParameterError(GridWindowError, ValueError):
    """Raised when a configuration value is invalid."""

    def __init__(self, parameter: str, value: Any, reason: str):
        self.parameter = parameter
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {parameter}={value!r}: {reason}")


class DegenerateInputError(GridWindowError, ValueError):
    """Raised when the input points cannot support the requested geometry."""

    def __init__(self, message: str, n_points: Optional[int] = None):
        self.n_points = n_points
        if n_points is not None:
            message = f"{message} (got {n_points} usable points)"
        super().__init__(message)


class UnsupportedDimensionError(GridWindowError, ValueError):
    """Raised when a strategy is requested for a dimensionality it does not support."""

    def __init__(self, operation: str, n_dims: int, supported: int = 2):
        self.operation = operation
        self.n_dims = n_dims
        self.supported = supported
        super().__init__(
            f"{operation} requires exactly {supported} dimensions, got {n_dims}"
        )


class NonConvergenceError(GridWindowError, UserWarning):
    """
    AhullFill did not reach its tolerance band within the iteration budget.

    Issued as a warning; the attached grid is the closest candidate found.
    """

    def __init__(
        self,
        target: int,
        best_count: int,
        iterations: int,
        grid: Any = None,
    ):
        self.target = target
        self.best_count = best_count
        self.iterations = iterations
        self.grid = grid
        super().__init__(
            f"ahull_fill did not converge after {iterations} iterations: "
            f"best grid has {best_count} points for a target of {target}"
        )


class CallbackError(GridWindowError):
    """Raised when the aggregation function fails for a grid point."""

    def __init__(
        self,
        point: Dict[str, float],
        cause: BaseException,
        index: Optional[int] = None,
    ):
        self.point = point
        self.cause = cause
        self.index = index
        where = f"grid point {index} " if index is not None else "grid point "
        super().__init__(
            f"Callback failed at {where}{_format_point(point)}: "
            f"{type(cause).__name__}: {cause}"
        )


class SchemaMismatchError(GridWindowError):
    """Raised when window results disagree on their columns or types."""

    def __init__(
        self,
        point: Optional[Dict[str, float]],
        reference_point: Optional[Dict[str, float]],
        columns: Sequence[str],
        detail: str = "",
    ):
        self.point = point
        self.reference_point = reference_point
        self.columns: List[str] = list(columns)
        message = (
            f"Result at {_format_point(point)} does not match the schema fixed at "
            f"{_format_point(reference_point)}; conflicting columns: {self.columns}"
        )
        if detail:
            message += f" ({detail})"
        super().__init__(message)
