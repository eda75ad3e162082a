"""
Input Data Validation

Checks a dataset before gridding or windowing: coordinate columns must exist
and be numeric. Rows with missing or non-finite coordinates are counted, not
rejected; they never match any window.

Usage:
    from gridwindow.validation import validate_dataset, coordinate_matrix

    report = validate_dataset(df, ['x', 'y'])
    coords = coordinate_matrix(df, ['x', 'y'])   # (n, 2) float64, NaN for nulls
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np
import pandas as pd
import polars as pl

from gridwindow.validation.errors import InvalidParameterError


@dataclass
class DatasetReport:
    """Report from dataset validation."""

    dimensions: List[str] = field(default_factory=list)
    total_rows: int = 0
    usable_rows: int = 0
    non_finite_rows: int = 0
    bounds: Dict[str, tuple] = field(default_factory=dict)

    def summary(self) -> str:
        """Human-readable summary."""
        lines = [
            "=" * 60,
            "DATASET VALIDATION REPORT",
            "=" * 60,
            "",
            f"Dimensions: {', '.join(self.dimensions)}",
            f"Total rows: {self.total_rows:,}",
            f"  Usable: {self.usable_rows:,}",
            f"  Missing/non-finite coordinates: {self.non_finite_rows:,}",
            "",
        ]
        for dim, (lo, hi) in self.bounds.items():
            lines.append(f"  {dim}: [{lo:g}, {hi:g}]")
        lines.append("=" * 60)
        return "\n".join(lines)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to serializable dict."""
        return {
            'dimensions': self.dimensions,
            'total_rows': self.total_rows,
            'usable_rows': self.usable_rows,
            'non_finite_rows': self.non_finite_rows,
            'bounds': {k: list(v) for k, v in self.bounds.items()},
        }


def as_frame(data: Any) -> pl.DataFrame:
    """Return ``data`` as a polars DataFrame (pandas frames are converted)."""
    if isinstance(data, pl.DataFrame):
        return data
    if isinstance(data, pd.DataFrame):
        return pl.from_pandas(data)
    raise InvalidParameterError(
        'dataset', type(data).__name__, "expected a polars or pandas DataFrame"
    )


def check_dimensions(df: pl.DataFrame, dimensions: Sequence[str]) -> None:
    """Raise InvalidParameterError if a coordinate column is missing or non-numeric."""
    if not dimensions:
        raise InvalidParameterError('dimensions', list(dimensions), "at least one dimension is required")

    missing = [d for d in dimensions if d not in df.columns]
    if missing:
        raise InvalidParameterError(
            'dimensions', list(dimensions),
            f"columns {missing} not found in dataset (available: {df.columns})"
        )

    for dim in dimensions:
        dtype = df.schema[dim]
        if not (dtype.is_numeric() or dtype == pl.Null):
            raise InvalidParameterError(
                'dimensions', list(dimensions),
                f"column '{dim}' has non-numeric dtype {dtype}"
            )


def coordinate_matrix(df: pl.DataFrame, dimensions: Sequence[str]) -> np.ndarray:
    """
    Extract the coordinate columns as an (n, D) float64 array.

    Nulls become NaN so that a single finiteness mask covers both.
    """
    check_dimensions(df, dimensions)
    if df.height == 0:
        return np.empty((0, len(dimensions)), dtype=np.float64)
    columns = [
        df.get_column(d).cast(pl.Float64).fill_null(np.nan).to_numpy()
        for d in dimensions
    ]
    return np.column_stack(columns).astype(np.float64, copy=False)


def finite_rows(coords: np.ndarray) -> np.ndarray:
    """Boolean mask of rows whose coordinates are all finite."""
    if coords.size == 0:
        return np.zeros(coords.shape[0], dtype=bool)
    return np.all(np.isfinite(coords), axis=1)


def validate_dataset(data: Any, dimensions: Sequence[str]) -> DatasetReport:
    """
    Validate a dataset against the coordinate dimensions to grid over.

    Args:
        data: polars or pandas DataFrame
        dimensions: Coordinate column names

    Returns:
        DatasetReport with row counts and per-dimension bounds
    """
    df = as_frame(data)
    coords = coordinate_matrix(df, dimensions)
    mask = finite_rows(coords)

    report = DatasetReport(
        dimensions=list(dimensions),
        total_rows=df.height,
        usable_rows=int(mask.sum()),
        non_finite_rows=int(df.height - mask.sum()),
    )
    if report.usable_rows:
        usable = coords[mask]
        for i, dim in enumerate(dimensions):
            report.bounds[dim] = (float(usable[:, i].min()), float(usable[:, i].max()))

    return report
