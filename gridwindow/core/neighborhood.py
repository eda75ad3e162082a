"""
Neighborhood Selection
======================

Rows of a dataset inside the window of a reference point.

    radius window       sqrt(sum((x_d - p_d)^2)) <= r
    half-width window   |x_d - p_d| <= h_d for every d

Both predicates are boundary inclusive. Rows with a missing or non-finite
coordinate never match. An empty selection is a normal result.

A KD-tree over the finite rows proposes candidates with a slightly inflated
search radius; the exact predicate above then decides. Box windows query the
tree in Chebyshev distance over coordinates scaled by the half-widths.
"""

from typing import Any, Optional, Sequence

import numpy as np
import polars as pl
from scipy.spatial import cKDTree

from gridwindow.core.config import WindowSpec
from gridwindow.validation.errors import InvalidParameterError
from gridwindow.validation.input_validation import as_frame, coordinate_matrix, finite_rows

# Relative inflation of the KD-tree search radius before the exact test
_SEARCH_SLACK = 1e-9


class NeighborhoodSelector:
    """
    Reusable window query over a fixed coordinate matrix.

    Build once per run; the selector is read-only afterwards and can be
    shared between workers.

    Args:
        coords: (n, D) coordinates, NaN for missing values
        window: WindowSpec
        dimensions: Dimension names (needed to resolve mapping half-widths)
    """

    def __init__(
        self,
        coords: np.ndarray,
        window: WindowSpec,
        dimensions: Optional[Sequence[str]] = None,
    ):
        coords = np.asarray(coords, dtype=np.float64)
        if coords.ndim == 1:
            coords = coords.reshape(-1, 1)
        if coords.ndim != 2:
            raise InvalidParameterError('coords', coords.shape, "expected an (n, D) array")

        self.window = WindowSpec.coerce(window)
        self.n_rows, self.n_dims = coords.shape
        if dimensions is None:
            dimensions = [f"dim_{i}" for i in range(self.n_dims)]
        self.dimensions = list(dimensions)
        if len(self.dimensions) != self.n_dims:
            raise InvalidParameterError(
                'dimensions', self.dimensions, f"coordinates have {self.n_dims} columns"
            )

        if self.window.is_radius:
            self.half_widths = None
        else:
            self.half_widths = np.asarray(
                self.window.resolve_half_widths(self.dimensions), dtype=np.float64
            )

        # Only finite rows are indexed; _rows maps tree positions back to rows
        self._rows = np.flatnonzero(finite_rows(coords))
        self._coords = coords[self._rows]
        self._coords.setflags(write=False)
        if len(self._rows):
            scaled = self._coords if self.half_widths is None else self._coords / self.half_widths
            self._tree = cKDTree(scaled)
        else:
            self._tree = None

    def __repr__(self) -> str:
        return (
            f"NeighborhoodSelector(rows={self.n_rows}, indexed={len(self._rows)}, "
            f"window={self.window})"
        )

    def indices(self, point: Sequence[float]) -> np.ndarray:
        """Sorted indices of the rows inside the window of point."""
        p = np.asarray(point, dtype=np.float64).reshape(-1)
        if p.shape[0] != self.n_dims:
            raise InvalidParameterError(
                'point', tuple(p), f"expected {self.n_dims} coordinates"
            )
        if self._tree is None or not np.all(np.isfinite(p)):
            return np.empty(0, dtype=np.int64)

        if self.half_widths is None:
            r = self.window.radius
            found = self._tree.query_ball_point(p, r * (1.0 + _SEARCH_SLACK), p=2.0)
            found = np.asarray(found, dtype=np.int64)
            if found.size:
                d = np.sqrt(np.sum((self._coords[found] - p) ** 2, axis=1))
                found = found[d <= r]
        else:
            found = self._tree.query_ball_point(
                p / self.half_widths, 1.0 + _SEARCH_SLACK, p=np.inf
            )
            found = np.asarray(found, dtype=np.int64)
            if found.size:
                inside = np.all(np.abs(self._coords[found] - p) <= self.half_widths, axis=1)
                found = found[inside]

        return np.sort(self._rows[found])

    def select(self, dataset: pl.DataFrame, point: Sequence[float]) -> pl.DataFrame:
        """Rows of dataset inside the window of point, in dataset order."""
        if dataset.height != self.n_rows:
            raise InvalidParameterError(
                'dataset', dataset.height, f"selector was built over {self.n_rows} rows"
            )
        idx = self.indices(point)
        if idx.size == 0:
            return dataset.head(0)
        return dataset[idx]


def select(
    dataset: Any,
    point: Sequence[float],
    window: Any,
    dimensions: Sequence[str],
) -> pl.DataFrame:
    """
    One-off neighborhood query.

    Args:
        dataset: polars or pandas DataFrame
        point: Reference point, one value per dimension
        window: WindowSpec, scalar radius, or half-width sequence/mapping
        dimensions: Coordinate column names

    Returns:
        Ordered subset of dataset rows (possibly empty)
    """
    df = as_frame(dataset)
    selector = NeighborhoodSelector(coordinate_matrix(df, dimensions), window, dimensions)
    return selector.select(df, point)
