"""
Result Assembly
===============

Concatenates per-window results into one table, grid coordinates first.

Schema rule:
    The first result with at least one column fixes the column set and
    dtypes. Every later result must carry the same columns (any order; they
    are reordered) with compatible dtypes: equal, both numeric, or one side
    all-null. Anything else is a SchemaMismatchError naming both grid points.

A callback may return several rows for one window; each becomes an output
row carrying the same grid coordinates.
"""

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd
import polars as pl

from gridwindow.validation.errors import InvalidParameterError, SchemaMismatchError

PointLike = Union[Sequence[float], Mapping[str, float]]


def _scalar(value: Any) -> Any:
    if isinstance(value, np.generic):
        return value.item()
    return value


def _is_column(value: Any) -> bool:
    return isinstance(value, (list, tuple, np.ndarray, pl.Series))


def normalize_result(result: Any) -> pl.DataFrame:
    """
    Turn a callback return value into a polars frame.

    Accepted:
        polars.DataFrame / polars.Series / pandas.DataFrame
        mapping of column -> scalar            (one row)
        mapping of column -> sequence          (several rows; scalars broadcast)
        list of row mappings
        None                                   (no rows)

    Raises:
        TypeError: anything else
    """
    if result is None:
        return pl.DataFrame()
    if isinstance(result, pl.DataFrame):
        return result
    if isinstance(result, pl.Series):
        return result.to_frame()

    if isinstance(result, pd.DataFrame):
        return pl.from_pandas(result)

    if isinstance(result, Mapping):
        values = {str(k): v for k, v in result.items()}
        lengths = [len(v) for v in values.values() if _is_column(v)]
        if not lengths:
            return pl.DataFrame({k: [_scalar(v)] for k, v in values.items()})
        n = lengths[0]
        return pl.DataFrame({
            k: (list(v) if _is_column(v) else [_scalar(v)] * n)
            for k, v in values.items()
        })

    if isinstance(result, (list, tuple)) and all(isinstance(r, Mapping) for r in result):
        if not result:
            return pl.DataFrame()
        return pl.DataFrame([{str(k): _scalar(v) for k, v in r.items()} for r in result])

    raise TypeError(
        f"callback returned {type(result).__name__}; expected a DataFrame, "
        "a mapping of columns, a list of row mappings, or None"
    )


def _compatible(reference: pl.DataType, other: pl.DataType) -> bool:
    if reference == other or reference == pl.Null or other == pl.Null:
        return True
    return reference.is_numeric() and other.is_numeric()


class ResultAssembler:
    """
    Collects (grid point, result) pairs in order and builds the output table.

    Args:
        dimensions: Grid dimension names; become the leading Float64 columns
    """

    def __init__(self, dimensions: Sequence[str]):
        self.dimensions = list(dimensions)
        self._entries: List[Tuple[Dict[str, float], Optional[pl.DataFrame]]] = []
        self._schema: Optional[Dict[str, pl.DataType]] = None
        self._schema_point: Optional[Dict[str, float]] = None

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def schema(self) -> Optional[Dict[str, pl.DataType]]:
        """Result columns fixed so far (None until the first non-empty result)."""
        return dict(self._schema) if self._schema is not None else None

    def _point(self, point: PointLike) -> Dict[str, float]:
        if isinstance(point, Mapping):
            return {d: float(point[d]) for d in self.dimensions}
        values = [float(v) for v in point]
        if len(values) != len(self.dimensions):
            raise InvalidParameterError(
                'point', tuple(values), f"expected {len(self.dimensions)} coordinates"
            )
        return dict(zip(self.dimensions, values))

    def add(self, point: PointLike, result: Any) -> None:
        """Add the result of one window, checking it against the schema."""
        coords = self._point(point)
        frame = normalize_result(result)
        if frame.width == 0:
            return

        collisions = [c for c in frame.columns if c in self.dimensions]
        if collisions:
            raise SchemaMismatchError(
                coords, self._schema_point, collisions,
                detail="result columns collide with grid coordinate columns",
            )

        if self._schema is None:
            self._schema = dict(frame.schema)
            self._schema_point = coords
        else:
            frame = self._conform(coords, frame)
        self._entries.append((coords, frame))

    def add_missing(self, point: PointLike) -> None:
        """Add one row of missing values for point."""
        self._entries.append((self._point(point), None))

    def _conform(self, coords: Dict[str, float], frame: pl.DataFrame) -> pl.DataFrame:
        reference = self._schema
        missing = [c for c in reference if c not in frame.columns]
        extra = [c for c in frame.columns if c not in reference]
        if missing or extra:
            raise SchemaMismatchError(
                coords, self._schema_point, missing + extra,
                detail=f"missing {missing}, unexpected {extra}",
            )

        conflicts = [c for c in reference if not _compatible(reference[c], frame.schema[c])]
        if conflicts:
            raise SchemaMismatchError(
                coords, self._schema_point, conflicts,
                detail=", ".join(f"{c}: {reference[c]} vs {frame.schema[c]}" for c in conflicts),
            )

        # An all-null reference column adopts the first concrete dtype seen
        for c in reference:
            if reference[c] == pl.Null and frame.schema[c] != pl.Null:
                reference[c] = frame.schema[c]

        return frame.select(list(reference))

    def _coordinate_frame(self, coords: Dict[str, float], n_rows: int) -> pl.DataFrame:
        return pl.DataFrame(
            {d: [coords[d]] * n_rows for d in self.dimensions},
            schema={d: pl.Float64 for d in self.dimensions},
        )

    def assemble(self) -> pl.DataFrame:
        """Output table in insertion order."""
        schema = self._schema or {}
        frames = []
        for coords, frame in self._entries:
            if frame is None:
                row = self._coordinate_frame(coords, 1)
                if schema:
                    row = row.with_columns([
                        pl.lit(None, dtype=dtype).alias(c) for c, dtype in schema.items()
                    ])
                frames.append(row)
            elif frame.height:
                frames.append(pl.concat([self._coordinate_frame(coords, frame.height), frame], how='horizontal'))

        if not frames:
            empty_schema = {d: pl.Float64 for d in self.dimensions}
            empty_schema.update(schema)
            return pl.DataFrame(schema=empty_schema)

        return pl.concat(frames, how='vertical_relaxed')


def assemble(
    coords_and_results: Iterable[Tuple[PointLike, Any]],
    dimensions: Sequence[str],
) -> pl.DataFrame:
    """
    Assemble (point, result) pairs into one table.

    Args:
        coords_and_results: Pairs in grid order
        dimensions: Grid dimension names

    Returns:
        polars.DataFrame, coordinates followed by result columns
    """
    assembler = ResultAssembler(dimensions)
    for point, result in coords_and_results:
        assembler.add(point, result)
    return assembler.assemble()
