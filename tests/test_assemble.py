"""
Tests for result assembly.

Validates:
    1. Coordinates lead every row, results follow in grid order
    2. Schema is fixed by the first result and enforced afterwards
    3. Missing-value rows take the fixed schema
"""

import numpy as np
import pandas as pd
import polars as pl
import pytest

from gridwindow.core.assemble import ResultAssembler, assemble, normalize_result
from gridwindow.validation import SchemaMismatchError


class TestNormalize:
    """Accepted callback return shapes."""

    def test_scalar_mapping(self):
        frame = normalize_result({'mean': np.float64(1.5), 'n': 3})
        assert frame.to_dicts() == [{'mean': 1.5, 'n': 3}]

    def test_column_mapping_broadcasts_scalars(self):
        frame = normalize_result({'q': [0.1, 0.9], 'value': [1.0, 9.0], 'label': 'a'})
        assert frame.height == 2
        assert frame['label'].to_list() == ['a', 'a']

    def test_row_list(self):
        frame = normalize_result([{'a': 1}, {'a': 2}])
        assert frame['a'].to_list() == [1, 2]

    def test_series_and_none(self):
        assert normalize_result(pl.Series('s', [1, 2])).columns == ['s']
        assert normalize_result(None).width == 0

    def test_pandas_frame(self):
        frame = normalize_result(pd.DataFrame({'a': [1.0, 2.0]}))
        assert isinstance(frame, pl.DataFrame)
        assert frame['a'].to_list() == [1.0, 2.0]

    def test_rejects_scalar(self):
        with pytest.raises(TypeError):
            normalize_result(42)


class TestAssemble:
    """Concatenation in grid order."""

    def test_coordinates_first(self):
        table = assemble(
            [((0.0, 1.0), {'mean': 2.0}), ((1.0, 1.0), {'mean': 3.0})],
            ['x', 'y'],
        )

        assert table.columns == ['x', 'y', 'mean']
        assert table.schema['x'] == pl.Float64
        assert table.rows() == [(0.0, 1.0, 2.0), (1.0, 1.0, 3.0)]

    def test_multi_row_results(self):
        table = assemble(
            [((0.0,), {'q': [0.5, 0.9], 'v': [1.0, 2.0]}), ((1.0,), {'q': [0.5, 0.9], 'v': [3.0, 4.0]})],
            ['t'],
        )

        assert table.height == 4
        assert table['t'].to_list() == [0.0, 0.0, 1.0, 1.0]
        assert table['v'].to_list() == [1.0, 2.0, 3.0, 4.0]

    def test_column_order_follows_first_result(self):
        table = assemble(
            [((0.0,), {'a': 1, 'b': 2}), ((1.0,), {'b': 4, 'a': 3})],
            ['t'],
        )

        assert table.columns == ['t', 'a', 'b']
        assert table['a'].to_list() == [1, 3]

    def test_integer_and_float_combine(self):
        table = assemble([((0.0,), {'v': 1}), ((1.0,), {'v': 2.5})], ['t'])
        assert table['v'].to_list() == [1.0, 2.5]

    def test_null_first_then_concrete(self):
        table = assemble([((0.0,), {'v': None}), ((1.0,), {'v': 2.5})], ['t'])
        assert table['v'].to_list() == [None, 2.5]

    def test_missing_row_uses_schema(self):
        assembler = ResultAssembler(['t'])
        assembler.add((0.0,), {'mean': 1.0, 'label': 'x'})
        assembler.add_missing((1.0,))
        assembler.add((2.0,), {'mean': 3.0, 'label': 'z'})

        table = assembler.assemble()

        assert table.rows() == [(0.0, 1.0, 'x'), (1.0, None, None), (2.0, 3.0, 'z')]
        assert table.schema['label'] == pl.Utf8

    def test_empty_input(self):
        table = assemble([], ['x', 'y'])
        assert table.height == 0
        assert table.columns == ['x', 'y']

    def test_none_results_are_dropped(self):
        table = assemble([((0.0,), None), ((1.0,), {'v': 1.0})], ['t'])
        assert table['t'].to_list() == [1.0]


class TestSchemaMismatch:
    """Conflicting results raise with both points named."""

    def test_different_columns(self):
        assembler = ResultAssembler(['t'])
        assembler.add((0.0,), {'a': 1})

        with pytest.raises(SchemaMismatchError) as exc_info:
            assembler.add((1.0,), {'b': 2})

        err = exc_info.value
        assert err.point == {'t': 1.0}
        assert err.reference_point == {'t': 0.0}
        assert set(err.columns) == {'a', 'b'}
        assert 't=0' in str(err) and 't=1' in str(err)

    def test_incompatible_dtypes(self):
        assembler = ResultAssembler(['t'])
        assembler.add((0.0,), {'a': 1})

        with pytest.raises(SchemaMismatchError) as exc_info:
            assembler.add((1.0,), {'a': 'text'})

        assert exc_info.value.columns == ['a']

    def test_collision_with_coordinates(self):
        assembler = ResultAssembler(['x', 'y'])
        with pytest.raises(SchemaMismatchError) as exc_info:
            assembler.add((0.0, 0.0), {'x': 1.0, 'mean': 2.0})
        assert exc_info.value.columns == ['x']
