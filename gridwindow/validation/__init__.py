"""
Validation Module

Error taxonomy and dataset checks used before gridding and windowing.

Exports:
    - GridWindowError and its subclasses
    - validate_dataset: Check coordinate columns, count unusable rows
    - coordinate_matrix: Coordinate columns as an (n, D) float array
    - DatasetReport: Result of validate_dataset
"""

from .errors import (
    GridWindowError,
    InvalidParameterError,
    DegenerateInputError,
    UnsupportedDimensionError,
    NonConvergenceError,
    CallbackError,
    SchemaMismatchError,
)

from .input_validation import (
    DatasetReport,
    validate_dataset,
    check_dimensions,
    coordinate_matrix,
    finite_rows,
    as_frame,
)

__all__ = [
    # Errors
    'GridWindowError',
    'InvalidParameterError',
    'DegenerateInputError',
    'UnsupportedDimensionError',
    'NonConvergenceError',
    'CallbackError',
    'SchemaMismatchError',
    # Input validation
    'DatasetReport',
    'validate_dataset',
    'check_dimensions',
    'coordinate_matrix',
    'finite_rows',
    'as_frame',
]
