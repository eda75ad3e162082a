"""
Parallel execution policies for the window engine.

JoblibExecutor uses joblib to spread grid points over worker processes or
threads. SequentialExecutor is the default.
"""

from .executor import ExecutorPolicy, SequentialExecutor, JoblibExecutor, make_executor

__all__ = [
    'ExecutorPolicy',
    'SequentialExecutor',
    'JoblibExecutor',
    'make_executor',
]
