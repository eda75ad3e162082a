"""
Executor Policies

How the engine spreads grid points over workers.

    SequentialExecutor  in-process, one task per grid point (default)
    JoblibExecutor      joblib worker pool, contiguous chunks of grid points

Both yield task results in submission order, so output order never depends
on completion order. Closing the result iterator early stops dispatching;
joblib aborts the tasks it has not started.
"""

from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, Iterator, Optional

from gridwindow.validation.errors import InvalidParameterError


class ExecutorPolicy(ABC):
    """Maps a task function over tasks, yielding results in task order."""

    @abstractmethod
    def n_tasks(self, n_points: int) -> int:
        """How many chunks to split n_points grid points into."""

    @abstractmethod
    def map(self, fn: Callable[[Any], Any], tasks: Iterable[Any]) -> Iterator[Any]:
        """Yield fn(task) for every task, in order."""


class SequentialExecutor(ExecutorPolicy):
    """Runs every task in the calling thread."""

    def n_tasks(self, n_points: int) -> int:
        return n_points

    def map(self, fn, tasks):
        for task in tasks:
            yield fn(task)

    def __repr__(self) -> str:
        return "SequentialExecutor()"


class JoblibExecutor(ExecutorPolicy):
    """
    joblib worker pool.

    Args:
        n_jobs: Worker count (joblib convention: -1 = all cores)
        backend: joblib backend ('loky', 'threading', 'multiprocessing')
        chunks_per_worker: Chunks handed to each worker; more chunks give
            finer progress reporting and earlier cancellation
        verbose: joblib verbosity
    """

    def __init__(
        self,
        n_jobs: int = 2,
        backend: str = 'loky',
        chunks_per_worker: int = 4,
        verbose: int = 0,
    ):
        if n_jobs is None or n_jobs == 0:
            raise InvalidParameterError('n_jobs', n_jobs, "must be a non-zero integer")
        if chunks_per_worker < 1:
            raise InvalidParameterError('chunks_per_worker', chunks_per_worker, "must be >= 1")
        self.n_jobs = int(n_jobs)
        self.backend = backend
        self.chunks_per_worker = int(chunks_per_worker)
        self.verbose = verbose

    def _workers(self) -> int:
        from joblib import effective_n_jobs
        return max(1, effective_n_jobs(self.n_jobs))

    def n_tasks(self, n_points: int) -> int:
        return max(1, min(n_points, self._workers() * self.chunks_per_worker))

    def map(self, fn, tasks):
        from joblib import Parallel, delayed

        parallel = Parallel(
            n_jobs=self.n_jobs,
            backend=self.backend,
            verbose=self.verbose,
            return_as='generator',
        )
        yield from parallel(delayed(fn)(task) for task in tasks)

    def __repr__(self) -> str:
        return f"JoblibExecutor(n_jobs={self.n_jobs}, backend={self.backend!r})"


def make_executor(n_jobs: Optional[int] = None, backend: str = 'loky', **kwargs) -> ExecutorPolicy:
    """SequentialExecutor for n_jobs in (None, 1), JoblibExecutor otherwise."""
    if n_jobs is None or n_jobs == 1:
        return SequentialExecutor()
    return JoblibExecutor(n_jobs=n_jobs, backend=backend, **kwargs)
