"""Parallel execution utilities for MGEConsensus.

Example:
    >>> from mgeconsensus.parallel import ParallelExecutor
    >>> executor = ParallelExecutor(n_workers=4, backend="threads")
    >>> results, stats = executor.map_items(search_pair, pairs)
"""

from mgeconsensus.parallel.executor import (
    ExecutionStats,
    ExecutorBackend,
    ParallelExecutor,
    TaskResult,
)

__all__ = [
    "ExecutionStats",
    "ExecutorBackend",
    "ParallelExecutor",
    "TaskResult",
]
