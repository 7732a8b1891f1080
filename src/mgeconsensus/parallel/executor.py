"""Local parallel execution using concurrent.futures.

Genomes are independent during merging and binning, and similarity
searches are long blocking subprocess calls, so both are dispatched
through a small worker pool. A failing task never stops the others; its
error is recorded on the TaskResult and the caller decides how to
degrade.

Example:
    >>> from mgeconsensus.parallel.executor import ParallelExecutor
    >>> executor = ParallelExecutor(n_workers=8, backend="threads")
    >>> results, stats = executor.map_items(search_pair, pairs)
"""

from __future__ import annotations

import logging
import time
from concurrent.futures import (
    Future,
    ProcessPoolExecutor,
    ThreadPoolExecutor,
    as_completed,
)
from enum import Enum
from typing import Any, Callable, Sequence, TypeVar

import attrs

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")


# =============================================================================
# Enums
# =============================================================================


class ExecutorBackend(Enum):
    """Available execution backends."""

    SERIAL = "serial"
    THREADS = "threads"
    PROCESSES = "processes"


# =============================================================================
# Data Structures
# =============================================================================


@attrs.define(slots=True)
class TaskResult:
    """Result from a parallel task."""

    task_id: str
    success: bool
    result: Any | None = None
    error: str | None = None
    duration_seconds: float = 0.0


@attrs.define(slots=True)
class ExecutionStats:
    """Statistics from parallel execution."""

    total_tasks: int
    successful: int
    failed: int
    total_duration: float
    mean_task_duration: float
    max_task_duration: float


def _run_task(func: Callable[[T], R], item: T, task_id: str) -> TaskResult:
    """Run one task, capturing its result or error.

    Module level so the process backend can pickle it.
    """
    start_time = time.time()
    try:
        result = func(item)
    except Exception as e:
        return TaskResult(
            task_id=task_id,
            success=False,
            error=f"{type(e).__name__}: {e}",
            duration_seconds=time.time() - start_time,
        )
    return TaskResult(
        task_id=task_id,
        success=True,
        result=result,
        duration_seconds=time.time() - start_time,
    )


# =============================================================================
# Parallel Executor
# =============================================================================


class ParallelExecutor:
    """Execute independent tasks in parallel.

    Results are returned in input order whatever the completion order.

    Example:
        >>> executor = ParallelExecutor(n_workers=4, backend="processes")
        >>> results, stats = executor.map_items(process_genome, genomes)
        >>> print(f"Processed {stats.successful}/{stats.total_tasks} genomes")
    """

    def __init__(
        self,
        n_workers: int = 1,
        backend: ExecutorBackend | str = ExecutorBackend.THREADS,
    ) -> None:
        """Initialize executor.

        Args:
            n_workers: Number of parallel workers (1 = serial).
            backend: Execution backend.
        """
        self.n_workers = max(1, n_workers)
        self.backend = (
            ExecutorBackend(backend) if isinstance(backend, str) else backend
        )

        if self.n_workers == 1:
            self.backend = ExecutorBackend.SERIAL

    def map_items(
        self,
        func: Callable[[T], R],
        items: Sequence[T],
        task_ids: Sequence[str] | None = None,
    ) -> tuple[list[TaskResult], ExecutionStats]:
        """Apply a function to each item.

        Args:
            func: Function to apply to each item.
            items: Items to process.
            task_ids: Labels for logging (defaults to item indices).

        Returns:
            Tuple of (results in input order, execution stats).
        """
        if task_ids is None:
            task_ids = [f"task_{i:06d}" for i in range(len(items))]
        if len(task_ids) != len(items):
            raise ValueError("task_ids and items must have the same length")

        if not items:
            return [], ExecutionStats(0, 0, 0, 0.0, 0.0, 0.0)

        logger.debug(
            f"Processing {len(items)} tasks with {self.n_workers} workers "
            f"(backend={self.backend.value})"
        )

        start_time = time.time()
        if self.backend == ExecutorBackend.SERIAL:
            results = self._execute_serial(func, items, task_ids)
        else:
            results = self._execute_pool(func, items, task_ids)

        total_duration = time.time() - start_time
        successful = sum(1 for r in results if r.success)
        durations = [r.duration_seconds for r in results]

        stats = ExecutionStats(
            total_tasks=len(results),
            successful=successful,
            failed=len(results) - successful,
            total_duration=total_duration,
            mean_task_duration=sum(durations) / len(durations),
            max_task_duration=max(durations),
        )

        for result in results:
            if not result.success:
                logger.warning(f"Task {result.task_id} failed: {result.error}")

        return results, stats

    def _execute_serial(
        self,
        func: Callable,
        items: Sequence,
        task_ids: Sequence[str],
    ) -> list[TaskResult]:
        """Serial execution in input order."""
        return [_run_task(func, item, task_id) for item, task_id in zip(items, task_ids)]

    def _execute_pool(
        self,
        func: Callable,
        items: Sequence,
        task_ids: Sequence[str],
    ) -> list[TaskResult]:
        """Pool execution; threads for subprocess-bound work, processes for CPU."""
        pool_class = (
            ThreadPoolExecutor
            if self.backend == ExecutorBackend.THREADS
            else ProcessPoolExecutor
        )
        results: list[TaskResult | None] = [None] * len(items)

        with pool_class(max_workers=self.n_workers) as executor:
            futures: dict[Future, int] = {
                executor.submit(_run_task, func, item, task_id): i
                for i, (item, task_id) in enumerate(zip(items, task_ids))
            }
            for future in as_completed(futures):
                results[futures[future]] = future.result()

        return [r for r in results if r is not None]
