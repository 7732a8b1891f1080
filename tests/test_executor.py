"""Tests for mgeconsensus.parallel.executor."""

import pytest

from mgeconsensus.parallel.executor import (
    ExecutionStats,
    ExecutorBackend,
    ParallelExecutor,
    TaskResult,
)


def fail_on_three(x: int) -> int:
    if x == 3:
        raise ValueError("three")
    return x * 10


# =============================================================================
# Executor Tests
# =============================================================================


class TestParallelExecutor:
    """Tests for ParallelExecutor."""

    def test_single_worker_is_serial(self):
        assert ParallelExecutor(n_workers=1, backend="threads").backend is ExecutorBackend.SERIAL

    @pytest.mark.parametrize("backend", ["serial", "threads"])
    def test_results_in_input_order(self, backend):
        executor = ParallelExecutor(n_workers=4, backend=backend)
        results, stats = executor.map_items(fail_on_three, [1, 2, 4, 5])
        assert [r.result for r in results] == [10, 20, 40, 50]
        assert stats.successful == 4

    @pytest.mark.parametrize("backend", ["serial", "threads"])
    def test_failure_recorded(self, backend):
        executor = ParallelExecutor(n_workers=2, backend=backend)
        results, stats = executor.map_items(
            fail_on_three, [1, 3, 5], task_ids=["a", "b", "c"]
        )
        assert [r.success for r in results] == [True, False, True]
        assert results[1].task_id == "b"
        assert "ValueError: three" in results[1].error
        assert (stats.successful, stats.failed) == (2, 1)

    def test_process_backend(self):
        executor = ParallelExecutor(n_workers=2, backend=ExecutorBackend.PROCESSES)
        results, _ = executor.map_items(abs, [-1, -2, 3])
        assert [r.result for r in results] == [1, 2, 3]

    def test_empty(self):
        results, stats = ParallelExecutor(n_workers=2).map_items(abs, [])
        assert results == []
        assert stats.total_tasks == 0

    def test_mismatched_task_ids(self):
        with pytest.raises(ValueError):
            ParallelExecutor().map_items(abs, [1, 2], task_ids=["only_one"])

    def test_stats(self):
        results, stats = ParallelExecutor(n_workers=1).map_items(fail_on_three, [1, 3])
        assert isinstance(stats, ExecutionStats)
        assert stats.total_tasks == 2
        assert stats.max_task_duration >= stats.mean_task_duration >= 0
        assert isinstance(results[0], TaskResult)
