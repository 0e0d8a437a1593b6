"""Tests for the concurrency-bounded scheduler and its executors."""

from __future__ import annotations

import asyncio
import threading

import pytest

from chainload.exceptions import ConfigurationError
from chainload.ledger.base import Credential

from bench.core.aggregator import ResultAggregator
from bench.core.models import ErrorKind, RetryPolicy, Strategy, Task, TaskOutcome
from bench.core.retry import RetryEngine
from bench.core.scheduler import CooperativeExecutor, Scheduler, WorkerPoolExecutor
from bench.core.tasks import CredentialPool, TaskSequence
from bench.fixtures.ledger_fixture import InMemoryLedger

CREDENTIAL = Credential(address="0x0000000000000000000000000000000000000001")


def _tasks(n: int) -> list[Task]:
    return [Task(index=i, credential=CREDENTIAL, payload=None) for i in range(n)]


class _TrackingExecutor:
    """Executor that records admission order and concurrent in-flight count."""

    def __init__(self, *, fail_index: int | None = None) -> None:
        self.started: list[int] = []
        self.active = 0
        self.max_active = 0
        self.fail_index = fail_index

    async def execute(self, task: Task) -> TaskOutcome:
        self.started.append(task.index)
        self.active += 1
        self.max_active = max(self.max_active, self.active)
        try:
            # Uneven durations so completions interleave.
            await asyncio.sleep(0.001 * ((task.index * 7) % 5))
            if task.index == self.fail_index:
                raise RuntimeError("executor blew up")
        finally:
            self.active -= 1
        return TaskOutcome(
            task_index=task.index,
            succeeded=True,
            attempts_used=1,
            error_kind=None,
            elapsed=0.001,
            effect=1,
        )

    async def aclose(self) -> None:
        return None


class TestSchedulerBounds:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [1, 3, 8])
    async def test_never_exceeds_limit(self, limit, recording_logger):
        executor = _TrackingExecutor()
        scheduler = Scheduler(executor, ResultAggregator(logger=recording_logger), logger=recording_logger)

        report = await scheduler.run(_tasks(25), limit)

        assert executor.max_active == limit
        assert report.peak_in_flight == limit
        assert report.success_count == 25
        assert report.concurrency_limit == limit

    @pytest.mark.asyncio
    async def test_fifo_admission(self, recording_logger):
        executor = _TrackingExecutor()
        scheduler = Scheduler(executor, ResultAggregator(logger=recording_logger), logger=recording_logger)

        await scheduler.run(_tasks(30), 4)

        assert executor.started == list(range(30))

    @pytest.mark.asyncio
    async def test_limit_above_task_count(self, recording_logger):
        executor = _TrackingExecutor()
        scheduler = Scheduler(executor, ResultAggregator(logger=recording_logger), logger=recording_logger)

        report = await scheduler.run(_tasks(3), 64)

        assert report.peak_in_flight == 3
        assert report.success_count == 3

    @pytest.mark.asyncio
    @pytest.mark.parametrize("limit", [0, -2])
    async def test_rejects_non_positive_limit(self, limit, recording_logger):
        executor = _TrackingExecutor()
        scheduler = Scheduler(executor, ResultAggregator(logger=recording_logger), logger=recording_logger)

        with pytest.raises(ConfigurationError):
            await scheduler.run(_tasks(5), limit)

        assert executor.started == []

    @pytest.mark.asyncio
    async def test_empty_run(self, recording_logger):
        scheduler = Scheduler(_TrackingExecutor(), ResultAggregator(logger=recording_logger), logger=recording_logger)

        report = await scheduler.run([], 4)

        assert report.total_tasks == 0
        assert report.success_count == 0
        assert report.failure_count == 0
        assert report.peak_in_flight == 0


class TestSchedulerReporting:
    @pytest.mark.asyncio
    async def test_progress_logged_every_tenth(self, recording_logger):
        scheduler = Scheduler(_TrackingExecutor(), ResultAggregator(logger=recording_logger), logger=recording_logger)

        await scheduler.run(_tasks(100), 8)

        progress = recording_logger.fields_of("bench.progress")
        assert [p["completed"] for p in progress] == list(range(10, 101, 10))
        assert progress[-1]["pct"] == 100.0

    @pytest.mark.asyncio
    async def test_executor_fault_becomes_terminal_outcome(self, recording_logger):
        executor = _TrackingExecutor(fail_index=2)
        scheduler = Scheduler(executor, ResultAggregator(logger=recording_logger), logger=recording_logger)

        report = await scheduler.run(_tasks(5), 2)

        assert report.success_count == 4
        assert report.failure_count == 1
        assert report.error_kinds == {ErrorKind.TERMINAL_SUBMISSION_ERROR.value: 1}
        assert report.error_types == {"RuntimeError": 1}
        assert "bench.executor_failed" in recording_logger.events("error")

    @pytest.mark.asyncio
    async def test_strategy_is_reported(self, recording_logger):
        scheduler = Scheduler(
            _TrackingExecutor(),
            ResultAggregator(logger=recording_logger),
            strategy=Strategy.WORKERS,
            logger=recording_logger,
        )

        report = await scheduler.run(_tasks(2), 1)

        assert report.strategy is Strategy.WORKERS


class TestCooperativeExecutor:
    @pytest.mark.asyncio
    async def test_contended_credentials_conserve_tasks(self, counter_workload, fast_policy, recording_logger):
        ledger = InMemoryLedger(counter_workload, initial_state=0)
        pool = CredentialPool([CREDENTIAL, Credential(address="0x0000000000000000000000000000000000000002")])
        engine = RetryEngine(ledger, fast_policy, counter_workload, logger=recording_logger)
        scheduler = Scheduler(CooperativeExecutor(engine), ResultAggregator(logger=recording_logger), logger=recording_logger)

        report = await scheduler.run(TaskSequence(40, pool, counter_workload), 8)

        assert report.success_count + report.failure_count == 40
        assert report.success_count == 40
        assert report.retries > 0
        assert ledger.state == report.aggregate_effect == 40
        assert ledger.stats.nonce_conflicts == report.retries


class TestWorkerPoolExecutor:
    @pytest.mark.asyncio
    async def test_runs_on_worker_threads(self, counter_workload, credentials, recording_logger):
        ledger = InMemoryLedger(counter_workload)
        policy = RetryPolicy(max_attempts=50, base_delay=0.0, backoff_factor=2.0)
        created: list[str] = []
        lock = threading.Lock()

        def ledger_factory():
            with lock:
                created.append(threading.current_thread().name)
            return ledger

        executor = WorkerPoolExecutor(
            ledger_factory,
            lambda client: RetryEngine(client, policy, counter_workload, logger=recording_logger),
            workers=4,
            logger=recording_logger,
        )
        scheduler = Scheduler(
            executor,
            ResultAggregator(logger=recording_logger),
            strategy=Strategy.WORKERS,
            logger=recording_logger,
        )
        try:
            report = await scheduler.run(TaskSequence(24, CredentialPool(credentials), counter_workload), 4)
        finally:
            await executor.aclose()

        assert report.success_count == 24
        assert ledger.state == 24
        assert 1 <= len(created) <= 4
        assert all(name.startswith("bench-worker") for name in created)

    def test_rejects_zero_workers(self, counter_workload):
        with pytest.raises(ConfigurationError):
            WorkerPoolExecutor(lambda: None, lambda client: None, workers=0)

    @pytest.mark.asyncio
    async def test_worker_threads_respect_limit(self, counter_workload, credentials, recording_logger):
        ledger = InMemoryLedger(counter_workload, submit_latency=0.002, confirm_latency=0.002)
        policy = RetryPolicy(max_attempts=50, base_delay=0.0, backoff_factor=2.0)
        engines: list[_CountingEngine] = []
        gauge = _ThreadGauge()

        def engine_factory(client):
            engine = _CountingEngine(RetryEngine(client, policy, counter_workload, logger=recording_logger), gauge)
            engines.append(engine)
            return engine

        executor = WorkerPoolExecutor(lambda: ledger, engine_factory, workers=3, logger=recording_logger)
        scheduler = Scheduler(
            executor,
            ResultAggregator(logger=recording_logger),
            strategy=Strategy.WORKERS,
            logger=recording_logger,
        )
        try:
            report = await scheduler.run(TaskSequence(18, CredentialPool(credentials), counter_workload), 3)
        finally:
            await executor.aclose()

        assert report.success_count == 18
        assert report.peak_in_flight <= 3
        assert 1 <= gauge.peak <= 3
        assert len(engines) <= 3


class _ThreadGauge:
    """Counts drives in progress across worker threads."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.active = 0
        self.peak = 0

    def enter(self) -> None:
        with self._lock:
            self.active += 1
            self.peak = max(self.peak, self.active)

    def leave(self) -> None:
        with self._lock:
            self.active -= 1


class _CountingEngine:
    def __init__(self, engine: RetryEngine, gauge: _ThreadGauge) -> None:
        self._engine = engine
        self._gauge = gauge

    async def drive(self, task: Task) -> TaskOutcome:
        self._gauge.enter()
        try:
            return await self._engine.drive(task)
        finally:
            self._gauge.leave()


class _ShortSequence:
    """Declares more tasks than it yields."""

    def __init__(self, declared: int, actual: int) -> None:
        self._declared = declared
        self._actual = actual

    def __len__(self) -> int:
        return self._declared

    def __iter__(self):
        return iter(_tasks(self._actual))


class TestSchedulerTotals:
    @pytest.mark.asyncio
    async def test_total_is_declared_count(self, recording_logger):
        scheduler = Scheduler(_TrackingExecutor(), ResultAggregator(logger=recording_logger), logger=recording_logger)

        report = await scheduler.run(_ShortSequence(5, 4), 2)

        assert report.total_tasks == 5
        # A task that never produced an outcome shows up as a gap.
        assert report.success_count + report.failure_count == 4

    @pytest.mark.asyncio
    async def test_unsized_iterable_counts_outcomes(self, recording_logger):
        scheduler = Scheduler(_TrackingExecutor(), ResultAggregator(logger=recording_logger), logger=recording_logger)

        report = await scheduler.run(iter(_tasks(6)), 2)

        assert report.total_tasks == 6
        assert report.success_count == 6
