"""Concurrency-bounded task scheduler.

The scheduler keeps at most ``limit`` tasks in flight, admits them in
generator order, and refills a slot as soon as any in-flight task reaches a
terminal outcome. How a task is actually executed is delegated to an
executor:

    CooperativeExecutor   every task runs on the scheduler's own event loop
    WorkerPoolExecutor    every task runs on a worker thread that owns its own
                          event loop and ledger connection
"""

from __future__ import annotations

import asyncio
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Protocol

from chainload.exceptions import ConfigurationError
from chainload.ledger.base import LedgerClient
from chainload.logger import Logger, session_logger

from bench.core.aggregator import ResultAggregator
from bench.core.models import ErrorKind, RunReport, Strategy, Task, TaskOutcome, TaskState
from bench.core.retry import RetryEngine


class TaskExecutor(Protocol):
    async def execute(self, task: Task) -> TaskOutcome: ...

    async def aclose(self) -> None: ...


class CooperativeExecutor:
    def __init__(self, engine: RetryEngine) -> None:
        self._engine = engine

    async def execute(self, task: Task) -> TaskOutcome:
        return await self._engine.drive(task)

    async def aclose(self) -> None:
        return None


class _WorkerState:
    def __init__(self, loop: asyncio.AbstractEventLoop, ledger: LedgerClient, engine: RetryEngine) -> None:
        self.loop = loop
        self.ledger = ledger
        self.engine = engine


class WorkerPoolExecutor:
    """Runs each task to completion on a pool thread.

    Every thread lazily builds its own event loop, ledger client and retry
    engine on first use; they are torn down in ``aclose`` once the pool has
    shut down.
    """

    def __init__(
        self,
        ledger_factory: Callable[[], LedgerClient],
        engine_factory: Callable[[LedgerClient], RetryEngine],
        *,
        workers: int,
        logger: Logger | None = None,
    ) -> None:
        if workers <= 0:
            raise ConfigurationError("CONFIGURATION", "workers must be > 0", {"workers": workers})
        self._ledger_factory = ledger_factory
        self._engine_factory = engine_factory
        self._logger = logger or session_logger
        self._pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="bench-worker")
        self._local = threading.local()
        self._states: list[_WorkerState] = []
        self._states_lock = threading.Lock()

    async def execute(self, task: Task) -> TaskOutcome:
        future = self._pool.submit(self._run_in_worker, task)
        return await asyncio.wrap_future(future)

    def _run_in_worker(self, task: Task) -> TaskOutcome:
        state: _WorkerState | None = getattr(self._local, "state", None)
        if state is None:
            loop = asyncio.new_event_loop()
            ledger = self._ledger_factory()
            state = _WorkerState(loop, ledger, self._engine_factory(ledger))
            self._local.state = state
            with self._states_lock:
                self._states.append(state)
            self._logger.debug(
                "bench.worker_started",
                event="bench.worker_started",
                thread=threading.current_thread().name,
            )
        return state.loop.run_until_complete(state.engine.drive(task))

    async def aclose(self) -> None:
        # Worker loops cannot be driven from a thread that already runs one.
        await asyncio.to_thread(self._teardown)

    def _teardown(self) -> None:
        self._pool.shutdown(wait=True)
        with self._states_lock:
            states = list(self._states)
            self._states.clear()
        for state in states:
            try:
                state.loop.run_until_complete(state.ledger.aclose())
            finally:
                state.loop.close()


class Scheduler:
    def __init__(
        self,
        executor: TaskExecutor,
        aggregator: ResultAggregator,
        *,
        strategy: Strategy = Strategy.COOPERATIVE,
        logger: Logger | None = None,
    ) -> None:
        self._executor = executor
        self._aggregator = aggregator
        self._strategy = strategy
        self._logger = logger or session_logger

        self.active = 0
        self.peak_in_flight = 0

    async def run(self, tasks: Iterable[Task], limit: int) -> RunReport:
        """Drive every task to a terminal outcome with at most ``limit`` in flight."""
        if limit <= 0:
            raise ConfigurationError(
                "CONFIGURATION",
                "concurrency limit must be > 0",
                {"concurrency_limit": limit},
            )

        total = len(tasks) if hasattr(tasks, "__len__") else None  # type: ignore[arg-type]
        progress_step = max(1, total // 10) if total else 0

        source = iter(tasks)
        in_flight: set[asyncio.Task[TaskOutcome]] = set()
        completed = 0
        self.active = 0
        self.peak_in_flight = 0

        self._aggregator.start()
        try:
            self._admit(source, in_flight, limit)
            while in_flight:
                done, in_flight = await asyncio.wait(in_flight, return_when=asyncio.FIRST_COMPLETED)
                for finished in done:
                    self._aggregator.record(finished.result())
                    completed += 1
                    if progress_step and (completed % progress_step == 0 or completed == total):
                        self._logger.info(
                            "bench.progress",
                            event="bench.progress",
                            completed=completed,
                            total=total,
                            pct=round(completed / total * 100, 1),
                            in_flight=len(in_flight),
                        )
                self.active = len(in_flight)
                self._admit(source, in_flight, limit)
        finally:
            for pending in in_flight:
                pending.cancel()
            self._aggregator.finish()

        return self._aggregator.build_report(
            concurrency_limit=limit,
            total_tasks=total if total is not None else completed,
            strategy=self._strategy,
            peak_in_flight=self.peak_in_flight,
        )

    def _admit(self, source, in_flight: set[asyncio.Task[TaskOutcome]], limit: int) -> None:
        while len(in_flight) < limit:
            task = next(source, None)
            if task is None:
                break
            in_flight.add(asyncio.create_task(self._execute(task)))
            self.active = len(in_flight)
            self.peak_in_flight = max(self.peak_in_flight, self.active)

    async def _execute(self, task: Task) -> TaskOutcome:
        try:
            return await self._executor.execute(task)
        except Exception as exc:
            # Executor faults (e.g. a worker failing to build its client)
            # still end the task with exactly one terminal outcome.
            self._logger.error(
                "bench.executor_failed",
                event="bench.executor_failed",
                task_index=task.index,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            task.state = TaskState.TERMINAL_FAILURE
            return TaskOutcome(
                task_index=task.index,
                succeeded=False,
                attempts_used=task.attempt,
                error_kind=ErrorKind.TERMINAL_SUBMISSION_ERROR,
                elapsed=0.0,
                error_type=type(exc).__name__,
                error_detail=str(exc),
                credential=task.credential.address,
            )
