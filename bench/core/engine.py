from __future__ import annotations

import asyncio
import os
from typing import Awaitable, Callable, Sequence

from chainload.ledger.base import Credential, LedgerClient
from chainload.ledger.workloads import Workload
from chainload.logger import Logger, session_logger

from bench.core.aggregator import ResultAggregator
from bench.core.models import BenchmarkConfig, RunReport, Strategy, validate_run_config
from bench.core.retry import RetryEngine
from bench.core.scheduler import CooperativeExecutor, Scheduler, TaskExecutor, WorkerPoolExecutor
from bench.core.tasks import CredentialPool, TaskSequence
from bench.core.verifier import Verifier


class Benchmark:
    """One benchmark: a fresh run per configured concurrency level.

    ``ledger_factory`` is called once per level for the control client (initial
    state, cooperative execution, verification) and, in the workers strategy,
    once more per worker thread.
    """

    def __init__(
        self,
        config: BenchmarkConfig,
        *,
        ledger_factory: Callable[[], LedgerClient],
        credentials: Sequence[Credential],
        workload: Workload,
        target: str,
        logger: Logger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._config = config
        self._ledger_factory = ledger_factory
        self._workload = workload
        self._target = target
        self._logger = logger or session_logger
        self._sleep = sleep
        self._pool = CredentialPool(credentials, max_credentials=config.max_credentials)

    @property
    def credential_count(self) -> int:
        return len(self._pool)

    async def run(self) -> list[RunReport]:
        # Reject a bad level before the first one starts mutating the ledger.
        for concurrency in self._config.concurrency_levels:
            validate_run_config(self._config.run_config(concurrency))

        reports: list[RunReport] = []
        for concurrency in self._config.concurrency_levels:
            reports.append(await self.run_level(concurrency))

        self._logger.info(
            "bench.sweep_end",
            event="bench.sweep_end",
            levels=len(reports),
            all_verified=all(r.verified for r in reports),
        )
        return reports

    async def run_level(self, concurrency: int) -> RunReport:
        run_config = self._config.run_config(concurrency)
        validate_run_config(run_config)
        self._warn_on_stress(concurrency)

        ledger = self._ledger_factory()
        executor: TaskExecutor | None = None
        try:
            initial_state = await ledger.query_state(self._target)
            executor = self._build_executor(ledger, run_config.concurrency_limit)
            aggregator = ResultAggregator(logger=self._logger)
            scheduler = Scheduler(executor, aggregator, strategy=self._config.strategy, logger=self._logger)

            self._logger.info(
                "bench.run_start",
                event="bench.run_start",
                workload=self._workload.name,
                strategy=self._config.strategy.value,
                concurrency_limit=concurrency,
                total_tasks=run_config.total_tasks,
                credentials=len(self._pool),
                initial_state=initial_state,
            )

            report = await scheduler.run(
                TaskSequence(run_config.total_tasks, self._pool, self._workload),
                run_config.concurrency_limit,
            )
            report = await Verifier(ledger, self._target, logger=self._logger).verify(
                report, initial_state=initial_state
            )
        finally:
            if executor is not None:
                await executor.aclose()
            await ledger.aclose()

        self._logger.info(
            "bench.run_end",
            event="bench.run_end",
            concurrency_limit=concurrency,
            success_count=report.success_count,
            failure_count=report.failure_count,
            retries=report.retries,
            duration_ms=report.total_duration_ms,
            throughput_tps=round(report.throughput_tps, 2),
            peak_in_flight=report.peak_in_flight,
            verified=report.verified,
        )
        return report

    def _build_executor(self, ledger: LedgerClient, concurrency: int) -> TaskExecutor:
        if self._config.strategy is Strategy.WORKERS:
            return WorkerPoolExecutor(
                self._ledger_factory,
                self._engine_for,
                workers=concurrency,
                logger=self._logger,
            )
        return CooperativeExecutor(self._engine_for(ledger))

    def _engine_for(self, ledger: LedgerClient) -> RetryEngine:
        return RetryEngine(
            ledger,
            self._config.retry_policy,
            self._workload,
            logger=self._logger,
            sleep=self._sleep,
        )

    def _warn_on_stress(self, concurrency: int) -> None:
        # Oversubscription is a deliberate stress setting; warn, never cap.
        if concurrency > len(self._pool):
            self._logger.warning(
                "bench.concurrency_exceeds_credentials",
                event="bench.concurrency_exceeds_credentials",
                concurrency_limit=concurrency,
                credentials=len(self._pool),
            )
        cpus = os.cpu_count() or 1
        if self._config.strategy is Strategy.WORKERS and concurrency > cpus:
            self._logger.warning(
                "bench.workers_exceed_cpus",
                event="bench.workers_exceed_cpus",
                workers=concurrency,
                cpus=cpus,
            )
