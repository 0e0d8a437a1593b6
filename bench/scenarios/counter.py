"""Counter scenario: every task calls ``Counter.increment()`` once.

After a run the contract's ``count()`` must equal its value before the run
plus the number of confirmed tasks.

Usage from CLI::

    python -m bench.run --mode fixture --workload counter \\
        --total-tasks 1000 --concurrency 1,2,4,8,16

Usage as library::

    from bench.scenarios.counter import run_counter_scenario

    reports = await run_counter_scenario(total_tasks=200, concurrency_levels=(1, 8, 32))
"""

from __future__ import annotations

from typing import Callable, Sequence

from chainload.ledger.base import Credential, LedgerClient
from chainload.ledger.workloads import CounterIncrement
from chainload.logger import Logger

from bench.core.engine import Benchmark
from bench.core.models import BenchmarkConfig, Mode, RetryPolicy, RunReport, Strategy
from bench.fixtures.accounts import fixture_credentials
from bench.fixtures.ledger_fixture import FIXTURE_TARGET, InMemoryLedger

DEFAULT_LEVELS = (1, 2, 4, 8, 16, 32, 64, 128, 256)


def build_counter_config(
    *,
    total_tasks: int = 1000,
    concurrency_levels: Sequence[int] = DEFAULT_LEVELS,
    strategy: Strategy = Strategy.COOPERATIVE,
    mode: Mode = Mode.FIXTURE,
    max_attempts: int = 100,
    base_delay: float = 1.0,
    backoff_factor: float = 2.0,
    max_credentials: int | None = 20,
) -> BenchmarkConfig:
    return BenchmarkConfig(
        total_tasks=total_tasks,
        concurrency_levels=tuple(concurrency_levels),
        retry_policy=RetryPolicy(
            max_attempts=max_attempts,
            base_delay=base_delay,
            backoff_factor=backoff_factor,
        ),
        strategy=strategy,
        mode=mode,
        max_credentials=max_credentials,
    )


async def run_counter_scenario(
    *,
    total_tasks: int = 1000,
    concurrency_levels: Sequence[int] = DEFAULT_LEVELS,
    strategy: Strategy = Strategy.COOPERATIVE,
    base_delay: float = 0.01,
    credentials: Sequence[Credential] | None = None,
    ledger_factory: Callable[[], LedgerClient] | None = None,
    target: str = FIXTURE_TARGET,
    logger: Logger | None = None,
) -> list[RunReport]:
    """Run the counter scenario; defaults to the in-memory ledger."""
    workload = CounterIncrement()
    if ledger_factory is None:
        ledger = InMemoryLedger(workload, target=target, logger=logger)
        ledger_factory = lambda: ledger  # noqa: E731

    config = build_counter_config(
        total_tasks=total_tasks,
        concurrency_levels=concurrency_levels,
        strategy=strategy,
        base_delay=base_delay,
    )
    benchmark = Benchmark(
        config,
        ledger_factory=ledger_factory,
        credentials=credentials if credentials is not None else fixture_credentials(),
        workload=workload,
        target=target,
        logger=logger,
    )
    return await benchmark.run()
