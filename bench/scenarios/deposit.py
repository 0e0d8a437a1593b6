"""Deposit scenario: every task calls ``AccountBalance.deposit()`` with value.

The observed state is the contract's native balance; after a run it must
equal the balance before the run plus ``amount * confirmed``.

Usage from CLI::

    python -m bench.run --mode live --workload deposit --deposit-amount 0.01 \\
        --contract 0x... --concurrency 1,4,16
"""

from __future__ import annotations

from typing import Callable, Sequence

from chainload.ledger.base import Credential, LedgerClient
from chainload.ledger.workloads import BalanceDeposit, parse_ether_amount
from chainload.logger import Logger

from bench.core.engine import Benchmark
from bench.core.models import BenchmarkConfig, RetryPolicy, RunReport, Strategy
from bench.fixtures.accounts import fixture_credentials
from bench.fixtures.ledger_fixture import FIXTURE_TARGET, InMemoryLedger

DEFAULT_DEPOSIT_ETHER = "0.01"

# Deposits wait on slower receipts in practice; give them a larger budget.
DEPOSIT_RETRY_POLICY = RetryPolicy(max_attempts=1000, base_delay=2.0, backoff_factor=2.0)


async def run_deposit_scenario(
    *,
    total_tasks: int = 1000,
    concurrency_levels: Sequence[int] = (1, 2, 4, 8, 16, 32, 64, 128, 256),
    amount_ether: str = DEFAULT_DEPOSIT_ETHER,
    strategy: Strategy = Strategy.COOPERATIVE,
    retry_policy: RetryPolicy | None = None,
    credentials: Sequence[Credential] | None = None,
    ledger_factory: Callable[[], LedgerClient] | None = None,
    target: str = FIXTURE_TARGET,
    logger: Logger | None = None,
) -> list[RunReport]:
    """Run the deposit scenario; defaults to the in-memory ledger with short backoff."""
    workload = BalanceDeposit(amount_wei=parse_ether_amount(amount_ether))
    if ledger_factory is None:
        ledger = InMemoryLedger(workload, target=target, logger=logger)
        ledger_factory = lambda: ledger  # noqa: E731
        if retry_policy is None:
            retry_policy = RetryPolicy(max_attempts=DEPOSIT_RETRY_POLICY.max_attempts, base_delay=0.01)

    config = BenchmarkConfig(
        total_tasks=total_tasks,
        concurrency_levels=tuple(concurrency_levels),
        retry_policy=retry_policy or DEPOSIT_RETRY_POLICY,
        strategy=strategy,
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
