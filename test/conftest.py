"""Pytest configuration and fixtures

Provides shared fixtures for the benchmark tests: credentials, workloads,
in-memory ledgers and a recording logger. Nothing here touches the network.
"""

import sys
from pathlib import Path
from typing import Any

import pytest

# Add project root to sys.path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from chainload.ledger.base import Credential
from chainload.ledger.workloads import BalanceDeposit, CounterIncrement
from chainload.logger import Logger

from bench.core.models import RetryPolicy
from bench.fixtures.accounts import fixture_credentials
from bench.fixtures.ledger_fixture import InMemoryLedger


class RecordingLogger(Logger):
    """Logger that keeps every call for assertions."""

    def __init__(self) -> None:
        self.records: list[tuple[str, str, dict[str, Any]]] = []

    def debug(self, message: str, **kwargs: Any) -> None:
        self.records.append(("debug", message, kwargs))

    def info(self, message: str, **kwargs: Any) -> None:
        self.records.append(("info", message, kwargs))

    def warning(self, message: str, **kwargs: Any) -> None:
        self.records.append(("warning", message, kwargs))

    def error(self, message: str, **kwargs: Any) -> None:
        self.records.append(("error", message, kwargs))

    def events(self, level: str | None = None) -> list[str]:
        return [m for (lvl, m, _) in self.records if level is None or lvl == level]

    def fields_of(self, message: str) -> list[dict[str, Any]]:
        return [f for (_, m, f) in self.records if m == message]


async def _no_sleep(_delay: float) -> None:
    return None


@pytest.fixture
def no_sleep():
    """Drop-in for asyncio.sleep that returns immediately."""
    return _no_sleep


@pytest.fixture
def recording_logger() -> RecordingLogger:
    return RecordingLogger()


@pytest.fixture
def credentials() -> list[Credential]:
    return fixture_credentials(4)


@pytest.fixture
def counter_workload() -> CounterIncrement:
    return CounterIncrement()


@pytest.fixture
def deposit_workload() -> BalanceDeposit:
    return BalanceDeposit(amount_wei=10_000_000_000_000_000)


@pytest.fixture
def fast_policy() -> RetryPolicy:
    return RetryPolicy(max_attempts=50, base_delay=0.0, backoff_factor=2.0)


@pytest.fixture
def counter_ledger(counter_workload, recording_logger) -> InMemoryLedger:
    return InMemoryLedger(counter_workload, initial_state=5, logger=recording_logger)
