"""In-process ledger fixtures for CI-safe benchmark runs."""

from __future__ import annotations

__all__ = ["FIXTURE_TARGET", "InMemoryLedger", "fixture_credentials"]

from bench.fixtures.accounts import fixture_credentials
from bench.fixtures.ledger_fixture import FIXTURE_TARGET, InMemoryLedger
