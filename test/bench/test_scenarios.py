"""Tests for the pre-built counter and deposit scenarios (fixture ledger)."""

from __future__ import annotations

import pytest

from bench.core.models import Mode, Strategy
from bench.scenarios import build_counter_config, run_counter_scenario, run_deposit_scenario


class TestCounterScenario:
    def test_default_config(self):
        config = build_counter_config()

        assert config.total_tasks == 1000
        assert config.concurrency_levels == (1, 2, 4, 8, 16, 32, 64, 128, 256)
        assert config.retry_policy.max_attempts == 100
        assert config.retry_policy.base_delay == 1.0
        assert config.mode is Mode.FIXTURE
        assert config.max_credentials == 20

    @pytest.mark.asyncio
    async def test_runs_against_fixture(self, recording_logger):
        reports = await run_counter_scenario(
            total_tasks=30,
            concurrency_levels=(1, 8, 32),
            base_delay=0.0,
            logger=recording_logger,
        )

        assert [r.concurrency_limit for r in reports] == [1, 8, 32]
        assert all(r.success_count == 30 and r.verified for r in reports)
        # 32 in flight over 20 fixture credentials
        assert "bench.concurrency_exceeds_credentials" in recording_logger.events("warning")


class TestDepositScenario:
    @pytest.mark.asyncio
    async def test_runs_against_fixture(self, recording_logger):
        reports = await run_deposit_scenario(
            total_tasks=12,
            concurrency_levels=(4,),
            amount_ether="0.01",
            strategy=Strategy.WORKERS,
            logger=recording_logger,
        )

        report = reports[0]
        assert report.verified
        assert report.aggregate_effect == 12 * 10**16
        assert report.final_observed_state == 12 * 10**16
