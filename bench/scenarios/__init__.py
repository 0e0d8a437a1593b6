"""Pre-built benchmark scenarios."""

from __future__ import annotations

__all__ = ["build_counter_config", "run_counter_scenario", "run_deposit_scenario"]

from bench.scenarios.counter import build_counter_config, run_counter_scenario
from bench.scenarios.deposit import run_deposit_scenario
