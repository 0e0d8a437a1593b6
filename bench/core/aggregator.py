from __future__ import annotations

import math
import random
import threading
import time
from typing import Any

from chainload.logger import Logger, session_logger

from bench.core.models import RunReport, Strategy, TaskOutcome


def _percentile(sorted_values: list[int], p: float) -> float | None:
    """Compute percentile using linear interpolation.

    Expects sorted_values sorted ascending.
    """

    if not sorted_values:
        return None

    if p <= 0:
        return float(sorted_values[0])
    if p >= 1:
        return float(sorted_values[-1])

    k = (len(sorted_values) - 1) * p
    f = int(math.floor(k))
    c = int(math.ceil(k))
    if f == c:
        return float(sorted_values[f])
    return float(sorted_values[f] * (c - k) + sorted_values[c] * (k - f))


class _ReservoirSampler:
    """Fixed-size latency sample; memory stays flat for large task counts."""

    def __init__(self, max_size: int, *, seed: int | None = None) -> None:
        if max_size <= 0:
            raise ValueError("max_size must be > 0")
        self._max_size = max_size
        self._rng = random.Random(seed)
        self._seen = 0
        self._values: list[int] = []

    def add(self, value: int) -> None:
        self._seen += 1
        if len(self._values) < self._max_size:
            self._values.append(value)
            return
        idx = self._rng.randrange(self._seen)
        if idx < self._max_size:
            self._values[idx] = value

    def values(self) -> list[int]:
        return list(self._values)


class ResultAggregator:
    """Accumulates TaskOutcomes for one run.

    ``record`` is the single mutation point. It is guarded by a thread lock
    because the worker-pool strategy reports from several OS threads.
    """

    def __init__(self, *, sample_size: int = 5000, logger: Logger | None = None) -> None:
        self._logger = logger or session_logger
        self._lock = threading.Lock()
        self._sample = _ReservoirSampler(sample_size)

        self._success = 0
        self._failure = 0
        self._effect = 0
        self._retries = 0
        self._latency_sum_ms = 0
        self._min_ms: int | None = None
        self._max_ms: int | None = None
        self._error_kinds: dict[str, int] = {}
        self._error_types: dict[str, int] = {}
        self._seen: set[int] = set()

        self._started: float | None = None
        self._ended: float | None = None

    def start(self) -> None:
        self._started = time.monotonic()
        self._ended = None

    def finish(self) -> None:
        self._ended = time.monotonic()

    @property
    def recorded(self) -> int:
        with self._lock:
            return self._success + self._failure

    def record(self, outcome: TaskOutcome) -> None:
        duration_ms = outcome.elapsed_ms

        with self._lock:
            if outcome.task_index in self._seen:
                raise ValueError(f"outcome for task {outcome.task_index} already recorded")
            self._seen.add(outcome.task_index)

            if outcome.succeeded:
                self._success += 1
                self._effect += outcome.effect
            else:
                self._failure += 1
                kind = outcome.error_kind.value if outcome.error_kind is not None else "unknown"
                self._error_kinds[kind] = self._error_kinds.get(kind, 0) + 1
                et = outcome.error_type or "unknown"
                self._error_types[et] = self._error_types.get(et, 0) + 1

            self._retries += max(0, outcome.attempts_used - 1)
            self._latency_sum_ms += duration_ms
            if self._min_ms is None or duration_ms < self._min_ms:
                self._min_ms = duration_ms
            if self._max_ms is None or duration_ms > self._max_ms:
                self._max_ms = duration_ms
            self._sample.add(duration_ms)

        if not outcome.succeeded:
            self._logger.debug(
                "bench.outcome_failed",
                event="bench.outcome_failed",
                task_index=outcome.task_index,
                error_kind=outcome.error_kind.value if outcome.error_kind else None,
                error_type=outcome.error_type,
            )

    def build_report(
        self,
        *,
        concurrency_limit: int,
        total_tasks: int,
        strategy: Strategy = Strategy.COOPERATIVE,
        peak_in_flight: int = 0,
    ) -> RunReport:
        """Snapshot the run as an unverified RunReport."""
        with self._lock:
            started = self._started if self._started is not None else time.monotonic()
            ended = self._ended if self._ended is not None else time.monotonic()
            return RunReport(
                concurrency_limit=concurrency_limit,
                total_tasks=total_tasks,
                total_duration_ms=round((ended - started) * 1000, 3),
                success_count=self._success,
                failure_count=self._failure,
                aggregate_effect=self._effect,
                strategy=strategy,
                peak_in_flight=peak_in_flight,
                retries=self._retries,
                error_kinds=dict(self._error_kinds),
                error_types=dict(self._error_types),
                latency=self._latency_report(),
            )

    def _latency_report(self) -> dict[str, Any]:
        values = self._sample.values()
        values.sort()
        count = self._success + self._failure
        return {
            "count": count,
            "min_ms": self._min_ms,
            "max_ms": self._max_ms,
            "mean_ms": (self._latency_sum_ms / count) if count else None,
            "p50_ms": _percentile(values, 0.50),
            "p95_ms": _percentile(values, 0.95),
            "p99_ms": _percentile(values, 0.99),
            "sample_size": len(values),
        }
