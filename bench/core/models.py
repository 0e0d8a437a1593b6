from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

from chainload.exceptions import ConfigurationError, VerificationMismatch
from chainload.ledger.base import Credential


class Mode(str, Enum):
    """Benchmark target.

    live: a JSON-RPC ledger node (e.g. `npx hardhat node`)
    fixture: the in-process InMemoryLedger (CI-safe, no network)
    """

    LIVE = "live"
    FIXTURE = "fixture"


class Strategy(str, Enum):
    """How in-flight tasks are executed.

    cooperative: one event loop multiplexes all in-flight tasks
    workers: one OS thread (own loop, own connection) per in-flight task
    """

    COOPERATIVE = "cooperative"
    WORKERS = "workers"


class TaskState(str, Enum):
    PENDING = "pending"
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    RETRYABLE_FAILURE = "retryable_failure"
    TERMINAL_FAILURE = "terminal_failure"

    @property
    def is_terminal(self) -> bool:
        return self in (TaskState.CONFIRMED, TaskState.TERMINAL_FAILURE)


class ErrorKind(str, Enum):
    RETRYABLE_SUBMISSION_ERROR = "retryable_submission_error"
    CHAIN_REJECTION = "chain_rejection"
    TERMINAL_SUBMISSION_ERROR = "terminal_submission_error"


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 100
    base_delay: float = 1.0
    backoff_factor: float = 2.0
    # Optional cap on a single delay; None keeps the pure exponential series.
    max_delay: float | None = None


@dataclass(frozen=True)
class RunConfig:
    total_tasks: int
    concurrency_limit: int
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)


def validate_run_config(config: RunConfig) -> None:
    """Reject an invalid RunConfig before any task is admitted."""
    policy = config.retry_policy
    problems: dict[str, Any] = {}

    if config.concurrency_limit <= 0:
        problems["concurrency_limit"] = config.concurrency_limit
    if config.total_tasks < 0:
        problems["total_tasks"] = config.total_tasks
    if policy.max_attempts <= 0:
        problems["max_attempts"] = policy.max_attempts
    if policy.base_delay < 0:
        problems["base_delay"] = policy.base_delay
    if policy.backoff_factor < 1:
        problems["backoff_factor"] = policy.backoff_factor
    if policy.max_delay is not None and policy.max_delay < 0:
        problems["max_delay"] = policy.max_delay

    if problems:
        raise ConfigurationError(
            "CONFIGURATION",
            "invalid run configuration: " + ", ".join(sorted(problems)),
            problems,
        )


@dataclass
class Task:
    """One scheduled benchmark operation.

    Only ``attempt`` and ``state`` change after creation.
    """

    index: int
    credential: Credential
    payload: Any
    attempt: int = 0
    state: TaskState = TaskState.PENDING


@dataclass(frozen=True)
class TaskOutcome:
    task_index: int
    succeeded: bool
    attempts_used: int
    error_kind: ErrorKind | None
    elapsed: float
    effect: int = 0
    error_type: str | None = None
    error_detail: str | None = None
    credential: str | None = None
    tx_hash: str | None = None

    @property
    def elapsed_ms(self) -> int:
        return max(0, int(self.elapsed * 1000))


@dataclass(frozen=True)
class RunReport:
    concurrency_limit: int
    total_tasks: int
    total_duration_ms: float
    success_count: int
    failure_count: int
    aggregate_effect: int
    strategy: Strategy = Strategy.COOPERATIVE
    initial_observed_state: int | None = None
    final_observed_state: int | None = None
    expected_state: int | None = None
    verified: bool = False
    peak_in_flight: int = 0
    retries: int = 0
    error_kinds: dict[str, int] = field(default_factory=dict)
    error_types: dict[str, int] = field(default_factory=dict)
    latency: dict[str, Any] = field(default_factory=dict)

    @property
    def throughput_tps(self) -> float:
        seconds = self.total_duration_ms / 1000.0
        return (self.success_count / seconds) if seconds > 0 else 0.0

    @property
    def success_rate_pct(self) -> float:
        if self.total_tasks == 0:
            return 0.0
        return round(self.success_count / self.total_tasks * 100, 2)

    def with_verification(
        self,
        *,
        initial_observed_state: int,
        final_observed_state: int | None,
    ) -> "RunReport":
        # An unreadable final state can never verify.
        expected = initial_observed_state + self.aggregate_effect
        return replace(
            self,
            initial_observed_state=initial_observed_state,
            final_observed_state=final_observed_state,
            expected_state=expected,
            verified=final_observed_state is not None and final_observed_state == expected,
        )

    def raise_for_verification(self) -> None:
        if self.verified:
            return
        raise VerificationMismatch(
            f"final state does not match expectation at concurrency {self.concurrency_limit}",
            {
                "concurrency_limit": self.concurrency_limit,
                "expected_state": self.expected_state,
                "final_observed_state": self.final_observed_state,
                "initial_observed_state": self.initial_observed_state,
                "aggregate_effect": self.aggregate_effect,
                "success_count": self.success_count,
                "failure_count": self.failure_count,
            },
        )


@dataclass(frozen=True)
class BenchmarkConfig:
    """Whole-benchmark configuration: one RunConfig per concurrency level."""

    total_tasks: int
    concurrency_levels: tuple[int, ...]
    retry_policy: RetryPolicy = field(default_factory=RetryPolicy)
    strategy: Strategy = Strategy.COOPERATIVE
    mode: Mode = Mode.FIXTURE
    max_credentials: int | None = 20

    def run_config(self, concurrency: int) -> RunConfig:
        return RunConfig(
            total_tasks=self.total_tasks,
            concurrency_limit=concurrency,
            retry_policy=self.retry_policy,
        )
