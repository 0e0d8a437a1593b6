"""Per-task retry engine.

A task is driven through at most ``policy.max_attempts`` submission cycles.
The state machine itself is the pure ``transition`` function; ``RetryEngine``
only adds the ledger calls and the backoff suspension around it.

    Pending -> Submitted -> Confirmed
                         -> TerminalFailure              (rejected receipt)
    Pending|Submitted    -> RetryableFailure -> Pending  (retryable error, budget left)
    Pending|Submitted    -> TerminalFailure              (terminal error / budget spent)
"""

from __future__ import annotations

import asyncio
import time
from enum import Enum
from typing import Awaitable, Callable

from chainload.exceptions import InvalidTransitionError, LedgerError
from chainload.ledger.base import LedgerClient, Receipt
from chainload.ledger.workloads import Workload
from chainload.logger import Logger, session_logger

from bench.core.models import ErrorKind, RetryPolicy, Task, TaskOutcome, TaskState

# Ledger error kinds produced by transport faults that resolve on their own.
_TRANSIENT_KINDS = frozenset(
    {"network_timeout", "network_connect", "network_error", "network_protocol", "timeout"}
)

# Credential sequencing conflicts, as reported by common EVM nodes.
_NONCE_MARKERS = (
    "nonce too low",
    "nonce has already been used",
    "already used",
    "already known",
    "replacement transaction underpriced",
    "nonce_expired",
)

_NETWORK_MARKERS = (
    "could not detect network",
    "failed to detect network",
    "timeout",
    "network error",
)


class ErrorClass(str, Enum):
    RETRYABLE = "retryable"
    TERMINAL = "terminal"


class Event(str, Enum):
    SUBMITTED = "submitted"
    CONFIRMED = "confirmed"
    REJECTED = "rejected"
    RETRYABLE_ERROR = "retryable_error"
    TERMINAL_ERROR = "terminal_error"
    BACKOFF_ELAPSED = "backoff_elapsed"


def transition(state: TaskState, event: Event, *, attempt: int, policy: RetryPolicy) -> TaskState:
    """Pure state-machine step: (state, event, attempt) -> next state."""
    if state.is_terminal:
        raise InvalidTransitionError(
            f"task already terminal ({state.value}); got {event.value}",
            {"state": state.value, "event": event.value},
        )

    if event is Event.SUBMITTED and state is TaskState.PENDING:
        return TaskState.SUBMITTED
    if event is Event.CONFIRMED and state is TaskState.SUBMITTED:
        return TaskState.CONFIRMED
    if event is Event.REJECTED and state is TaskState.SUBMITTED:
        return TaskState.TERMINAL_FAILURE
    if event is Event.RETRYABLE_ERROR and state in (TaskState.PENDING, TaskState.SUBMITTED):
        if attempt < policy.max_attempts:
            return TaskState.RETRYABLE_FAILURE
        return TaskState.TERMINAL_FAILURE
    if event is Event.TERMINAL_ERROR and state in (TaskState.PENDING, TaskState.SUBMITTED):
        return TaskState.TERMINAL_FAILURE
    if event is Event.BACKOFF_ELAPSED and state is TaskState.RETRYABLE_FAILURE:
        return TaskState.PENDING

    raise InvalidTransitionError(
        f"illegal transition {state.value} --{event.value}-->",
        {"state": state.value, "event": event.value, "attempt": attempt},
    )


def backoff_delay(attempt: int, policy: RetryPolicy) -> float:
    """Delay (seconds) after failed attempt ``attempt`` (1-based), no jitter."""
    delay = policy.base_delay * (policy.backoff_factor ** max(0, attempt - 1))
    if policy.max_delay is not None:
        delay = min(delay, policy.max_delay)
    return delay


def classify_error(exc: BaseException) -> ErrorClass:
    """Retryable: nonce conflicts and transient transport faults. Terminal: the rest."""
    if isinstance(exc, LedgerError) and exc.kind in _TRANSIENT_KINDS:
        return ErrorClass.RETRYABLE

    message = _error_message(exc)
    if any(marker in message for marker in _NONCE_MARKERS):
        return ErrorClass.RETRYABLE
    if any(marker in message for marker in _NETWORK_MARKERS):
        return ErrorClass.RETRYABLE
    return ErrorClass.TERMINAL


def error_type_for(exc: BaseException) -> str:
    """Canonical diagnostic label for an attempt failure."""
    message = _error_message(exc)
    if any(marker in message for marker in _NONCE_MARKERS):
        return "nonce_conflict"
    if isinstance(exc, LedgerError):
        if exc.kind in _TRANSIENT_KINDS:
            return "network_timeout" if exc.kind == "timeout" else exc.kind
        if exc.kind != "unknown":
            return exc.kind
    if any(marker in message for marker in _NETWORK_MARKERS):
        return "network_error"
    return type(exc).__name__


def _error_message(exc: BaseException) -> str:
    if isinstance(exc, LedgerError):
        return exc.message.lower()
    return str(exc).lower()


def _first_line(exc: BaseException) -> str:
    text = exc.message if isinstance(exc, LedgerError) else str(exc)
    return text.splitlines()[0] if text else type(exc).__name__


class RetryEngine:
    """Drives one Task to a terminal TaskOutcome against a LedgerClient.

    Never lets an ``Exception`` escape ``drive``: anything unexpected is
    classified as terminal and reported as a failed outcome.
    """

    def __init__(
        self,
        ledger: LedgerClient,
        policy: RetryPolicy,
        workload: Workload,
        *,
        logger: Logger | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._ledger = ledger
        self._policy = policy
        self._workload = workload
        self._logger = logger or session_logger
        self._sleep = sleep

    async def drive(self, task: Task) -> TaskOutcome:
        started = time.monotonic()

        while True:
            task.attempt += 1
            try:
                handle = await self._ledger.submit(task.credential, task.payload)
                task.state = self._step(task, Event.SUBMITTED)
                receipt = await self._ledger.wait(handle)
            except Exception as exc:
                error_class = classify_error(exc)
                event = Event.RETRYABLE_ERROR if error_class is ErrorClass.RETRYABLE else Event.TERMINAL_ERROR
                task.state = self._step(task, event)

                if task.state is TaskState.RETRYABLE_FAILURE:
                    delay = backoff_delay(task.attempt, self._policy)
                    self._logger.info(
                        "bench.task_retry",
                        event="bench.task_retry",
                        task_index=task.index,
                        credential=task.credential.address,
                        attempt=task.attempt,
                        max_attempts=self._policy.max_attempts,
                        error_type=error_type_for(exc),
                        error=_first_line(exc),
                        delay_seconds=round(delay, 3),
                    )
                    await self._sleep(delay)
                    task.state = self._step(task, Event.BACKOFF_ELAPSED)
                    continue

                kind = (
                    ErrorKind.RETRYABLE_SUBMISSION_ERROR
                    if error_class is ErrorClass.RETRYABLE
                    else ErrorKind.TERMINAL_SUBMISSION_ERROR
                )
                self._logger.warning(
                    "bench.task_failed",
                    event="bench.task_failed",
                    task_index=task.index,
                    credential=task.credential.address,
                    attempt=task.attempt,
                    error_kind=kind.value,
                    error_type=error_type_for(exc),
                    error=_first_line(exc),
                )
                return self._outcome(
                    task,
                    started,
                    error_kind=kind,
                    error_type=error_type_for(exc),
                    error_detail=_first_line(exc),
                )

            return self._settle(task, receipt, started)

    def _settle(self, task: Task, receipt: Receipt, started: float) -> TaskOutcome:
        if receipt.succeeded:
            task.state = self._step(task, Event.CONFIRMED)
            return self._outcome(
                task,
                started,
                effect=self._workload.effect_of(task.payload),
                tx_hash=receipt.tx_hash,
            )

        # Replaying a reverted operation against the same state reverts again.
        task.state = self._step(task, Event.REJECTED)
        self._logger.warning(
            "bench.task_rejected",
            event="bench.task_rejected",
            task_index=task.index,
            credential=task.credential.address,
            attempt=task.attempt,
            tx_hash=receipt.tx_hash,
        )
        return self._outcome(
            task,
            started,
            error_kind=ErrorKind.CHAIN_REJECTION,
            error_type="chain_rejection",
            error_detail="operation reverted",
            tx_hash=receipt.tx_hash,
        )

    def _step(self, task: Task, event: Event) -> TaskState:
        return transition(task.state, event, attempt=task.attempt, policy=self._policy)

    def _outcome(
        self,
        task: Task,
        started: float,
        *,
        effect: int = 0,
        error_kind: ErrorKind | None = None,
        error_type: str | None = None,
        error_detail: str | None = None,
        tx_hash: str | None = None,
    ) -> TaskOutcome:
        return TaskOutcome(
            task_index=task.index,
            succeeded=task.state is TaskState.CONFIRMED,
            attempts_used=task.attempt,
            error_kind=error_kind,
            elapsed=time.monotonic() - started,
            effect=effect,
            error_type=error_type,
            error_detail=error_detail,
            credential=task.credential.address,
            tx_hash=tx_hash,
        )
