from __future__ import annotations

import asyncio
import itertools
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable

from chainload.exceptions import ConfirmationError, LedgerError, SubmissionError
from chainload.ledger.base import Credential, PendingHandle, Receipt, ReceiptStatus
from chainload.ledger.workloads import Workload
from chainload.logger import Logger, session_logger

FIXTURE_TARGET = "0x000000000000000000000000000000000000c0DE"


@dataclass
class _PendingOp:
    credential: Credential
    payload: Any
    reverted: bool


@dataclass
class LedgerStats:
    submitted: int = 0
    confirmed: int = 0
    reverted: int = 0
    nonce_conflicts: int = 0
    injected_failures: int = 0


class InMemoryLedger:
    """In-process LedgerClient used for fixture mode and tests.

    It reproduces the behavior the harness has to cope with on a real node:

    - each credential has a sequencing counter (nonce); a submission reads it,
      yields, then claims it, so two in-flight submissions from the same
      credential race and the loser fails with "nonce too low"
    - ``revert_when(credential, payload)`` makes matching operations be
      accepted but rejected in their receipt
    - ``inject_submit_errors`` / ``inject_wait_errors`` queue exceptions that
      the next calls raise

    Thread-safe, so one instance can be shared by every worker thread.
    """

    def __init__(
        self,
        workload: Workload,
        *,
        target: str = FIXTURE_TARGET,
        initial_state: int = 0,
        submit_latency: float = 0.0,
        confirm_latency: float = 0.0,
        revert_when: Callable[[Credential, Any], bool] | None = None,
        logger: Logger | None = None,
    ) -> None:
        self._workload = workload
        self._target = target.lower()
        self._state = initial_state
        self._submit_latency = submit_latency
        self._confirm_latency = confirm_latency
        self._revert_when = revert_when
        self._logger = logger or session_logger

        self._lock = threading.Lock()
        self._nonces: dict[str, int] = {}
        self._pending: dict[str, _PendingOp] = {}
        self._submit_errors: deque[BaseException] = deque()
        self._wait_errors: deque[BaseException] = deque()
        self._hashes = itertools.count(1)
        self.stats = LedgerStats()

    @property
    def state(self) -> int:
        with self._lock:
            return self._state

    def nonce_of(self, address: str) -> int:
        with self._lock:
            return self._nonces.get(address, 0)

    def inject_submit_errors(self, *errors: BaseException) -> None:
        with self._lock:
            self._submit_errors.extend(errors)

    def inject_wait_errors(self, *errors: BaseException) -> None:
        with self._lock:
            self._wait_errors.extend(errors)

    def mutate_state(self, delta: int) -> None:
        """Apply an out-of-band write, as another client would."""
        with self._lock:
            self._state += delta

    async def submit(self, credential: Credential, payload: Any) -> PendingHandle:
        address = credential.address
        with self._lock:
            if self._submit_errors:
                self.stats.injected_failures += 1
                raise self._submit_errors.popleft()
            observed_nonce = self._nonces.get(address, 0)

        await asyncio.sleep(self._submit_latency)

        with self._lock:
            current = self._nonces.get(address, 0)
            if current != observed_nonce:
                self.stats.nonce_conflicts += 1
                self._logger.debug(
                    "ledger.fixture_nonce_conflict",
                    event="ledger.fixture_nonce_conflict",
                    address=address,
                    tx_nonce=observed_nonce,
                    state_nonce=current,
                )
                raise SubmissionError(
                    f"nonce too low: address {address}, tx nonce {observed_nonce}, state nonce {current}",
                    kind="rpc_error",
                    details={"operation": "submit", "sender": credential.address},
                )
            self._nonces[address] = current + 1
            tx_hash = f"0x{next(self._hashes):064x}"
            reverted = bool(self._revert_when and self._revert_when(credential, payload))
            self._pending[tx_hash] = _PendingOp(credential, payload, reverted)
            self.stats.submitted += 1

        return PendingHandle(tx_hash=tx_hash, sender=address, submitted_at_monotonic=time.monotonic())

    async def wait(self, handle: PendingHandle) -> Receipt:
        await asyncio.sleep(self._confirm_latency)

        with self._lock:
            if self._wait_errors:
                self.stats.injected_failures += 1
                raise self._wait_errors.popleft()
            op = self._pending.pop(handle.tx_hash, None)
            if op is None:
                raise ConfirmationError(
                    f"unknown transaction {handle.tx_hash}",
                    kind="unknown_transaction",
                    details={"tx_hash": handle.tx_hash},
                )
            if op.reverted:
                self.stats.reverted += 1
                status = ReceiptStatus.REJECTED
            else:
                self._state += self._workload.effect_of(op.payload)
                self.stats.confirmed += 1
                status = ReceiptStatus.SUCCESS
            block_number = self.stats.confirmed + self.stats.reverted

        return Receipt(tx_hash=handle.tx_hash, status=status, block_number=block_number)

    async def query_state(self, target: str) -> int:
        if target.lower() != self._target:
            raise LedgerError(f"unknown target {target}", kind="unknown_target", details={"target": target})
        with self._lock:
            return self._state

    async def aclose(self) -> None:
        # Shared across clients; nothing to release.
        return None
