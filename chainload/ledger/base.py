"""Ledger client capability consumed by the benchmark harness.

The harness never talks to a node directly; it goes through a
``LedgerClient`` which submits one operation, waits for its receipt and
reads the observable state of the benchmark target.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol


@dataclass(frozen=True)
class Credential:
    """A signing identity.

    ``private_key`` is None for accounts managed (unlocked) by the node
    itself, in which case the node signs on ``eth_sendTransaction``.
    """

    address: str
    private_key: str | None = field(default=None, repr=False)

    @property
    def is_local_signer(self) -> bool:
        return self.private_key is not None


@dataclass(frozen=True)
class PendingHandle:
    tx_hash: str
    sender: str
    submitted_at_monotonic: float


class ReceiptStatus(str, Enum):
    SUCCESS = "success"
    REJECTED = "rejected"


@dataclass(frozen=True)
class Receipt:
    tx_hash: str
    status: ReceiptStatus
    block_number: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status is ReceiptStatus.SUCCESS


class LedgerClient(Protocol):
    async def submit(self, credential: Credential, payload: Any) -> PendingHandle: ...

    async def wait(self, handle: PendingHandle) -> Receipt: ...

    async def query_state(self, target: str) -> int: ...

    async def aclose(self) -> None: ...
