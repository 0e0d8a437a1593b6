"""Benchmark operations understood by the ledger client.

A workload knows three things about one kind of state-mutating operation:
what payload task ``i`` carries, which contract function (and how much
native value) performs it, and how much the observable target state moves
when it succeeds. The ABI fragments below cover only the functions the
harness calls.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Protocol

from web3 import Web3

from chainload.exceptions import ValidationError

COUNTER_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "increment",
        "inputs": [],
        "outputs": [],
        "stateMutability": "nonpayable",
    },
    {
        "type": "function",
        "name": "count",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
        "stateMutability": "view",
    },
]

ACCOUNT_BALANCE_ABI: list[dict[str, Any]] = [
    {
        "type": "function",
        "name": "deposit",
        "inputs": [],
        "outputs": [],
        "stateMutability": "payable",
    },
]


class StateSource(str, Enum):
    """Where the observed state of the target lives."""

    CONTRACT_CALL = "contract_call"  # view function returning a uint256
    NATIVE_BALANCE = "native_balance"  # eth_getBalance of the target


@dataclass(frozen=True)
class ContractCall:
    function: str
    value: int = 0


class Workload(Protocol):
    name: str
    state_source: StateSource
    abi: list[dict[str, Any]]

    def payload_for(self, index: int) -> Any: ...

    def effect_of(self, payload: Any) -> int: ...

    def call_for(self, payload: Any) -> ContractCall: ...

    def state_call(self) -> ContractCall | None: ...


@dataclass(frozen=True)
class CounterIncrement:
    """``Counter.increment()``; every confirmed call adds 1 to ``count()``."""

    name: str = "counter"
    state_source: StateSource = StateSource.CONTRACT_CALL

    @property
    def abi(self) -> list[dict[str, Any]]:
        return COUNTER_ABI

    def payload_for(self, index: int) -> None:
        return None

    def effect_of(self, payload: Any) -> int:
        return 1

    def call_for(self, payload: Any) -> ContractCall:
        return ContractCall(function="increment")

    def state_call(self) -> ContractCall:
        return ContractCall(function="count")


@dataclass(frozen=True)
class BalanceDeposit:
    """``AccountBalance.deposit()`` sending ``amount_wei`` with each call.

    The observed state is the contract's native balance, so every confirmed
    deposit adds exactly its value.
    """

    amount_wei: int
    name: str = "deposit"
    state_source: StateSource = StateSource.NATIVE_BALANCE

    def __post_init__(self) -> None:
        if self.amount_wei <= 0:
            raise ValidationError(
                "INVALID_AMOUNT",
                "deposit amount must be > 0 wei",
                {"amount_wei": self.amount_wei},
            )

    @property
    def abi(self) -> list[dict[str, Any]]:
        return ACCOUNT_BALANCE_ABI

    def payload_for(self, index: int) -> int:
        return self.amount_wei

    def effect_of(self, payload: Any) -> int:
        return int(payload)

    def call_for(self, payload: Any) -> ContractCall:
        return ContractCall(function="deposit", value=int(payload))

    def state_call(self) -> None:
        return None


def parse_ether_amount(raw: str) -> int:
    """Parse a decimal ether amount ("0.01") into wei."""
    try:
        amount = Decimal(raw.strip())
    except InvalidOperation as exc:
        raise ValidationError("INVALID_AMOUNT", f"not a decimal ether amount: {raw!r}") from exc
    if amount <= 0:
        raise ValidationError("INVALID_AMOUNT", "deposit amount must be > 0", {"amount": raw})
    return int(Web3.to_wei(amount, "ether"))


def format_ether(amount_wei: int) -> str:
    return f"{Web3.from_wei(amount_wei, 'ether')}"


def build_workload(name: str, *, deposit_amount_wei: int | None = None) -> Workload:
    if name == "counter":
        return CounterIncrement()
    if name == "deposit":
        if deposit_amount_wei is None:
            raise ValidationError("INVALID_AMOUNT", "deposit workload requires an amount")
        return BalanceDeposit(amount_wei=deposit_amount_wei)
    raise ValidationError("UNKNOWN_WORKLOAD", f"unknown workload: {name!r}", {"workload": name})
