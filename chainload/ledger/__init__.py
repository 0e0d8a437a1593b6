"""Ledger client capability: JSON-RPC transport, workloads and credentials."""

from __future__ import annotations

__all__ = [
    "Credential",
    "LedgerClient",
    "PendingHandle",
    "Receipt",
    "ReceiptStatus",
    "JsonRpcLedgerClient",
    "BalanceDeposit",
    "CounterIncrement",
    "Workload",
    "build_workload",
]

from chainload.ledger.base import Credential, LedgerClient, PendingHandle, Receipt, ReceiptStatus
from chainload.ledger.rpc import JsonRpcLedgerClient
from chainload.ledger.workloads import BalanceDeposit, CounterIncrement, Workload, build_workload
