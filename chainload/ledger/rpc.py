"""Ledger client over web3's async JSON-RPC stack.

Talks to an EVM node (Hardhat, Anvil, Geth ...) through ``AsyncWeb3``. Keys
held locally are signed with ``w3.eth.account`` and sent raw; node-managed
accounts go through ``eth_sendTransaction`` via ``transact``.
"""

from __future__ import annotations

import asyncio
import time
from typing import Any

import aiohttp
from web3 import AsyncHTTPProvider, AsyncWeb3, Web3
from web3.exceptions import ContractLogicError, TimeExhausted, Web3Exception, Web3RPCError
from web3.providers import AsyncBaseProvider

from chainload.exceptions import ConfirmationError, LedgerError, SubmissionError
from chainload.ledger.base import Credential, PendingHandle, Receipt, ReceiptStatus
from chainload.ledger.workloads import StateSource, Workload
from chainload.logger import Logger, session_logger

# The HTTP provider raises on a non-2xx status before the body is read, so a
# node error served behind a 5xx (or an overloaded proxy) is treated as transient.
_TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})

_CLIENT_ERRORS = (Web3Exception, aiohttp.ClientError, asyncio.TimeoutError)


class JsonRpcLedgerClient:
    """LedgerClient implementation for one target contract.

    Each instance owns one aiohttp session (one connection pool); the
    worker-pool strategy creates one client per worker thread.
    """

    def __init__(
        self,
        rpc_url: str,
        workload: Workload,
        target: str,
        *,
        timeout_seconds: float = 30.0,
        poll_interval_seconds: float = 0.2,
        receipt_timeout_seconds: float = 120.0,
        gas_limit: int | None = None,
        logger: Logger | None = None,
        provider: AsyncBaseProvider | None = None,
    ) -> None:
        if poll_interval_seconds <= 0:
            raise ValueError("poll_interval_seconds must be > 0")

        self._rpc_url = rpc_url
        self._workload = workload
        self._target = Web3.to_checksum_address(target)
        self._poll_interval = poll_interval_seconds
        self._receipt_timeout = receipt_timeout_seconds
        self._gas_limit = gas_limit
        self._logger = logger or session_logger

        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        if provider is None:
            provider = AsyncHTTPProvider(rpc_url, request_kwargs={"timeout": self._timeout})
        self._w3 = AsyncWeb3(provider)
        self._contract = self._w3.eth.contract(address=self._target, abi=workload.abi)

        self._session: aiohttp.ClientSession | None = None
        self._chain_id: int | None = None

    @property
    def target(self) -> str:
        return self._target

    async def aclose(self) -> None:
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def submit(self, credential: Credential, payload: Any) -> PendingHandle:
        await self._connect()
        call = self._workload.call_for(payload)
        function = getattr(self._contract.functions, call.function)()

        try:
            params: dict[str, Any] = {
                "from": credential.address,
                "value": call.value,
                "gasPrice": await self._w3.eth.gas_price,
            }
            if self._gas_limit is not None:
                params["gas"] = self._gas_limit

            if credential.private_key is None:
                tx_hash = await function.transact(params)
            else:
                tx_hash = await self._send_signed(credential, function, params)
        except _CLIENT_ERRORS as exc:
            raise self._ledger_error(SubmissionError, call.function, exc) from exc

        return PendingHandle(
            tx_hash=Web3.to_hex(tx_hash),
            sender=credential.address,
            submitted_at_monotonic=time.monotonic(),
        )

    async def wait(self, handle: PendingHandle) -> Receipt:
        await self._connect()
        try:
            raw = await self._w3.eth.wait_for_transaction_receipt(
                handle.tx_hash,
                timeout=self._receipt_timeout,
                poll_latency=self._poll_interval,
            )
        except TimeExhausted as exc:
            raise ConfirmationError(
                f"no receipt for {handle.tx_hash} within {self._receipt_timeout}s",
                kind="timeout",
                details={"tx_hash": handle.tx_hash, "sender": handle.sender},
            ) from exc
        except _CLIENT_ERRORS as exc:
            raise self._ledger_error(ConfirmationError, "eth_getTransactionReceipt", exc) from exc

        block = raw.get("blockNumber")
        return Receipt(
            tx_hash=handle.tx_hash,
            status=ReceiptStatus.SUCCESS if raw.get("status", 1) == 1 else ReceiptStatus.REJECTED,
            block_number=int(block) if block is not None else None,
        )

    async def query_state(self, target: str) -> int:
        await self._connect()
        address = Web3.to_checksum_address(target)
        call = self._workload.state_call()
        if self._workload.state_source is not StateSource.NATIVE_BALANCE and call is None:
            raise LedgerError(f"workload {self._workload.name!r} has no state call", kind="unsupported")

        try:
            if self._workload.state_source is StateSource.NATIVE_BALANCE:
                return int(await self._w3.eth.get_balance(address))
            contract = self._contract
            if address != self._target:
                contract = self._w3.eth.contract(address=address, abi=self._workload.abi)
            return int(await getattr(contract.functions, call.function)().call())
        except _CLIENT_ERRORS as exc:
            raise self._ledger_error(LedgerError, "query_state", exc) from exc

    async def list_accounts(self) -> list[str]:
        await self._connect()
        try:
            accounts = await self._w3.eth.accounts
        except _CLIENT_ERRORS as exc:
            raise self._ledger_error(LedgerError, "eth_accounts", exc) from exc
        return [str(a) for a in accounts]

    async def chain_id(self) -> int:
        if self._chain_id is None:
            self._chain_id = int(await self._w3.eth.chain_id)
        return self._chain_id

    async def _connect(self) -> None:
        # The session must be created on the loop that will use it, so this
        # runs lazily from inside the first call.
        provider = self._w3.provider
        if self._session is None and isinstance(provider, AsyncHTTPProvider):
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            await provider.cache_async_session(self._session)

    async def _send_signed(self, credential: Credential, function: Any, params: dict[str, Any]) -> Any:
        params["nonce"] = await self._w3.eth.get_transaction_count(credential.address, "pending")
        params["chainId"] = await self.chain_id()

        tx = dict(await function.build_transaction(params))
        tx.pop("from", None)
        signed = self._w3.eth.account.sign_transaction(tx, credential.private_key)
        return await self._w3.eth.send_raw_transaction(signed.raw_transaction)

    def _ledger_error(self, error_cls: type[LedgerError], operation: str, exc: BaseException) -> LedgerError:
        kind = error_kind_for(exc)
        message, rpc_code = _error_message(exc)
        self._logger.debug(
            "ledger.rpc_error",
            event="ledger.rpc_error",
            operation=operation,
            kind=kind,
            rpc_code=rpc_code,
            error=message,
        )
        details: dict[str, Any] = {"operation": operation}
        if rpc_code is not None:
            details["rpc_code"] = rpc_code
        return error_cls(message, kind=kind, details=details)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def error_kind_for(exc: BaseException) -> str:
    """Map a web3 or aiohttp exception to a canonical error kind."""
    if isinstance(exc, TimeExhausted):
        return "timeout"
    if isinstance(exc, ContractLogicError):
        return "contract_logic"
    if isinstance(exc, Web3RPCError):
        return "rpc_error"
    if isinstance(exc, asyncio.TimeoutError):
        return "network_timeout"
    if isinstance(exc, aiohttp.ClientConnectorError):
        return "network_connect"
    if isinstance(exc, aiohttp.ClientResponseError):
        return "network_error" if exc.status in _TRANSIENT_STATUS_CODES else "http_status"
    if isinstance(exc, (aiohttp.ServerDisconnectedError, aiohttp.ClientPayloadError)):
        return "network_protocol"
    if isinstance(exc, aiohttp.ClientError):
        return "network_error"
    return "web3_error"


def _error_message(exc: BaseException) -> tuple[str, Any]:
    """Node message and JSON-RPC code when the node sent one."""
    response = getattr(exc, "rpc_response", None)
    if isinstance(response, dict):
        error = response.get("error")
        if isinstance(error, dict) and error.get("message"):
            return str(error["message"]), error.get("code")
    if isinstance(exc, aiohttp.ClientResponseError):
        return f"HTTP {exc.status}: {exc.message}", None
    return str(exc) or type(exc).__name__, None
