from __future__ import annotations

from web3 import Web3

from chainload.ledger.base import Credential


def fixture_credentials(count: int = 20) -> list[Credential]:
    """Deterministic node-managed accounts for the in-memory ledger."""
    return [Credential(address=Web3.to_checksum_address(f"0x{i:040x}")) for i in range(1, count + 1)]
