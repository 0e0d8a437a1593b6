"""Credential loading.

Signing identities come from one of three places, in order of preference:
an explicit key file, the CHAINLOAD_PRIVATE_KEYS setting, or the node's own
unlocked accounts (``eth_accounts``).
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable

from web3 import Account, Web3

from chainload.exceptions import ResourceNotFoundError, ValidationError
from chainload.ledger.base import Credential

_SEPARATORS = re.compile(r"[\s,]+")
_KEY_RE = re.compile(r"^(0x)?[0-9a-fA-F]{64}$")


def parse_private_keys(text: str) -> list[str]:
    """Split comma/whitespace separated keys; lines starting with # are ignored."""
    keys: list[str] = []
    for line in text.splitlines():
        line = line.strip()
        if not line or line.startswith("#"):
            continue
        for token in _SEPARATORS.split(line):
            if not token:
                continue
            if not _KEY_RE.match(token):
                # Never echo the rejected value, it may be a near-valid key.
                raise ValidationError(
                    "INVALID_PRIVATE_KEY",
                    "private keys must be 32-byte hex strings",
                    {"position": len(keys)},
                )
            keys.append(token if token.startswith("0x") else f"0x{token}")
    return keys


def load_private_keys_file(path: str | Path) -> list[str]:
    key_path = Path(path)
    if not key_path.is_file():
        raise ResourceNotFoundError("KEY_FILE_NOT_FOUND", f"private key file not found: {key_path}")
    return parse_private_keys(key_path.read_text(encoding="utf-8"))


def credentials_from_keys(keys: Iterable[str]) -> list[Credential]:
    credentials: list[Credential] = []
    for key in keys:
        account = Account.from_key(key)
        credentials.append(Credential(address=account.address, private_key=key))
    return credentials


def credentials_from_accounts(addresses: Iterable[str]) -> list[Credential]:
    """Node-managed accounts; the node signs for them."""
    credentials: list[Credential] = []
    for address in addresses:
        if not Web3.is_address(address):
            raise ValidationError("INVALID_ADDRESS", f"not an address: {address!r}")
        credentials.append(Credential(address=Web3.to_checksum_address(address)))
    return credentials
