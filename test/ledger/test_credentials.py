"""Tests for credential loading."""

import pytest

from chainload.exceptions import ResourceNotFoundError, ValidationError
from chainload.ledger.base import Credential
from chainload.ledger.credentials import (
    credentials_from_accounts,
    credentials_from_keys,
    load_private_keys_file,
    parse_private_keys,
)

KEY_0 = "ac0974bec39a17e36ba4a6b4d238ff944bacb478cbed5efcae784d7bf4f2ff80"
ADDR_0 = "0xf39Fd6e51aad88F6F4ce6aB8827279cffFb92266"
KEY_1 = "0x59c6995e998f97a5a0044966f0945389dc9e86dae88c7a8412f4603b6b78690d"
ADDR_1 = "0x70997970C51812dc3A010C7d01b50e0d17dc79C8"


class TestParsePrivateKeys:
    def test_mixed_separators_and_comments(self):
        text = f"# dev keys\n{KEY_0}, {KEY_1}\n\n  # trailing comment\n"

        keys = parse_private_keys(text)

        assert keys == [f"0x{KEY_0}", KEY_1]

    def test_invalid_key_not_echoed(self):
        with pytest.raises(ValidationError) as exc_info:
            parse_private_keys(f"{KEY_0}\nnot-a-key-secret")

        assert exc_info.value.code == "INVALID_PRIVATE_KEY"
        assert exc_info.value.details == {"position": 1}
        assert "not-a-key-secret" not in str(exc_info.value)

    def test_empty(self):
        assert parse_private_keys("\n# nothing\n") == []


class TestLoadPrivateKeysFile:
    def test_reads_file(self, tmp_path):
        path = tmp_path / "keys.txt"
        path.write_text(f"{KEY_0}\n", encoding="utf-8")

        assert load_private_keys_file(path) == [f"0x{KEY_0}"]

    def test_missing_file(self, tmp_path):
        with pytest.raises(ResourceNotFoundError) as exc_info:
            load_private_keys_file(tmp_path / "absent.txt")
        assert exc_info.value.code == "KEY_FILE_NOT_FOUND"


class TestCredentials:
    def test_from_keys_derives_addresses(self):
        credentials = credentials_from_keys([f"0x{KEY_0}", KEY_1])

        assert [c.address for c in credentials] == [ADDR_0, ADDR_1]
        assert all(c.is_local_signer for c in credentials)

    def test_key_hidden_from_repr(self):
        credential = credentials_from_keys([KEY_1])[0]

        assert KEY_1[2:] not in repr(credential)

    def test_from_accounts_checksums(self):
        credentials = credentials_from_accounts([ADDR_1.lower()])

        assert credentials == [Credential(address=ADDR_1)]
        assert not credentials[0].is_local_signer

    def test_from_accounts_rejects_garbage(self):
        with pytest.raises(ValidationError) as exc_info:
            credentials_from_accounts(["0x1234"])
        assert exc_info.value.code == "INVALID_ADDRESS"
