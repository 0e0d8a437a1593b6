"""Tests for environment-driven settings."""

from chainload.config import DEFAULT_RPC_URL, Settings, load_settings


class TestLoadSettings:
    def test_defaults(self):
        settings = load_settings({})

        assert settings == Settings()
        assert settings.rpc_url == DEFAULT_RPC_URL
        assert settings.private_keys is None
        assert settings.http_timeout_seconds == 30.0
        assert settings.receipt_timeout_seconds == 120.0
        assert settings.poll_interval_seconds == 0.2

    def test_overrides(self):
        settings = load_settings(
            {
                "CHAINLOAD_RPC_URL": "http://node:8545",
                "CHAINLOAD_PRIVATE_KEYS": "0xabc",
                "CHAINLOAD_HTTP_TIMEOUT": "5",
                "CHAINLOAD_RECEIPT_TIMEOUT": "60",
                "CHAINLOAD_POLL_INTERVAL": "0.05",
            }
        )

        assert settings.rpc_url == "http://node:8545"
        assert settings.private_keys == "0xabc"
        assert settings.http_timeout_seconds == 5.0
        assert settings.receipt_timeout_seconds == 60.0
        assert settings.poll_interval_seconds == 0.05

    def test_blank_values_fall_back(self):
        settings = load_settings({"CHAINLOAD_RPC_URL": "  ", "CHAINLOAD_PRIVATE_KEYS": ""})

        assert settings.rpc_url == DEFAULT_RPC_URL
        assert settings.private_keys is None

    def test_invalid_numbers_fall_back(self):
        settings = load_settings(
            {
                "CHAINLOAD_HTTP_TIMEOUT": "fast",
                "CHAINLOAD_RECEIPT_TIMEOUT": "-1",
                "CHAINLOAD_POLL_INTERVAL": "0",
            }
        )

        assert settings.http_timeout_seconds == 30.0
        assert settings.receipt_timeout_seconds == 120.0
        assert settings.poll_interval_seconds == 0.2

    def test_private_keys_hidden_from_repr(self):
        settings = Settings(private_keys="0x" + "1" * 64)

        assert "1111" not in repr(settings)
