"""Environment-driven settings for chainload.

Configuration via environment variables:
    CHAINLOAD_RPC_URL          - ledger JSON-RPC endpoint (default http://127.0.0.1:8545)
    CHAINLOAD_PRIVATE_KEYS     - comma/newline separated signing keys (optional)
    CHAINLOAD_HTTP_TIMEOUT     - per-request HTTP timeout in seconds (default 30)
    CHAINLOAD_RECEIPT_TIMEOUT  - max seconds to wait for a receipt (default 120)
    CHAINLOAD_POLL_INTERVAL    - receipt polling interval in seconds (default 0.2)
    CHAINLOAD_LOG_LEVEL / CHAINLOAD_LOG_JSON - see chainload.logger

CLI flags take precedence over these values.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Mapping

from chainload.logger import session_logger as logger

DEFAULT_RPC_URL = "http://127.0.0.1:8545"


def _parse_positive_float_env(
    env: Mapping[str, str],
    name: str,
    default: float,
) -> float:
    """Parse a positive float environment value with fallback."""
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default

    try:
        value = float(raw)
        if value <= 0:
            raise ValueError("must be > 0")
        return value
    except ValueError:
        logger.warning(
            "config.invalid_env",
            event="config.invalid_env",
            variable=name,
            provided_value=raw,
            default_value=default,
        )
        return default


@dataclass(frozen=True)
class Settings:
    rpc_url: str = DEFAULT_RPC_URL
    private_keys: str | None = field(default=None, repr=False)
    http_timeout_seconds: float = 30.0
    receipt_timeout_seconds: float = 120.0
    poll_interval_seconds: float = 0.2


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build Settings from the process environment (or an explicit mapping)."""
    env = os.environ if env is None else env

    rpc_url = (env.get("CHAINLOAD_RPC_URL") or "").strip() or DEFAULT_RPC_URL
    private_keys = (env.get("CHAINLOAD_PRIVATE_KEYS") or "").strip() or None

    return Settings(
        rpc_url=rpc_url,
        private_keys=private_keys,
        http_timeout_seconds=_parse_positive_float_env(env, "CHAINLOAD_HTTP_TIMEOUT", 30.0),
        receipt_timeout_seconds=_parse_positive_float_env(env, "CHAINLOAD_RECEIPT_TIMEOUT", 120.0),
        poll_interval_seconds=_parse_positive_float_env(env, "CHAINLOAD_POLL_INTERVAL", 0.2),
    )
