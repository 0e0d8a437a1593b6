"""Base exception hierarchy for chainload.

Every error carries a machine-readable ``code``, a human ``message`` and an
optional ``details`` dict so that the CLI can log structured diagnostics.
"""

from __future__ import annotations

from typing import Any


class ChainloadError(Exception):
    """Root of all chainload errors."""

    def __init__(self, code: str, message: str, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.code = code
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.code}: {self.message} (details: {self.details})"
        return f"{self.code}: {self.message}"


class ValidationError(ChainloadError):
    """Raised when input data fails validation."""


class ConfigurationError(ChainloadError):
    """Raised when a run or benchmark configuration is invalid.

    Fatal: raised before any task is admitted.
    """


class ResourceNotFoundError(ChainloadError):
    """Raised when a requested resource (file, account, contract) is missing."""


class CapabilityUnavailableError(ChainloadError):
    """Raised at startup when a required external capability is unusable.

    Root cause: e.g. the credential pool is empty or the ledger node does not
    answer. Remediation: check the RPC URL and the credential source.
    """
