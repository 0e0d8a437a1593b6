"""Exception classes for chainload."""

from chainload.exceptions.base import (
    CapabilityUnavailableError,
    ChainloadError,
    ConfigurationError,
    ResourceNotFoundError,
    ValidationError,
)
from chainload.exceptions.ledger import (
    ConfirmationError,
    InvalidTransitionError,
    LedgerError,
    SubmissionError,
    VerificationMismatch,
)

__all__ = [
    # Base exceptions
    "ChainloadError",
    "ValidationError",
    "ConfigurationError",
    "ResourceNotFoundError",
    "CapabilityUnavailableError",
    # Ledger / harness exceptions
    "LedgerError",
    "SubmissionError",
    "ConfirmationError",
    "InvalidTransitionError",
    "VerificationMismatch",
]
