"""Ledger and harness exceptions.

``SubmissionError`` and ``ConfirmationError`` carry a ``kind`` label that the
retry engine uses (together with the message) to decide whether a failure is
worth retrying.
"""

from __future__ import annotations

from typing import Any

from chainload.exceptions.base import ChainloadError


class LedgerError(ChainloadError):
    """Base exception for failures reported by the ledger client."""

    default_code = "LEDGER"

    def __init__(self, message: str, kind: str = "unknown", details: dict[str, Any] | None = None):
        super().__init__(code=self.default_code, message=message, details=details)
        self.kind = kind


class SubmissionError(LedgerError):
    """Raised when an operation could not be submitted.

    Root cause: transport failure (timeout, refused connection) or a node-side
    rejection of the request (nonce conflict, malformed call, permissions).
    Remediation: ``kind`` and the node message identify which; nonce conflicts
    and transient transport faults are retried automatically.
    """

    default_code = "SUBMISSION"


class ConfirmationError(LedgerError):
    """Raised when waiting for a receipt fails (timeout or transport fault)."""

    default_code = "CONFIRMATION"


class InvalidTransitionError(ChainloadError):
    """Raised when the task state machine is driven through an illegal edge."""

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code="INVALID_TRANSITION", message=message, details=details)


class VerificationMismatch(ChainloadError):
    """Aggregated expectation disagrees with the observed final ledger state.

    Never raised by the harness itself; a run reports ``verified=False``.
    ``RunReport.raise_for_verification()`` converts the flag into this error
    for callers that want to fail hard.
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None):
        super().__init__(code="VERIFICATION_MISMATCH", message=message, details=details)
