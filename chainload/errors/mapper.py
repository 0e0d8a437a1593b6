"""Error diagnostics mapping for the CLI.

Converts structured ChainloadError exceptions into log-friendly dictionaries
with machine-readable error codes and recovery strategies.
"""

from typing import Any, Dict

from chainload.exceptions import (
    CapabilityUnavailableError,
    ChainloadError,
    ConfigurationError,
    LedgerError,
    ResourceNotFoundError,
    ValidationError,
)

# Recovery strategy templates for common benchmark failures
RECOVERY_STRATEGIES: Dict[str, str] = {
    # Configuration
    "CONFIGURATION": "Check --concurrency (> 0), --total-tasks (>= 0), --max-attempts (> 0), --base-delay (>= 0) and --backoff-factor (>= 1).",
    "INVALID_DURATION": "Durations must look like <number><unit> with unit ms|s|m|h (e.g. 500ms, 2s).",
    # Capabilities
    "NO_CREDENTIALS": "Provide signing keys via --private-keys-file or CHAINLOAD_PRIVATE_KEYS, or point --rpc-url at a node exposing unlocked accounts.",
    "LEDGER_UNAVAILABLE": "Ensure the ledger node is running and reachable at --rpc-url (e.g. `npx hardhat node`).",
    "MISSING_TARGET": "Pass the deployed contract address with --contract (live mode only).",
    # Ledger
    "LEDGER": "The ledger node did not answer a read; check --rpc-url and that --contract is deployed on that chain.",
    "SUBMISSION": "Inspect the node message; nonce conflicts and transient network faults are retried automatically.",
    "CONFIRMATION": "Increase --receipt-timeout or check that the node is mining blocks.",
    # Verification
    "VERIFICATION_MISMATCH": "Compare expected vs observed state; check for external writers to the contract during the run.",
}


def get_error_code(error: ChainloadError) -> str:
    """Return the error's explicit code, or derive one from the class name.

    Converts class names like CapabilityUnavailableError to CAPABILITY_UNAVAILABLE.
    """
    code = getattr(error, "code", None)
    if isinstance(code, str) and code:
        return code

    name = error.__class__.__name__
    # Remove 'Error' suffix
    if name.endswith("Error"):
        name = name[:-5]
    # Convert CamelCase to UPPER_SNAKE_CASE
    result = []
    for i, char in enumerate(name):
        if char.isupper() and i > 0:
            result.append("_")
        result.append(char.upper())
    return "".join(result)


def get_recovery_strategy(error_code: str, error: ChainloadError) -> str:
    """Get recovery strategy for an error.

    Returns specific strategy if available, otherwise a generic one.
    """
    if error_code in RECOVERY_STRATEGIES:
        return RECOVERY_STRATEGIES[error_code]

    # Generic strategies based on error type
    if isinstance(error, ConfigurationError):
        return RECOVERY_STRATEGIES["CONFIGURATION"]
    if isinstance(error, CapabilityUnavailableError):
        return RECOVERY_STRATEGIES["LEDGER_UNAVAILABLE"]
    if isinstance(error, LedgerError):
        return RECOVERY_STRATEGIES["SUBMISSION"]
    if isinstance(error, ResourceNotFoundError):
        return "Verify the path or identifier and check that the resource exists."
    if isinstance(error, ValidationError):
        return "Review the validation error details and correct the input."

    return "Review the error message and try again."


def describe_error(error: ChainloadError) -> Dict[str, Any]:
    """Convert an error into structured log fields.

    Args:
        error: The exception to convert

    Returns:
        Dictionary with error_code, message, details and recovery keys
    """
    error_code = get_error_code(error)
    return {
        "error_code": error_code,
        "message": error.message,
        "details": dict(error.details),
        "recovery": get_recovery_strategy(error_code, error),
    }
