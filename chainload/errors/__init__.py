"""Error handling utilities for chainload."""

from chainload.errors.mapper import describe_error, get_error_code, get_recovery_strategy

__all__ = [
    "describe_error",
    "get_error_code",
    "get_recovery_strategy",
]
