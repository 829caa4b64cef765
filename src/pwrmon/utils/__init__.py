"""Utility modules for Power Monitor."""

from pwrmon.utils.exceptions import (
    AuthenticationError,
    AuthorizationError,
    ConfigurationError,
    DuplicateKeyError,
    NotFoundError,
    PwrmonError,
    StoreUnavailableError,
    ValidationError,
)

__all__ = [
    "AuthenticationError",
    "AuthorizationError",
    "ConfigurationError",
    "DuplicateKeyError",
    "NotFoundError",
    "PwrmonError",
    "StoreUnavailableError",
    "ValidationError",
]
