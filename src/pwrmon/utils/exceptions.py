"""Custom exception hierarchy for Power Monitor."""


class PwrmonError(Exception):
    """Base exception for all Power Monitor errors."""

    pass


class ConfigurationError(PwrmonError):
    """Error in application configuration."""

    pass


class ValidationError(PwrmonError):
    """Malformed or out-of-range input."""

    def __init__(self, message: str, field: str | None = None) -> None:
        """Initialize validation error.

        Args:
            message: Error message naming the violated constraint.
            field: Name of the offending field if known.
        """
        super().__init__(message)
        self.field = field


class NotFoundError(PwrmonError):
    """Referenced device, reading or user does not exist."""

    pass


class DuplicateKeyError(PwrmonError):
    """A uniqueness constraint was violated."""

    pass


class AuthenticationError(PwrmonError):
    """Missing or invalid credential."""

    pass


class AuthorizationError(PwrmonError):
    """Authenticated principal lacks the required role."""

    pass


class StoreUnavailableError(PwrmonError):
    """The database could not be reached or timed out."""

    pass
