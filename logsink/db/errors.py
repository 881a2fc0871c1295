"""Store error hierarchy for the MongoDB sink.

Driver exceptions are wrapped in one of these before they cross the
sink boundary.
"""


class StoreError(Exception):
    """Base exception for all sink storage errors."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        super().__init__(message)
        self.cause = cause


class ConnectionError(StoreError):
    """Raised when the MongoDB server cannot be reached.

    Examples:
        - Server selection timeout
        - DNS resolution failure
        - Network errors during the initial ping
    """

    pass


class AuthenticationError(ConnectionError):
    """Raised when the server rejects the configured credentials.

    This is the only error the sink treats as fatal.
    """

    pass


class ValidationError(StoreError):
    """Raised on invalid sink options (bad index definition, etc.)."""

    pass
