"""Exceptions raised across the service boundary."""


class MarketError(Exception):
    """Base exception for all market errors."""

    pass


class BackendError(MarketError):
    """Raised when a backend call fails. The message is the remote one, verbatim."""

    def __init__(self, message: str = ""):
        self.message = message
        super().__init__(message)


class ValidationError(MarketError):
    """Raised before a backend call when the input cannot be sent as-is."""

    def __init__(self, message: str, field: str | None = None):
        self.field = field
        super().__init__(message)
