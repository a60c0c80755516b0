"""Exception taxonomy for the intake pipeline."""

from typing import Optional


class IntakeError(Exception):
    """Base exception for intake pipeline errors."""

    def __init__(self, message: str, original_error: Optional[Exception] = None):
        super().__init__(message)
        self.original_error = original_error


class AuthError(IntakeError):
    """Raised when a webhook arrives without a valid credential."""
    pass


class MalformedPayload(IntakeError):
    """Raised when a webhook payload cannot be used at all (e.g. no call id)."""
    pass


class UpstreamFetchError(IntakeError):
    """Raised when the call-detail fallback fetch fails."""
    pass


class StoreError(IntakeError):
    """Raised when a database read or write fails."""
    pass


class NotificationError(IntakeError):
    """Raised when a notification could not be delivered."""
    pass
