"""Failure taxonomy for the cart engine.

Each error carries a ``user_message`` suitable for a single user-facing
notification; ``str(exc)`` stays technical for logs.
"""


class StorefrontError(Exception):
    """Base class for cart engine failures."""

    user_message = "Something went wrong. Please try again."

    def __init__(self, message: str | None = None, *, user_message: str | None = None):
        super().__init__(message or self.user_message)
        if user_message is not None:
            self.user_message = user_message


class NetworkFailure(StorefrontError):
    """A remote call did not complete."""

    user_message = "We couldn't reach the store. Please try again."
    retryable = True

    def __init__(self, message: str | None = None, *, status_code: int | None = None, user_message: str | None = None):
        super().__init__(message, user_message=user_message)
        self.status_code = status_code


class RequestTimedOut(NetworkFailure):
    """A bounded wait on a remote call elapsed."""

    user_message = "The store is taking too long to respond. Please try again."


class AuthRequired(StorefrontError):
    """The call needs a session the caller no longer (or never) had."""

    user_message = "Your session has expired. Please log in again."


class ValidationRejected(StorefrontError):
    """The offer authority declined an offer for the current cart."""

    user_message = "This offer cannot be applied to your cart."

    def __init__(self, reason: str | None = None, *, offer_id: str | None = None):
        super().__init__(reason, user_message=reason)
        self.reason = reason or self.user_message
        self.offer_id = offer_id


class NotFound(StorefrontError):
    """The mutation target does not exist. Item stores treat this as a no-op."""

    user_message = "That item is no longer available."
