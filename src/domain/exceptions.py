"""
Domain exceptions - Semantic error types for the account lifecycle.

This module defines domain-specific exceptions that communicate
business rule violations without leaking infrastructure details.
"""


class AccountError(Exception):
    """Base class for account lifecycle domain errors."""

    pass


class ValidationError(AccountError):
    """A request field failed the validation policy."""

    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class DuplicateLogin(AccountError):
    """Login is already used by another account."""

    field = "login"


class DuplicateEmail(AccountError):
    """Email is already used by another account."""

    field = "email"


class InvalidOrExpiredKey(AccountError):
    """Activation or reset key never existed, was already used, or expired."""

    pass


class NotFound(AccountError):
    """No account matches the authenticated identity or requested login."""

    pass


class NotificationDeliveryFailed(AccountError):
    """Rendering or dispatching a notification failed. Logged, never raised to callers."""

    pass
