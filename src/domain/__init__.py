"""
Domain layer - Pure business logic with zero framework imports.

This package contains the account lifecycle core: validation policy, key
generation, the lifecycle state machine and the notification contract. It
defines its own port interfaces for infrastructure abstraction.
"""

from .accounts import (
    ROLE_ADMIN,
    ROLE_USER,
    Account,
    AccountCreation,
    AccountState,
    NotificationKind,
    ProfileUpdate,
    PublicAccount,
    RegistrationRequest,
    filter_profile_update,
)
from .exceptions import (
    AccountError,
    DuplicateEmail,
    DuplicateLogin,
    InvalidOrExpiredKey,
    NotFound,
    NotificationDeliveryFailed,
    ValidationError,
)
from .lifecycle import AccountService
from .notifications import NotificationService
from .ports import AccountRepository, MailMessage, MailTransport, Notifier, TemplateRenderer

__all__ = [
    "ROLE_ADMIN",
    "ROLE_USER",
    "Account",
    "AccountCreation",
    "AccountError",
    "AccountRepository",
    "AccountService",
    "AccountState",
    "DuplicateEmail",
    "DuplicateLogin",
    "InvalidOrExpiredKey",
    "MailMessage",
    "MailTransport",
    "NotFound",
    "NotificationDeliveryFailed",
    "NotificationKind",
    "NotificationService",
    "Notifier",
    "ProfileUpdate",
    "PublicAccount",
    "RegistrationRequest",
    "TemplateRenderer",
    "ValidationError",
    "filter_profile_update",
]
