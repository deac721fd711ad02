"""
Port interfaces - Protocol definitions for infrastructure abstraction.

This module defines the interfaces (ports) that the domain requires
from infrastructure. Adapters implement these protocols through
structural subtyping.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Protocol

from .accounts import Account, NotificationKind


class AccountRepository(Protocol):
    """
    Port interface for account persistence.

    Implementations must enforce login/email uniqueness at write time and
    perform key redemption as a single check-and-clear step.
    """

    def find_by_id(self, account_id: int) -> Account | None: ...

    def find_by_login(self, login: str) -> Account | None: ...

    def find_by_email(self, email: str) -> Account | None: ...

    def find_by_activation_key(self, key: str) -> Account | None: ...

    def find_by_reset_key(self, key: str) -> Account | None: ...

    def save(self, account: Account) -> Account:
        """
        Insert a new account and return it with its storage id.

        Raises:
            DuplicateLogin: login already stored
            DuplicateEmail: email already stored
        """
        ...

    def update_profile(self, account: Account) -> Account:
        """
        Persist first_name, last_name, email and lang_key only.

        Raises:
            DuplicateEmail: email already used by another account
        """
        ...

    def update_password(self, account_id: int, password_hash: str) -> bool: ...

    def activate(self, key: str) -> Account | None:
        """
        Atomically redeem an activation key.

        Sets activated, clears activation_key and returns the account, or
        returns None if no pending account holds the key.
        """
        ...

    def start_password_reset(self, account_id: int, key: str, issued_at: datetime) -> bool: ...

    def complete_password_reset(
        self, key: str, password_hash: str, issued_after: datetime
    ) -> Account | None:
        """
        Atomically redeem a reset key.

        Stores the new hash and clears reset_key/reset_date if the key is held
        by an account with reset_date >= issued_after. Returns None otherwise.
        """
        ...

    def delete(self, account_id: int) -> bool: ...


@dataclass(frozen=True)
class MailMessage:
    """A fully rendered outgoing email."""

    recipient: str
    subject: str
    body: str
    html: bool = True


class MailTransport(Protocol):
    """Port interface for email delivery."""

    def send(self, message: MailMessage) -> bool:
        """
        Deliver a rendered message.

        Returns:
            True on success, False if delivery failed
        """
        ...


class TemplateRenderer(Protocol):
    """Port interface for locale-aware email content."""

    def render(self, kind: NotificationKind, locale: str, variables: dict[str, Any]) -> str: ...

    def subject(self, kind: NotificationKind, locale: str) -> str: ...


class Notifier(Protocol):
    """Port interface used by the lifecycle service to announce transitions."""

    def notify(self, account: Account, kind: NotificationKind) -> None: ...
