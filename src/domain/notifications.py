"""
Notification gateway - Locale-aware transactional email for lifecycle events.

The gateway resolves the account's language, renders the template named by
the event kind, looks up the localized subject and hands a MailMessage to the
transport. Delivery is best-effort: every failure is logged and swallowed,
because the state transition being announced has already been persisted.
"""

import logging
from collections.abc import Iterable
from concurrent.futures import Executor
from dataclasses import dataclass

from .accounts import Account, NotificationKind, PublicAccount
from .exceptions import NotificationDeliveryFailed
from .ports import MailMessage, MailTransport, TemplateRenderer
from .validation import normalize_lang_key

logger = logging.getLogger(__name__)


@dataclass
class NotificationService:
    """
    Implements the Notifier port.

    When an executor is given, delivery is submitted to it and not awaited.
    Otherwise delivery runs inline, still without raising.
    """

    renderer: TemplateRenderer
    transport: MailTransport
    base_url: str
    default_lang_key: str = "en"
    supported_lang_keys: Iterable[str] = ("en",)
    executor: Executor | None = None

    def notify(self, account: Account, kind: NotificationKind) -> None:
        """
        Announce a lifecycle transition to the account's registered email.

        The account is snapshotted before submission so later mutations by
        the caller cannot leak into the message.
        """
        view = account.public_view()
        key = self._key_for(account, kind)

        if self.executor is None:
            self.deliver(view, kind, key)
            return

        try:
            self.executor.submit(self.deliver, view, kind, key)
        except RuntimeError:
            # Executor already shut down
            logger.exception("Could not schedule %s email for account %s", kind.value, view.login)

    def deliver(self, account: PublicAccount, kind: NotificationKind, key: str | None = None) -> bool:
        """
        Render and send one message.

        Returns:
            True if the transport accepted the message, False otherwise
        """
        try:
            message = self.build_message(account, kind, key)
            if not self.transport.send(message):
                raise NotificationDeliveryFailed(f"transport rejected {kind.value} email")
        except Exception:
            logger.exception(
                "Failed to deliver %s email for account %s", kind.value, account.login
            )
            return False

        logger.info("Sent %s email for account %s", kind.value, account.login)
        return True

    def build_message(
        self, account: PublicAccount, kind: NotificationKind, key: str | None = None
    ) -> MailMessage:
        locale = normalize_lang_key(
            account.lang_key, self.supported_lang_keys, self.default_lang_key
        )
        variables = {"user": account, "base_url": self.base_url, "key": key}
        body = self.renderer.render(kind, locale, variables)
        subject = self.renderer.subject(kind, locale)
        return MailMessage(recipient=account.email, subject=subject, body=body, html=True)

    @staticmethod
    def _key_for(account: Account, kind: NotificationKind) -> str | None:
        if kind is NotificationKind.ACTIVATION:
            return account.activation_key
        return account.reset_key
