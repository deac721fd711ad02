"""
SMTP mail transport adapter - Implements MailTransport protocol with smtplib.
"""

import logging
import smtplib
from email.message import EmailMessage

from src.domain.ports import MailMessage

logger = logging.getLogger(__name__)


class SmtpMailTransport:
    """
    Deliver messages through an SMTP server.

    A new connection is opened per message. Failures are reported as False
    and logged; they never raise into the notification gateway.
    """

    def __init__(
        self,
        host: str,
        port: int,
        sender: str,
        username: str | None = None,
        password: str | None = None,
        starttls: bool = True,
        timeout: float = 10.0,
    ) -> None:
        self._host = host
        self._port = port
        self._sender = sender
        self._username = username
        self._password = password
        self._starttls = starttls
        self._timeout = timeout

    def build(self, message: MailMessage) -> EmailMessage:
        email = EmailMessage()
        email["From"] = self._sender
        email["To"] = message.recipient
        email["Subject"] = message.subject
        email.set_content(message.body, subtype="html" if message.html else "plain")
        return email

    def send(self, message: MailMessage) -> bool:
        email = self.build(message)
        try:
            with smtplib.SMTP(self._host, self._port, timeout=self._timeout) as conn:
                if self._starttls:
                    conn.starttls()
                if self._username:
                    conn.login(self._username, self._password or "")
                conn.send_message(email)
        except (smtplib.SMTPException, OSError):
            logger.exception("SMTP delivery to %s failed", message.recipient)
            return False
        return True
