"""
Console mail transport adapter - Implements MailTransport protocol.

This module provides a console-based implementation of the domain's
mail transport port, logging rendered messages for development use.
"""

import logging

from src.domain.ports import MailMessage

logger = logging.getLogger(__name__)


class ConsoleMailTransport:
    """
    Implements MailTransport protocol via console logging.

    Uses structural subtyping - no explicit inheritance from Protocol.
    For demo/development purposes - the body carries the activation or
    reset link, so it is logged at INFO level to be visible in container logs.
    """

    def send(self, message: MailMessage) -> bool:
        """
        Log the message instead of delivering it.

        Args:
            message: Rendered message (recipient, subject, body)

        Returns:
            Always True
        """
        logger.info(
            "[MAIL] To: %s Subject: %s\n%s", message.recipient, message.subject, message.body
        )
        return True
