"""
Console SMS Gateway
===================
Logs outgoing messages instead of sending them. Used when no provider
credentials are configured.
"""

import re
import uuid

import structlog

from .base import SMSGateway, SendResult, MessageStatus

logger = structlog.get_logger(__name__)

_DIGIT_RUN = re.compile(r"\d{4,}")


class ConsoleGateway(SMSGateway):
    """Writes each message to the log and reports it as sent."""

    name = "console"

    def __init__(self, reveal_codes: bool = False):
        """
        Args:
            reveal_codes: Log the message verbatim, code included (local development only)
        """
        super().__init__()
        self.reveal_codes = reveal_codes

    async def send(self, phone_number: str, message: str) -> SendResult:
        body = message if self.reveal_codes else _DIGIT_RUN.sub(lambda m: "*" * len(m.group()), message)
        logger.info("SMS not sent, no provider configured", phone=phone_number, body=body)
        return SendResult(
            success=True,
            provider=self.name,
            provider_message_id=f"console-{uuid.uuid4()}",
            status=MessageStatus.SENT,
        )
