"""
OTP SMS Gateways
================
Providers that deliver OTP messages.
"""

from typing import TYPE_CHECKING

import structlog

from .base import SMSGateway, SendResult, MessageStatus
from .twilio import TwilioGateway
from .console import ConsoleGateway

if TYPE_CHECKING:
    from ..config import OTPSettings

logger = structlog.get_logger(__name__)


def build_gateway(settings: "OTPSettings") -> SMSGateway:
    """
    Pick the gateway for the given settings.

    Twilio when credentials are present, otherwise the console gateway.
    """
    if settings.twilio_configured:
        return TwilioGateway(
            account_sid=settings.twilio_account_sid,
            auth_token=settings.twilio_auth_token,
            from_number=settings.twilio_from_number,
            timeout=settings.gateway_timeout_seconds,
        )
    logger.warning("Twilio not configured, falling back to console gateway")
    return ConsoleGateway(reveal_codes=settings.console_reveal_codes)


__all__ = [
    "SMSGateway",
    "SendResult",
    "MessageStatus",
    "TwilioGateway",
    "ConsoleGateway",
    "build_gateway",
]
