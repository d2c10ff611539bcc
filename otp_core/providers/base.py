"""
SMS Gateway Interface
=====================
Base class for the providers that deliver OTP messages.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Dict, Any
from enum import Enum
import structlog

logger = structlog.get_logger(__name__)


class MessageStatus(str, Enum):
    PENDING = "pending"
    SENT = "sent"
    DELIVERED = "delivered"
    FAILED = "failed"


@dataclass
class SendResult:
    """Result of a message send operation."""
    success: bool
    provider: str = "unknown"
    provider_message_id: Optional[str] = None
    status: MessageStatus = MessageStatus.PENDING
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    raw_response: Optional[Dict[str, Any]] = None


class SMSGateway(ABC):
    """
    Abstract base class for SMS gateways.

    The engine makes exactly one ``send`` call per issued code and never
    retries. Implementations return an unsuccessful ``SendResult`` when the
    provider rejects a message and raise ``GatewayError`` when the provider
    cannot be reached.
    """

    name: str = "base"

    def __init__(self):
        self._is_initialized = False

    async def initialize(self) -> None:
        """Initialize the gateway (e.g., create HTTP clients)."""
        self._is_initialized = True
        logger.info("SMS gateway initialized", provider=self.name)

    async def close(self) -> None:
        """Clean up resources (e.g., close HTTP clients)."""
        self._is_initialized = False
        logger.info("SMS gateway closed", provider=self.name)

    @abstractmethod
    async def send(self, phone_number: str, message: str) -> SendResult:
        """
        Send an SMS message.

        Args:
            phone_number: Recipient phone number (E.164 format)
            message: Message content

        Returns:
            SendResult with provider response
        """
        pass

    async def __aenter__(self) -> "SMSGateway":
        await self.initialize()
        return self

    async def __aexit__(self, *exc) -> None:
        await self.close()
