"""
Twilio SMS Gateway
==================
Delivers OTP messages through the Twilio REST API.
"""

from typing import Optional, Dict, Any

import httpx
import structlog

from ..errors import GatewayError
from .base import SMSGateway, SendResult, MessageStatus

logger = structlog.get_logger(__name__)

TWILIO_API_BASE = "https://api.twilio.com/2010-04-01"


class TwilioGateway(SMSGateway):
    """
    Twilio SMS gateway.

    Uses HTTP basic auth against ``Messages.json``. A 201 response is a
    successful send; any other status is reported as a failed result.
    """

    name = "twilio"

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            account_sid: Twilio account SID (ACxxx)
            auth_token: Twilio auth token
            from_number: Sender number in E.164 format
            timeout: HTTP timeout in seconds
            transport: Optional httpx transport (tests use httpx.MockTransport)
        """
        super().__init__()
        self.account_sid = account_sid
        self.auth_token = auth_token
        self.from_number = from_number
        self.timeout = timeout
        self.base_url = f"{TWILIO_API_BASE}/Accounts/{account_sid}"
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    def __repr__(self) -> str:
        return f"TwilioGateway(account_sid={self.account_sid!r}, from_number={self.from_number!r})"

    async def initialize(self) -> None:
        """Create HTTP client with auth."""
        self._client = httpx.AsyncClient(
            auth=(self.account_sid, self.auth_token),
            timeout=self.timeout,
            transport=self._transport,
        )
        await super().initialize()

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None
        await super().close()

    async def send(self, phone_number: str, message: str) -> SendResult:
        """Send SMS via Twilio."""
        if not self._client:
            await self.initialize()

        payload = {
            "To": phone_number,
            "From": self.from_number,
            "Body": message,
        }

        try:
            response = await self._client.post(f"{self.base_url}/Messages.json", data=payload)
        except httpx.HTTPError as e:
            logger.error("Twilio request failed", phone=phone_number, error=str(e))
            raise GatewayError(f"Twilio request failed: {e}", provider=self.name) from e

        data = self._json(response)
        if response.status_code == 201:
            logger.info("SMS sent", provider=self.name, phone=phone_number, sid=data.get("sid"))
            return SendResult(
                success=True,
                provider=self.name,
                provider_message_id=data.get("sid"),
                status=self._map_status(data.get("status", "")),
                raw_response=data,
            )

        logger.warning(
            "Twilio rejected message",
            phone=phone_number,
            status_code=response.status_code,
            error_code=data.get("code"),
        )
        return SendResult(
            success=False,
            provider=self.name,
            status=MessageStatus.FAILED,
            error_code=str(data.get("code", response.status_code)),
            error_message=data.get("message", "Unknown error"),
            raw_response=data,
        )

    @staticmethod
    def _json(response: httpx.Response) -> Dict[str, Any]:
        try:
            data = response.json()
        except ValueError:
            return {}
        return data if isinstance(data, dict) else {}

    def _map_status(self, twilio_status: str) -> MessageStatus:
        """Map Twilio status to internal status."""
        mapping = {
            "queued": MessageStatus.PENDING,
            "accepted": MessageStatus.PENDING,
            "sending": MessageStatus.PENDING,
            "sent": MessageStatus.SENT,
            "delivered": MessageStatus.DELIVERED,
            "undelivered": MessageStatus.FAILED,
            "failed": MessageStatus.FAILED,
        }
        return mapping.get(twilio_status.lower(), MessageStatus.PENDING)
