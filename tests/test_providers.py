"""
Tests for SMS gateways.
"""

from urllib.parse import parse_qs

import httpx
import pytest
from structlog.testing import capture_logs

SID = "AC0123456789abcdef0123456789abcdef"


def twilio_gateway(handler):
    from otp_core.providers import TwilioGateway

    return TwilioGateway(
        account_sid=SID,
        auth_token="secret-token",
        from_number="+15005550006",
        transport=httpx.MockTransport(handler),
    )


class TestTwilioGateway:
    """Tests for the Twilio REST gateway."""

    async def test_send_success(self):
        """Should post the message and report the provider SID."""
        from otp_core.providers import MessageStatus

        requests = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            return httpx.Response(201, json={"sid": "SM42", "status": "queued"})

        async with twilio_gateway(handler) as gateway:
            result = await gateway.send("+251911223344", "Your code is: 1234")

        assert result.success is True
        assert result.provider == "twilio"
        assert result.provider_message_id == "SM42"
        assert result.status == MessageStatus.PENDING

        request = requests[0]
        assert request.method == "POST"
        assert request.url.path == f"/2010-04-01/Accounts/{SID}/Messages.json"
        assert request.headers["Authorization"].startswith("Basic ")
        form = parse_qs(request.content.decode())
        assert form == {
            "To": ["+251911223344"],
            "From": ["+15005550006"],
            "Body": ["Your code is: 1234"],
        }

    async def test_rejected_message(self):
        """Should return a failed result for a non-201 response."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"code": 21211, "message": "Invalid 'To' Phone Number"})

        async with twilio_gateway(handler) as gateway:
            result = await gateway.send("+251911223344", "hi")

        assert result.success is False
        assert result.error_code == "21211"
        assert result.error_message == "Invalid 'To' Phone Number"

    async def test_non_json_error(self):
        """Should cope with an error body that is not JSON."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="Service Unavailable")

        async with twilio_gateway(handler) as gateway:
            result = await gateway.send("+251911223344", "hi")

        assert result.success is False
        assert result.error_code == "503"

    async def test_transport_error(self):
        """Should raise GatewayError when Twilio cannot be reached."""
        from otp_core.errors import GatewayError, OTPErrorCode

        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        async with twilio_gateway(handler) as gateway:
            with pytest.raises(GatewayError) as exc:
                await gateway.send("+251911223344", "hi")

        assert exc.value.provider == "twilio"
        assert exc.value.code == OTPErrorCode.SEND_FAILURE

    async def test_lazy_initialize(self):
        """Should create its client on first send."""
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(201, json={"sid": "SM1", "status": "sent"})

        gateway = twilio_gateway(handler)
        try:
            result = await gateway.send("+251911223344", "hi")
        finally:
            await gateway.close()

        assert result.success is True

    def test_repr_hides_token(self):
        """Should not expose the auth token."""
        gateway = twilio_gateway(lambda request: httpx.Response(201))

        assert "secret-token" not in repr(gateway)


class TestConsoleGateway:
    """Tests for the logging fallback gateway."""

    async def test_masks_codes_by_default(self):
        """Should log the message with digits hidden."""
        from otp_core.providers import ConsoleGateway

        with capture_logs() as logs:
            result = await ConsoleGateway().send("+251911223344", "Your code is: 4821.")

        assert result.success is True
        assert result.provider == "console"
        assert logs[0]["body"] == "Your code is: ****."

    async def test_reveal_codes(self):
        """Should log the message verbatim when asked to."""
        from otp_core.providers import ConsoleGateway

        with capture_logs() as logs:
            await ConsoleGateway(reveal_codes=True).send("+251911223344", "Your code is: 4821.")

        assert logs[0]["body"] == "Your code is: 4821."


class TestBuildGateway:
    """Tests for gateway selection."""

    def test_twilio_when_configured(self, settings):
        """Should pick Twilio when credentials are present."""
        from otp_core.providers import TwilioGateway, build_gateway

        settings.twilio_account_sid = SID
        settings.twilio_auth_token = "token"
        settings.twilio_from_number = "+15005550006"

        gateway = build_gateway(settings)

        assert isinstance(gateway, TwilioGateway)
        assert gateway.timeout == settings.gateway_timeout_seconds

    def test_console_otherwise(self, settings):
        """Should fall back to the console gateway."""
        from otp_core.providers import ConsoleGateway, build_gateway

        assert isinstance(build_gateway(settings), ConsoleGateway)

    async def test_console_reveals_codes_when_configured(self, settings):
        """Should pass the reveal setting through to the console gateway."""
        from otp_core.providers import build_gateway

        settings.console_reveal_codes = True
        gateway = build_gateway(settings)

        with capture_logs() as logs:
            await gateway.send("+251911223344", "Your code is: 4821.")

        assert gateway.reveal_codes is True
        assert logs[0]["body"] == "Your code is: 4821."
