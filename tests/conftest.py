"""
Shared fixtures for the OTP test suite.
"""

import asyncio
import re
from datetime import datetime, timedelta, timezone
from typing import List, Optional, Tuple

import pytest

from otp_core.config import OTPSettings
from otp_core.database import close_engine, create_async_engine, create_session_factory, init_models
from otp_core.otp.cipher import CodeCipher
from otp_core.otp.verifier import OTPVerifier
from otp_core.providers.base import MessageStatus, SendResult, SMSGateway
from otp_core.rate_limit.sql_limiter import SQLRateLimiter
from otp_core.storage.repository import SQLAlchemyOTPRepository

TEST_SECRET = "test-secret-key-for-otp-tests"


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime(2025, 1, 15, 9, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now += timedelta(**kwargs)


class RecordingGateway(SMSGateway):
    """Gateway that keeps every message instead of sending it."""

    name = "recording"

    def __init__(self, success: bool = True, error: Optional[Exception] = None, delay: float = 0):
        super().__init__()
        self.success = success
        self.error = error
        self.delay = delay
        self.sent: List[Tuple[str, str]] = []

    async def send(self, phone_number: str, message: str) -> SendResult:
        self.sent.append((phone_number, message))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return SendResult(
            success=self.success,
            provider=self.name,
            status=MessageStatus.SENT if self.success else MessageStatus.FAILED,
            error_message=None if self.success else "rejected",
        )

    @property
    def last_code(self) -> str:
        return re.search(r"code is: (\d+)", self.sent[-1][1]).group(1)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def settings():
    return OTPSettings(
        secret_key=TEST_SECRET,
        code_length=4,
        ttl_seconds=300,
        max_attempts=3,
        rate_limit_max_requests=5,
        rate_limit_window_seconds=3600,
        gateway_timeout_seconds=0.5,
        brand_name="EthioMarket",
        twilio_account_sid="",
        twilio_auth_token="",
    )


@pytest.fixture
async def engine(tmp_path):
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'otp.db'}")
    await init_models(engine)
    yield engine
    await close_engine(engine)


@pytest.fixture
def session_factory(engine):
    return create_session_factory(engine)


@pytest.fixture
def repository(session_factory):
    return SQLAlchemyOTPRepository(session_factory)


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def cipher():
    return CodeCipher(TEST_SECRET)


@pytest.fixture
def verifier(settings, repository, cipher, gateway, clock):
    return OTPVerifier(
        settings=settings,
        repository=repository,
        rate_limiter=SQLRateLimiter(
            repository,
            max_requests=settings.rate_limit_max_requests,
            window_seconds=settings.rate_limit_window_seconds,
        ),
        cipher=cipher,
        gateway=gateway,
        clock=clock,
    )
