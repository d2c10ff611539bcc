"""
SQL Rate Limiter
================
Issuance limiter backed by the ``otp_rate_limits`` table.
"""

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from ..clock import utcnow
from .base import RateLimiter
from .models import RateLimitInfo, build_info

if TYPE_CHECKING:
    from ..storage.repository import OTPRepository


class SQLRateLimiter(RateLimiter):
    """
    Fixed window limiter sharing the OTP database.

    The read-modify-write happens inside one transaction in the repository,
    so counters stay correct across worker processes.
    """

    def __init__(
        self,
        repository: "OTPRepository",
        max_requests: int = 5,
        window_seconds: int = 3600,
    ):
        super().__init__(max_requests, window_seconds)
        self.repository = repository

    async def check_and_record(self, phone: str, now: Optional[datetime] = None) -> RateLimitInfo:
        now = now or utcnow()
        allowed, counter = await self.repository.record_issuance(
            phone, now, self.window_seconds, self.max_requests
        )
        return build_info(
            allowed,
            counter.request_count,
            self.max_requests,
            counter.window_start,
            self.window_seconds,
            now,
        )

    async def peek(self, phone: str, now: Optional[datetime] = None) -> RateLimitInfo:
        now = now or utcnow()
        counter = await self.repository.peek_counter(phone)
        if counter is None:
            return self._peek_info(None, 0, now)
        return self._peek_info(counter.window_start, counter.request_count, now)
