"""
In-Memory Rate Limiter
======================
Process-local issuance limiter for development and testing.
"""

import asyncio
from datetime import datetime
from typing import Dict, Optional

from ..clock import utcnow
from .base import RateLimiter
from .models import RateLimitCounter, RateLimitInfo, build_info


class InMemoryRateLimiter(RateLimiter):
    """
    In-memory fixed window limiter.

    For development and testing only: counters are not shared between
    processes. Use SQLRateLimiter or RedisRateLimiter in production.
    """

    def __init__(self, max_requests: int = 5, window_seconds: int = 3600):
        super().__init__(max_requests, window_seconds)
        self._counters: Dict[str, RateLimitCounter] = {}
        self._lock = asyncio.Lock()

    async def check_and_record(self, phone: str, now: Optional[datetime] = None) -> RateLimitInfo:
        now = now or utcnow()

        async with self._lock:
            counter = self._counters.get(phone)

            # Reset if no window yet or the window elapsed
            if counter is None or now >= counter.window_start + self.window:
                counter = RateLimitCounter(
                    phone_number=phone,
                    window_start=now,
                    request_count=1,
                    last_request_at=now,
                )
                self._counters[phone] = counter
                return build_info(True, 1, self.max_requests, now, self.window_seconds, now)

            if counter.request_count >= self.max_requests:
                return build_info(
                    False,
                    counter.request_count,
                    self.max_requests,
                    counter.window_start,
                    self.window_seconds,
                    now,
                )

            counter.request_count += 1
            counter.last_request_at = now
            return build_info(
                True,
                counter.request_count,
                self.max_requests,
                counter.window_start,
                self.window_seconds,
                now,
            )

    async def peek(self, phone: str, now: Optional[datetime] = None) -> RateLimitInfo:
        now = now or utcnow()
        counter = self._counters.get(phone)
        if counter is None:
            return self._peek_info(None, 0, now)
        return self._peek_info(counter.window_start, counter.request_count, now)

    def reset(self, phone: Optional[str] = None) -> None:
        """Drop one counter, or all of them."""
        if phone is None:
            self._counters.clear()
        else:
            self._counters.pop(phone, None)
