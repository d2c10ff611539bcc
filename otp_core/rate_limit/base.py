"""
Rate Limiter Interface
======================
Fixed window per phone number, anchored at the first request in the window.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Optional

from .models import RateLimitInfo, build_info


class RateLimiter(ABC):
    """
    Bounds OTP issuance per phone number.

    A window opens with the first request and lasts ``window_seconds``.
    Within it at most ``max_requests`` issuances are recorded; once
    ``now >= window_start + window_seconds`` the counter starts over.
    Implementations must make ``check_and_record`` a single atomic
    read-modify-write in their backing store.
    """

    def __init__(self, max_requests: int = 5, window_seconds: int = 3600):
        """
        Args:
            max_requests: Issuances allowed per window
            window_seconds: Window length in seconds
        """
        if max_requests <= 0 or window_seconds <= 0:
            raise ValueError("max_requests and window_seconds must be positive")
        self.max_requests = max_requests
        self.window_seconds = window_seconds

    @property
    def window(self) -> timedelta:
        return timedelta(seconds=self.window_seconds)

    @abstractmethod
    async def check_and_record(self, phone: str, now: Optional[datetime] = None) -> RateLimitInfo:
        """
        Decide whether an issuance is allowed and record it if so.

        Args:
            phone: Canonical phone number
            now: Decision time (defaults to the current UTC time)

        Returns:
            RateLimitInfo; ``wait_seconds`` is set when limited
        """

    @abstractmethod
    async def peek(self, phone: str, now: Optional[datetime] = None) -> RateLimitInfo:
        """Report what ``check_and_record`` would decide, without recording."""

    def _peek_info(
        self,
        window_start: Optional[datetime],
        request_count: int,
        now: datetime,
    ) -> RateLimitInfo:
        if window_start is None or now >= window_start + self.window:
            return build_info(True, 0, self.max_requests, now, self.window_seconds, now)
        return build_info(
            request_count < self.max_requests,
            request_count,
            self.max_requests,
            window_start,
            self.window_seconds,
            now,
        )
