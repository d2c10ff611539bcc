"""
Rate Limit Models
=================
Data models for issuance rate limiting.
"""

import math
from datetime import datetime, timedelta
from typing import Optional
from dataclasses import dataclass
from enum import Enum


class RateLimitResult(str, Enum):
    """Rate limit decision result."""
    ALLOWED = "allowed"
    LIMITED = "limited"


@dataclass
class RateLimitCounter:
    """Issuance counter for one phone number."""
    phone_number: str
    window_start: datetime
    request_count: int
    last_request_at: datetime


@dataclass
class RateLimitInfo:
    """Rate limit check result with quota information."""
    allowed: bool
    remaining: int
    limit: int
    reset_at: datetime
    wait_seconds: Optional[int] = None  # Seconds until the window resets

    @property
    def result(self) -> RateLimitResult:
        return RateLimitResult.ALLOWED if self.allowed else RateLimitResult.LIMITED


def seconds_until(reset_at: datetime, now: datetime) -> int:
    """Whole seconds until ``reset_at``, never below 1."""
    return max(1, math.ceil((reset_at - now).total_seconds()))


def build_info(
    allowed: bool,
    request_count: int,
    limit: int,
    window_start: datetime,
    window_seconds: int,
    now: datetime,
) -> RateLimitInfo:
    """Build a ``RateLimitInfo`` from counter state after a decision."""
    reset_at = window_start + timedelta(seconds=window_seconds)
    return RateLimitInfo(
        allowed=allowed,
        remaining=max(0, limit - request_count),
        limit=limit,
        reset_at=reset_at,
        wait_seconds=None if allowed else seconds_until(reset_at, now),
    )
