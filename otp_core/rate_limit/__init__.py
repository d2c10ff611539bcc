"""
OTP Rate Limiting
=================
Fixed window issuance limits per phone number.

Backends:
- InMemoryRateLimiter: single process, development and tests
- SQLRateLimiter: shares the OTP database
- RedisRateLimiter: atomic Lua script, shared across hosts
"""

from .models import RateLimitCounter, RateLimitInfo, RateLimitResult
from .base import RateLimiter
from .in_memory import InMemoryRateLimiter
from .sql_limiter import SQLRateLimiter
from .redis_limiter import RedisRateLimiter

__all__ = [
    "RateLimitCounter",
    "RateLimitInfo",
    "RateLimitResult",
    "RateLimiter",
    "InMemoryRateLimiter",
    "SQLRateLimiter",
    "RedisRateLimiter",
]
