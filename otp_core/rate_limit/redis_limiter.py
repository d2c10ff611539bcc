"""
Redis Rate Limiter
==================
Redis-backed issuance limiter using a Lua script for atomic operations.
"""

from datetime import datetime, timezone
from typing import Optional

import structlog
from redis.exceptions import NoScriptError, RedisError

from ..clock import utcnow
from ..errors import RepositoryError
from .base import RateLimiter
from .models import RateLimitInfo, build_info

logger = structlog.get_logger(__name__)

# Lua script for an atomic fixed window anchored at the first request.
# ARGV[4] == "1" records the request, "0" only reports.
FIXED_WINDOW_SCRIPT = """
local key = KEYS[1]
local limit = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local now = tonumber(ARGV[3])
local record = ARGV[4] == "1"

local raw_start = redis.call('HGET', key, 'window_start')
local window_start = tonumber(raw_start)
local count = tonumber(redis.call('HGET', key, 'count')) or 0

if window_start == nil or now >= window_start + window then
    if record then
        redis.call('HSET', key, 'window_start', ARGV[3], 'count', 1, 'last_request_at', ARGV[3])
        redis.call('EXPIRE', key, math.ceil(window))
        return {1, 1, ARGV[3]}
    end
    return {1, 0, ARGV[3]}
end

if count >= limit then
    return {0, count, raw_start}
end

if record then
    count = redis.call('HINCRBY', key, 'count', 1)
    redis.call('HSET', key, 'last_request_at', ARGV[3])
end

return {1, count, raw_start}
"""


class RedisRateLimiter(RateLimiter):
    """
    Redis-backed fixed window limiter.

    Uses a Lua script so the read-modify-write happens atomically on the
    Redis server, which makes it safe across processes and hosts.
    """

    def __init__(
        self,
        redis_client,
        max_requests: int = 5,
        window_seconds: int = 3600,
        prefix: str = "otp:ratelimit:",
    ):
        """
        Args:
            redis_client: Async Redis client (redis.asyncio.Redis)
            max_requests: Issuances per window
            window_seconds: Window size in seconds
            prefix: Key prefix
        """
        super().__init__(max_requests, window_seconds)
        self.redis = redis_client
        self.prefix = prefix
        self._script_sha: Optional[str] = None

    def get_key(self, phone: str) -> str:
        return f"{self.prefix}{phone}"

    async def _ensure_script(self) -> str:
        """Load Lua script into Redis if needed."""
        if self._script_sha is None:
            self._script_sha = await self.redis.script_load(FIXED_WINDOW_SCRIPT)
        return self._script_sha

    async def _run(self, phone: str, now: datetime, record: bool):
        args = (
            self.max_requests,
            self.window_seconds,
            repr(now.timestamp()),
            "1" if record else "0",
        )
        try:
            script_sha = await self._ensure_script()
            try:
                return await self.redis.evalsha(script_sha, 1, self.get_key(phone), *args)
            except NoScriptError:
                # Script cache flushed on the server
                self._script_sha = None
                script_sha = await self._ensure_script()
                return await self.redis.evalsha(script_sha, 1, self.get_key(phone), *args)
        except RedisError as e:
            logger.error("Rate limit check failed", phone=phone, error=str(e))
            raise RepositoryError("Rate limit store unavailable") from e

    def _to_info(self, result, now: datetime) -> RateLimitInfo:
        allowed, count, window_start = result
        if isinstance(window_start, bytes):
            window_start = window_start.decode()
        started = datetime.fromtimestamp(float(window_start), tz=timezone.utc)
        return build_info(
            bool(int(allowed)),
            int(count),
            self.max_requests,
            started,
            self.window_seconds,
            now,
        )

    async def check_and_record(self, phone: str, now: Optional[datetime] = None) -> RateLimitInfo:
        now = now or utcnow()
        result = await self._run(phone, now, record=True)
        return self._to_info(result, now)

    async def peek(self, phone: str, now: Optional[datetime] = None) -> RateLimitInfo:
        now = now or utcnow()
        result = await self._run(phone, now, record=False)
        return self._to_info(result, now)
