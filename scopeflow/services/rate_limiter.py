"""
Rate Limiter Service - Protects the AI chat endpoint against excessive requests.

Features:
- Sliding window algorithm, keyed per client IP and limit type
- In-memory backend for single-instance deployments and tests
- Redis sorted-set backend for distributed deployments (REDIS_URL), updated
  atomically by a server-side Lua script
"""

import asyncio
import logging
import time
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Any, Deque, Dict, Optional, Tuple

from fastapi import Request

from config import settings

logger = logging.getLogger(__name__)


@dataclass
class RateLimitConfig:
    """Configuration for a rate limit."""
    requests: int        # Max requests in window
    window_seconds: int  # Window size in seconds


def default_limits() -> Dict[str, RateLimitConfig]:
    return {
        "ai_chat": RateLimitConfig(
            requests=settings.chat_rate_limit_requests,
            window_seconds=settings.chat_rate_limit_window_seconds,
        ),
    }


class RateLimitExceeded(Exception):
    """Exception raised when rate limit is exceeded."""

    def __init__(self, message: str, retry_after: int = 60):
        super().__init__(message)
        self.retry_after = retry_after


class RateLimiter:
    """
    Sliding window rate limiter.

    Subclasses implement ``_hit``; callers use ``check_rate_limit`` which
    returns ``(allowed, info)`` with ``remaining``, ``limit`` and
    ``reset_seconds``.
    """

    def __init__(self, limits: Optional[Dict[str, RateLimitConfig]] = None):
        self.limits = limits or default_limits()

    def _get_key(self, limit_type: str, identifier: str = "") -> str:
        """Generate a rate limit key."""
        if identifier:
            return f"ratelimit:{limit_type}:{identifier}"
        return f"ratelimit:{limit_type}"

    def _get_config(self, limit_type: str) -> RateLimitConfig:
        config = self.limits.get(limit_type)
        if config is None:
            raise KeyError(f"Unknown rate limit type: {limit_type}")
        return config

    async def _hit(self, key: str, now: float, config: RateLimitConfig) -> Tuple[bool, int, float]:
        """Record a request; returns (allowed, remaining, reset_timestamp)."""
        raise NotImplementedError

    async def check_rate_limit(self, limit_type: str, identifier: str = "") -> Tuple[bool, Dict[str, Any]]:
        """
        Check if a request is allowed and consume a slot when it is.

        Rejected requests do not consume a slot.
        """
        config = self._get_config(limit_type)
        key = self._get_key(limit_type, identifier)
        now = time.time()

        allowed, remaining, reset_time = await self._hit(key, now, config)

        # Never tell a rejected client to retry immediately
        reset_seconds = max(0 if allowed else 1, round(reset_time - now))

        info = {
            "allowed": allowed,
            "remaining": remaining,
            "limit": config.requests,
            "reset_seconds": reset_seconds,
            "limit_type": limit_type,
        }

        if not allowed:
            logger.warning(f"Rate limit exceeded for {limit_type}:{identifier}")

        return allowed, info

    async def enforce(self, limit_type: str, identifier: str = "") -> Dict[str, Any]:
        """Like ``check_rate_limit`` but raises ``RateLimitExceeded``."""
        allowed, info = await self.check_rate_limit(limit_type, identifier)
        if not allowed:
            raise RateLimitExceeded(
                f"Rate limit exceeded for {limit_type}",
                retry_after=info["reset_seconds"],
            )
        return info

    async def reset_limit(self, limit_type: str, identifier: str = "") -> None:
        """Reset rate limit for a specific key."""
        raise NotImplementedError

    async def close(self) -> None:
        pass


class InMemoryRateLimiter(RateLimiter):
    """Process-local limiter using a deque of timestamps per key."""

    def __init__(self, limits: Optional[Dict[str, RateLimitConfig]] = None):
        super().__init__(limits)
        self._requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._locks: Dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    async def _hit(self, key: str, now: float, config: RateLimitConfig) -> Tuple[bool, int, float]:
        async with self._locks[key]:
            timestamps = self._requests[key]

            cutoff = now - config.window_seconds
            while timestamps and timestamps[0] <= cutoff:
                timestamps.popleft()

            if len(timestamps) >= config.requests:
                return False, 0, timestamps[0] + config.window_seconds

            if not timestamps:
                self._prune(cutoff)

            timestamps.append(now)
            reset_time = timestamps[0] + config.window_seconds
            return True, config.requests - len(timestamps), reset_time

    def _prune(self, cutoff: float) -> None:
        """Forget keys whose newest request has left the window."""
        idle = [
            key for key, timestamps in self._requests.items()
            if not timestamps or timestamps[-1] <= cutoff
        ]
        for key in idle:
            if not self._locks[key].locked():
                del self._requests[key]
                del self._locks[key]

    async def reset_limit(self, limit_type: str, identifier: str = "") -> None:
        key = self._get_key(limit_type, identifier)
        async with self._locks[key]:
            self._requests.pop(key, None)
        self._locks.pop(key, None)
        logger.info(f"Reset rate limit for {key}")


# Trim, count and record run as one server-side step so concurrent callers
# for the same key can never both see the last free slot.
SLIDING_WINDOW_SCRIPT = """
local key = KEYS[1]
local now = tonumber(ARGV[1])
local window = tonumber(ARGV[2])
local limit = tonumber(ARGV[3])

redis.call('ZREMRANGEBYSCORE', key, 0, now - window)
local count = redis.call('ZCARD', key)
local allowed = 0
if count < limit then
    redis.call('ZADD', key, now, ARGV[4])
    redis.call('EXPIRE', key, window)
    count = count + 1
    allowed = 1
end

local oldest = redis.call('ZRANGE', key, 0, 0, 'WITHSCORES')
local oldest_score = ARGV[1]
if oldest[2] then
    oldest_score = oldest[2]
end
return {allowed, count, oldest_score}
"""


class RedisRateLimiter(RateLimiter):
    """Distributed limiter using one sorted set per key."""

    def __init__(self, redis_client, limits: Optional[Dict[str, RateLimitConfig]] = None):
        super().__init__(limits)
        self.redis = redis_client
        self._script = redis_client.register_script(SLIDING_WINDOW_SCRIPT)

    async def _hit(self, key: str, now: float, config: RateLimitConfig) -> Tuple[bool, int, float]:
        allowed, count, oldest = await self._script(
            keys=[key],
            args=[now, config.window_seconds, config.requests, f"{now}:{uuid.uuid4().hex}"],
        )
        reset_time = float(oldest) + config.window_seconds

        if not int(allowed):
            return False, 0, reset_time
        return True, max(0, config.requests - int(count)), reset_time

    async def reset_limit(self, limit_type: str, identifier: str = "") -> None:
        key = self._get_key(limit_type, identifier)
        await self.redis.delete(key)
        logger.info(f"Reset rate limit for {key}")

    async def close(self) -> None:
        await self.redis.aclose()


def create_rate_limiter(redis_url: Optional[str] = None) -> RateLimiter:
    """Build the limiter for the configured backend."""
    redis_url = settings.redis_url if redis_url is None else redis_url
    if redis_url:
        import redis.asyncio as redis

        logger.info("Using Redis rate limiter")
        return RedisRateLimiter(redis.from_url(redis_url, decode_responses=True))

    logger.info("Using in-memory rate limiter")
    return InMemoryRateLimiter()


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, checking proxy headers."""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


# Singleton
_rate_limiter: Optional[RateLimiter] = None


def get_rate_limiter() -> RateLimiter:
    """Get the rate limiter singleton."""
    global _rate_limiter
    if _rate_limiter is None:
        _rate_limiter = create_rate_limiter()
    return _rate_limiter


async def close_rate_limiter() -> None:
    global _rate_limiter
    if _rate_limiter is not None:
        await _rate_limiter.close()
        _rate_limiter = None
