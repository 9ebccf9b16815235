"""
Redis fixed-window rate limiting
Clients are identified by a fingerprint of their origin under a daily rotating salt,
so raw IP addresses are never stored
"""

import logging
import math
import secrets
from datetime import datetime, timezone
from typing import NamedTuple, Optional

import redis.asyncio as redis
from fastapi import Request

from . import config
from .security_utils import fingerprint_origin

logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "ratelimit:"
SALT_PREFIX = "salt:"
# Kept a day past rotation so requests around midnight still find yesterday's salt
SALT_TTL_SECONDS = 2 * 24 * 60 * 60

GUEST_REQUEST_ACTION = "guest_request"


class RateLimitResult(NamedTuple):
    allowed: bool
    remaining: int
    retry_after: int  # seconds until the window resets


def get_client_ip(request: Request) -> str:
    """Client IP, honouring the first X-Forwarded-For hop"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else "unknown"


async def get_daily_salt(redis_client: redis.Redis, day: Optional[str] = None) -> str:
    """Secret for today's fingerprints, created on first use by whichever process gets there"""
    day = day or datetime.now(timezone.utc).strftime("%Y-%m-%d")
    key = f"{SALT_PREFIX}{day}"
    created = await redis_client.set(key, secrets.token_hex(32), nx=True, ex=SALT_TTL_SECONDS)
    if created:
        logger.info(f"🔑 Rotated fingerprint salt for {day}")
    return await redis_client.get(key)


async def fingerprint_client(redis_client: redis.Redis, origin: str) -> str:
    return fingerprint_origin(origin, await get_daily_salt(redis_client))


async def check_rate_limit(
    redis_client: redis.Redis,
    action: str,
    fingerprint: str,
    window_ms: int,
    max_requests: int,
) -> RateLimitResult:
    """
    Count one request against the (action, fingerprint) window.

    The first request of a window creates the counter with an expiry equal to the
    window; the counter disappears by itself when the window ends.
    """
    key = f"{RATE_LIMIT_PREFIX}{action}:{fingerprint}"

    async with redis_client.pipeline(transaction=True) as pipe:
        pipe.incr(key)
        pipe.pttl(key)
        count, ttl_ms = await pipe.execute()

    # New window, or a counter that lost its expiry
    if count == 1 or ttl_ms < 0:
        await redis_client.pexpire(key, window_ms)
        ttl_ms = window_ms

    retry_after = max(0, math.ceil(ttl_ms / 1000))
    if count > max_requests:
        logger.warning(f"🚫 Rate limit EXCEEDED for {action} - {count}/{max_requests} requests used")
        return RateLimitResult(allowed=False, remaining=0, retry_after=retry_after)

    return RateLimitResult(allowed=True, remaining=max_requests - count, retry_after=retry_after)


async def check_guest_request_rate_limit(
    redis_client: redis.Redis, fingerprint: str
) -> RateLimitResult:
    """Stricter limit for guest access requests"""
    return await check_rate_limit(
        redis_client,
        GUEST_REQUEST_ACTION,
        fingerprint,
        config.GUEST_RATE_LIMIT_WINDOW_MS,
        config.GUEST_RATE_LIMIT_MAX_REQUESTS,
    )
