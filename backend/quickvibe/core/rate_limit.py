"""Request rate limiting backed by the ``limits`` library.

Counters live in the storage named by ``RATE_LIMIT_STORAGE_URI``: a hosted
Redis in production, ``memory://`` for a single process. Without a storage
URI every request is allowed; the app logs a warning once at startup.
"""

import logging
import math
import time
from dataclasses import dataclass
from functools import lru_cache

from fastapi import HTTPException, Request, status
from limits import (
    RateLimitItem,
    RateLimitItemPerHour,
    RateLimitItemPerMinute,
    RateLimitItemPerSecond,
)
from limits.storage import Storage, storage_from_string
from limits.strategies import MovingWindowRateLimiter

from quickvibe.core.config import settings

logger = logging.getLogger(__name__)

UNLIMITED = 999


@dataclass(frozen=True)
class RateLimiter:
    prefix: str
    item: RateLimitItem


@dataclass(frozen=True)
class RateLimitResult:
    success: bool
    limit: int
    remaining: int
    reset: float


api_limiter = RateLimiter("ratelimit:api", RateLimitItemPerSecond(10, 10))
ai_limiter = RateLimiter("ratelimit:ai", RateLimitItemPerMinute(3))
auth_limiter = RateLimiter("ratelimit:auth", RateLimitItemPerMinute(5, 15))
save_limiter = RateLimiter("ratelimit:save", RateLimitItemPerHour(30))


@lru_cache
def get_storage(uri: str) -> Storage:
    logger.info("Using rate limit storage %s", uri.split("@")[-1])
    return storage_from_string(uri)


def get_rate_limit_identifier(user_id: object | None = None, request: Request | None = None) -> str:
    """Prefer the user id, fall back to the client address."""
    if user_id:
        return f"user:{user_id}"

    ip = None
    if request is not None:
        forwarded_for = request.headers.get("x-forwarded-for")
        if forwarded_for:
            ip = forwarded_for.split(",")[0].strip()
        else:
            ip = request.headers.get("x-real-ip") or (request.client.host if request.client else None)
    return f"ip:{ip or 'anonymous'}"


def rate_limit(limiter: RateLimiter, identifier: str) -> RateLimitResult:
    if not settings.RATE_LIMIT_STORAGE_URI:
        return RateLimitResult(
            success=True,
            limit=UNLIMITED,
            remaining=UNLIMITED,
            reset=time.time() + 10,
        )

    strategy = MovingWindowRateLimiter(get_storage(settings.RATE_LIMIT_STORAGE_URI))
    success = strategy.hit(limiter.item, limiter.prefix, identifier)
    stats = strategy.get_window_stats(limiter.item, limiter.prefix, identifier)
    return RateLimitResult(
        success=success,
        limit=limiter.item.amount,
        remaining=stats.remaining,
        reset=stats.reset_time,
    )


def rate_limit_exceeded(result: RateLimitResult) -> HTTPException:
    retry_after = max(0, math.ceil(result.reset - time.time()))
    reset_at = time.strftime("%H:%M:%S", time.localtime(result.reset))
    return HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail={
            "error": "Rate limit exceeded",
            "message": f"Too many requests. Please try again after {reset_at}",
            "limit": result.limit,
            "retry_after": retry_after,
        },
        headers={
            "X-RateLimit-Limit": str(result.limit),
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": str(int(result.reset)),
            "Retry-After": str(retry_after),
        },
    )


def enforce_rate_limit(
    request: Request,
    limiter: RateLimiter,
    user_id: object | None = None,
) -> RateLimitResult:
    identifier = get_rate_limit_identifier(user_id, request)
    result = rate_limit(limiter, identifier)
    if not result.success:
        logger.warning(
            "Rate limit exceeded for %s on %s %s",
            identifier,
            request.method,
            request.url.path,
        )
        raise rate_limit_exceeded(result)
    return result


def storage_status() -> dict[str, str]:
    if not settings.RATE_LIMIT_STORAGE_URI:
        return {"status": "not_configured"}
    try:
        healthy = get_storage(settings.RATE_LIMIT_STORAGE_URI).check()
    except Exception as exc:
        logger.warning("Rate limit storage check failed: %s", exc)
        return {"status": "unhealthy", "error": str(exc)}
    return {"status": "healthy" if healthy else "unhealthy"}
