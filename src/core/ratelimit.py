"""Rate limiting for the generation endpoints using Upstash Redis.

Page generation fans out into several model calls per request, so the
streaming and context endpoints are limited per client. Requests are allowed
through when Upstash is not configured (development/test environments).
"""

from __future__ import annotations

import logging
import time
import uuid
from functools import lru_cache
from typing import TYPE_CHECKING, Annotated

from fastapi import Depends, HTTPException, Request, status

from core.config import Settings, get_settings


if TYPE_CHECKING:
    from upstash_ratelimit import Ratelimit

logger = logging.getLogger(__name__)

RATE_LIMIT_PREFIX = "pagecraft:ratelimit"


@lru_cache
def get_ratelimiter() -> Ratelimit | None:
    """Create and cache the sliding-window limiter, or None when unconfigured."""
    from upstash_ratelimit import Ratelimit, SlidingWindow
    from upstash_redis import Redis

    settings = get_settings()
    if not settings.UPSTASH_REDIS_REST_URL or not settings.UPSTASH_REDIS_REST_TOKEN:
        logger.warning(
            "Upstash Redis not configured. Rate limiting is disabled. "
            "Set UPSTASH_REDIS_REST_URL and UPSTASH_REDIS_REST_TOKEN to enable."
        )
        return None

    ratelimit = Ratelimit(
        redis=Redis(
            url=settings.UPSTASH_REDIS_REST_URL,
            token=settings.UPSTASH_REDIS_REST_TOKEN,
        ),
        limiter=SlidingWindow(
            max_requests=settings.RATE_LIMIT_REQUESTS,
            window=settings.RATE_LIMIT_WINDOW_SECONDS,
        ),
        prefix=RATE_LIMIT_PREFIX,
    )
    logger.info(
        "Rate limiting enabled: %d requests per %d seconds",
        settings.RATE_LIMIT_REQUESTS,
        settings.RATE_LIMIT_WINDOW_SECONDS,
    )
    return ratelimit


def _get_client_identifier(request: Request) -> str:
    """Identify the caller by the first forwarded IP, then the socket peer."""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()
    if request.client and request.client.host:
        return request.client.host
    # Unidentifiable clients each get their own bucket
    return f"unknown:{uuid.uuid4()}"


async def check_rate_limit(
    request: Request,
    settings: Annotated[Settings, Depends(get_settings)],
) -> None:
    """FastAPI dependency that raises 429 once a client exhausts its window.

    Usage:
        @router.get("/generate", dependencies=[Depends(check_rate_limit)])
    """
    ratelimiter = get_ratelimiter()
    if ratelimiter is None:
        return

    identifier = _get_client_identifier(request)
    try:
        response = ratelimiter.limit(identifier)
    except Exception as e:
        # Limiter outages must not take generation down with them
        logger.error("Rate limit check failed: %s", e)
        return

    if response.allowed:
        return

    now_ms = int(time.time() * 1000)
    retry_after = max(1, (response.reset - now_ms) // 1000)
    logger.warning(
        "Rate limit exceeded for %s on %s. Reset in %d seconds.",
        identifier,
        request.url.path,
        retry_after,
    )
    raise HTTPException(
        status_code=status.HTTP_429_TOO_MANY_REQUESTS,
        detail="Too many requests. Please try again later.",
        headers={
            "Retry-After": str(retry_after),
            "X-RateLimit-Limit": str(settings.RATE_LIMIT_REQUESTS),
            "X-RateLimit-Remaining": str(response.remaining),
        },
    )
