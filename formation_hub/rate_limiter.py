"""
Per-minute request limiter backed by the shared cache.
"""

from __future__ import annotations

import logging
import time

from fastapi import HTTPException, Request

from formation_hub.cache_backend import get_cache_backend

logger = logging.getLogger(__name__)


def check_rate_limit(
    bucket: str,
    identity: str,
    limit_per_minute: int,
) -> tuple[bool, int]:
    """Count one hit for ``identity`` in ``bucket``; return (allowed, count)."""
    if limit_per_minute <= 0:
        return True, 0

    minute_bucket = int(time.time() // 60)
    key = f"rl:{bucket}:{identity}:{minute_bucket}"
    cache = get_cache_backend()
    try:
        count = cache.incr(key, ttl_seconds=70)
    except Exception as exc:
        # Fail open when the cache backend is unavailable.
        logger.warning("rate limiter cache unavailable: %s", exc)
        return True, 0
    return count <= int(limit_per_minute), count


def client_identity(request: Request) -> str:
    ctx = getattr(request.state, "user_ctx", None)
    if ctx is not None and getattr(ctx, "user_id", None):
        return f"user:{ctx.user_id}"
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def enforce_rate_limit(request: Request, bucket: str, limit_per_minute: int) -> None:
    """Raise 429 once ``request``'s client exceeds ``limit_per_minute``."""
    allowed, count = check_rate_limit(bucket, client_identity(request), limit_per_minute)
    if not allowed:
        logger.info("Rate limit hit on %s (%d requests this minute)", bucket, count)
        raise HTTPException(
            status_code=429,
            detail=f"{bucket} rate limit exceeded; retry in under a minute",
        )
