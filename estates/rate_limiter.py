"""
Redis-backed sliding window rate limiting
Failure mode is configurable: fail-open for non-critical paths, fail-closed for sensitive ones
"""

import logging
import os
import time
import uuid
from dataclasses import dataclass
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

from .config import RATE_LIMIT_FAIL_MODE

logger = logging.getLogger(__name__)

# Redis connection
redis_client: Optional[redis.Redis] = None

FAIL_OPEN = "open"
FAIL_CLOSED = "closed"


@dataclass
class RateLimitResult:
    allowed: bool
    remaining: int
    reset_at: int  # epoch seconds
    retry_after: int = 0


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client
    Supports both standard Redis and Upstash managed Redis
    """
    global redis_client

    if redis_client is None:
        logger.info("🔄 Initializing Redis connection...")

        redis_url = os.getenv("REDIS_URL")

        if redis_url:
            # Mask password in URL for logging
            if "@" in redis_url:
                url_parts = redis_url.split("@")
                protocol = url_parts[0].split(":")[0]
                masked_url = f"{protocol}:****@{url_parts[1]}"
            else:
                masked_url = "****"
            logger.info(f"📡 Using Redis URL connection: {masked_url}")

            try:
                client = redis.from_url(
                    redis_url,
                    decode_responses=True,
                    socket_connect_timeout=15,
                    socket_timeout=30,
                    retry_on_timeout=True,
                    health_check_interval=30,
                    max_connections=20,
                )
                client.ping()
                redis_client = client
                logger.info("Redis connected successfully via URL")
            except Exception as e:
                logger.error(f"❌ Failed to connect to Redis via URL: {str(e)}")
                raise
        else:
            redis_host = os.getenv("REDIS_HOST", "localhost")
            redis_port = int(os.getenv("REDIS_PORT", "6379"))
            redis_password = os.getenv("REDIS_PASSWORD", None)
            redis_db = int(os.getenv("REDIS_DB", "0"))
            redis_ssl = os.getenv("REDIS_SSL", "false").lower() == "true"

            logger.info(
                f"📡 Using Redis at {redis_host}:{redis_port} "
                f"(db={redis_db}, ssl={'on' if redis_ssl else 'off'}, "
                f"password={'set' if redis_password else 'not set'})"
            )

            try:
                client = redis.Redis(
                    host=redis_host,
                    port=redis_port,
                    password=redis_password,
                    db=redis_db,
                    ssl=redis_ssl,
                    decode_responses=True,
                    socket_connect_timeout=15,
                    socket_timeout=30,
                    retry_on_timeout=True,
                    health_check_interval=30,
                    max_connections=20,
                )
                client.ping()
                redis_client = client
                logger.info(f"Redis connected successfully at {redis_host}:{redis_port}")
            except Exception as e:
                logger.error(f"❌ Failed to connect to Redis: {str(e)}")
                raise

    return redis_client


def rate_limit_key(identifier: str, endpoint: str) -> str:
    return f"ratelimit:{endpoint}:{identifier}"


def _fallback_result(limit: int, window_seconds: int, fail_mode: str, now: float) -> RateLimitResult:
    reset_at = int(now) + window_seconds
    if fail_mode == FAIL_CLOSED:
        logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
        return RateLimitResult(allowed=False, remaining=0, reset_at=reset_at, retry_after=window_seconds)
    logger.warning("⚠️ Allowing request due to rate limiting error (fail-open mode)")
    return RateLimitResult(allowed=True, remaining=limit, reset_at=reset_at)


def check_rate_limit(
    identifier: str,
    endpoint: str,
    limit: int,
    window_seconds: int,
    client: Optional[redis.Redis] = None,
    fail_mode: Optional[str] = None,
    now: Optional[float] = None,
) -> RateLimitResult:
    """Sliding window check backed by a Redis sorted set of request timestamps

    Args:
        identifier: Caller identity (IP, user id)
        endpoint: Logical endpoint name, part of the key
        limit: Maximum number of requests allowed in the window
        window_seconds: Window length in seconds
        client: Redis client; the shared connection is used when omitted
        fail_mode: "open" or "closed"; defaults to RATE_LIMIT_FAIL_MODE
        now: Current epoch time in seconds

    Returns:
        RateLimitResult
    """
    fail_mode = fail_mode or RATE_LIMIT_FAIL_MODE
    now = time.time() if now is None else now
    key = rate_limit_key(identifier, endpoint)
    now_ms = int(now * 1000)
    window_start_ms = now_ms - window_seconds * 1000

    try:
        client = client or get_redis_client()

        pipe = client.pipeline()
        pipe.zremrangebyscore(key, 0, window_start_ms)
        pipe.zcard(key)
        _, count = pipe.execute()

        if count >= limit:
            oldest = client.zrange(key, 0, 0, withscores=True)
            if oldest:
                reset_at = int((oldest[0][1] + window_seconds * 1000) / 1000)
            else:
                reset_at = int(now) + window_seconds
            retry_after = max(0, reset_at - int(now))
            logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {count}/{limit} requests used")
            return RateLimitResult(allowed=False, remaining=0, reset_at=reset_at, retry_after=retry_after)

        pipe = client.pipeline()
        pipe.zadd(key, {f"{now_ms}-{uuid.uuid4().hex[:8]}": now_ms})
        pipe.expire(key, window_seconds + 1)
        pipe.execute()

        return RateLimitResult(
            allowed=True,
            remaining=limit - count - 1,
            reset_at=int(now) + window_seconds,
        )
    except Exception as e:
        logger.error(f"❌ Rate limit check failed for {key}: {str(e)}")
        return _fallback_result(limit, window_seconds, fail_mode, now)


def get_client_ip(request: Request) -> str:
    """Resolve the caller IP behind Cloudflare or a reverse proxy"""
    for header in ("cf-connecting-ip", "x-real-ip"):
        value = request.headers.get(header)
        if value:
            return value.strip()
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def create_rate_limiter(
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
    use_ip: bool = True,
    fail_mode: Optional[str] = None,
):
    """
    Create a rate limiter dependency with specific parameters

    Example usage:
        track_click_limit = create_rate_limiter(limit=100, window_seconds=60, key_prefix="track-click")

        @router.post("/track-click")
        async def track_click(body: TrackClickRequest, _: None = Depends(track_click_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        identifier = get_client_ip(request) if use_ip else "global"
        result = check_rate_limit(identifier, key_prefix, limit, window_seconds, fail_mode=fail_mode)

        if not result.allowed:
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail={
                    "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                    "retry_after": result.retry_after,
                },
                headers={"Retry-After": str(result.retry_after)},
            )

        request.state.rate_limit_remaining = result.remaining
        request.state.rate_limit_limit = limit
        request.state.rate_limit_reset = result.reset_at

    return rate_limiter
