"""
Redis fixed-window rate limiting for the public proposal endpoints
Fails closed: if Redis is unreachable the request is refused with 503
"""

import logging
import os
import time
from threading import Lock
from typing import Optional

import redis
from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)

# Redis connection
redis_client: Optional[redis.Redis] = None

# Keys already over their limit, cached in-process until the window resets
# Format: {key: reset_time}
blocked_cache: dict[str, int] = {}
cache_lock = Lock()


def _mask_url(redis_url: str) -> str:
    if "@" in redis_url:
        url_parts = redis_url.split("@")
        protocol = url_parts[0].split(":")[0]
        return f"{protocol}:****@{url_parts[1]}"
    return "****"


def get_redis_client() -> redis.Redis:
    """
    Get or create Redis client
    Supports a REDIS_URL or individual REDIS_HOST/PORT/PASSWORD settings
    """
    global redis_client

    if redis_client is None:
        logger.info("🔄 Initializing Redis connection for rate limiting...")
        redis_url = os.getenv("REDIS_URL")

        if redis_url:
            logger.info(f"📡 Using Redis URL connection: {_mask_url(redis_url)}")
            client = redis.from_url(
                redis_url,
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )
        else:
            client = redis.Redis(
                host=os.getenv("REDIS_HOST", "localhost"),
                port=int(os.getenv("REDIS_PORT", "6379")),
                password=os.getenv("REDIS_PASSWORD", None),
                db=int(os.getenv("REDIS_DB", "0")),
                ssl=os.getenv("REDIS_SSL", "false").lower() == "true",
                decode_responses=True,
                socket_connect_timeout=5,
                socket_timeout=5,
                retry_on_timeout=True,
                health_check_interval=30,
            )

        client.ping()
        logger.info("Redis connected successfully")
        redis_client = client

    return redis_client


def client_ip_from_request(request: Request) -> str:
    client_ip = request.client.host if request.client else "unknown"
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        client_ip = forwarded.split(",")[0].strip()
    return client_ip


def check_rate_limit(
    key: str, limit: int, window_seconds: int, client: redis.Redis
) -> tuple[bool, int, int]:
    """
    Count this request against a fixed window.

    INCR and EXPIRE NX run in one pipeline so every process shares the same
    counter. Returns (is_allowed, current_count, ttl_seconds).
    """
    current_time = int(time.time())

    with cache_lock:
        reset_time = blocked_cache.get(key)
        if reset_time is not None:
            if current_time < reset_time:
                return False, limit, reset_time - current_time
            del blocked_cache[key]

    pipe = client.pipeline()
    pipe.incr(key)
    pipe.expire(key, window_seconds, nx=True)
    pipe.ttl(key)
    count, _, ttl = pipe.execute()

    ttl = ttl if ttl and ttl > 0 else window_seconds
    is_allowed = int(count) <= limit
    if not is_allowed:
        with cache_lock:
            blocked_cache[key] = current_time + ttl

    return is_allowed, int(count), ttl


async def rate_limit_dependency(
    request: Request,
    limit: int,
    window_seconds: int,
    key_prefix: str = "rate_limit",
):
    """FastAPI dependency: per-IP fixed-window limit"""
    key = f"{key_prefix}:{client_ip_from_request(request)}"

    try:
        is_allowed, current_count, ttl = check_rate_limit(
            key, limit, window_seconds, get_redis_client()
        )
    except redis.RedisError as e:
        logger.error(f"❌ Rate limiting error: {e}")
        logger.warning("🔒 Denying request due to rate limiting error (fail-closed mode)")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Rate limiting service temporarily unavailable",
        ) from e

    if not is_allowed:
        logger.warning(f"🚫 Rate limit EXCEEDED for {key} - {current_count}/{limit} requests used")
        raise HTTPException(
            status_code=429,
            detail={
                "message": f"Rate limit exceeded. Maximum {limit} requests per {window_seconds} seconds.",
                "retry_after": ttl,
                "limit": limit,
                "window_seconds": window_seconds,
            },
            headers={"Retry-After": str(ttl)},
        )

    request.state.rate_limit_remaining = max(0, limit - current_count)
    request.state.rate_limit_limit = limit


def create_rate_limiter(limit: int, window_seconds: int, key_prefix: str = "rate_limit"):
    """
    Create a rate limiter dependency with specific parameters

    Example usage:
        accept_rate_limit = create_rate_limiter(limit=10, window_seconds=600, key_prefix="proposal_accept")

        @router.post("/accept")
        async def accept(data: AcceptProposalRequest, _: None = Depends(accept_rate_limit)):
            ...
    """

    async def rate_limiter(request: Request):
        return await rate_limit_dependency(request, limit, window_seconds, key_prefix)

    return rate_limiter
