"""
Shared Redis client for rate-limit counters and cached summaries.

One connection pool per process. Connect and read timeouts are both
REDIS_TIMEOUT_SECONDS, so a dead or partitioned Redis surfaces as a
ConnectionError / TimeoutError within that bound instead of hanging
the request. The stores translate those into StoreUnavailable.
"""

from __future__ import annotations

from functools import lru_cache

import redis.asyncio as redis

from analytics_api.core.config import settings


@lru_cache()
def get_redis_client() -> redis.Redis:
    """Lazily-connecting client; no network I/O happens here."""
    return redis.from_url(
        settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=settings.REDIS_TIMEOUT_SECONDS,
        socket_timeout=settings.REDIS_TIMEOUT_SECONDS,
    )


async def close_redis_client() -> None:
    if get_redis_client.cache_info().currsize:
        await get_redis_client().aclose()
        get_redis_client.cache_clear()
