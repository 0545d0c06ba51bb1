"""
FastAPI dependencies for the shared admission components.

The rate limiter and the summary cache are process-wide singletons built
from settings on first use. Tests swap them through
app.dependency_overrides without touching module state.

SHARED_STORE_BACKEND selects the counter/cache backend:
  • "redis"  — shared across all workers (production)
  • "memory" — per-process, for local dev without Redis
"""

from __future__ import annotations

from enum import Enum
from functools import lru_cache

from analytics_api.core.config import settings
from analytics_api.core.redis_client import get_redis_client
from analytics_api.services.rate_limiter import (
    CounterStore,
    LocalCounterTable,
    MemoryCounterStore,
    RateLimiter,
    RedisCounterStore,
)
from analytics_api.services.summary_cache import (
    CacheStore,
    MemoryCacheStore,
    RedisCacheStore,
    SummaryCache,
)


class SharedStoreBackend(Enum):
    REDIS = "redis"
    MEMORY = "memory"


def _backend() -> SharedStoreBackend:
    return SharedStoreBackend(settings.SHARED_STORE_BACKEND.lower())


@lru_cache()
def get_rate_limiter() -> RateLimiter:
    store: CounterStore
    if _backend() is SharedStoreBackend.REDIS:
        store = RedisCounterStore(get_redis_client())
    else:
        store = MemoryCounterStore()

    return RateLimiter(
        store=store,
        fallback=LocalCounterTable(),
        max_requests=settings.RATE_LIMIT_MAX,
        window_ms=settings.RATE_LIMIT_WINDOW_MS,
        fail_open=settings.RATE_LIMIT_FAIL_OPEN,
    )


@lru_cache()
def get_summary_cache() -> SummaryCache:
    store: CacheStore
    if _backend() is SharedStoreBackend.REDIS:
        store = RedisCacheStore(get_redis_client())
    else:
        store = MemoryCacheStore()

    return SummaryCache(store=store, default_ttl=settings.SUMMARY_CACHE_TTL_SECONDS)
