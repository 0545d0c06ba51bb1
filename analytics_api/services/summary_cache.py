"""
Read-through cache for the event-summary aggregation.

get_or_compute(key, ttl_seconds, compute_fn):
  hit  → JSON-decode the stored value, compute_fn is not called
  miss → await compute_fn(), JSON-encode, store with TTL, return

Failure policy:
  • Read fails (store down, corrupt entry) → treated as a miss.
  • Write fails → logged; the freshly computed value is still returned.
  • No negative caching, no stampede protection: concurrent misses on
    one key may each run the query. Acceptable at a 60s TTL.

Entries are never invalidated explicitly — they only expire.
"""

from __future__ import annotations

import datetime
import json
import logging
import time
import uuid
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from typing import Any
from urllib.parse import quote

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import RedisError
from redis.exceptions import TimeoutError as RedisTimeoutError

from analytics_api.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

SUMMARY_KEY_PREFIX = "summary"
# Placeholders are written unencoded. Real values always go through
# quote(), which turns "*" into "%2A", so no real value can equal one.
ALL_EVENTS = "*"
OPEN_START = "*0"
OPEN_END = "*now"


# ── Cache stores ────────────────────────────────────────────
class CacheStore(ABC):
    """
    Shared cache contract: string get / set-with-TTL.

    Implementations raise StoreUnavailable when the backend can't be
    reached.
    """

    @abstractmethod
    async def get(self, key: str) -> str | None:
        """Return the cached value or None if absent or expired."""

    @abstractmethod
    async def set(self, key: str, value: str, ttl: int) -> None:
        """Store `value` under `key` for `ttl` seconds, overwriting."""


class RedisCacheStore(CacheStore):
    """Redis GET / SET EX."""

    def __init__(self, redis_client) -> None:
        self.redis = redis_client

    async def get(self, key: str) -> str | None:
        try:
            value = await self.redis.get(key)
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise StoreUnavailable(f"Redis unreachable: {exc}") from exc
        if isinstance(value, bytes):
            return value.decode("utf-8")
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        try:
            await self.redis.set(key, value, ex=ttl)
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise StoreUnavailable(f"Redis unreachable: {exc}") from exc


class MemoryCacheStore(CacheStore):
    """
    Process-local cache with TTL enforcement on read.

    Every write sweeps out expired entries, so the table never holds more
    than the keys written within the last TTL.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._clock = clock
        self._entries: dict[str, tuple[str, float]] = {}

    async def get(self, key: str) -> str | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, expires_at = entry
        if self._clock() >= expires_at:
            self._entries.pop(key, None)
            return None
        return value

    async def set(self, key: str, value: str, ttl: int) -> None:
        now = self._clock()
        self._purge_expired(now)
        self._entries[key] = (value, now + ttl)

    def _purge_expired(self, now: float) -> None:
        expired = [k for k, (_, expires_at) in self._entries.items() if now >= expires_at]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


# ── Key construction ────────────────────────────────────────
def _encode(value: str) -> str:
    return quote(value, safe="")


def _normalize_bound(value: datetime.datetime | None, open_marker: str) -> str:
    """Encoded UTC ISO-8601 for a range bound; naive datetimes are taken as UTC."""
    if value is None:
        return open_marker
    if value.tzinfo is None:
        value = value.replace(tzinfo=datetime.timezone.utc)
    return _encode(value.astimezone(datetime.timezone.utc).isoformat())


def build_summary_cache_key(
    app_id: uuid.UUID | str,
    event_type: str | None,
    start: datetime.datetime | None,
    end: datetime.datetime | None,
) -> str:
    """
    summary:<app_id>:<event|*>:<start|*0>:<end|*now>

    Real values are percent-encoded, so a ':' inside an event type or a
    timestamp can never shift the boundaries between components, and an
    event literally named "*" or "all" never collides with the unfiltered
    query. Same filters → same key; different filters → different keys.
    """
    parts = [
        _encode(str(app_id)),
        _encode(event_type) if event_type else ALL_EVENTS,
        _normalize_bound(start, OPEN_START),
        _normalize_bound(end, OPEN_END),
    ]
    return ":".join([SUMMARY_KEY_PREFIX, *parts])


# ── Read-through cache ──────────────────────────────────────
class SummaryCache:
    """Memoizes JSON-serializable results in a CacheStore for a short TTL."""

    def __init__(self, store: CacheStore, default_ttl: int = 60) -> None:
        self.store = store
        self.default_ttl = default_ttl

    async def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Awaitable[Any]],
        ttl_seconds: int | None = None,
    ) -> Any:
        cached = await self._read(key)
        if cached is not None:
            return cached

        value = await compute_fn()
        await self._write(key, value, self.default_ttl if ttl_seconds is None else ttl_seconds)
        return value

    async def _read(self, key: str) -> Any | None:
        try:
            raw = await self.store.get(key)
        except (StoreUnavailable, RedisError) as exc:
            logger.warning("Cache read failed for %s, computing: %s", key, exc)
            return None
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Discarding undecodable cache entry %s", key)
            return None

    async def _write(self, key: str, value: Any, ttl: int) -> None:
        try:
            await self.store.set(key, json.dumps(value), ttl)
        except (StoreUnavailable, RedisError) as exc:
            logger.warning("Cache write failed for %s: %s", key, exc)
