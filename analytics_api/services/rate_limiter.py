"""
Fixed-window rate limiter with a shared counter store and a local fallback.

Per identifier:
    {no counter} → counting(n, window_start) → {no counter} after window_ms

admit(identifier):
  • Shared store reachable   — MULTI { INCR rl:<identifier>;
                               PEXPIRE rl:<identifier> window_ms NX }.
  • Shared store unreachable — same increment against the LocalCounterTable,
                               which resets itself once window_ms has passed.
  • allowed = n <= max_requests

Design decisions:
  • INCR and its expiry travel in one MULTI round trip, so concurrent
    requests for one identifier cannot lose updates and a counter is never
    left without a TTL by a failure between the two commands.
  • Outage (StoreUnavailable) → local fallback. Any other store error →
    warning + fail_open decides (default: admit). Availability wins over
    strict limiting.
  • The local table is passed in, never a module global, so tests and
    multiple limiters don't share counters by accident.
  • Counts are per-process during an outage; with N workers the effective
    limit is up to N × max_requests until Redis comes back.
"""

from __future__ import annotations

import logging
import threading
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from analytics_api.core.errors import StoreUnavailable

logger = logging.getLogger(__name__)

KEY_PREFIX = "rl:"
ANONYMOUS_IDENTIFIER = "anonymous"

Clock = Callable[[], float]


# ── Local fallback table ────────────────────────────────────
@dataclass
class _Window:
    count: int
    started_at: float


class LocalCounterTable:
    """
    In-process counters, one window per key, guarded by a lock.

    The lock covers the whole read-modify-write, so two threads (or two
    tasks on different loops) incrementing the same key never lose a count.
    """

    def __init__(self, clock: Clock = time.monotonic) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._windows: dict[str, _Window] = {}

    def increment(self, key: str, window_ms: int) -> int:
        now = self._clock()
        with self._lock:
            window = self._windows.get(key)
            if window is None or (now - window.started_at) * 1000 > window_ms:
                window = _Window(count=0, started_at=now)
                self._windows[key] = window
            window.count += 1
            return window.count


# ── Shared counter stores ───────────────────────────────────
class CounterStore(ABC):
    """
    Shared store contract: atomic increment that starts a window on create.

    Implementations raise StoreUnavailable when the backend can't be
    reached; any other exception is an unexpected store error.
    """

    @abstractmethod
    async def incr(self, key: str, window_ms: int) -> int:
        """Increment `key`, set its expiry if it was just created, return the new count."""


class RedisCounterStore(CounterStore):
    """
    Redis MULTI { INCR; PEXPIRE NX }, one round trip.

    PEXPIRE NX is sent on every increment but only takes effect while the
    key has no TTL, so the window is never extended and a key whose expiry
    was lost is repaired by the next request. NX needs Redis 7.0+.
    Socket timeouts on the client bound every call.
    """

    def __init__(self, redis_client) -> None:
        self.redis = redis_client

    async def incr(self, key: str, window_ms: int) -> int:
        try:
            async with self.redis.pipeline(transaction=True) as pipe:
                pipe.incr(key)
                pipe.pexpire(key, window_ms, nx=True)
                count, _ = await pipe.execute()
        except (RedisConnectionError, RedisTimeoutError) as exc:
            raise StoreUnavailable(f"Redis unreachable: {exc}") from exc
        return int(count)


class MemoryCounterStore(CounterStore):
    """Process-local stand-in for Redis (SHARED_STORE_BACKEND=memory)."""

    def __init__(self, table: LocalCounterTable | None = None) -> None:
        self.table = table or LocalCounterTable()

    async def incr(self, key: str, window_ms: int) -> int:
        return self.table.increment(key, window_ms)


# ── Limiter ─────────────────────────────────────────────────
class RateLimiter:
    """Admits or rejects one request per call for a given identifier."""

    def __init__(
        self,
        store: CounterStore,
        fallback: LocalCounterTable,
        max_requests: int = 1000,
        window_ms: int = 60_000,
        fail_open: bool = True,
    ) -> None:
        self.store = store
        self.fallback = fallback
        self.max_requests = max_requests
        self.window_ms = window_ms
        self.fail_open = fail_open

    async def admit(self, identifier: str) -> bool:
        """Count this request and return whether it is within the limit."""
        key = f"{KEY_PREFIX}{identifier or ANONYMOUS_IDENTIFIER}"

        try:
            count = await self.store.incr(key, self.window_ms)
        except StoreUnavailable as exc:
            logger.warning("Rate limit store unavailable, using local counters: %s", exc)
            count = self.fallback.increment(key, self.window_ms)
        except Exception:
            logger.warning(
                "Rate limit check failed, %s request",
                "admitting" if self.fail_open else "rejecting",
                exc_info=True,
            )
            return self.fail_open

        allowed = count <= self.max_requests
        if not allowed:
            logger.info("Rate limit exceeded for %s (%d > %d)", key, count, self.max_requests)
        return allowed
