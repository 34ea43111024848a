# siteaudit/utils/cache.py
"""
Process-wide shared resources for the audit engine.

    TTLCache        — bounded key/value cache with per-entry expiry
    CircuitBreaker  — stops calling a failing upstream for a cooldown window
    AuditRegistry   — owns one cache and a set of named breakers

The engine runs on a single event loop, so there is no lock discipline here.
Every mutation happens synchronously between awaits: a cached value is only
written once the upstream call has fully returned, and breaker state only
changes after the wrapped coroutine finishes.
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

from siteaudit import config

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


class CircuitOpenError(RuntimeError):
    """Raised instead of calling an upstream whose breaker is open."""


class TTLCache:
    """LRU-bounded cache where every entry expires after `ttl` seconds."""

    def __init__(self, ttl: float = 300, max_entries: int = 256, clock: Clock = time.monotonic):
        self.ttl = ttl
        self.max_entries = max_entries
        self._clock = clock
        self._data: "OrderedDict[str, Tuple[float, Any]]" = OrderedDict()

    def get(self, key: str) -> Optional[Any]:
        entry = self._data.get(key)
        if entry is None:
            return None
        expires, value = entry
        if self._clock() >= expires:
            del self._data[key]
            return None
        self._data.move_to_end(key)
        return value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        expires = self._clock() + (self.ttl if ttl is None else ttl)
        self._data[key] = (expires, value)
        self._data.move_to_end(key)
        if len(self._data) > self.max_entries:
            self.purge_expired()
        while len(self._data) > self.max_entries:
            self._data.popitem(last=False)

    def purge_expired(self) -> int:
        now = self._clock()
        stale = [k for k, (exp, _) in self._data.items() if now >= exp]
        for k in stale:
            del self._data[k]
        return len(stale)

    def clear(self) -> None:
        self._data.clear()

    def __len__(self) -> int:
        return len(self._data)


class CircuitBreaker:
    """
    CLOSED → OPEN after `threshold` consecutive failures.
    OPEN → HALF_OPEN once `reset_after` seconds have passed since the last failure.
    HALF_OPEN → CLOSED on the next success, back to OPEN on the next failure.
    """

    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"

    def __init__(self, name: str, threshold: int = 3, reset_after: float = 60.0,
                 clock: Clock = time.monotonic):
        self.name = name
        self.threshold = threshold
        self.reset_after = reset_after
        self._clock = clock
        self.failures = 0
        self.last_failure = 0.0
        self._state = self.CLOSED

    @property
    def state(self) -> str:
        if self._state == self.OPEN and self._clock() - self.last_failure >= self.reset_after:
            self._state = self.HALF_OPEN
        return self._state

    def record_success(self) -> None:
        self.failures = 0
        self._state = self.CLOSED

    def record_failure(self) -> None:
        self.failures += 1
        self.last_failure = self._clock()
        if self._state == self.HALF_OPEN or self.failures >= self.threshold:
            if self._state != self.OPEN:
                logger.warning(f"Circuit '{self.name}' opened after {self.failures} failure(s)")
            self._state = self.OPEN

    async def call(self, fn: Callable[[], Awaitable[Any]]) -> Any:
        if self.state == self.OPEN:
            raise CircuitOpenError(f"Circuit breaker open for {self.name}, upstream unavailable")
        try:
            result = await fn()
        except Exception:
            self.record_failure()
            raise
        self.record_success()
        return result


class AuditRegistry:
    """
    The only holder of cross-run state. Build one per process (see
    siteaudit.extensions) or per test, and close() it on teardown.
    """

    def __init__(
        self,
        ttl: float = config.CACHE_TTL,
        max_entries: int = config.CACHE_MAX_ENTRIES,
        breaker_threshold: int = config.BREAKER_THRESHOLD,
        breaker_reset: float = config.BREAKER_RESET,
        clock: Clock = time.monotonic,
    ):
        self._clock = clock
        self.cache = TTLCache(ttl=ttl, max_entries=max_entries, clock=clock)
        self._breaker_threshold = breaker_threshold
        self._breaker_reset = breaker_reset
        self._breakers: Dict[str, CircuitBreaker] = {}
        self.closed = False

    def breaker(self, name: str) -> CircuitBreaker:
        b = self._breakers.get(name)
        if b is None:
            b = CircuitBreaker(
                name,
                threshold=self._breaker_threshold,
                reset_after=self._breaker_reset,
                clock=self._clock,
            )
            self._breakers[name] = b
        return b

    async def cached(
        self,
        key: str,
        factory: Callable[[], Awaitable[Any]],
        upstream: Optional[str] = None,
        ttl: Optional[float] = None,
    ) -> Any:
        """
        Return the cached value for `key`, or await `factory()` and cache it.
        When `upstream` is given the call goes through that upstream's breaker.
        Only successful results are cached.
        """
        hit = self.cache.get(key)
        if hit is not None:
            return hit

        if upstream:
            value = await self.breaker(upstream).call(factory)
        else:
            value = await factory()

        if value is not None and not self.closed:
            self.cache.set(key, value, ttl=ttl)
        return value

    def close(self) -> None:
        self.cache.clear()
        self._breakers.clear()
        self.closed = True
