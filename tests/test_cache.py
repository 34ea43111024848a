import asyncio

import pytest

from siteaudit.utils.cache import AuditRegistry, CircuitBreaker, CircuitOpenError, TTLCache


def test_ttl_cache_expires_entries(clock):
    cache = TTLCache(ttl=10, clock=clock)
    cache.set("k", "v")
    assert cache.get("k") == "v"
    clock.advance(10)
    assert cache.get("k") is None
    assert len(cache) == 0


def test_ttl_cache_evicts_least_recently_used(clock):
    cache = TTLCache(ttl=60, max_entries=2, clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.get("a")
    cache.set("c", 3)
    assert cache.get("a") == 1
    assert cache.get("b") is None
    assert cache.get("c") == 3


def test_purge_expired(clock):
    cache = TTLCache(ttl=5, clock=clock)
    cache.set("old", 1)
    clock.advance(3)
    cache.set("new", 2)
    clock.advance(3)
    assert cache.purge_expired() == 1
    assert cache.get("new") == 2


def test_full_cache_drops_expired_entries_before_live_ones(clock):
    cache = TTLCache(ttl=5, max_entries=2, clock=clock)
    cache.set("live", 1, ttl=60)
    cache.set("stale", 2)
    cache.get("stale")
    clock.advance(10)
    cache.set("fresh", 3)
    assert len(cache) == 2
    assert cache.get("live") == 1
    assert cache.get("fresh") == 3

def test_breaker_opens_then_half_opens(clock):
    breaker = CircuitBreaker("crt.sh", threshold=2, reset_after=30, clock=clock)

    async def boom():
        raise ValueError("down")

    async def ok():
        return "fine"

    for _ in range(2):
        with pytest.raises(ValueError):
            asyncio.run(breaker.call(boom))
    assert breaker.state == CircuitBreaker.OPEN

    with pytest.raises(CircuitOpenError):
        asyncio.run(breaker.call(ok))

    clock.advance(30)
    assert breaker.state == CircuitBreaker.HALF_OPEN
    assert asyncio.run(breaker.call(ok)) == "fine"
    assert breaker.state == CircuitBreaker.CLOSED


def test_half_open_failure_reopens(clock):
    breaker = CircuitBreaker("llm", threshold=1, reset_after=10, clock=clock)
    breaker.record_failure()
    clock.advance(10)
    assert breaker.state == CircuitBreaker.HALF_OPEN
    breaker.record_failure()
    assert breaker.state == CircuitBreaker.OPEN


def test_registry_caches_successful_results(clock):
    registry = AuditRegistry(ttl=60, clock=clock)
    calls = []

    async def factory():
        calls.append(1)
        return ["api.example.com"]

    async def run_twice():
        first = await registry.cached("ct:example.com", factory, upstream="crt.sh")
        second = await registry.cached("ct:example.com", factory, upstream="crt.sh")
        return first, second

    first, second = asyncio.run(run_twice())
    assert first == second == ["api.example.com"]
    assert len(calls) == 1


def test_registry_breaker_stops_calling_failing_upstream(clock):
    registry = AuditRegistry(breaker_threshold=2, breaker_reset=60, clock=clock)
    calls = []

    async def failing():
        calls.append(1)
        raise ConnectionError("unreachable")

    async def scenario():
        for _ in range(2):
            with pytest.raises(ConnectionError):
                await registry.cached("ct:x", failing, upstream="crt.sh")
        with pytest.raises(CircuitOpenError):
            await registry.cached("ct:x", failing, upstream="crt.sh")

    asyncio.run(scenario())
    assert len(calls) == 2
    assert registry.cache.get("ct:x") is None


def test_registry_close_clears_state(clock):
    registry = AuditRegistry(clock=clock)
    registry.cache.set("k", "v")
    registry.breaker("crt.sh").record_failure()
    registry.close()
    assert len(registry.cache) == 0
    assert registry.breaker("crt.sh").failures == 0
