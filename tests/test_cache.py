"""Tests for the embedding result cache."""

import hashlib

import pytest
from embedding_service.models import EmbeddingResult
from embedding_service.runtime.cache import (
    InMemoryResultCache,
    RedisResultCache,
    create_result_cache,
    fingerprint,
)
from embedding_service.runtime.metrics import MetricsCollector


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class FakeRedis:
    """Minimal async stand-in for ``redis.asyncio.Redis``."""

    def __init__(self, fail: bool = False):
        self.store = {}
        self.ttls = {}
        self.fail = fail

    async def get(self, key):
        if self.fail:
            raise ConnectionError("redis down")
        return self.store.get(key)

    async def setex(self, key, ttl, value):
        if self.fail:
            raise ConnectionError("redis down")
        self.store[key] = value
        self.ttls[key] = ttl

    async def keys(self, pattern):
        prefix = pattern.rstrip("*")
        return [key for key in self.store if key.startswith(prefix)]

    async def delete(self, *keys):
        for key in keys:
            self.store.pop(key, None)
        return len(keys)

    async def aclose(self):
        pass


class CountingCompute:
    def __init__(self, vector=None):
        self.calls = 0
        self.vector = vector or [0.1, 0.2]

    async def __call__(self) -> EmbeddingResult:
        self.calls += 1
        return EmbeddingResult(vector=self.vector, model="text-embedding-3-small", provider="p1")


def test_fingerprint_is_sha256_of_text():
    """Test the cache key is a stable SHA-256 digest."""
    assert fingerprint("clause") == hashlib.sha256("clause".encode("utf-8")).hexdigest()
    assert fingerprint("clause") != fingerprint("clause ")


@pytest.mark.asyncio
async def test_cache_hit_skips_backend():
    """Test the second identical request within TTL never calls the backend."""
    metrics = MetricsCollector("test-cache")
    cache = InMemoryResultCache(metrics=metrics)
    compute = CountingCompute()

    first = await cache.get_or_compute("indemnity", compute)
    second = await cache.get_or_compute("indemnity", compute)

    assert compute.calls == 1
    assert first == second
    assert cache.get_stats()["hits"] == 1
    assert cache.get_stats()["misses"] == 1
    assert metrics.registry.get_sample_value("ml_cache_hits_total", {"cache_type": "embedding"}) == 1


@pytest.mark.asyncio
async def test_cache_entry_expires_after_ttl():
    """Test expired entries are dropped and recomputed."""
    clock = FakeClock()
    cache = InMemoryResultCache(ttl_seconds=60, clock=clock)
    compute = CountingCompute()

    await cache.get_or_compute("text", compute)
    clock.now += 59
    await cache.get_or_compute("text", compute)
    assert compute.calls == 1

    clock.now += 2
    await cache.get_or_compute("text", compute)
    assert compute.calls == 2
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_failures_are_not_cached():
    """Test a failing computation stores nothing."""
    cache = InMemoryResultCache()

    async def failing():
        raise RuntimeError("backend down")

    with pytest.raises(RuntimeError):
        await cache.get_or_compute("text", failing)
    assert len(cache) == 0

    compute = CountingCompute()
    await cache.get_or_compute("text", compute)
    assert compute.calls == 1


@pytest.mark.asyncio
async def test_cache_evicts_when_full():
    """Test the oldest entry is evicted at capacity."""
    clock = FakeClock()
    cache = InMemoryResultCache(max_entries=2, clock=clock)
    compute = CountingCompute()

    await cache.get_or_compute("a", compute)
    clock.now += 1
    await cache.get_or_compute("b", compute)
    clock.now += 1
    await cache.get_or_compute("c", compute)

    assert len(cache) == 2
    assert await cache.get(fingerprint("a")) is None
    assert await cache.get(fingerprint("c")) is not None


@pytest.mark.asyncio
async def test_redis_cache_round_trip():
    """Test the Redis cache stores with SETEX and serves hits."""
    fake = FakeRedis()
    cache = RedisResultCache("redis://unused", ttl_seconds=86400, redis_client=fake)
    compute = CountingCompute([0.7, 0.3])

    await cache.get_or_compute("text", compute)
    result = await cache.get_or_compute("text", compute)

    assert compute.calls == 1
    assert result.vector == (0.7, 0.3)
    key = f"embedding:result:{fingerprint('text')}"
    assert fake.ttls[key] == 86400

    await cache.clear()
    assert fake.store == {}


@pytest.mark.asyncio
async def test_redis_failure_degrades_to_miss():
    """Test Redis errors do not break embedding."""
    cache = RedisResultCache("redis://unused", redis_client=FakeRedis(fail=True))
    compute = CountingCompute()

    await cache.get_or_compute("text", compute)
    await cache.get_or_compute("text", compute)
    assert compute.calls == 2


def test_create_result_cache():
    """Test backend selection."""
    assert isinstance(create_result_cache("memory", ttl_seconds=10), InMemoryResultCache)
    with pytest.raises(ValueError):
        create_result_cache("redis")
    with pytest.raises(ValueError):
        create_result_cache("memcached")
