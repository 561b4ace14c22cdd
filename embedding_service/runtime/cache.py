"""Result cache for single-text embeddings.

Entries are keyed by a SHA-256 fingerprint of the exact text that was sent to
the backend (i.e. after truncation) and expire after a fixed TTL, 24 hours by
default. Only successful results are stored; failures and zero-vector
fallbacks never reach the cache.
"""

import hashlib
import json
import threading
import time
from abc import ABC, abstractmethod
from typing import Awaitable, Callable, Dict, Optional, Tuple

import redis.asyncio as redis
import structlog

from ..models import EmbeddingResult
from .metrics import MetricsCollector

logger = structlog.get_logger("embedding_cache")

DEFAULT_TTL_SECONDS = 24 * 3600


def fingerprint(text: str) -> str:
    """Stable cache key for ``text``."""
    return hashlib.sha256(text.encode("utf-8")).hexdigest()


class ResultCache(ABC):
    """Cache-aside wrapper around an embedding computation."""

    cache_type = "embedding"

    def __init__(self, ttl_seconds: int = DEFAULT_TTL_SECONDS, metrics: Optional[MetricsCollector] = None):
        self.ttl_seconds = ttl_seconds
        self.metrics = metrics
        self.hits = 0
        self.misses = 0

    async def get_or_compute(
        self,
        text: str,
        compute: Callable[[], Awaitable[EmbeddingResult]]
    ) -> EmbeddingResult:
        """Return the cached result for ``text`` or compute and store it.

        Exceptions from ``compute`` propagate and nothing is stored.
        """
        key = fingerprint(text)
        cached = await self.get(key)
        if cached is not None:
            self.hits += 1
            if self.metrics:
                self.metrics.record_cache_hit(self.cache_type)
            logger.debug("Embedding cache hit", key=key[:12])
            return cached

        self.misses += 1
        if self.metrics:
            self.metrics.record_cache_miss(self.cache_type)
        logger.debug("Embedding cache miss", key=key[:12])

        result = await compute()
        await self.set(key, result)
        return result

    @abstractmethod
    async def get(self, key: str) -> Optional[EmbeddingResult]:
        """Return a live entry or ``None``."""

    @abstractmethod
    async def set(self, key: str, result: EmbeddingResult) -> None:
        """Store ``result`` for ``ttl_seconds``."""

    @abstractmethod
    async def clear(self) -> None:
        """Drop every entry."""

    def get_stats(self) -> Dict[str, float]:
        total = self.hits + self.misses
        return {
            "hits": self.hits,
            "misses": self.misses,
            "hit_rate": self.hits / total if total else 0.0,
            "ttl_seconds": self.ttl_seconds,
        }

    async def close(self) -> None:
        pass


class InMemoryResultCache(ResultCache):
    """Process-local cache; safe to share across concurrent requests."""

    def __init__(
        self,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        max_entries: int = 10000,
        metrics: Optional[MetricsCollector] = None,
        clock: Callable[[], float] = time.monotonic
    ):
        super().__init__(ttl_seconds, metrics)
        self.max_entries = max_entries
        self._clock = clock
        self._entries: Dict[str, Tuple[EmbeddingResult, float]] = {}
        self._lock = threading.Lock()

    async def get(self, key: str) -> Optional[EmbeddingResult]:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            result, expires_at = entry
            if expires_at <= now:
                del self._entries[key]
                return None
            return result

    async def set(self, key: str, result: EmbeddingResult) -> None:
        now = self._clock()
        with self._lock:
            if key not in self._entries and len(self._entries) >= self.max_entries:
                self._evict(now)
            self._entries[key] = (result, now + self.ttl_seconds)

    async def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _evict(self, now: float) -> None:
        # Caller holds the lock. Expired entries go first, then the soonest to expire.
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        if len(self._entries) >= self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][1])
            del self._entries[oldest]


class RedisResultCache(ResultCache):
    """Redis-backed cache shared between service replicas.

    Redis failures are logged and treated as a miss so embedding keeps working
    without the cache.
    """

    key_prefix = "embedding:result:"

    def __init__(
        self,
        redis_url: str,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        metrics: Optional[MetricsCollector] = None,
        redis_client: Optional[redis.Redis] = None
    ):
        super().__init__(ttl_seconds, metrics)
        self.redis_client = redis_client or redis.from_url(redis_url)

    async def get(self, key: str) -> Optional[EmbeddingResult]:
        try:
            cached_data = await self.redis_client.get(f"{self.key_prefix}{key}")
            if not cached_data:
                return None
            return EmbeddingResult.model_validate(json.loads(cached_data))
        except Exception as e:
            logger.warning("Failed to get cached embedding", error=str(e))
            return None

    async def set(self, key: str, result: EmbeddingResult) -> None:
        try:
            await self.redis_client.setex(
                f"{self.key_prefix}{key}",
                self.ttl_seconds,
                result.model_dump_json()
            )
        except Exception as e:
            logger.warning("Failed to cache embedding", error=str(e))

    async def clear(self) -> None:
        try:
            keys = await self.redis_client.keys(f"{self.key_prefix}*")
            if keys:
                await self.redis_client.delete(*keys)
            logger.info("Embedding cache cleared", keys_deleted=len(keys))
        except Exception as e:
            logger.error("Failed to clear embedding cache", error=str(e))

    async def close(self) -> None:
        try:
            await self.redis_client.aclose()
        except Exception as e:
            logger.warning("Failed to close embedding cache", error=str(e))


def create_result_cache(
    backend: str,
    ttl_seconds: int = DEFAULT_TTL_SECONDS,
    redis_url: Optional[str] = None,
    metrics: Optional[MetricsCollector] = None
) -> ResultCache:
    """Create a result cache for ``backend`` (``memory`` or ``redis``)."""
    backend = backend.lower()
    if backend == "memory":
        return InMemoryResultCache(ttl_seconds=ttl_seconds, metrics=metrics)
    if backend == "redis":
        if not redis_url:
            raise ValueError("redis_url is required for the redis cache backend")
        return RedisResultCache(redis_url, ttl_seconds=ttl_seconds, metrics=metrics)
    raise ValueError(f"Unsupported cache backend: {backend}")
