"""Metrics collection for the embedding service.

Provides a thin convenience wrapper around ``prometheus_client`` so the
service consistently records HTTP, provider, embedding, and cache metrics.

Design notes
- Metrics and labels are predeclared to avoid cardinality explosions
- A single registry is kept per collector (inject a fresh one in tests)
"""

from typing import Dict, Optional
from prometheus_client import Counter, Histogram, Gauge, CollectorRegistry, generate_latest
import structlog

logger = structlog.get_logger("metrics")


class MetricsCollector:
    """Centralized metrics collection.

    Parameters
    - service_name: Logical name used for scoping
    - registry: Optional custom ``CollectorRegistry`` (e.g. for testing)
    """

    def __init__(self, service_name: str, registry: Optional[CollectorRegistry] = None):
        self.service_name = service_name
        self.registry = registry or CollectorRegistry()

        self.request_count = Counter(
            'http_requests_total',
            'Total HTTP requests',
            ['method', 'endpoint', 'status'],
            registry=self.registry
        )

        self.request_duration = Histogram(
            'http_request_duration_seconds',
            'HTTP request duration',
            ['method', 'endpoint'],
            registry=self.registry
        )

        self.embedding_requests = Counter(
            'ml_embedding_requests_total',
            'Embedding requests resolved by a provider',
            ['provider', 'model_name'],
            registry=self.registry
        )

        self.embedding_duration = Histogram(
            'ml_embedding_duration_seconds',
            'Duration of the backend call that produced the embedding',
            ['provider', 'model_name'],
            registry=self.registry
        )

        self.provider_attempts = Counter(
            'ml_provider_attempts_total',
            'Backend calls partitioned by outcome',
            ['provider', 'outcome'],
            registry=self.registry
        )

        self.provider_failovers = Counter(
            'ml_provider_failovers_total',
            'Requests that fell through to a later candidate',
            ['from_provider'],
            registry=self.registry
        )

        self.fallback_vectors = Counter(
            'ml_embedding_fallback_vectors_total',
            'Zero vectors substituted for chunks whose providers were exhausted',
            ['model_name'],
            registry=self.registry
        )

        self.cache_hits = Counter(
            'ml_cache_hits_total',
            'Total cache hits',
            ['cache_type'],
            registry=self.registry
        )

        self.cache_misses = Counter(
            'ml_cache_misses_total',
            'Total cache misses',
            ['cache_type'],
            registry=self.registry
        )

        self.active_jobs = Gauge(
            'ml_embedding_active_jobs',
            'Batch embedding jobs currently executing',
            registry=self.registry
        )

    def record_http_request(
        self,
        method: str,
        endpoint: str,
        status: int,
        duration: float
    ) -> None:
        """Record HTTP request metrics.

        duration is expected in seconds to match Prometheus histogram units.
        """
        self.request_count.labels(method=method, endpoint=endpoint, status=status).inc()
        self.request_duration.labels(method=method, endpoint=endpoint).observe(duration)

    def record_embedding(self, provider: str, model_name: str, duration: float) -> None:
        """Record a successfully resolved embedding request."""
        self.embedding_requests.labels(provider=provider, model_name=model_name).inc()
        self.embedding_duration.labels(provider=provider, model_name=model_name).observe(duration)

    def record_provider_attempt(self, provider: str, outcome: str) -> None:
        """Record one backend call (``success``, ``transient``, ``non_retryable``, ``error``)."""
        self.provider_attempts.labels(provider=provider, outcome=outcome).inc()

    def record_failover(self, from_provider: str) -> None:
        """Record fall-through from an exhausted candidate."""
        self.provider_failovers.labels(from_provider=from_provider).inc()

    def record_fallback_vector(self, model_name: str) -> None:
        """Record a zero-vector substitution."""
        self.fallback_vectors.labels(model_name=model_name).inc()

    def record_cache_hit(self, cache_type: str) -> None:
        """Record cache hit."""
        self.cache_hits.labels(cache_type=cache_type).inc()

    def record_cache_miss(self, cache_type: str) -> None:
        """Record cache miss."""
        self.cache_misses.labels(cache_type=cache_type).inc()

    def get_metrics(self) -> str:
        """Get metrics in Prometheus exposition format for scraping."""
        return generate_latest(self.registry).decode('utf-8')


_metrics_collectors: Dict[str, MetricsCollector] = {}


def get_metrics_collector(service_name: str) -> MetricsCollector:
    """Get or create the metrics collector for a service.

    Returns a process-wide instance per service name to avoid duplicate
    collectors/labels.
    """
    if service_name not in _metrics_collectors:
        _metrics_collectors[service_name] = MetricsCollector(service_name)
    return _metrics_collectors[service_name]
