"""Embedding manager wiring providers, cache, pipeline and background jobs.

The manager is the single object the API layer talks to. It owns the
provider clients, the failover governor, the result cache, the status
tracker, the batch job queue and the optional vector store, and it is
responsible for starting and closing them.
"""

import time
import uuid
from typing import Any, Dict, List, Optional

import structlog

from libs.common.config import EmbeddingConfig
from libs.vector_store.base import VectorStore
from libs.vector_store.factory import create_vector_store
from ..cancellation import CancellationToken
from ..models import Chunk, ProcessingStatus, VectorEmbedding
from ..pipelines.batch_pipeline import EmbeddingPipeline, truncate_for_embedding
from ..pipelines.retry_handler import FailoverRetryHandler
from ..providers.clients.base import EmbeddingClient
from ..providers.clients.factory import create_clients
from ..providers.registry import ProviderRegistry
from ..providers.selector import ProviderSelector
from ..runtime.cache import InMemoryResultCache, ResultCache, create_result_cache
from ..runtime.job_queue import BatchJob, EmbeddingJobQueue
from ..runtime.metrics import MetricsCollector
from ..runtime.status_tracker import StatusTracker

logger = structlog.get_logger("embedding_service.embedding_manager")


class EmbeddingManager:
    """Manages embedding generation for chunks and single texts.

    Notes
    - Shared state (cache, status map, round-robin cursor) lives on this
      instance; build a fresh manager for isolated runs
    - Batch jobs run on the job queue; ``initialize`` must be awaited before
      ``submit_batch``
    - Vector persistence is skipped when no vector store is configured
    """

    def __init__(
        self,
        config: EmbeddingConfig,
        registry: ProviderRegistry,
        clients: Dict[str, EmbeddingClient],
        cache: Optional[ResultCache] = None,
        status_tracker: Optional[StatusTracker] = None,
        vector_store: Optional[VectorStore] = None,
        metrics_collector: Optional[MetricsCollector] = None
    ):
        """Create an embedding manager.

        Parameters
        - config: ``EmbeddingConfig`` with pipeline, cache and job settings
        - registry: validated providers and policy
        - clients: one backend client per enabled provider, keyed by name
        - cache: result cache; defaults to an in-memory cache with the configured TTL
        - status_tracker: per-document status map; a fresh one by default
        - vector_store: optional persistence target for batch jobs
        - metrics_collector: optional Prometheus collector
        """
        self.config = config
        self.registry = registry
        self.clients = clients
        self.metrics = metrics_collector
        self.cache = cache or InMemoryResultCache(
            ttl_seconds=config.ml_embedding_cache_ttl_seconds,
            metrics=metrics_collector
        )
        self.status_tracker = status_tracker or StatusTracker()
        self.vector_store = vector_store

        self.selector = ProviderSelector(registry)
        self.governor = FailoverRetryHandler(
            registry,
            clients,
            selector=self.selector,
            metrics=metrics_collector
        )

        designated = registry.designated_provider
        designated_client = clients[designated.name]
        self.pipeline = EmbeddingPipeline(
            governor=self.governor,
            cache=self.cache,
            status_tracker=self.status_tracker,
            fallback_model=designated_client.model,
            fallback_dimensions=designated_client.dimensions,
            batch_size=config.ml_embedding_batch_size,
            max_input_chars=config.max_input_chars,
            max_concurrency=registry.policy.max_concurrency,
            metrics=metrics_collector
        )

        self.job_queue = EmbeddingJobQueue(
            handler=self.process_document,
            workers=config.ml_embedding_job_workers,
            max_queue_size=config.ml_embedding_job_queue_size,
            metrics=metrics_collector
        )

    @classmethod
    def from_config(
        cls,
        config: EmbeddingConfig,
        metrics_collector: Optional[MetricsCollector] = None
    ) -> "EmbeddingManager":
        """Build every collaborator from configuration.

        Raises
        - ``ConfigurationError`` when the provider section is missing or invalid
        """
        registry = ProviderRegistry.from_settings(config.load_llm_providers())
        clients = create_clients(registry)
        cache = create_result_cache(
            config.ml_embedding_cache_backend,
            ttl_seconds=config.ml_embedding_cache_ttl_seconds,
            redis_url=config.ml_redis_url,
            metrics=metrics_collector
        )
        vector_store = create_vector_store(config.ml_vector_backend)
        return cls(
            config,
            registry,
            clients,
            cache=cache,
            vector_store=vector_store,
            metrics_collector=metrics_collector
        )

    async def initialize(self):
        """Start the background job workers."""
        await self.job_queue.start()
        designated = self.registry.designated_provider
        logger.info(
            "Embedding manager initialized successfully",
            providers=[p.name for p in self.registry.list_enabled_providers()],
            designated_provider=designated.name,
            fallback_model=self.pipeline.fallback_model,
            vector_store=type(self.vector_store).__name__ if self.vector_store else None
        )

    async def generate_embeddings(
        self,
        chunks: List[Chunk],
        cancel_token: Optional[CancellationToken] = None
    ) -> List[VectorEmbedding]:
        """Embed ``chunks`` in order; exhausted chunks get zero vectors."""
        return await self.pipeline.run(chunks, cancel_token=cancel_token)

    async def generate_embedding(
        self,
        text: str,
        cancel_token: Optional[CancellationToken] = None
    ) -> VectorEmbedding:
        """Embed one ad-hoc text.

        Unlike the batch path there is no zero-vector fallback: when every
        provider fails ``ProviderExhaustedError`` propagates.
        """
        token = cancel_token or CancellationToken()
        truncated = truncate_for_embedding(text, self.config.max_input_chars)
        start_time = time.perf_counter()

        result = await self.cache.get_or_compute(
            truncated,
            lambda: self.governor.embed(truncated, token)
        )

        logger.info(
            "Single embedding generated",
            provider=result.provider,
            model=result.model,
            dimension=len(result.vector),
            latency_ms=round((time.perf_counter() - start_time) * 1000, 2)
        )
        return VectorEmbedding(chunk_id=None, vector=list(result.vector), model=result.model)

    def get_status(self, document_id: uuid.UUID) -> ProcessingStatus:
        return self.status_tracker.get(document_id)

    def submit_batch(self, document_id: uuid.UUID, chunks: List[Chunk]) -> BatchJob:
        """Queue a background batch for ``document_id``.

        Raises
        - ``JobQueueError`` when the queue is full or not running
        """
        return self.job_queue.submit(document_id, chunks)

    def cancel_batch(self, document_id: uuid.UUID) -> bool:
        return self.job_queue.cancel(document_id)

    async def process_document(
        self,
        document_id: uuid.UUID,
        chunks: List[Chunk],
        cancel_token: CancellationToken
    ) -> int:
        """Job handler: embed a document's chunks and persist them.

        Earlier embeddings for the document are replaced. Returns the number
        of embeddings produced.
        """
        embeddings = await self.pipeline.run(chunks, document_id=document_id, cancel_token=cancel_token)

        if self.vector_store is not None:
            await self.vector_store.delete_document_embeddings(str(document_id))
            stored = await self.vector_store.batch_store_embeddings([
                self._to_record(embedding, document_id) for embedding in embeddings
            ])
            logger.info("Embeddings persisted", document_id=str(document_id), count=stored)

        return len(embeddings)

    @staticmethod
    def _to_record(embedding: VectorEmbedding, document_id: uuid.UUID) -> Dict[str, Any]:
        return {
            "id": str(embedding.id),
            "chunk_id": str(embedding.chunk_id) if embedding.chunk_id else None,
            "document_id": str(embedding.document_id or document_id),
            "vector": embedding.vector,
            "model": embedding.model,
            "created_at": embedding.created_at.isoformat(),
        }

    def describe_providers(self) -> List[Dict[str, Any]]:
        """Enabled providers with their resolved model and dimension."""
        return [
            {
                "name": provider.name,
                "type": provider.type.value,
                "priority": provider.priority,
                "model": self.clients[provider.name].model,
                "dimensions": self.clients[provider.name].dimensions,
            }
            for provider in self.registry.list_enabled_providers()
        ]

    async def health_check(self) -> bool:
        """Healthy when the job workers run and the vector store responds."""
        try:
            if not self.job_queue.running:
                return False
            if self.vector_store is not None and not await self.vector_store.health_check():
                return False
            return True

        except Exception as e:
            logger.error("Health check failed", error=str(e))
            return False

    async def cleanup(self):
        """Stop workers and close clients, cache and vector store."""
        await self.job_queue.stop()

        for client in self.clients.values():
            await client.close()
        await self.cache.close()
        if self.vector_store is not None:
            await self.vector_store.close()

        logger.info("Embedding manager cleanup completed")
