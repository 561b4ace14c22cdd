"""Batch embedding pipeline for document chunks."""

import asyncio
import time
import uuid
from typing import List, Optional

import numpy as np
import structlog

from libs.common.logging import log_performance
from ..cancellation import CancellationToken
from ..exceptions import OperationCancelledError, ProviderExhaustedError
from ..models import ERROR_PROGRESS, Chunk, VectorEmbedding
from ..runtime.cache import ResultCache
from ..runtime.metrics import MetricsCollector
from ..runtime.status_tracker import StatusTracker
from .retry_handler import FailoverRetryHandler

logger = structlog.get_logger("batch_pipeline")

DEFAULT_BATCH_SIZE = 100
DEFAULT_MAX_INPUT_CHARS = 6000 * 4

STAGE_GENERATING = "Generating embeddings"
STAGE_COMPLETE = "Embedding generation complete"
STAGE_CANCELLED = "Embedding generation cancelled"
ERROR_MESSAGE = "Error occurred during processing"


def truncate_for_embedding(text: str, max_chars: int = DEFAULT_MAX_INPUT_CHARS) -> str:
    """Cut ``text`` to at most ``max_chars`` characters on a whitespace boundary.

    Falls back to a hard cut when there is no whitespace in range.
    """
    if len(text) <= max_chars:
        return text

    # text[max_chars] exists here, so a boundary exactly at the limit counts
    for boundary in range(max_chars, 0, -1):
        if text[boundary].isspace():
            return text[:boundary]
    return text[:max_chars]


class EmbeddingPipeline:
    """Turns chunks into embeddings, one batch at a time.

    Each chunk goes through the result cache and, on a miss, the failover
    governor. A chunk whose providers are all exhausted gets a zero vector
    tagged with the designated model so the batch still completes; any other
    error fails the whole run and is recorded as the document's status.
    """

    def __init__(
        self,
        governor: FailoverRetryHandler,
        cache: ResultCache,
        status_tracker: StatusTracker,
        fallback_model: str,
        fallback_dimensions: int,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_input_chars: int = DEFAULT_MAX_INPUT_CHARS,
        max_concurrency: int = 16,
        metrics: Optional[MetricsCollector] = None
    ):
        self.governor = governor
        self.cache = cache
        self.status_tracker = status_tracker
        self.fallback_model = fallback_model
        self.fallback_dimensions = fallback_dimensions
        self.batch_size = batch_size
        self.max_input_chars = max_input_chars
        self.max_concurrency = max_concurrency
        self.metrics = metrics

    async def run(
        self,
        chunks: List[Chunk],
        document_id: Optional[uuid.UUID] = None,
        cancel_token: Optional[CancellationToken] = None
    ) -> List[VectorEmbedding]:
        """Embed ``chunks`` and return one embedding per chunk, in input order."""
        if not chunks:
            return []

        token = cancel_token or CancellationToken()
        document_id = document_id or chunks[0].document_id
        total = len(chunks)
        semaphore = asyncio.Semaphore(self.max_concurrency)
        start_time = time.perf_counter()

        logger.info(
            "Starting embedding generation",
            document_id=str(document_id),
            chunk_count=total,
            batch_size=self.batch_size
        )
        self.status_tracker.update(document_id, STAGE_GENERATING, 0.0)

        embeddings: List[VectorEmbedding] = []
        try:
            for offset in range(0, total, self.batch_size):
                batch = chunks[offset:offset + self.batch_size]
                embeddings.extend(await self._process_batch(batch, token, semaphore))

                processed = offset + len(batch)
                self.status_tracker.update(document_id, STAGE_GENERATING, processed / total)
                logger.debug(
                    "Batch processed",
                    document_id=str(document_id),
                    processed=processed,
                    total=total
                )

        except (OperationCancelledError, asyncio.CancelledError) as e:
            # a superseding run owns the status from here on
            if not token.superseded:
                last_progress = self.status_tracker.get(document_id).progress
                self.status_tracker.update(
                    document_id,
                    STAGE_CANCELLED,
                    last_progress,
                    str(e) or "Cancelled"
                )
            logger.info(
                "Embedding generation cancelled",
                document_id=str(document_id),
                completed=len(embeddings),
                total=total,
                superseded=token.superseded
            )
            raise

        except Exception as e:
            logger.error(
                "Error generating embeddings",
                document_id=str(document_id),
                error=str(e),
                exc_info=True
            )
            self.status_tracker.update(document_id, f"Error: {e}", ERROR_PROGRESS, ERROR_MESSAGE)
            raise

        self.status_tracker.update(document_id, STAGE_COMPLETE, 1.0)
        duration_ms = (time.perf_counter() - start_time) * 1000
        log_performance(
            "generate_embeddings",
            duration_ms,
            document_id=str(document_id),
            chunk_count=total
        )
        return embeddings

    async def _process_batch(
        self,
        batch: List[Chunk],
        token: CancellationToken,
        semaphore: asyncio.Semaphore
    ) -> List[VectorEmbedding]:
        tasks = [asyncio.ensure_future(self._embed_chunk(chunk, token, semaphore)) for chunk in batch]
        try:
            return list(await asyncio.gather(*tasks))
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

    async def _embed_chunk(
        self,
        chunk: Chunk,
        token: CancellationToken,
        semaphore: asyncio.Semaphore
    ) -> VectorEmbedding:
        async with semaphore:
            token.raise_if_cancelled()
            text = truncate_for_embedding(chunk.content, self.max_input_chars)
            try:
                result = await self.cache.get_or_compute(text, lambda: self.governor.embed(text, token))
            except ProviderExhaustedError as e:
                logger.warning(
                    "Failed to generate embedding for chunk, using zero vector",
                    chunk_id=str(chunk.id),
                    document_id=str(chunk.document_id),
                    error=str(e)
                )
                if self.metrics:
                    self.metrics.record_fallback_vector(self.fallback_model)
                return VectorEmbedding(
                    chunk_id=chunk.id,
                    document_id=chunk.document_id,
                    vector=np.zeros(self.fallback_dimensions, dtype=np.float32).tolist(),
                    model=self.fallback_model,
                )

        return VectorEmbedding(
            chunk_id=chunk.id,
            document_id=chunk.document_id,
            vector=list(result.vector),
            model=result.model,
        )
