"""API routes for the embedding service."""

import uuid
from typing import List

from fastapi import APIRouter, Body, Depends, HTTPException, Request
from pydantic import BaseModel, Field
import structlog

from ..encoders.embedding_manager import EmbeddingManager
from ..exceptions import JobQueueError, ProviderExhaustedError
from ..models import Chunk, ProcessingStatus, VectorEmbedding, utcnow

logger = structlog.get_logger("embedding_service.api")

router = APIRouter(prefix="/embeddings", tags=["embeddings"])


class BatchProcessResponse(BaseModel):
    """Acknowledgement for a queued batch; not a completion signal."""
    message: str = Field(..., description="Status message")
    document_id: uuid.UUID = Field(..., description="Document being processed")


class HealthResponse(BaseModel):
    service: str
    status: str
    timestamp: str


def get_embedding_manager(request: Request) -> EmbeddingManager:
    """Get embedding manager from application state."""
    return request.app.state.embedding_manager


@router.post("/generate", response_model=List[VectorEmbedding])
async def generate_embeddings(
    chunks: List[Chunk],
    embedding_manager: EmbeddingManager = Depends(get_embedding_manager)
):
    """Generate embeddings for a list of chunks, in input order."""
    if not chunks:
        raise HTTPException(status_code=400, detail="No chunks provided")

    try:
        embeddings = await embedding_manager.generate_embeddings(chunks)
        logger.info("Embeddings generated", count=len(embeddings))
        return embeddings

    except Exception as e:
        logger.error("Embedding generation failed", chunk_count=len(chunks), error=str(e))
        raise HTTPException(
            status_code=500,
            detail="Internal server error occurred while generating embeddings"
        )


@router.post("/generate-single", response_model=VectorEmbedding)
async def generate_single_embedding(
    text: str = Body(..., description="Text to embed"),
    embedding_manager: EmbeddingManager = Depends(get_embedding_manager)
):
    """Generate one embedding for an ad-hoc text."""
    if not text or not text.strip():
        raise HTTPException(status_code=400, detail="Text cannot be empty")

    try:
        return await embedding_manager.generate_embedding(text)

    except ProviderExhaustedError as e:
        logger.error("All providers failed for single embedding", error=str(e))
        raise HTTPException(status_code=503, detail=str(e))
    except Exception as e:
        logger.error("Single embedding generation failed", error=str(e))
        raise HTTPException(
            status_code=500,
            detail="Internal server error occurred while generating embedding"
        )


@router.post(
    "/batch-process/{document_id}",
    response_model=BatchProcessResponse,
    status_code=202
)
async def batch_process(
    document_id: uuid.UUID,
    chunks: List[Chunk],
    embedding_manager: EmbeddingManager = Depends(get_embedding_manager)
):
    """Queue background embedding of a document's chunks."""
    if not chunks:
        raise HTTPException(status_code=400, detail="No chunks provided")

    try:
        job = embedding_manager.submit_batch(document_id, chunks)
    except JobQueueError as e:
        logger.error("Failed to start batch processing", document_id=str(document_id), error=str(e))
        raise HTTPException(status_code=500, detail=f"Failed to start batch processing: {e}")

    logger.info(
        "Batch processing started",
        document_id=str(document_id),
        job_id=job.job_id,
        chunk_count=len(chunks)
    )
    return BatchProcessResponse(message="Batch processing started", document_id=document_id)


@router.post(
    "/batch-process/{document_id}/cancel",
    response_model=BatchProcessResponse,
    status_code=202
)
async def cancel_batch_process(
    document_id: uuid.UUID,
    embedding_manager: EmbeddingManager = Depends(get_embedding_manager)
):
    """Cancel a queued or running batch."""
    if not embedding_manager.cancel_batch(document_id):
        raise HTTPException(status_code=404, detail=f"No active batch for document {document_id}")

    return BatchProcessResponse(message="Cancellation requested", document_id=document_id)


@router.get("/status/{document_id}", response_model=ProcessingStatus)
async def get_processing_status(
    document_id: uuid.UUID,
    embedding_manager: EmbeddingManager = Depends(get_embedding_manager)
):
    """Current processing status; unseen documents report "Not started"."""
    return embedding_manager.get_status(document_id)


@router.get("/health", response_model=HealthResponse)
async def health():
    """Service health check."""
    return HealthResponse(
        service="EmbeddingService",
        status="Healthy",
        timestamp=utcnow().isoformat()
    )
