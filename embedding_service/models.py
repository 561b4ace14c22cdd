"""Domain models shared by the pipeline and the API layer."""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

# Progress value recorded when a pipeline run fails.
ERROR_PROGRESS = -1.0


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ChunkType(str, Enum):
    """Semantic role of a chunk inside a contract."""
    HEADER = "Header"
    CLAUSE = "Clause"
    TERM = "Term"
    CONDITION = "Condition"
    SIGNATURE = "Signature"
    OTHER = "Other"


class Chunk(BaseModel):
    """A bounded unit of document text produced by the parsing service."""

    model_config = ConfigDict(frozen=True)

    id: uuid.UUID = Field(..., description="Chunk identifier")
    document_id: uuid.UUID = Field(..., description="Owning document")
    content: str = Field(..., description="Chunk text")
    chunk_index: int = Field(0, description="Sequence index within the document")
    start_position: int = Field(0, description="Start offset in the source text")
    end_position: int = Field(0, description="End offset in the source text")
    type: ChunkType = Field(ChunkType.OTHER, description="Semantic type tag")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class VectorEmbedding(BaseModel):
    """One embedding vector produced for a chunk (or an ad-hoc text)."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    id: uuid.UUID = Field(default_factory=uuid.uuid4)
    chunk_id: Optional[uuid.UUID] = Field(None, description="Owning chunk; null for single texts")
    vector: List[float] = Field(..., description="Embedding values")
    model: str = Field(..., description="Model that produced the vector")
    created_at: datetime = Field(default_factory=utcnow)
    document_id: Optional[uuid.UUID] = None


class ProcessingStatus(BaseModel):
    """Latest pipeline progress for a document."""

    model_config = ConfigDict(frozen=True)

    document_id: uuid.UUID
    stage: str
    progress: float = Field(..., description="0.0-1.0, or -1.0 on error")
    message: Optional[str] = None
    last_updated: datetime = Field(default_factory=utcnow)

    @property
    def is_error(self) -> bool:
        return self.progress < 0


class EmbeddingResult(BaseModel):
    """Raw vector returned by the failover governor or the result cache.

    The vector is a tuple: cached results are shared between callers.
    """

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    vector: Tuple[float, ...]
    model: str
    provider: str
