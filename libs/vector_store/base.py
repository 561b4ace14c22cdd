"""Base vector store interface.

Defines the contract the embedding service depends on to persist generated
vectors, independent of the backing implementation.

All methods are asynchronous to support high-throughput services.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class VectorStore(ABC):
    """Abstract base class for vector stores.

    Embedding records are plain dicts with the keys ``id``, ``chunk_id``,
    ``document_id``, ``vector``, ``model`` and ``created_at``. Implementations
    should make upserts idempotent on ``id``.
    """

    @abstractmethod
    async def batch_store_embeddings(self, embeddings: List[Dict[str, Any]]) -> int:
        """Store multiple embeddings in batch.

        Returns the number of embeddings successfully stored.
        """
        pass

    @abstractmethod
    async def delete_document_embeddings(self, document_id: str) -> int:
        """Delete every embedding owned by a document.

        Returns the number of embeddings removed.
        """
        pass

    @abstractmethod
    async def get_embedding_count(self, document_id: Optional[str] = None) -> int:
        """Get count of stored embeddings, optionally for one document."""
        pass

    @abstractmethod
    async def health_check(self) -> bool:
        """Check if the vector store is healthy."""
        pass

    async def close(self) -> None:
        """Release backend resources."""
        return None


class VectorStoreError(Exception):
    """Base exception for vector store operations."""
    pass


class VectorDimensionError(VectorStoreError):
    """Vector does not match the dimension the store was created with."""
    pass
