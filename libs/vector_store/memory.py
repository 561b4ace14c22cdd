"""In-process vector store.

Keeps vectors as ``numpy`` arrays keyed by embedding id. Used for local
development and tests, and as the default persistence target for batch jobs
when no external vector database is wired in.
"""

import threading
from typing import Any, Dict, List, Optional

import numpy as np
import structlog

from .base import VectorDimensionError, VectorStore

logger = structlog.get_logger("vector_store.memory")


class InMemoryVectorStore(VectorStore):
    """Thread-safe dict-backed ``VectorStore``.

    Parameters
    - vector_dimension: When set, every stored vector must have this length
    """

    def __init__(self, vector_dimension: Optional[int] = None):
        self.vector_dimension = vector_dimension
        self._records: Dict[str, Dict[str, Any]] = {}
        self._lock = threading.Lock()

    async def batch_store_embeddings(self, embeddings: List[Dict[str, Any]]) -> int:
        stored = 0
        with self._lock:
            for record in embeddings:
                vector = np.asarray(record["vector"], dtype=np.float32)
                if self.vector_dimension is not None and vector.shape != (self.vector_dimension,):
                    raise VectorDimensionError(
                        f"Expected dimension {self.vector_dimension}, got {vector.shape[0]}"
                    )
                self._records[str(record["id"])] = {**record, "vector": vector}
                stored += 1

        logger.debug("Stored embeddings", count=stored, total=len(self._records))
        return stored

    async def delete_document_embeddings(self, document_id: str) -> int:
        with self._lock:
            doomed = [
                key for key, record in self._records.items()
                if str(record.get("document_id")) == str(document_id)
            ]
            for key in doomed:
                del self._records[key]

        logger.info("Deleted document embeddings", document_id=str(document_id), count=len(doomed))
        return len(doomed)

    async def get_embedding_count(self, document_id: Optional[str] = None) -> int:
        with self._lock:
            if document_id is None:
                return len(self._records)
            return sum(
                1 for record in self._records.values()
                if str(record.get("document_id")) == str(document_id)
            )

    async def get_document_vectors(self, document_id: str) -> np.ndarray:
        """Stack a document's vectors into a ``(n, dim)`` matrix, ordered by insertion."""
        with self._lock:
            vectors = [
                record["vector"] for record in self._records.values()
                if str(record.get("document_id")) == str(document_id)
            ]
        if not vectors:
            return np.empty((0, self.vector_dimension or 0), dtype=np.float32)
        return np.vstack(vectors)

    async def health_check(self) -> bool:
        return True
