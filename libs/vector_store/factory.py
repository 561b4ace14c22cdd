"""Vector store factory.

Centralizes creation of concrete ``VectorStore`` backends so callers don't
depend on implementation details. New stores can be added without changing
call sites.
"""

from enum import Enum
from typing import Optional
import structlog

from .base import VectorStore
from .memory import InMemoryVectorStore

logger = structlog.get_logger("vector_store.factory")


class VectorStoreType(Enum):
    """Supported vector store types."""
    MEMORY = "memory"
    NONE = "none"


def create_vector_store(
    backend: str,
    vector_dimension: Optional[int] = None
) -> Optional[VectorStore]:
    """Create a vector store from its backend name.

    Parameters
    - backend: ``memory`` or ``none`` (persistence disabled)
    - vector_dimension: Optional fixed dimension enforced by the store

    Returns
    - A ``VectorStore`` instance, or ``None`` when persistence is disabled
    """
    try:
        store_type = VectorStoreType(backend.strip().lower())
    except ValueError:
        raise ValueError(f"Unsupported vector store backend: {backend}")

    if store_type == VectorStoreType.NONE:
        logger.info("Vector persistence disabled")
        return None

    logger.info("Created vector store", backend=store_type.value)
    return InMemoryVectorStore(vector_dimension=vector_dimension)
