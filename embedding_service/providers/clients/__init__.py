"""HTTP clients for the supported embedding backends."""

from .base import EmbeddingClient, HttpEmbeddingClient
from .factory import CLIENT_TYPES, create_clients, create_embedding_client
