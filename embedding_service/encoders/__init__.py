"""Embedding managers.

Exports the ``EmbeddingManager`` which wires provider clients, the result
cache, the batch pipeline and background jobs behind one facade.
"""

from .embedding_manager import EmbeddingManager
