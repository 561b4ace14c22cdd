"""Shared libraries for the embedding service.

Subpackages:
- ``libs.common``: configuration, logging and metrics.
- ``libs.vector_store``: vector store abstraction and the in-memory backend.

Notes:
- Avoid service-specific logic; keep modules cohesive and broadly useful.
"""
