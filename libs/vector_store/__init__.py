"""Vector store adapters and utilities.

Primary components:
- ``base``: abstract ``VectorStore`` interface and common exceptions.
- ``memory``: thread-safe in-process implementation backed by numpy arrays.
- ``factory``: helper to construct a store from its backend name.

Guidance:
- Prefer constructing via ``factory.create_vector_store`` so runtime services
  remain decoupled from specific backends.
"""
