"""HTTP API for the embedding service.

``routes`` serves the ``/embeddings`` endpoints; ``tools`` exposes the same
operations as envelope-returning tools under ``/tools``.
"""
