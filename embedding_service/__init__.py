"""Contract embedding service.

Turns document chunks into vectors through a configurable set of external
embedding providers, with retry and failover, a result cache, batch
processing with progress tracking, and an HTTP API.
"""

__version__ = "0.1.0"
