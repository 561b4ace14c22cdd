"""Tests for the embedding service.

Backends are replaced by in-process fakes (``tests.fakes``) or
``httpx.MockTransport``; no network access or external services are needed.
"""
