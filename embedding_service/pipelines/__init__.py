"""Embedding processing pipelines.

The modules in this package orchestrate end-to-end embedding workflows:
truncating chunk text to the input budget, routing each request through the
result cache and the failover governor, and reporting batch progress.

Highlights
- Batches are processed in order; chunks within a batch run concurrently
- Retry and failover live in ``retry_handler``; the pipeline only sees
  success or an exhausted-providers error
"""
