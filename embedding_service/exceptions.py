"""Exceptions raised by the embedding service."""

from dataclasses import dataclass
from typing import List

from libs.common.config import ConfigurationError


class EmbeddingServiceError(Exception):
    """Base exception for embedding service errors."""
    pass


class ProviderError(EmbeddingServiceError):
    """A backend call failed."""

    def __init__(self, provider_name: str, message: str, status_code: int = None):
        super().__init__(message)
        self.provider_name = provider_name
        self.status_code = status_code


class TransientProviderError(ProviderError):
    """Timeouts, transport failures, rate limiting and 5xx responses."""
    pass


class RateLimitedError(TransientProviderError):
    """Raised when the backend answers 429."""
    pass


class NonRetryableProviderError(ProviderError):
    """Bad request, unsupported model, or malformed response."""
    pass


class AuthenticationError(NonRetryableProviderError):
    """Raised when the backend rejects the credential."""
    pass


@dataclass(frozen=True)
class CandidateFailure:
    """Why one candidate provider was abandoned."""
    provider: str
    classification: str
    attempts: int
    reason: str


class ProviderExhaustedError(EmbeddingServiceError):
    """Every candidate provider failed for one embedding request."""

    def __init__(self, failures: List[CandidateFailure]):
        self.failures = list(failures)
        if self.failures:
            detail = " | ".join(
                f"{f.provider}: {f.classification} after {f.attempts} attempt(s): {f.reason}"
                for f in self.failures
            )
        else:
            detail = "no candidate providers"
        super().__init__(f"All providers failed: {detail}")


class OperationCancelledError(EmbeddingServiceError):
    """The caller cancelled an in-flight operation."""
    pass


class JobQueueError(EmbeddingServiceError):
    """A batch job could not be enqueued."""
    pass


__all__ = [
    "AuthenticationError",
    "CandidateFailure",
    "ConfigurationError",
    "EmbeddingServiceError",
    "JobQueueError",
    "NonRetryableProviderError",
    "OperationCancelledError",
    "ProviderError",
    "ProviderExhaustedError",
    "RateLimitedError",
    "TransientProviderError",
]
