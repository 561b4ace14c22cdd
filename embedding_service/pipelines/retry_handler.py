"""Retry and failover handling for embedding requests."""

import time
from typing import Dict, List, Optional

import structlog

from ..cancellation import CancellationToken
from ..exceptions import (
    CandidateFailure,
    NonRetryableProviderError,
    OperationCancelledError,
    ProviderExhaustedError,
    TransientProviderError,
)
from ..models import EmbeddingResult
from ..providers.clients.base import EmbeddingClient
from ..providers.registry import ProviderRegistry, ProvidersPolicy
from ..providers.selector import ProviderSelector
from ..runtime.metrics import MetricsCollector

logger = structlog.get_logger("retry_handler")


class RetryConfig:
    """Configuration for retry behavior."""

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: float = 1.0,
        max_delay: float = 60.0,
        exponential_base: float = 1.0,
    ):
        self.max_attempts = max(1, max_attempts)
        self.base_delay = base_delay
        self.max_delay = max_delay
        self.exponential_base = exponential_base

    @classmethod
    def from_policy(cls, policy: ProvidersPolicy) -> "RetryConfig":
        return cls(
            max_attempts=policy.retry_attempts,
            base_delay=policy.retry_delay,
            exponential_base=policy.retry_backoff_multiplier,
        )

    def delay_for(self, attempt: int) -> float:
        """Delay after the ``attempt``-th failure (1-based)."""
        # base_delay * (exponential_base ^ (attempt - 1)); the default base of 1.0 keeps it fixed
        delay = self.base_delay * (self.exponential_base ** (attempt - 1))
        return min(delay, self.max_delay)


class FailoverRetryHandler:
    """Embeds one text, retrying transient failures and failing over between providers.

    For each candidate from the selector, transient failures are retried up
    to ``max_attempts`` times with a delay between attempts; a non-retryable
    failure or exhausted attempts move on to the next candidate. The first
    success wins. When every candidate fails a ``ProviderExhaustedError``
    carries one ``CandidateFailure`` per candidate.
    """

    def __init__(
        self,
        registry: ProviderRegistry,
        clients: Dict[str, EmbeddingClient],
        selector: Optional[ProviderSelector] = None,
        config: Optional[RetryConfig] = None,
        metrics: Optional[MetricsCollector] = None
    ):
        self.registry = registry
        self.clients = clients
        self.selector = selector or ProviderSelector(registry)
        self.config = config or RetryConfig.from_policy(registry.policy)
        self.metrics = metrics

    async def embed(self, text: str, cancel_token: Optional[CancellationToken] = None) -> EmbeddingResult:
        token = cancel_token or CancellationToken()
        candidates = self.selector.select_candidates()
        failures: List[CandidateFailure] = []

        for index, provider in enumerate(candidates):
            client = self.clients[provider.name]
            outcome = await self._try_candidate(client, text, token)

            if isinstance(outcome, EmbeddingResult):
                if index > 0:
                    logger.info(
                        "Embedding succeeded on fallback provider",
                        provider=provider.name,
                        failed_providers=[f.provider for f in failures]
                    )
                return outcome

            failure = outcome
            failures.append(failure)
            if index < len(candidates) - 1:
                if self.metrics:
                    self.metrics.record_failover(provider.name)
                logger.warning(
                    "Provider failed, failing over",
                    provider=provider.name,
                    next_provider=candidates[index + 1].name,
                    classification=failure.classification,
                    attempts=failure.attempts,
                    error=failure.reason
                )

        logger.error(
            "All providers failed",
            providers=[f.provider for f in failures],
            attempts=sum(f.attempts for f in failures)
        )
        raise ProviderExhaustedError(failures)

    async def _try_candidate(self, client: EmbeddingClient, text: str, token: CancellationToken):
        """Return an ``EmbeddingResult`` on success, otherwise the ``CandidateFailure``."""
        failure: Optional[CandidateFailure] = None

        for attempt in range(1, self.config.max_attempts + 1):
            token.raise_if_cancelled()
            start_time = time.perf_counter()
            try:
                vector = await token.run(client.embed(text))

            except OperationCancelledError:
                raise

            except TransientProviderError as e:
                self._record_attempt(client.name, "transient")
                failure = CandidateFailure(client.name, "transient", attempt, str(e))
                if attempt == self.config.max_attempts:
                    break

                delay = self.config.delay_for(attempt)
                logger.warning(
                    "Embedding request failed, retrying",
                    provider=client.name,
                    attempt=attempt,
                    total_attempts=self.config.max_attempts,
                    delay_seconds=delay,
                    error=str(e)
                )
                await token.sleep(delay)

            except NonRetryableProviderError as e:
                self._record_attempt(client.name, "non_retryable")
                logger.warning(
                    "Embedding request rejected, not retrying",
                    provider=client.name,
                    status_code=e.status_code,
                    error=str(e)
                )
                return CandidateFailure(client.name, "non_retryable", attempt, str(e))

            except Exception as e:
                self._record_attempt(client.name, "error")
                logger.error(
                    "Unexpected error from embedding provider",
                    provider=client.name,
                    error=str(e),
                    exc_info=True
                )
                return CandidateFailure(client.name, "unexpected", attempt, str(e))

            else:
                duration = time.perf_counter() - start_time
                self._record_attempt(client.name, "success")
                if self.metrics:
                    self.metrics.record_embedding(client.name, client.model, duration)
                if attempt > 1:
                    logger.info(
                        "Embedding succeeded after retry",
                        provider=client.name,
                        attempt=attempt,
                        total_attempts=self.config.max_attempts
                    )
                return EmbeddingResult(vector=vector, model=client.model, provider=client.name)

        return failure

    def _record_attempt(self, provider: str, outcome: str) -> None:
        if self.metrics:
            self.metrics.record_provider_attempt(provider, outcome)
