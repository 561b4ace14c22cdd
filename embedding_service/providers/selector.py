"""Candidate ordering for embedding requests."""

import threading
from typing import List

import structlog

from libs.common.config import SelectionStrategy
from .registry import ProviderConfiguration, ProviderRegistry

logger = structlog.get_logger("embedding_service.providers.selector")


class ProviderSelector:
    """Produces the ordered list of providers to try for one request.

    The round-robin cursor is shared by every caller of this instance; it
    is advanced under a lock so concurrent requests get distinct rotations.
    """

    def __init__(self, registry: ProviderRegistry):
        self.registry = registry
        self._cursor = 0
        self._lock = threading.Lock()

    def select_candidates(self) -> List[ProviderConfiguration]:
        policy = self.registry.policy
        enabled = self.registry.list_enabled_providers()

        if policy.selection_strategy == SelectionStrategy.ROUND_ROBIN:
            with self._lock:
                start = self._cursor % len(enabled)
                self._cursor += 1
            candidates = enabled[start:] + enabled[:start]
        else:
            candidates = enabled

        if not policy.enable_fallback:
            candidates = candidates[:1]

        logger.debug(
            "Selected candidates",
            strategy=policy.selection_strategy.value,
            candidates=[p.name for p in candidates]
        )
        return candidates
