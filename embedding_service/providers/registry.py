"""Provider registry: the validated, immutable set of embedding backends.

The registry is built once at startup from the ``LLMProviders`` section and
fails fast when the configuration cannot serve any request.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import structlog

from libs.common.config import (
    ConfigurationError,
    LLMProvidersSettings,
    ProviderType,
    SelectionStrategy,
)

logger = structlog.get_logger("embedding_service.providers.registry")


@dataclass(frozen=True)
class ProviderConfiguration:
    """One configured embedding backend.

    ``priority`` follows "lower is preferred"; ``position`` is the entry's
    index in the configuration.
    """
    type: ProviderType
    name: str
    api_key: str = ""
    endpoint: Optional[str] = None
    default_embedding_model: str = ""
    enabled: bool = True
    priority: int = 0
    dimensions: Optional[int] = None
    timeout_seconds: float = 30.0
    api_version: Optional[str] = None
    position: int = 0


@dataclass(frozen=True)
class ProvidersPolicy:
    """Global routing and retry policy."""
    default_provider: str = ""
    embedding_provider: str = ""
    selection_strategy: SelectionStrategy = SelectionStrategy.PRIORITY
    enable_fallback: bool = True
    retry_attempts: int = 3
    retry_delay: float = 1.0
    retry_backoff_multiplier: float = 1.0
    max_concurrency: int = 16


class ProviderRegistry:
    """Holds providers and policy; validates them on construction.

    Raises
    - ``ConfigurationError`` when no provider is enabled, names collide, or the
      default/embedding provider name matches no configured provider
    """

    def __init__(self, providers: Sequence[ProviderConfiguration], policy: ProvidersPolicy):
        self.policy = policy
        self._providers: Tuple[ProviderConfiguration, ...] = tuple(providers)
        self._by_name: Dict[str, ProviderConfiguration] = {}

        for provider in self._providers:
            if not provider.name:
                raise ConfigurationError("Every provider needs a non-empty Name")
            if provider.name in self._by_name:
                raise ConfigurationError(f"Duplicate provider name '{provider.name}'")
            self._by_name[provider.name] = provider

        for label, name in (
            ("DefaultProvider", policy.default_provider),
            ("EmbeddingProvider", policy.embedding_provider),
        ):
            if name and name not in self._by_name:
                raise ConfigurationError(f"{label} '{name}' does not match any configured provider")

        # sorted() is stable, so equal priorities keep configuration order
        self._enabled: Tuple[ProviderConfiguration, ...] = tuple(
            sorted((p for p in self._providers if p.enabled), key=lambda p: p.priority)
        )
        if not self._enabled:
            raise ConfigurationError("At least one enabled embedding provider is required")
        self._designated = self._resolve_designated()

        logger.info(
            "Provider registry loaded",
            providers=[p.name for p in self._enabled],
            disabled=[p.name for p in self._providers if not p.enabled],
            strategy=policy.selection_strategy.value,
            fallback=policy.enable_fallback,
            retry_attempts=policy.retry_attempts
        )

    @classmethod
    def from_settings(cls, settings: LLMProvidersSettings) -> "ProviderRegistry":
        providers = [
            ProviderConfiguration(
                type=entry.type,
                name=entry.name,
                api_key=entry.api_key,
                endpoint=entry.endpoint,
                default_embedding_model=entry.default_embedding_model,
                enabled=entry.is_enabled,
                priority=entry.priority,
                dimensions=entry.dimensions,
                timeout_seconds=entry.timeout_seconds,
                api_version=entry.api_version,
                position=index,
            )
            for index, entry in enumerate(settings.providers)
        ]
        policy = ProvidersPolicy(
            default_provider=settings.default_provider,
            embedding_provider=settings.embedding_provider,
            selection_strategy=settings.selection_strategy,
            enable_fallback=settings.enable_fallback,
            retry_attempts=settings.retry_attempts,
            retry_delay=settings.retry_delay,
            retry_backoff_multiplier=settings.retry_backoff_multiplier,
            max_concurrency=settings.max_concurrency,
        )
        return cls(providers, policy)

    def list_enabled_providers(self) -> List[ProviderConfiguration]:
        """Enabled providers by ascending priority."""
        return list(self._enabled)

    def list_providers(self) -> List[ProviderConfiguration]:
        return list(self._providers)

    def get(self, name: str) -> ProviderConfiguration:
        try:
            return self._by_name[name]
        except KeyError:
            raise KeyError(f"Provider '{name}' is not configured")

    @property
    def designated_provider(self) -> ProviderConfiguration:
        """Embedding override, then default provider, then first enabled."""
        return self._designated

    def _resolve_designated(self) -> ProviderConfiguration:
        for name in (self.policy.embedding_provider, self.policy.default_provider):
            if not name:
                continue
            provider = self._by_name[name]
            if provider.enabled:
                return provider
            logger.warning(
                "Designated provider is disabled, using first enabled provider",
                provider=name,
                fallback=self._enabled[0].name
            )
        return self._enabled[0]
