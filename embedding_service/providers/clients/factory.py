"""Factory mapping provider types to backend clients."""

from typing import Dict, Optional, Type

import httpx
import structlog

from libs.common.config import ConfigurationError, ProviderType
from ..registry import ProviderConfiguration, ProviderRegistry
from .base import EmbeddingClient, HttpEmbeddingClient
from .gemini import GeminiEmbeddingClient
from .openai import (
    AzureOpenAIEmbeddingClient,
    GitHubModelsEmbeddingClient,
    OpenAIEmbeddingClient,
)

logger = structlog.get_logger("embedding_service.providers.factory")

CLIENT_TYPES: Dict[ProviderType, Type[HttpEmbeddingClient]] = {
    ProviderType.OPENAI: OpenAIEmbeddingClient,
    ProviderType.AZURE_OPENAI: AzureOpenAIEmbeddingClient,
    ProviderType.GEMINI: GeminiEmbeddingClient,
    ProviderType.GITHUB_MODELS: GitHubModelsEmbeddingClient,
}


def create_embedding_client(
    config: ProviderConfiguration,
    http_client: Optional[httpx.AsyncClient] = None
) -> EmbeddingClient:
    """Create a backend client for one provider entry."""
    client_class = CLIENT_TYPES.get(config.type)
    if client_class is None:
        raise ConfigurationError(f"Provider type '{config.type}' has no embedding client")
    return client_class(config, http_client)


def create_clients(
    registry: ProviderRegistry,
    http_client: Optional[httpx.AsyncClient] = None
) -> Dict[str, EmbeddingClient]:
    """Create clients for every enabled provider, keyed by provider name."""
    clients = {
        provider.name: create_embedding_client(provider, http_client)
        for provider in registry.list_enabled_providers()
    }
    logger.info("Embedding clients created", providers=list(clients))
    return clients
