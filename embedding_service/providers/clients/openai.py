"""OpenAI-compatible embedding backends (OpenAI, Azure OpenAI, GitHub Models)."""

from typing import Any, Dict, List, Optional

import httpx

from libs.common.config import ConfigurationError
from ...exceptions import NonRetryableProviderError
from ..registry import ProviderConfiguration
from .base import HttpEmbeddingClient


class OpenAIEmbeddingClient(HttpEmbeddingClient):
    """``POST {base}/embeddings`` with a bearer token."""

    base_url = "https://api.openai.com/v1"

    def _url(self) -> str:
        base = (self.config.endpoint or self.base_url).rstrip("/")
        return f"{base}/embeddings"

    def _headers(self) -> Dict[str, str]:
        return {"Authorization": f"Bearer {self.config.api_key}"}

    def _params(self) -> Optional[Dict[str, str]]:
        return None

    def _payload(self, text: str) -> Dict[str, Any]:
        return {"model": self.model, "input": text, "encoding_format": "float"}

    async def embed(self, text: str) -> List[float]:
        body = await self._post_json(self._url(), self._payload(text), headers=self._headers(), params=self._params())
        data = body.get("data")
        if not isinstance(data, list) or not data or not isinstance(data[0], dict):
            raise NonRetryableProviderError(self.name, "No embedding returned")
        return self._validate_vector(data[0].get("embedding"))


class GitHubModelsEmbeddingClient(OpenAIEmbeddingClient):
    """GitHub Models speaks the OpenAI wire format on its own endpoint."""

    base_url = "https://models.inference.ai.azure.com"


class AzureOpenAIEmbeddingClient(OpenAIEmbeddingClient):
    """Azure routes by deployment name and authenticates with ``api-key``."""

    default_api_version = "2024-02-01"

    def __init__(self, config: ProviderConfiguration, http_client: Optional[httpx.AsyncClient] = None):
        if not config.endpoint:
            raise ConfigurationError(f"Provider '{config.name}' (AzureOpenAI) requires an Endpoint")
        super().__init__(config, http_client)

    def _url(self) -> str:
        base = self.config.endpoint.rstrip("/")
        return f"{base}/openai/deployments/{self.model}/embeddings"

    def _headers(self) -> Dict[str, str]:
        return {"api-key": self.config.api_key}

    def _params(self) -> Optional[Dict[str, str]]:
        return {"api-version": self.config.api_version or self.default_api_version}

    def _payload(self, text: str) -> Dict[str, Any]:
        return {"input": text}
