"""Backend client contract and the shared HTTP plumbing.

Every client turns one text into one vector. Failures surface as
``TransientProviderError`` (worth retrying) or ``NonRetryableProviderError``
(move on to the next provider); the failover governor never inspects
HTTP details itself.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional

import httpx
import structlog

from ...exceptions import (
    AuthenticationError,
    NonRetryableProviderError,
    RateLimitedError,
    TransientProviderError,
)
from ..registry import ProviderConfiguration

logger = structlog.get_logger("embedding_service.providers.clients")

# Output size of well-known embedding models.
KNOWN_DIMENSIONS: Dict[str, int] = {
    "text-embedding-3-small": 1536,
    "text-embedding-3-large": 3072,
    "text-embedding-ada-002": 1536,
    "text-embedding-004": 768,
    "embedding-001": 768,
    "gemini-embedding-001": 3072,
}
DEFAULT_DIMENSIONS = 1536


class EmbeddingClient(ABC):
    """One embedding backend bound to its configuration entry."""

    default_model: str = "text-embedding-3-small"

    def __init__(self, config: ProviderConfiguration):
        self.config = config

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def model(self) -> str:
        return self.config.default_embedding_model or self.default_model

    @property
    def dimensions(self) -> int:
        if self.config.dimensions:
            return self.config.dimensions
        return KNOWN_DIMENSIONS.get(self.model, DEFAULT_DIMENSIONS)

    @abstractmethod
    async def embed(self, text: str) -> List[float]:
        """Return the embedding vector for ``text``."""

    async def close(self) -> None:
        pass


class HttpEmbeddingClient(EmbeddingClient):
    """Base for JSON-over-HTTP backends using a shared ``httpx.AsyncClient``."""

    def __init__(self, config: ProviderConfiguration, http_client: Optional[httpx.AsyncClient] = None):
        super().__init__(config)
        self._owns_client = http_client is None
        self.http_client = http_client or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def close(self) -> None:
        if self._owns_client:
            await self.http_client.aclose()

    async def _post_json(
        self,
        url: str,
        payload: Dict[str, Any],
        headers: Optional[Dict[str, str]] = None,
        params: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        try:
            response = await self.http_client.post(url, json=payload, headers=headers, params=params)
        except httpx.TimeoutException as e:
            raise TransientProviderError(self.name, f"Request timed out: {e}")
        except httpx.TransportError as e:
            raise TransientProviderError(self.name, f"Transport error: {e}")

        self._raise_for_status(response)

        try:
            body = response.json()
        except ValueError:
            raise NonRetryableProviderError(self.name, "Response is not valid JSON", response.status_code)
        if not isinstance(body, dict):
            raise NonRetryableProviderError(self.name, "Unexpected response shape", response.status_code)
        return body

    def _raise_for_status(self, response: httpx.Response) -> None:
        status = response.status_code
        if status < 400:
            return

        detail = f"HTTP {status}: {response.text[:200]}"
        if status == 429:
            raise RateLimitedError(self.name, detail, status)
        if status in (401, 403):
            raise AuthenticationError(self.name, detail, status)
        if status == 408 or status >= 500:
            raise TransientProviderError(self.name, detail, status)
        raise NonRetryableProviderError(self.name, detail, status)

    def _validate_vector(self, values: Any) -> List[float]:
        if not isinstance(values, list) or not values:
            raise NonRetryableProviderError(self.name, "No embedding returned")
        try:
            return [float(v) for v in values]
        except (TypeError, ValueError):
            raise NonRetryableProviderError(self.name, "Embedding contains non-numeric values")
