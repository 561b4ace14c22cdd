"""Google Gemini embedding backend."""

from typing import List

from ...exceptions import NonRetryableProviderError
from .base import HttpEmbeddingClient


class GeminiEmbeddingClient(HttpEmbeddingClient):
    """``POST {base}/models/{model}:embedContent``; vector at ``embedding.values``."""

    base_url = "https://generativelanguage.googleapis.com/v1beta"
    default_model = "text-embedding-004"

    async def embed(self, text: str) -> List[float]:
        base = (self.config.endpoint or self.base_url).rstrip("/")
        payload = {
            "model": f"models/{self.model}",
            "content": {"parts": [{"text": text}]},
        }
        body = await self._post_json(
            f"{base}/models/{self.model}:embedContent",
            payload,
            headers={"x-goog-api-key": self.config.api_key},
        )
        embedding = body.get("embedding")
        if not isinstance(embedding, dict):
            raise NonRetryableProviderError(self.name, "No embedding returned")
        return self._validate_vector(embedding.get("values"))
