"""Tests for the HTTP embedding clients."""

import json

import httpx
import pytest
from libs.common.config import ConfigurationError, ProviderType
from embedding_service.exceptions import (
    AuthenticationError,
    NonRetryableProviderError,
    RateLimitedError,
    TransientProviderError,
)
from embedding_service.providers.clients.factory import create_clients, create_embedding_client
from embedding_service.providers.clients.gemini import GeminiEmbeddingClient
from embedding_service.providers.clients.openai import (
    AzureOpenAIEmbeddingClient,
    GitHubModelsEmbeddingClient,
    OpenAIEmbeddingClient,
)
from embedding_service.providers.registry import ProviderConfiguration

from tests.fakes import make_registry


def _config(provider_type=ProviderType.OPENAI, **kwargs) -> ProviderConfiguration:
    kwargs.setdefault("name", "backend")
    kwargs.setdefault("api_key", "secret")
    return ProviderConfiguration(type=provider_type, **kwargs)


def _http_client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


def _openai_body(vector):
    return {"data": [{"embedding": vector, "index": 0}], "model": "text-embedding-3-small"}


@pytest.mark.asyncio
async def test_openai_client_request_and_response():
    """Test OpenAI wire format, auth header and vector parsing."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json=_openai_body([0.5, -0.25]))

    client = OpenAIEmbeddingClient(_config(default_embedding_model="text-embedding-3-large"), _http_client(handler))
    vector = await client.embed("termination clause")

    assert vector == [0.5, -0.25]
    assert seen["url"] == "https://api.openai.com/v1/embeddings"
    assert seen["auth"] == "Bearer secret"
    assert seen["body"]["model"] == "text-embedding-3-large"
    assert seen["body"]["input"] == "termination clause"
    assert client.dimensions == 3072


@pytest.mark.asyncio
async def test_github_models_uses_its_endpoint():
    """Test GitHub Models shares the OpenAI format on its own base URL."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        return httpx.Response(200, json=_openai_body([1.0]))

    client = GitHubModelsEmbeddingClient(_config(ProviderType.GITHUB_MODELS), _http_client(handler))
    await client.embed("text")
    assert seen["url"] == "https://models.inference.ai.azure.com/embeddings"


@pytest.mark.asyncio
async def test_azure_client_uses_deployment_and_api_key():
    """Test Azure routing by deployment, api-key header and api-version."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json=_openai_body([0.1, 0.2]))

    config = _config(
        ProviderType.AZURE_OPENAI,
        endpoint="https://contoso.openai.azure.com/",
        default_embedding_model="embed-deployment",
        api_version="2024-06-01",
    )
    client = AzureOpenAIEmbeddingClient(config, _http_client(handler))
    assert await client.embed("text") == [0.1, 0.2]

    request = seen["request"]
    assert request.url.path == "/openai/deployments/embed-deployment/embeddings"
    assert request.url.params["api-version"] == "2024-06-01"
    assert request.headers["api-key"] == "secret"


def test_azure_client_requires_endpoint():
    """Test Azure without an endpoint is a configuration error."""
    with pytest.raises(ConfigurationError):
        AzureOpenAIEmbeddingClient(_config(ProviderType.AZURE_OPENAI))


@pytest.mark.asyncio
async def test_gemini_client_request_and_response():
    """Test Gemini embedContent format."""
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["request"] = request
        return httpx.Response(200, json={"embedding": {"values": [0.3, 0.4, 0.5]}})

    client = GeminiEmbeddingClient(_config(ProviderType.GEMINI), _http_client(handler))
    assert await client.embed("governing law") == [0.3, 0.4, 0.5]

    request = seen["request"]
    assert request.url.path == "/v1beta/models/text-embedding-004:embedContent"
    assert request.headers["x-goog-api-key"] == "secret"
    assert json.loads(request.content)["content"]["parts"][0]["text"] == "governing law"
    assert client.dimensions == 768


@pytest.mark.asyncio
@pytest.mark.parametrize("status,expected", [
    (429, RateLimitedError),
    (408, TransientProviderError),
    (500, TransientProviderError),
    (503, TransientProviderError),
    (400, NonRetryableProviderError),
    (404, NonRetryableProviderError),
    (422, NonRetryableProviderError),
    (401, AuthenticationError),
    (403, AuthenticationError),
])
async def test_status_code_classification(status, expected):
    """Test HTTP failures map onto transient and non-retryable errors."""
    client = OpenAIEmbeddingClient(
        _config(),
        _http_client(lambda request: httpx.Response(status, text="nope"))
    )
    with pytest.raises(expected) as exc_info:
        await client.embed("text")
    assert exc_info.value.status_code == status
    assert exc_info.value.provider_name == "backend"


@pytest.mark.asyncio
async def test_timeout_is_transient():
    """Test transport timeouts are retryable."""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    client = OpenAIEmbeddingClient(_config(), _http_client(handler))
    with pytest.raises(TransientProviderError):
        await client.embed("text")


@pytest.mark.asyncio
async def test_connection_error_is_transient():
    """Test connection failures are retryable."""
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    client = OpenAIEmbeddingClient(_config(), _http_client(handler))
    with pytest.raises(TransientProviderError):
        await client.embed("text")


@pytest.mark.asyncio
@pytest.mark.parametrize("response", [
    httpx.Response(200, text="not json"),
    httpx.Response(200, json={"data": []}),
    httpx.Response(200, json={"data": [{"embedding": ["x"]}]}),
    httpx.Response(200, json=[1, 2, 3]),
])
async def test_malformed_response_is_non_retryable(response):
    """Test malformed bodies are not retried."""
    client = OpenAIEmbeddingClient(_config(), _http_client(lambda request: response))
    with pytest.raises(NonRetryableProviderError):
        await client.embed("text")


def test_client_factory_maps_types():
    """Test each provider type gets its client class."""
    assert isinstance(create_embedding_client(_config(ProviderType.OPENAI)), OpenAIEmbeddingClient)
    assert isinstance(create_embedding_client(_config(ProviderType.GEMINI)), GeminiEmbeddingClient)
    assert isinstance(
        create_embedding_client(_config(ProviderType.GITHUB_MODELS)),
        GitHubModelsEmbeddingClient
    )
    assert isinstance(
        create_embedding_client(_config(ProviderType.AZURE_OPENAI, endpoint="https://x")),
        AzureOpenAIEmbeddingClient
    )


def test_create_clients_for_enabled_providers():
    """Test clients are created only for enabled providers."""
    registry = make_registry([
        ProviderConfiguration(type=ProviderType.OPENAI, name="on", priority=1),
        ProviderConfiguration(type=ProviderType.GEMINI, name="off", enabled=False),
    ])
    clients = create_clients(registry)
    assert list(clients) == ["on"]


def test_dimension_override_and_default():
    """Test configured dimensions win over the model table."""
    assert OpenAIEmbeddingClient(_config(dimensions=256)).dimensions == 256
    assert OpenAIEmbeddingClient(_config(default_embedding_model="custom-model")).dimensions == 1536
