"""Configuration management for the contract embedding service.

This module centralizes environment-driven configuration. It builds on
``pydantic_settings.BaseSettings`` so configuration can be provided via
environment variables, ``.env`` files, or defaults.

Highlights
- Strongly-typed settings with sensible defaults
- One place to discover commonly used environment variables
- Provider settings keep the PascalCase keys of the ``LLMProviders`` section
  so existing JSON configuration files can be reused as-is

Usage
- Inject the config in your service entrypoint: ``config = EmbeddingConfig()``
- Resolve the provider section: ``config.load_llm_providers()``
"""

import json
import os
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_pascal
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """Raised when startup configuration is missing or inconsistent."""


class ProviderType(str, Enum):
    """Supported embedding backend kinds."""
    OPENAI = "OpenAI"
    AZURE_OPENAI = "AzureOpenAI"
    GEMINI = "Gemini"
    GITHUB_MODELS = "GitHubModels"


class SelectionStrategy(str, Enum):
    """How candidates are ordered for a request."""
    PRIORITY = "Priority"
    ROUND_ROBIN = "RoundRobin"


class ProviderSettings(BaseModel):
    """One entry of ``LLMProviders.Providers``."""

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)

    type: ProviderType
    name: str
    api_key: str = ""
    endpoint: Optional[str] = None
    default_embedding_model: str = ""
    is_enabled: bool = True
    priority: int = 0
    dimensions: Optional[int] = None
    timeout_seconds: float = 30.0
    api_version: Optional[str] = None


class LLMProvidersSettings(BaseModel):
    """The ``LLMProviders`` configuration section."""

    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True)

    default_provider: str = ""
    embedding_provider: str = ""
    selection_strategy: SelectionStrategy = SelectionStrategy.PRIORITY
    enable_fallback: bool = True
    retry_attempts: int = Field(default=3, ge=1)
    retry_delay: float = Field(default=1.0, ge=0.0)
    retry_backoff_multiplier: float = Field(default=1.0, ge=1.0)
    max_concurrency: int = Field(default=16, ge=1)
    providers: List[ProviderSettings] = Field(default_factory=list)


class BaseConfig(BaseSettings):
    """Base configuration class for all services.

    Parameters are read from the process environment; field names match the
    environment variable names case-insensitively.

    Notes
    - Add new shared settings here so downstream services inherit them.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    ml_env: str = Field(default="local")

    # Redis
    ml_redis_url: str = Field(default="redis://localhost:6379")

    # Logging
    ml_log_level: str = Field(default="INFO")
    ml_log_format: str = Field(default="json")

    # Vector store
    ml_vector_backend: str = Field(default="memory")


class EmbeddingConfig(BaseConfig):
    """Configuration for the embedding service.

    Covers the batch pipeline knobs, the result cache, the background job
    pool, and where to find the ``LLMProviders`` section.
    """

    ml_embedding_port: int = Field(default=9006)

    # Pipeline
    ml_embedding_batch_size: int = Field(default=100, ge=1)
    ml_embedding_max_input_tokens: int = Field(default=6000, ge=1)
    ml_embedding_chars_per_token: int = Field(default=4, ge=1)

    # Result cache
    ml_embedding_cache_backend: str = Field(default="memory")
    ml_embedding_cache_ttl_seconds: int = Field(default=24 * 3600, ge=1)

    # Background batch jobs
    ml_embedding_job_workers: int = Field(default=2, ge=1)
    ml_embedding_job_queue_size: int = Field(default=100, ge=1)

    # Providers: inline JSON or a JSON file holding an ``LLMProviders`` section
    ml_llm_providers: Optional[Dict[str, Any]] = Field(default=None)
    ml_llm_providers_file: Optional[str] = Field(default=None)

    @property
    def max_input_chars(self) -> int:
        """Character budget applied before a text is embedded."""
        return self.ml_embedding_max_input_tokens * self.ml_embedding_chars_per_token

    def load_llm_providers(self) -> LLMProvidersSettings:
        """Parse the provider section.

        Inline ``ML_LLM_PROVIDERS`` wins over ``ML_LLM_PROVIDERS_FILE``. Both
        accept either the bare section or a document wrapping it under an
        ``LLMProviders`` key.

        Raises
        - ``ConfigurationError`` when no section is configured or it is invalid
        """
        raw = self.ml_llm_providers
        if raw is None and self.ml_llm_providers_file:
            raw = load_json_file(self.ml_llm_providers_file)
        if raw is None:
            raise ConfigurationError(
                "No LLM providers configured; set ML_LLM_PROVIDERS or ML_LLM_PROVIDERS_FILE"
            )
        return parse_llm_providers(raw)


def parse_llm_providers(raw: Dict[str, Any]) -> LLMProvidersSettings:
    """Validate a raw ``LLMProviders`` mapping into typed settings."""
    section = raw.get("LLMProviders", raw)
    try:
        return LLMProvidersSettings.model_validate(section)
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid LLMProviders configuration: {exc}") from exc


def load_json_file(path: str) -> Dict[str, Any]:
    """Load a JSON configuration document.

    Parameters
    - path: Path to a JSON file (``appsettings.json`` style)

    Returns
    - Parsed mapping
    """
    if not os.path.exists(path):
        raise ConfigurationError(f"Provider configuration file not found: {path}")
    with open(path, "r") as f:
        try:
            return json.load(f)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Provider configuration file is not valid JSON: {exc}") from exc
