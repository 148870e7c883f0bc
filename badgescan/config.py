"""
Badgescan Configuration Module

This module manages application settings and environment variables using
pydantic-settings for type-safe configuration management.

Environment variables are loaded from .env file or system environment.
All sensitive values use SecretStr to prevent accidental logging.

Everything that has drifted between deployments (default model, upstream
timeout, alias table, OpenRouter attribution headers) lives here so it can
be changed without touching code.
"""

from functools import lru_cache
from typing import Literal
import logging
import sys

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_OPENAI_MODEL_PREFIXES: list[str] = [
    "gpt-4",
    "gpt-4o",
    "gpt-4o-mini",
    "gpt-4.1",
    "gpt-5",
    "o1",
    "o3",
    "o4-mini",
]

# Requested name -> cheaper / higher rate-limit sibling actually sent upstream.
DEFAULT_MODEL_ALIASES: dict[str, str] = {
    "gpt-4": "gpt-4o-mini",
    "gpt-4-vision-preview": "gpt-4o-mini",
    "gpt-4o": "gpt-4o-mini",
}


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Pydantic Settings automatically reads from:
    1. Environment variables
    2. .env file in working directory
    3. Default values defined here

    API keys use SecretStr to prevent accidental exposure in logs. Each
    key is optional on its own: a provider without a key is reported by
    /health and fails at call time as an auth error.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore unknown env vars
    )

    openai_api_key: SecretStr | None = Field(
        default=None, description="OpenAI API key for GPT vision models"
    )

    anthropic_api_key: SecretStr | None = Field(
        default=None, description="Anthropic API key for Claude vision models"
    )

    openrouter_api_key: SecretStr | None = Field(
        default=None, description="OpenRouter API key for every other model"
    )

    openai_base_url: str = Field(
        default="https://api.openai.com/v1",
        description="OpenAI-compatible chat completions base URL",
    )

    anthropic_base_url: str = Field(
        default="https://api.anthropic.com",
        description="Anthropic messages API base URL",
    )

    openrouter_base_url: str = Field(
        default="https://openrouter.ai/api/v1",
        description="OpenRouter chat completions base URL",
    )

    anthropic_version: str = Field(
        default="2023-06-01",
        description="Value sent in the anthropic-version header",
    )

    openrouter_app_url: str = Field(
        default="https://badgescan.netlify.app",
        description="HTTP-Referer header OpenRouter uses for attribution",
    )

    openrouter_app_title: str = Field(
        default="Badgescan",
        description="X-Title header OpenRouter uses for attribution",
    )

    default_model: str = Field(
        default="gpt-4o-mini",
        description="Model used when the request does not name one",
    )

    openai_model_prefixes: list[str] = Field(
        default_factory=lambda: list(DEFAULT_OPENAI_MODEL_PREFIXES),
        description="Model name prefixes served by the OpenAI adapter",
    )

    model_aliasing_enabled: bool = Field(
        default=True,
        description="Substitute aliased OpenAI models with their configured sibling",
    )

    model_aliases: dict[str, str] = Field(
        default_factory=lambda: dict(DEFAULT_MODEL_ALIASES),
        description="Requested OpenAI model name -> upstream model name (JSON)",
    )

    upstream_timeout_seconds: float = Field(
        default=9.0,
        gt=0.0,
        description="Per-call upstream timeout; must stay under the host ceiling",
    )

    host_timeout_ceiling_seconds: float = Field(
        default=10.0,
        gt=0.0,
        description="Execution limit imposed by the serverless host",
    )

    max_tokens: int = Field(
        default=1000, gt=0, description="max_tokens sent to every provider"
    )

    temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="Sampling temperature for OpenAI-compatible providers",
    )

    default_retry_after_seconds: int = Field(
        default=60,
        gt=0,
        description="Retry-After reported when a 429 carries no reset header",
    )

    daily_limit_retry_after_seconds: int = Field(
        default=3600,
        gt=0,
        description="Minimum Retry-After reported for per-day rate limits",
    )

    cors_allow_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Origins allowed to call the endpoint from a browser",
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Application log level"
    )

    host: str = Field(default="0.0.0.0", description="Server bind host")

    port: int = Field(default=8000, description="Server bind port")

    debug: bool = Field(default=False, description="Enable debug mode")

    @field_validator("openai_model_prefixes")
    @classmethod
    def validate_openai_prefixes(cls, v: list[str]) -> list[str]:
        """Reject prefixes that would swallow Claude models or match everything."""
        cleaned = [p.strip() for p in v if p.strip()]
        if not cleaned:
            raise ValueError("openai_model_prefixes must not be empty")
        for prefix in cleaned:
            if prefix.startswith("claude"):
                raise ValueError(f"OpenAI prefix '{prefix}' collides with Claude models")
        return cleaned

    @model_validator(mode="after")
    def validate_timeout_ceiling(self) -> "Settings":
        """Keep the upstream timeout below the host's execution limit."""
        if self.upstream_timeout_seconds >= self.host_timeout_ceiling_seconds:
            raise ValueError(
                f"upstream_timeout_seconds ({self.upstream_timeout_seconds}) must be "
                f"below host_timeout_ceiling_seconds ({self.host_timeout_ceiling_seconds})"
            )
        return self


@lru_cache
def get_settings() -> Settings:
    """
    Returns cached settings instance.

    Using lru_cache ensures settings are loaded once and reused,
    avoiding repeated file reads and environment parsing.

    Returns:
        Settings: The application settings singleton.
    """
    return Settings()


def configure_logging(settings: Settings) -> None:
    """
    Configure application logging based on settings.

    Sets up structured logging with timestamps and reduces noise
    from third-party HTTP libraries.

    Args:
        settings: The application settings instance.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level),
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("openai").setLevel(logging.WARNING)
    logging.getLogger("anthropic").setLevel(logging.WARNING)
