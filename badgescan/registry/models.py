"""
Model Registry and Provider Selector

This module maps the model name a caller picks to exactly one upstream
provider target:

- "claude*"                      -> Anthropic messages API
- OpenAI family names/prefixes   -> OpenAI chat completions (with aliasing)
- anything else                  -> OpenRouter chat completions, verbatim

Resolution is a pure function of (selected_model, settings): no network,
no mutable state. The resolved ProviderTarget is frozen so the requested
and upstream model names cannot drift after selection.

The registry also carries a small catalog of presets used by the /models
endpoint so UIs can offer sensible choices.
"""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from badgescan.config import Settings, get_settings


class ProviderKind(str, Enum):
    """Supported upstream providers."""

    OPENAI = "openai"
    ANTHROPIC = "anthropic"
    OPENROUTER = "openrouter"


class AuthHeaderScheme(str, Enum):
    """How the provider expects its credential."""

    BEARER = "bearer"  # Authorization: Bearer <key>
    API_KEY = "x-api-key"  # x-api-key: <key>


class RequestShape(str, Enum):
    """Request body family the adapter builds."""

    CHAT_COMPLETIONS = "chat_completions"
    ANTHROPIC_MESSAGES = "anthropic_messages"


class ProviderTarget(BaseModel):
    """
    Resolved upstream target for one request.

    Immutable once resolved; requested_model is what the caller asked for,
    upstream_model is what is actually sent (and reported back as modelUsed).
    """

    model_config = ConfigDict(frozen=True)

    provider: ProviderKind = Field(..., description="Upstream provider")
    endpoint: str = Field(..., description="Provider base URL")
    auth_header_scheme: AuthHeaderScheme = Field(
        ..., description="Credential header scheme"
    )
    request_shape: RequestShape = Field(..., description="Request body family")
    requested_model: str = Field(..., description="Model name chosen by the caller")
    upstream_model: str = Field(..., description="Model name sent upstream")

    @property
    def aliased(self) -> bool:
        """True when the upstream model differs from the requested one."""
        return self.requested_model != self.upstream_model


class ModelPreset(BaseModel):
    """A selectable model advertised by /models."""

    model_id: str = Field(..., description="Name the caller sends as selectedModel")
    display_name: str = Field(..., description="Human-readable model name")
    notes: str = Field(default="", description="Short guidance for UIs")


MODEL_PRESETS: list[ModelPreset] = [
    ModelPreset(
        model_id="gpt-4o-mini",
        display_name="GPT-4o mini",
        notes="Fast and cheap, highest rate limits",
    ),
    ModelPreset(
        model_id="gpt-4o",
        display_name="GPT-4o",
        notes="May be served by gpt-4o-mini when aliasing is enabled",
    ),
    ModelPreset(
        model_id="gpt-4.1-mini",
        display_name="GPT-4.1 mini",
    ),
    ModelPreset(
        model_id="claude-3-5-sonnet-latest",
        display_name="Claude 3.5 Sonnet",
        notes="Strong on dense badges and handwriting",
    ),
    ModelPreset(
        model_id="claude-3-5-haiku-latest",
        display_name="Claude 3.5 Haiku",
    ),
    ModelPreset(
        model_id="google/gemini-2.0-flash-001",
        display_name="Gemini 2.0 Flash (OpenRouter)",
    ),
    ModelPreset(
        model_id="meta-llama/llama-3.2-90b-vision-instruct",
        display_name="Llama 3.2 90B Vision (OpenRouter)",
    ),
]


def is_openai_model(model_name: str, prefixes: list[str]) -> bool:
    """Equality or prefix match against the OpenAI family identifiers."""
    return any(
        model_name == prefix or model_name.startswith(prefix) for prefix in prefixes
    )


def resolve_target(selected_model: str, settings: Settings | None = None) -> ProviderTarget:
    """
    Resolve a caller-chosen model name to its provider target.

    Claude is checked first so no OpenAI prefix can capture it; the
    OpenAI alias table only applies to OpenAI-family names.

    Args:
        selected_model: Model name from the request.
        settings: Settings to resolve against (defaults to the cached instance).

    Returns:
        The frozen ProviderTarget for this model.
    """
    settings = settings or get_settings()

    if selected_model.startswith("claude"):
        return ProviderTarget(
            provider=ProviderKind.ANTHROPIC,
            endpoint=settings.anthropic_base_url,
            auth_header_scheme=AuthHeaderScheme.API_KEY,
            request_shape=RequestShape.ANTHROPIC_MESSAGES,
            requested_model=selected_model,
            upstream_model=selected_model,
        )

    if is_openai_model(selected_model, settings.openai_model_prefixes):
        upstream = selected_model
        if settings.model_aliasing_enabled:
            upstream = settings.model_aliases.get(selected_model, selected_model)
        return ProviderTarget(
            provider=ProviderKind.OPENAI,
            endpoint=settings.openai_base_url,
            auth_header_scheme=AuthHeaderScheme.BEARER,
            request_shape=RequestShape.CHAT_COMPLETIONS,
            requested_model=selected_model,
            upstream_model=upstream,
        )

    return ProviderTarget(
        provider=ProviderKind.OPENROUTER,
        endpoint=settings.openrouter_base_url,
        auth_header_scheme=AuthHeaderScheme.BEARER,
        request_shape=RequestShape.CHAT_COMPLETIONS,
        requested_model=selected_model,
        upstream_model=selected_model,
    )


def list_model_presets() -> list[ModelPreset]:
    """
    Return the advertised model presets.

    Returns:
        Copy of the preset list
    """
    return list(MODEL_PRESETS)
