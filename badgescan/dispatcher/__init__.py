"""
Dispatcher module: Provider adapters for vision model inference.

This module provides a unified interface for sending an image to one of
the upstream providers (OpenAI, Anthropic, OpenRouter). It handles
provider-specific payloads, SDK clients, and capture of upstream failures.

Key exports:
- ProviderAdapter: Shared build_payload()/invoke() interface
- OpenAIAdapter, AnthropicAdapter, OpenRouterAdapter: Provider variants
- RawUpstreamResponse / UpstreamFailure: invoke() outcomes
- ProviderClients / get_clients(): Lazy-initialized async SDK clients
- get_adapter(): Adapter for a resolved ProviderTarget
- parse_image_data(): Data-URI decoding for Anthropic
- EXTRACTION_PROMPT: Prompt shared by all providers
"""

from badgescan.dispatcher.adapters import (
    # Outcomes
    RawUpstreamResponse,
    UpstreamFailure,
    # Provider clients
    ProviderClients,
    get_clients,
    # Adapters
    ProviderAdapter,
    OpenAIAdapter,
    AnthropicAdapter,
    OpenRouterAdapter,
    get_adapter,
    # Image helpers
    parse_image_data,
)
from badgescan.dispatcher.prompts import EXTRACTION_PROMPT, RECORD_FIELDS

__all__ = [
    # Outcomes
    "RawUpstreamResponse",
    "UpstreamFailure",
    # Provider clients
    "ProviderClients",
    "get_clients",
    # Adapters
    "ProviderAdapter",
    "OpenAIAdapter",
    "AnthropicAdapter",
    "OpenRouterAdapter",
    "get_adapter",
    # Image helpers
    "parse_image_data",
    # Prompt
    "EXTRACTION_PROMPT",
    "RECORD_FIELDS",
]
