"""
Provider Adapters - Provider-specific request construction and execution.

This module handles the actual API calls to the vision providers (OpenAI,
Anthropic, OpenRouter), abstracting away provider differences behind one
ProviderAdapter interface.

Key components:
- ProviderClients: Lazy-initialized async SDK clients (retries disabled)
- ProviderAdapter: build_payload() + invoke() shared by all providers
- OpenAIAdapter / OpenRouterAdapter / AnthropicAdapter: the three variants
- RawUpstreamResponse / UpstreamFailure: what invoke() hands the normalizer
- parse_image_data(): data-URI -> (media_type, data) for Anthropic

invoke() never raises for upstream or transport problems: every SDK or
httpx exception is captured as an UpstreamFailure at this boundary. The
only exception that escapes is InvalidImageFormat, raised while building
the payload and before any network traffic.
"""

import base64
import binascii
import logging
import re
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

import anthropic
import httpx
from anthropic import AsyncAnthropic
import openai
from openai import AsyncOpenAI

from badgescan.config import Settings, get_settings
from badgescan.exceptions import InvalidImageFormat, ProviderNotConfigured
from badgescan.registry.models import ProviderKind, ProviderTarget

logger = logging.getLogger(__name__)

DEFAULT_MEDIA_TYPE = "image/jpeg"

DATA_URI_PATTERN = re.compile(
    r"^data:(?P<media_type>[\w.+-]+/[\w.+-]+);base64,(?P<data>.+)$",
    re.DOTALL,
)

_TIMEOUT_ERRORS = (
    openai.APITimeoutError,
    anthropic.APITimeoutError,
    httpx.TimeoutException,
    TimeoutError,
)

_STATUS_ERRORS = (openai.APIStatusError, anthropic.APIStatusError)

_CONNECTION_ERRORS = (
    openai.APIConnectionError,
    anthropic.APIConnectionError,
    httpx.TransportError,
    OSError,  # connection refused, name resolution
)


@dataclass
class RawUpstreamResponse:
    """
    Successful upstream reply, still in the provider's own shape.

    Attributes:
        provider: Provider that answered
        body: Response body as a plain dict (SDK model dumped)
        latency_ms: Upstream call time in milliseconds
    """

    provider: ProviderKind
    body: dict
    latency_ms: float


@dataclass
class UpstreamFailure:
    """
    Everything the normalizer needs to classify a failed upstream call.

    Exactly one of timed_out, status_code, connection_error describes the
    failure; if none is set the failure is unexpected (server_error).
    """

    provider: ProviderKind
    timed_out: bool = False
    status_code: int | None = None
    headers: dict[str, str] = field(default_factory=dict)
    message: str | None = None
    error_code: str | None = None
    connection_error: bool = False
    detail: str = ""  # operator-facing only, never returned to callers
    latency_ms: float = 0.0

    @classmethod
    def from_exception(
        cls, exc: BaseException, provider: ProviderKind, latency_ms: float = 0.0
    ) -> "UpstreamFailure":
        """
        Capture an SDK / transport exception as an UpstreamFailure.

        Timeouts are checked before connection errors because both SDKs
        derive APITimeoutError from APIConnectionError.
        """
        detail = f"{type(exc).__name__}: {exc}"

        if isinstance(exc, ProviderNotConfigured):
            return cls(
                provider=provider,
                status_code=401,
                message=str(exc),
                detail=detail,
                latency_ms=latency_ms,
            )

        if isinstance(exc, _TIMEOUT_ERRORS):
            return cls(
                provider=provider, timed_out=True, detail=detail, latency_ms=latency_ms
            )

        if isinstance(exc, _STATUS_ERRORS):
            message, error_code = _extract_error_fields(exc.body)
            response = exc.response
            return cls(
                provider=provider,
                status_code=exc.status_code,
                headers={k.lower(): v for k, v in response.headers.items()},
                message=message or response.reason_phrase or exc.message,
                error_code=error_code,
                detail=f"{detail} body={exc.body!r}",
                latency_ms=latency_ms,
            )

        if isinstance(exc, _CONNECTION_ERRORS):
            return cls(
                provider=provider,
                connection_error=True,
                detail=detail,
                latency_ms=latency_ms,
            )

        return cls(provider=provider, detail=detail, latency_ms=latency_ms)


def _extract_error_fields(body: object) -> tuple[str | None, str | None]:
    """
    Pull (message, code) out of an upstream error body.

    OpenAI hands over the inner error object, Anthropic and OpenRouter the
    whole {"error": {...}} envelope; both are accepted.
    """
    if not isinstance(body, dict):
        return (body if isinstance(body, str) and body else None), None

    inner = body.get("error")
    if isinstance(inner, dict):
        body = inner
    elif isinstance(inner, str) and "message" not in body:
        return inner, None

    message = body.get("message")
    code = body.get("code") or body.get("type")
    return (
        str(message) if message else None,
        str(code) if code is not None else None,
    )


def parse_image_data(image_data: str) -> tuple[str, str]:
    """
    Split an image string into (media_type, base64_data).

    A data URI keeps its declared media type. A bare string is accepted
    as raw base64 with the default JPEG media type, but only if it
    actually decodes.

    Raises:
        InvalidImageFormat: Neither a data URI nor decodable base64.
    """
    candidate = image_data.strip()

    match = DATA_URI_PATTERN.match(candidate)
    if match:
        return match.group("media_type"), match.group("data")

    if candidate.startswith("data:"):
        raise InvalidImageFormat("Image data URI is malformed")

    compact = "".join(candidate.split())
    if not compact:
        raise InvalidImageFormat()
    try:
        base64.b64decode(compact, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImageFormat() from e

    return DEFAULT_MEDIA_TYPE, compact


class ProviderClients:
    """
    Lazy-initialized provider SDK clients.

    Clients are created on first use so a deployment only needs keys for
    the providers it actually serves. Every client has retries disabled
    (retrying is the caller's decision) and the deployment-wide timeout.
    """

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._openai: AsyncOpenAI | None = None
        self._openrouter: AsyncOpenAI | None = None
        self._anthropic: AsyncAnthropic | None = None

    @staticmethod
    def _require_key(key, provider: ProviderKind) -> str:
        value = key.get_secret_value() if key is not None else ""
        if not value:
            raise ProviderNotConfigured(provider.value)
        return value

    @property
    def openai(self) -> AsyncOpenAI:
        """
        Get OpenAI client (lazy initialization).

        Raises:
            ProviderNotConfigured: If OPENAI_API_KEY is not configured.
        """
        if self._openai is None:
            api_key = self._require_key(self._settings.openai_api_key, ProviderKind.OPENAI)
            self._openai = AsyncOpenAI(
                api_key=api_key,
                base_url=self._settings.openai_base_url,
                timeout=self._settings.upstream_timeout_seconds,
                max_retries=0,
            )
            logger.debug("Initialized OpenAI client")
        return self._openai

    @property
    def openrouter(self) -> AsyncOpenAI:
        """
        Get OpenRouter client (OpenAI SDK pointed at OpenRouter).

        Raises:
            ProviderNotConfigured: If OPENROUTER_API_KEY is not configured.
        """
        if self._openrouter is None:
            api_key = self._require_key(
                self._settings.openrouter_api_key, ProviderKind.OPENROUTER
            )
            self._openrouter = AsyncOpenAI(
                api_key=api_key,
                base_url=self._settings.openrouter_base_url,
                timeout=self._settings.upstream_timeout_seconds,
                max_retries=0,
                default_headers={
                    "HTTP-Referer": self._settings.openrouter_app_url,
                    "X-Title": self._settings.openrouter_app_title,
                },
            )
            logger.debug("Initialized OpenRouter client")
        return self._openrouter

    @property
    def anthropic(self) -> AsyncAnthropic:
        """
        Get Anthropic client (lazy initialization).

        Raises:
            ProviderNotConfigured: If ANTHROPIC_API_KEY is not configured.
        """
        if self._anthropic is None:
            api_key = self._require_key(
                self._settings.anthropic_api_key, ProviderKind.ANTHROPIC
            )
            self._anthropic = AsyncAnthropic(
                api_key=api_key,
                base_url=self._settings.anthropic_base_url,
                timeout=self._settings.upstream_timeout_seconds,
                max_retries=0,
                default_headers={"anthropic-version": self._settings.anthropic_version},
            )
            logger.debug("Initialized Anthropic client")
        return self._anthropic


# Global client instance (singleton pattern)
_clients: ProviderClients | None = None


def get_clients() -> ProviderClients:
    """
    Get the global provider clients instance.

    Settings are read-only after startup, so one set of clients is shared
    by every request.

    Returns:
        The singleton ProviderClients instance.
    """
    global _clients
    if _clients is None:
        _clients = ProviderClients()
    return _clients


class ProviderAdapter(ABC):
    """
    One upstream provider behind a uniform invoke() call.

    Subclasses supply the request body (build_payload) and the SDK call
    (_send); timing, failure capture and logging live here.
    """

    provider: ProviderKind

    def __init__(
        self,
        target: ProviderTarget,
        clients: ProviderClients,
        settings: Settings | None = None,
    ) -> None:
        self.target = target
        self._clients = clients
        self._settings = settings or get_settings()

    @abstractmethod
    def build_payload(self, image_data: str, prompt: str) -> dict:
        """Return the provider-specific request body."""

    @abstractmethod
    async def _send(self, payload: dict) -> dict:
        """Issue the upstream call and return the response body as a dict."""

    async def invoke(
        self, image_data: str, prompt: str
    ) -> RawUpstreamResponse | UpstreamFailure:
        """
        Send one image to the provider.

        Args:
            image_data: Data URI or raw base64 image string.
            prompt: Extraction instructions.

        Returns:
            RawUpstreamResponse on success, UpstreamFailure otherwise.

        Raises:
            InvalidImageFormat: The image cannot be encoded for this provider.
        """
        payload = self.build_payload(image_data, prompt)
        start_time = time.perf_counter()

        try:
            body = await self._send(payload)
        except Exception as e:
            latency_ms = (time.perf_counter() - start_time) * 1000
            failure = UpstreamFailure.from_exception(e, self.provider, latency_ms)
            logger.warning(
                f"{self.provider.value} call failed after {latency_ms:.0f}ms: "
                f"{failure.detail}"
            )
            return failure

        latency_ms = (time.perf_counter() - start_time) * 1000
        logger.info(
            f"{self.provider.value} call completed: model={self.target.upstream_model}, "
            f"latency={latency_ms:.0f}ms"
        )
        return RawUpstreamResponse(provider=self.provider, body=body, latency_ms=latency_ms)


class OpenAIAdapter(ProviderAdapter):
    """OpenAI chat completions with an image_url content part."""

    provider = ProviderKind.OPENAI

    def build_payload(self, image_data: str, prompt: str) -> dict:
        return {
            "model": self.target.upstream_model,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {"type": "image_url", "image_url": {"url": image_data}},
                    ],
                }
            ],
            "max_tokens": self._settings.max_tokens,
            "temperature": self._settings.temperature,
        }

    def _client(self) -> AsyncOpenAI:
        return self._clients.openai

    async def _send(self, payload: dict) -> dict:
        response = await self._client().chat.completions.create(**payload)
        return response.model_dump()


class OpenRouterAdapter(OpenAIAdapter):
    """
    OpenRouter: OpenAI-compatible body, different endpoint.

    The HTTP-Referer / X-Title attribution headers are set on the client.
    """

    provider = ProviderKind.OPENROUTER

    def _client(self) -> AsyncOpenAI:
        return self._clients.openrouter


class AnthropicAdapter(ProviderAdapter):
    """Anthropic messages API with a base64 image source block."""

    provider = ProviderKind.ANTHROPIC

    def build_payload(self, image_data: str, prompt: str) -> dict:
        media_type, data = parse_image_data(image_data)
        return {
            "model": self.target.upstream_model,
            "max_tokens": self._settings.max_tokens,
            "messages": [
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": prompt},
                        {
                            "type": "image",
                            "source": {
                                "type": "base64",
                                "media_type": media_type,
                                "data": data,
                            },
                        },
                    ],
                }
            ],
        }

    async def _send(self, payload: dict) -> dict:
        response = await self._clients.anthropic.messages.create(**payload)
        return response.model_dump()


_ADAPTERS: dict[ProviderKind, type[ProviderAdapter]] = {
    ProviderKind.OPENAI: OpenAIAdapter,
    ProviderKind.ANTHROPIC: AnthropicAdapter,
    ProviderKind.OPENROUTER: OpenRouterAdapter,
}


def get_adapter(target: ProviderTarget, settings: Settings | None = None) -> ProviderAdapter:
    """
    Build the adapter for a resolved target.

    Args:
        target: Target from the Provider Selector.
        settings: Settings override (defaults to the cached instance).

    Returns:
        Adapter bound to the shared provider clients.
    """
    adapter_cls = _ADAPTERS[target.provider]
    return adapter_cls(target, get_clients(), settings)
