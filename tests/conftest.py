"""
Pytest configuration and shared fixtures.

Provides test settings, mock SDK clients, upstream exception builders and
a FastAPI TestClient for the badgescan test suite.

IMPORTANT: Environment variables must be set BEFORE importing badgescan
modules that use pydantic-settings, as Settings validates on first use.
"""

import os

# Set test environment variables before importing badgescan modules
os.environ["OPENAI_API_KEY"] = "test-key-not-real"
os.environ["ANTHROPIC_API_KEY"] = "test-key-not-real"
os.environ["OPENROUTER_API_KEY"] = "test-key-not-real"
os.environ["LOG_LEVEL"] = "WARNING"
os.environ["DEBUG"] = "false"

# Now safe to import everything else
import anthropic
import httpx
import openai
import pytest
from unittest.mock import AsyncMock, MagicMock
from fastapi.testclient import TestClient

from tests.fixtures import SAMPLE_TEXT


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "asyncio: mark test as async")


@pytest.fixture(autouse=True)
def reset_singletons():
    """
    Reset cached settings and SDK clients between tests.

    This ensures each test starts with a clean state.
    """
    from badgescan.config import get_settings
    from badgescan.dispatcher import adapters

    get_settings.cache_clear()
    adapters._clients = None

    yield

    get_settings.cache_clear()
    adapters._clients = None


@pytest.fixture
def make_settings():
    """
    Factory fixture for Settings that ignore any local .env file.

    Usage:
        settings = make_settings(model_aliasing_enabled=False)
    """

    def _create(**overrides):
        from badgescan.config import Settings

        return Settings(_env_file=None, **overrides)

    return _create


@pytest.fixture
def settings(make_settings):
    """Default test settings (all three providers configured)."""
    return make_settings()


@pytest.fixture
def openai_completion_body():
    """A chat.completions response body as returned by model_dump()."""
    return {
        "id": "chatcmpl-123",
        "object": "chat.completion",
        "model": "gpt-4o-mini",
        "choices": [
            {
                "index": 0,
                "message": {"role": "assistant", "content": SAMPLE_TEXT},
                "finish_reason": "stop",
            }
        ],
        "usage": {"prompt_tokens": 812, "completion_tokens": 24, "total_tokens": 836},
    }


@pytest.fixture
def anthropic_message_body():
    """A messages.create response body as returned by model_dump()."""
    return {
        "id": "msg_123",
        "type": "message",
        "role": "assistant",
        "model": "claude-3-5-sonnet-latest",
        "content": [{"type": "text", "text": SAMPLE_TEXT}],
        "stop_reason": "end_turn",
        "usage": {"input_tokens": 1500, "output_tokens": 30},
    }


def _sdk_response(body: dict) -> MagicMock:
    response = MagicMock()
    response.model_dump = MagicMock(return_value=body)
    return response


@pytest.fixture
def mock_openai_client(openai_completion_body):
    """Create a fully mocked AsyncOpenAI client."""
    mock = AsyncMock()
    mock.chat = MagicMock()
    mock.chat.completions = MagicMock()
    mock.chat.completions.create = AsyncMock(
        return_value=_sdk_response(openai_completion_body)
    )
    return mock


@pytest.fixture
def mock_anthropic_client(anthropic_message_body):
    """Create a fully mocked AsyncAnthropic client."""
    mock = AsyncMock()
    mock.messages = MagicMock()
    mock.messages.create = AsyncMock(return_value=_sdk_response(anthropic_message_body))
    return mock


@pytest.fixture
def mock_provider_clients(mock_openai_client, mock_anthropic_client, openai_completion_body):
    """
    Create a mocked ProviderClients instance.

    OpenAI and OpenRouter get separate mocks so tests can tell them apart.
    """
    openrouter = AsyncMock()
    openrouter.chat = MagicMock()
    openrouter.chat.completions = MagicMock()
    openrouter.chat.completions.create = AsyncMock(
        return_value=_sdk_response(openai_completion_body)
    )

    mock_clients = MagicMock()
    mock_clients.openai = mock_openai_client
    mock_clients.anthropic = mock_anthropic_client
    mock_clients.openrouter = openrouter
    return mock_clients


@pytest.fixture
def upstream_errors():
    """
    Builders for real SDK exceptions, as the SDKs raise them.

    Usage:
        exc = upstream_errors.status(openai, 429, {"message": "..."}, {"retry-after": "30"})
    """

    class _Builders:
        @staticmethod
        def request(url: str = "https://api.example.test/v1/chat/completions") -> httpx.Request:
            return httpx.Request("POST", url)

        def status(self, sdk, status_code: int, body: object, headers: dict | None = None):
            response = httpx.Response(
                status_code, headers=headers or {}, request=self.request()
            )
            return sdk.APIStatusError(
                f"Error code: {status_code}", response=response, body=body
            )

        def timeout(self, sdk):
            return sdk.APITimeoutError(request=self.request())

        def connection(self, sdk, message: str = "Connection error."):
            return sdk.APIConnectionError(message=message, request=self.request())

    return _Builders()


@pytest.fixture
def sdks():
    """The two SDK modules whose exception hierarchies adapters must handle."""
    return {"openai": openai, "anthropic": anthropic}


@pytest.fixture
def test_client():
    """Create a FastAPI TestClient around the real application."""
    from badgescan.main import app

    with TestClient(app) as client:
        yield client
