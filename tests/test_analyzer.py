"""
Analysis Pipeline Tests

Tests for request validation and the validator -> selector -> adapter ->
normalizer pipeline with mocked SDK clients.

Test Categories:
1. TestParseJsonBody - raw body decoding
2. TestValidateRequest - method, body and default handling
3. TestHandleAnalysis - full pipeline outcomes
4. TestToHttpResponse - outcome -> (status, body, headers)
"""

import json

import pytest
from unittest.mock import AsyncMock, patch

from badgescan.analyzer import (
    analyze_image,
    check_method,
    handle_analysis,
    parse_json_body,
    to_http_response,
    validate_request,
)
from badgescan.dispatcher.adapters import ProviderClients
from badgescan.exceptions import InvalidRequest
from badgescan.schemas.analysis import (
    AnalysisRequest,
    AnalysisResult,
    ErrorKind,
    NormalizedError,
    RateLimitType,
)

from tests.fixtures import OPENAI_RPM_ERROR, PNG_DATA_URI, SAMPLE_TEXT


def _body(**fields) -> str:
    return json.dumps(fields)


class TestParseJsonBody:
    """Unit tests for parse_json_body()."""

    @pytest.mark.parametrize("raw", [None, "", "   ", b""])
    def test_empty_body_is_empty_object(self, raw):
        assert parse_json_body(raw) == {}

    def test_bytes_body(self):
        assert parse_json_body(b'{"a": 1}') == {"a": 1}

    def test_malformed_json(self):
        with pytest.raises(InvalidRequest) as exc_info:
            parse_json_body("{not json")

        assert exc_info.value.status_code == 400


class TestCheckMethod:
    """Unit tests for check_method()."""

    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE", "PATCH", ""])
    def test_non_post_is_405(self, method):
        with pytest.raises(InvalidRequest) as exc_info:
            check_method(method)

        assert exc_info.value.status_code == 405
        assert exc_info.value.message == "Method Not Allowed"

    @pytest.mark.parametrize("method", ["POST", "post"])
    def test_post_accepted(self, method):
        check_method(method)


class TestValidateRequest:
    """Unit tests for validate_request()."""

    def test_image_kept(self, settings):
        request = validate_request({"imageBase64": PNG_DATA_URI}, settings)

        assert request.image_data == PNG_DATA_URI

    @pytest.mark.parametrize("payload", [{}, {"imageBase64": ""}, {"imageBase64": None}])
    def test_missing_image(self, settings, payload):
        with pytest.raises(InvalidRequest) as exc_info:
            validate_request(payload, settings)

        assert exc_info.value.status_code == 400
        assert exc_info.value.message == "No image data provided"

    def test_non_object_body(self, settings):
        with pytest.raises(InvalidRequest) as exc_info:
            validate_request(["imageBase64"], settings)

        assert exc_info.value.status_code == 400

    def test_wrong_field_type(self, settings):
        with pytest.raises(InvalidRequest) as exc_info:
            validate_request({"imageBase64": PNG_DATA_URI, "filename": ["a.png"]}, settings)

        assert "filename" in exc_info.value.message

    def test_defaults_applied(self, settings):
        request = validate_request({"imageBase64": PNG_DATA_URI}, settings)

        assert request.filename == "unknown"
        assert request.selected_model == settings.default_model

    def test_blank_values_use_defaults(self, make_settings):
        settings = make_settings(default_model="claude-3-5-haiku-latest")

        request = validate_request(
            {"imageBase64": PNG_DATA_URI, "filename": " ", "selectedModel": ""},
            settings,
        )

        assert request.filename == "unknown"
        assert request.selected_model == "claude-3-5-haiku-latest"

    def test_fields_preserved(self, settings):
        request = validate_request(
            {
                "imageBase64": PNG_DATA_URI,
                "filename": "badge-042.png",
                "selectedModel": "google/gemini-2.0-flash-001",
                "extra": "ignored",
            },
            settings,
        )

        assert request.filename == "badge-042.png"
        assert request.selected_model == "google/gemini-2.0-flash-001"

    @pytest.mark.parametrize(
        "filename,expected",
        [(123, "123"), (4.5, "4.5"), (0, "unknown"), (False, "unknown"), (None, "unknown")],
    )
    def test_scalar_filename_echoed_as_text(self, settings, filename, expected):
        request = validate_request({"imageBase64": PNG_DATA_URI, "filename": filename}, settings)

        assert request.filename == expected

    def test_selected_model_trimmed(self, settings):
        request = validate_request(
            {"imageBase64": PNG_DATA_URI, "selectedModel": "  claude-3-5-haiku-latest \n"},
            settings,
        )

        assert request.selected_model == "claude-3-5-haiku-latest"


class TestHandleAnalysis:
    """Full pipeline with mocked provider clients."""

    @pytest.mark.asyncio
    async def test_success_with_default_model(self, settings, mock_provider_clients):
        with patch("badgescan.dispatcher.adapters.get_clients") as mock_get:
            mock_get.return_value = mock_provider_clients

            outcome = await handle_analysis(
                "POST", _body(imageBase64=PNG_DATA_URI, filename="badge.png"), settings
            )

        assert isinstance(outcome, AnalysisResult)
        assert outcome.extracted_text == SAMPLE_TEXT
        assert outcome.filename == "badge.png"
        assert outcome.model_used == "gpt-4o-mini"
        mock_provider_clients.openai.chat.completions.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_alias_reported_in_model_used(self, settings, mock_provider_clients):
        with patch("badgescan.dispatcher.adapters.get_clients") as mock_get:
            mock_get.return_value = mock_provider_clients

            outcome = await handle_analysis(
                "POST", _body(imageBase64=PNG_DATA_URI, selectedModel="gpt-4o"), settings
            )

        assert outcome.model_used == "gpt-4o-mini"
        call_kwargs = mock_provider_clients.openai.chat.completions.create.call_args.kwargs
        assert call_kwargs["model"] == "gpt-4o-mini"

    @pytest.mark.asyncio
    async def test_claude_goes_to_anthropic(self, settings, mock_provider_clients):
        with patch("badgescan.dispatcher.adapters.get_clients") as mock_get:
            mock_get.return_value = mock_provider_clients

            outcome = await handle_analysis(
                "POST",
                _body(imageBase64=PNG_DATA_URI, selectedModel="claude-3-5-sonnet-latest"),
                settings,
            )

        assert outcome.model_used == "claude-3-5-sonnet-latest"
        assert outcome.usage_stats == {"input_tokens": 1500, "output_tokens": 30}
        mock_provider_clients.anthropic.messages.create.assert_awaited_once()
        mock_provider_clients.openai.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_padded_claude_name_goes_to_anthropic(self, settings, mock_provider_clients):
        with patch("badgescan.dispatcher.adapters.get_clients") as mock_get:
            mock_get.return_value = mock_provider_clients

            outcome = await handle_analysis(
                "POST",
                _body(imageBase64=PNG_DATA_URI, selectedModel=" claude-3-5-haiku-latest"),
                settings,
            )

        assert outcome.model_used == "claude-3-5-haiku-latest"
        mock_provider_clients.anthropic.messages.create.assert_awaited_once()
        mock_provider_clients.openrouter.chat.completions.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_other_model_goes_to_openrouter(self, settings, mock_provider_clients):
        with patch("badgescan.dispatcher.adapters.get_clients") as mock_get:
            mock_get.return_value = mock_provider_clients

            outcome = await handle_analysis(
                "POST",
                _body(imageBase64=PNG_DATA_URI, selectedModel="google/gemini-2.0-flash-001"),
                settings,
            )

        assert outcome.model_used == "google/gemini-2.0-flash-001"
        mock_provider_clients.openrouter.chat.completions.create.assert_awaited_once()

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "method,raw,status",
        [
            ("GET", None, 405),
            ("GET", "{broken", 405),
            ("DELETE", "not json", 405),
            ("POST", "", 400),
            ("POST", _body(filename="a.png"), 400),
            ("POST", "{broken", 400),
        ],
    )
    async def test_invalid_requests_never_reach_adapter(self, settings, method, raw, status):
        with patch("badgescan.analyzer.get_adapter") as mock_get_adapter:
            outcome = await handle_analysis(method, raw, settings)

        assert isinstance(outcome, NormalizedError)
        assert outcome.kind == ErrorKind.INVALID_REQUEST
        assert outcome.http_status == status
        mock_get_adapter.assert_not_called()

    @pytest.mark.asyncio
    async def test_bad_raw_base64_for_anthropic(self, settings, mock_provider_clients):
        with patch("badgescan.dispatcher.adapters.get_clients") as mock_get:
            mock_get.return_value = mock_provider_clients

            outcome = await handle_analysis(
                "POST",
                _body(imageBase64="not an image!", selectedModel="claude-3-5-haiku-latest"),
                settings,
            )

        assert outcome.kind == ErrorKind.INVALID_REQUEST
        assert outcome.http_status == 400
        assert outcome.suggestion
        mock_provider_clients.anthropic.messages.create.assert_not_called()

    @pytest.mark.asyncio
    async def test_rate_limit_flows_through(
        self, settings, mock_provider_clients, upstream_errors, sdks
    ):
        error = upstream_errors.status(sdks["openai"], 429, OPENAI_RPM_ERROR, {"retry-after": "30"})
        mock_provider_clients.openai.chat.completions.create = AsyncMock(side_effect=error)

        with patch("badgescan.dispatcher.adapters.get_clients") as mock_get:
            mock_get.return_value = mock_provider_clients

            outcome = await handle_analysis("POST", _body(imageBase64=PNG_DATA_URI), settings)

        assert outcome.kind == ErrorKind.RATE_LIMIT
        assert outcome.retry_after_seconds == 30
        assert outcome.rate_limit_type == RateLimitType.REQUESTS_PER_MINUTE

    @pytest.mark.asyncio
    async def test_missing_key_is_auth_error(self, make_settings):
        settings = make_settings(anthropic_api_key=None)

        with patch("badgescan.dispatcher.adapters.get_clients") as mock_get:
            mock_get.return_value = ProviderClients(settings)

            outcome = await handle_analysis(
                "POST",
                _body(imageBase64=PNG_DATA_URI, selectedModel="claude-3-5-haiku-latest"),
                settings,
            )

        assert outcome.kind == ErrorKind.AUTH_ERROR
        assert outcome.http_status == 401
        assert "ANTHROPIC_API_KEY" in outcome.suggestion

    @pytest.mark.asyncio
    async def test_unexpected_exception_is_server_error(self, settings):
        request = AnalysisRequest(imageBase64=PNG_DATA_URI, selectedModel="gpt-4o-mini")

        with patch("badgescan.analyzer.get_adapter", side_effect=RuntimeError("boom")):
            outcome = await analyze_image(request, settings)

        assert outcome.kind == ErrorKind.SERVER_ERROR
        assert outcome.http_status == 500
        assert "boom" not in outcome.message


class TestToHttpResponse:
    """Unit tests for to_http_response()."""

    def test_success(self):
        result = AnalysisResult(
            extracted_text=SAMPLE_TEXT,
            model_used="gpt-4o-mini",
            filename="a.png",
            usage_stats={"total_tokens": 10},
            processing_time_ms=812.6,
        )

        status, body, headers = to_http_response(result)

        assert status == 200
        assert body == {
            "text": SAMPLE_TEXT,
            "filename": "a.png",
            "model": "gpt-4o-mini",
            "usage": {"total_tokens": 10},
            "processingTime": 813,
        }
        assert headers == {}

    def test_rate_limit_headers(self):
        error = NormalizedError(
            kind=ErrorKind.RATE_LIMIT,
            http_status=429,
            message="Rate limited",
            retry_after_seconds=30,
            rate_limit_type=RateLimitType.UNKNOWN,
        )

        status, body, headers = to_http_response(error)

        assert status == 429
        assert body["retryAfter"] == 30
        assert headers == {"Retry-After": "30"}
