"""
Response/Error Normalizer

Turns whatever an adapter returned into exactly one of AnalysisResult or
NormalizedError.

Failure decision table (first matching row wins):

    1. local timeout                       -> timeout             504
    2. upstream status 429                 -> rate_limit          429
       upstream status 401                 -> auth_error          401
       upstream 402/403 mentioning quota   -> quota_exceeded      402/403
       upstream status >= 500              -> upstream_api_error  upstream
       any other upstream status           -> upstream_api_error  upstream
    3. transport failure, no response      -> network_error       503
    4. anything else                       -> server_error        500

Raw upstream detail is logged here and never copied into a NormalizedError,
except for row 2's catch-all where the upstream message is the normalized
message.
"""

import logging

from badgescan.config import Settings, get_settings
from badgescan.dispatcher.adapters import RawUpstreamResponse, UpstreamFailure
from badgescan.exceptions import InvalidRequest
from badgescan.normalizer.ratelimit import (
    UNKNOWN_RATE_LIMIT_SUGGESTION,
    classify_rate_limit,
    parse_retry_after,
)
from badgescan.registry.models import ProviderKind, ProviderTarget
from badgescan.schemas.analysis import (
    AnalysisResult,
    ErrorKind,
    NormalizedError,
    RateLimitType,
)

logger = logging.getLogger(__name__)

PROVIDER_NAMES: dict[ProviderKind, str] = {
    ProviderKind.OPENAI: "OpenAI",
    ProviderKind.ANTHROPIC: "Anthropic",
    ProviderKind.OPENROUTER: "OpenRouter",
}

API_KEY_ENV_VARS: dict[ProviderKind, str] = {
    ProviderKind.OPENAI: "OPENAI_API_KEY",
    ProviderKind.ANTHROPIC: "ANTHROPIC_API_KEY",
    ProviderKind.OPENROUTER: "OPENROUTER_API_KEY",
}


class UnexpectedResponseShape(ValueError):
    """Upstream reported success but the body holds no text."""


def extract_text(provider: ProviderKind, body: dict) -> str:
    """
    Pull the model output out of a provider response body.

    OpenAI/OpenRouter: choices[0].message.content
    Anthropic: first content block of type "text"

    Raises:
        UnexpectedResponseShape: The expected field is missing or not text.
    """
    try:
        if provider == ProviderKind.ANTHROPIC:
            text = next(
                block["text"]
                for block in body["content"]
                if block.get("type", "text") == "text"
            )
        else:
            text = body["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError, StopIteration) as e:
        raise UnexpectedResponseShape(f"No text in {provider.value} response") from e

    if not isinstance(text, str):
        raise UnexpectedResponseShape(f"Non-text content in {provider.value} response")
    return text


def normalize_success(
    raw: RawUpstreamResponse, target: ProviderTarget, filename: str
) -> AnalysisResult | NormalizedError:
    """
    Wrap a successful upstream reply into an AnalysisResult.

    The extracted text is passed through unmodified.
    """
    try:
        text = extract_text(raw.provider, raw.body)
    except UnexpectedResponseShape as e:
        logger.error(f"{e}: body={raw.body!r}")
        return NormalizedError(
            kind=ErrorKind.UPSTREAM_API_ERROR,
            http_status=502,
            message=f"{PROVIDER_NAMES[raw.provider]} returned a response without text.",
            suggestion="Try again later or choose a different model.",
        )

    usage = raw.body.get("usage")
    return AnalysisResult(
        extracted_text=text,
        model_used=target.upstream_model,
        filename=filename,
        usage_stats=usage if isinstance(usage, dict) else None,
        processing_time_ms=raw.latency_ms,
    )


def _rate_limit_error(failure: UpstreamFailure, settings: Settings) -> NormalizedError:
    provider = PROVIDER_NAMES[failure.provider]
    retry_after = parse_retry_after(failure.headers, settings.default_retry_after_seconds)

    pattern = classify_rate_limit(" ".join(filter(None, [failure.message, failure.error_code])))
    if pattern is None:
        limit_type = RateLimitType.UNKNOWN
        suggestion = UNKNOWN_RATE_LIMIT_SUGGESTION
    else:
        limit_type = pattern.limit_type
        suggestion = pattern.suggestion

    if limit_type == RateLimitType.REQUESTS_PER_DAY:
        retry_after = max(
            retry_after,
            settings.daily_limit_retry_after_seconds,
            settings.default_retry_after_seconds,
        )

    return NormalizedError(
        kind=ErrorKind.RATE_LIMIT,
        http_status=429,
        message=f"Rate limit reached for the {provider} API. Retry after {retry_after} seconds.",
        suggestion=suggestion,
        retry_after_seconds=retry_after,
        rate_limit_type=limit_type,
    )


def _mentions_quota(failure: UpstreamFailure) -> bool:
    text = " ".join(filter(None, [failure.message, failure.error_code])).lower()
    return "insufficient_quota" in text or "quota" in text


def _status_error(failure: UpstreamFailure, settings: Settings) -> NormalizedError:
    status = failure.status_code
    provider = PROVIDER_NAMES[failure.provider]

    if status == 429:
        return _rate_limit_error(failure, settings)

    if status == 401:
        return NormalizedError(
            kind=ErrorKind.AUTH_ERROR,
            http_status=401,
            message=f"Authentication with the {provider} API failed.",
            suggestion=(
                f"Check that {API_KEY_ENV_VARS[failure.provider]} is set to a "
                f"valid {provider} API key."
            ),
        )

    if status in (402, 403) and _mentions_quota(failure):
        return NormalizedError(
            kind=ErrorKind.QUOTA_EXCEEDED,
            http_status=status,
            message=f"The {provider} account has run out of quota.",
            suggestion=f"Check billing and plan limits for the {provider} account.",
        )

    http_status = status if status is not None and 400 <= status <= 599 else 502

    if http_status >= 500:
        return NormalizedError(
            kind=ErrorKind.UPSTREAM_API_ERROR,
            http_status=http_status,
            message=f"The {provider} API is temporarily unavailable.",
            suggestion="Try again later.",
        )

    return NormalizedError(
        kind=ErrorKind.UPSTREAM_API_ERROR,
        http_status=http_status,
        message=failure.message or f"{provider} API error",
        suggestion=(
            "Check that the selected model exists and accepts image input, "
            "then try again."
        ),
    )


def classify_failure(
    failure: UpstreamFailure, settings: Settings | None = None
) -> NormalizedError:
    """
    Classify an UpstreamFailure via the decision table in this module.

    Args:
        failure: Captured failure from an adapter.
        settings: Settings for retry defaults (cached instance when omitted).

    Returns:
        The NormalizedError to send back.
    """
    settings = settings or get_settings()
    provider = PROVIDER_NAMES[failure.provider]

    if failure.timed_out:
        error = NormalizedError(
            kind=ErrorKind.TIMEOUT,
            http_status=504,
            message="Analysis timed out. Please try with a smaller image.",
            suggestion=(
                "Retry with a smaller or more compressed image, or choose a "
                "faster model."
            ),
        )
    elif failure.status_code is not None:
        error = _status_error(failure, settings)
    elif failure.connection_error:
        error = NormalizedError(
            kind=ErrorKind.NETWORK_ERROR,
            http_status=503,
            message=f"Could not connect to the {provider} API.",
            suggestion="Check network connectivity and try again shortly.",
        )
    else:
        error = NormalizedError(
            kind=ErrorKind.SERVER_ERROR,
            http_status=500,
            message="An unexpected error occurred while analyzing the image.",
            suggestion="Try again. If the problem persists, contact support.",
        )

    log = logger.error if error.kind == ErrorKind.SERVER_ERROR else logger.warning
    log(
        f"Classified {failure.provider.value} failure as {error.kind.value} "
        f"({error.http_status}): {failure.detail}"
    )
    return error


def normalize_outcome(
    outcome: RawUpstreamResponse | UpstreamFailure,
    target: ProviderTarget,
    filename: str,
    settings: Settings | None = None,
) -> AnalysisResult | NormalizedError:
    """Dispatch an adapter outcome to the success or failure path."""
    if isinstance(outcome, UpstreamFailure):
        return classify_failure(outcome, settings)
    return normalize_success(outcome, target, filename)


def normalize_invalid_request(exc: InvalidRequest) -> NormalizedError:
    """Convert a locally detected request problem into a NormalizedError."""
    return NormalizedError(
        kind=ErrorKind.INVALID_REQUEST,
        http_status=exc.status_code,
        message=exc.message,
        suggestion=exc.suggestion,
    )
