"""
Rate-limit helpers: Retry-After extraction and 429 sub-classification.

Sub-classification is best-effort. It scans the upstream error text for
known phrases in a fixed priority order; provider wording is not a stable
contract, so anything unmatched is reported as UNKNOWN rather than guessed.
"""

import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime

from badgescan.schemas.analysis import RateLimitType


@dataclass(frozen=True)
class RateLimitPattern:
    """One row of the sub-classification table."""

    needle: str
    limit_type: RateLimitType
    suggestion: str


# Evaluated top to bottom; first match wins.
RATE_LIMIT_PATTERNS: tuple[RateLimitPattern, ...] = (
    RateLimitPattern(
        needle="requests per minute",
        limit_type=RateLimitType.REQUESTS_PER_MINUTE,
        suggestion=(
            "Too many requests this minute. Wait for the retry period, or "
            "switch to a model with higher rate limits such as gpt-4o-mini."
        ),
    ),
    RateLimitPattern(
        needle="tokens per minute",
        limit_type=RateLimitType.TOKENS_PER_MINUTE,
        suggestion=(
            "Too many tokens this minute. Wait for the retry period or send "
            "a smaller image."
        ),
    ),
    RateLimitPattern(
        needle="requests per day",
        limit_type=RateLimitType.REQUESTS_PER_DAY,
        suggestion=(
            "The daily request limit has been reached. Wait at least an hour "
            "or switch to a different model."
        ),
    ),
    RateLimitPattern(
        needle="quota",
        limit_type=RateLimitType.QUOTA,
        suggestion=(
            "The provider usage quota has been reached. Check the account's "
            "plan and billing before retrying."
        ),
    ),
)

UNKNOWN_RATE_LIMIT_SUGGESTION = (
    "The provider is rate limiting requests. Wait for the retry period "
    "before trying again."
)

# OpenAI reset durations look like "1s", "6m0s", "20ms", "1h2m3.5s".
_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0}

_RESET_HEADERS: tuple[str, ...] = (
    "x-ratelimit-reset-requests",
    "x-ratelimit-reset-tokens",
    "anthropic-ratelimit-requests-reset",
    "anthropic-ratelimit-tokens-reset",
    "anthropic-ratelimit-input-tokens-reset",
    "anthropic-ratelimit-output-tokens-reset",
    "x-ratelimit-reset",
)


def classify_rate_limit(text: str | None) -> RateLimitPattern | None:
    """
    Find the first pattern whose phrase appears in the upstream text.

    Args:
        text: Upstream error message (and code), any case.

    Returns:
        Matching RateLimitPattern, or None when nothing matches.
    """
    if not text:
        return None
    lowered = text.lower()
    for pattern in RATE_LIMIT_PATTERNS:
        if pattern.needle in lowered:
            return pattern
    return None


def _parse_duration(value: str) -> float | None:
    parts = _DURATION_PART.findall(value)
    if not parts or "".join(n + u for n, u in parts) != value:
        return None
    return sum(float(n) * _DURATION_UNITS[u] for n, u in parts)


def _parse_number(value: str) -> float | None:
    try:
        number = float(value)
    except ValueError:
        return None
    # "inf", "nan" and overflowing exponents are not usable waits
    return number if math.isfinite(number) else None


def _parse_timestamp(value: str, now: datetime) -> float | None:
    """HTTP-date or RFC 3339 timestamp -> seconds from now."""
    moment: datetime | None = None
    try:
        moment = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        try:
            moment = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return (moment - now).total_seconds()


def _reset_to_seconds(header: str, value: str, now: datetime) -> float | None:
    number = _parse_number(value)
    if number is not None:
        if header == "x-ratelimit-reset":
            # OpenRouter sends an epoch timestamp in milliseconds
            if number > 1e12:
                return number / 1000 - now.timestamp()
            if number > 1e9:
                return number - now.timestamp()
        return number
    duration = _parse_duration(value)
    if duration is not None:
        return duration
    return _parse_timestamp(value, now)


def parse_retry_after(
    headers: dict[str, str],
    default_seconds: int,
    now: datetime | None = None,
) -> int:
    """
    Work out how long the caller should wait, in whole seconds.

    Retry-After (seconds or HTTP-date) wins, then retry-after-ms, then the
    provider reset headers in a fixed order. Values that are missing,
    unparseable or not in the future fall through to the next source and
    finally to default_seconds.

    Args:
        headers: Upstream response headers, lower-cased names.
        default_seconds: Fallback when no header yields a usable value.
        now: Current time (tests pin this).

    Returns:
        Seconds to wait, at least 1.
    """
    now = now or datetime.now(timezone.utc)

    raw = headers.get("retry-after", "").strip()
    if raw:
        seconds = _parse_number(raw)
        if seconds is None:
            seconds = _parse_timestamp(raw, now)
        if seconds is not None and seconds > 0:
            return max(1, math.ceil(seconds))

    raw = headers.get("retry-after-ms", "").strip()
    if raw:
        millis = _parse_number(raw)
        if millis is not None and millis > 0:
            return max(1, math.ceil(millis / 1000))

    for header in _RESET_HEADERS:
        raw = headers.get(header, "").strip()
        if not raw:
            continue
        seconds = _reset_to_seconds(header, raw, now)
        if seconds is not None and seconds > 0:
            return max(1, math.ceil(seconds))

    return default_seconds
