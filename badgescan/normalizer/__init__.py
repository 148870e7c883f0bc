"""
Normalizer module: one response contract for three providers.

Key exports:
- normalize_outcome(): adapter outcome -> AnalysisResult | NormalizedError
- classify_failure(): the failure decision table
- extract_text(): provider body -> model output text
- parse_retry_after() / classify_rate_limit(): 429 helpers
- RATE_LIMIT_PATTERNS: prioritized rate-limit sub-classification table
"""

from badgescan.normalizer.classifier import (
    UnexpectedResponseShape,
    classify_failure,
    extract_text,
    normalize_invalid_request,
    normalize_outcome,
    normalize_success,
)
from badgescan.normalizer.ratelimit import (
    RATE_LIMIT_PATTERNS,
    RateLimitPattern,
    classify_rate_limit,
    parse_retry_after,
)

__all__ = [
    "UnexpectedResponseShape",
    "classify_failure",
    "extract_text",
    "normalize_invalid_request",
    "normalize_outcome",
    "normalize_success",
    "RATE_LIMIT_PATTERNS",
    "RateLimitPattern",
    "classify_rate_limit",
    "parse_retry_after",
]
