"""
Pydantic Schemas for the Image Analysis API

This module defines the request, result and error models for badgescan:
- AnalysisRequest: inbound image plus optional filename/model
- AnalysisResult: extracted text and call metadata (success path)
- NormalizedError: one error taxonomy for every failure (error path)
- Health check schemas

Wire names (imageBase64, selectedModel, processingTime, retryAfter, ...)
are produced by the to_body() helpers so the Python side keeps snake_case.
"""

from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


# =============================================================================
# ENUMERATIONS
# =============================================================================


class ErrorKind(str, Enum):
    """
    Machine-readable failure classification.

    Everything except INVALID_REQUEST originates upstream or in transport.
    """

    TIMEOUT = "timeout"
    RATE_LIMIT = "rate_limit"
    QUOTA_EXCEEDED = "quota_exceeded"
    AUTH_ERROR = "auth_error"
    NETWORK_ERROR = "network_error"
    UPSTREAM_API_ERROR = "upstream_api_error"
    SERVER_ERROR = "server_error"
    INVALID_REQUEST = "invalid_request"


class RateLimitType(str, Enum):
    """Sub-classification of a 429, used to tailor retry guidance."""

    REQUESTS_PER_MINUTE = "requests_per_minute"
    TOKENS_PER_MINUTE = "tokens_per_minute"
    REQUESTS_PER_DAY = "requests_per_day"
    QUOTA = "quota"
    UNKNOWN = "unknown"


# Value of the "type" field in error bodies
ERROR_TYPES: dict[ErrorKind, str] = {
    ErrorKind.TIMEOUT: "timeout_error",
    ErrorKind.RATE_LIMIT: "rate_limit_error",
    ErrorKind.QUOTA_EXCEEDED: "quota_error",
    ErrorKind.AUTH_ERROR: "auth_error",
    ErrorKind.NETWORK_ERROR: "network_error",
    ErrorKind.UPSTREAM_API_ERROR: "api_error",
    ErrorKind.SERVER_ERROR: "server_error",
}


# =============================================================================
# REQUEST MODELS
# =============================================================================


class AnalysisRequest(BaseModel):
    """
    Request body for the /analyze-image endpoint.

    Example:
        {
            "imageBase64": "data:image/png;base64,iVBORw0...",
            "filename": "badge-042.png",
            "selectedModel": "claude-3-5-sonnet-latest"
        }
    """

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    image_data: str = Field(
        ...,
        alias="imageBase64",
        min_length=1,
        description="Data URI or raw base64 image",
    )

    filename: str = Field(
        default="unknown",
        description="Display label echoed back in the result",
    )

    selected_model: str | None = Field(
        default=None,
        alias="selectedModel",
        description="Model to use; the configured default when omitted",
    )

    @field_validator("filename", mode="before")
    @classmethod
    def default_blank_filename(cls, v: object) -> object:
        """Empty or null filenames fall back to 'unknown'; scalars are echoed as text."""
        if not v or (isinstance(v, str) and not v.strip()):
            return "unknown"
        if isinstance(v, bool):
            return "true"
        if isinstance(v, (int, float)):
            return str(v)
        return v

    @field_validator("selected_model", mode="before")
    @classmethod
    def blank_model_is_unset(cls, v: object) -> object:
        """Model names are trimmed; an empty selectedModel means 'use the default'."""
        if isinstance(v, str):
            v = v.strip()
            return v or None
        return v


# =============================================================================
# RESULT MODELS
# =============================================================================


class AnalysisResult(BaseModel):
    """
    Successful analysis.

    extracted_text is the model output exactly as returned upstream;
    model_used is the upstream model actually called, so alias
    substitutions are always visible to the caller.
    """

    extracted_text: str = Field(..., description="Raw model output")
    model_used: str = Field(..., description="Upstream model that produced the text")
    filename: str = Field(..., description="Filename from the request")
    usage_stats: dict | None = Field(default=None, description="Upstream token usage")
    processing_time_ms: float | None = Field(
        default=None, ge=0.0, description="Upstream call time in milliseconds"
    )

    def to_body(self) -> dict:
        """Serialize to the outbound success body."""
        body: dict = {
            "text": self.extracted_text,
            "filename": self.filename,
            "model": self.model_used,
        }
        if self.usage_stats is not None:
            body["usage"] = self.usage_stats
        if self.processing_time_ms is not None:
            body["processingTime"] = round(self.processing_time_ms)
        return body


class NormalizedError(BaseModel):
    """
    Unified failure.

    kind lets callers branch programmatically; suggestion is actionable
    text for humans. retry_after_seconds and rate_limit_type are only set
    for rate limits.
    """

    kind: ErrorKind = Field(..., description="Machine-readable classification")
    http_status: int = Field(..., ge=400, le=599, description="HTTP status to return")
    message: str = Field(..., description="Human-readable error message")
    suggestion: str | None = Field(default=None, description="Remediation hint")
    retry_after_seconds: int | None = Field(
        default=None, ge=0, description="Seconds to wait before retrying"
    )
    rate_limit_type: RateLimitType | None = Field(
        default=None, description="Rate-limit sub-classification"
    )

    @model_validator(mode="after")
    def rate_limit_fields_only_for_rate_limits(self) -> "NormalizedError":
        if self.kind != ErrorKind.RATE_LIMIT and (
            self.retry_after_seconds is not None or self.rate_limit_type is not None
        ):
            raise ValueError("retry_after_seconds/rate_limit_type require kind=rate_limit")
        return self

    @property
    def error_type(self) -> str | None:
        """Wire "type" value; invalid requests carry none."""
        return ERROR_TYPES.get(self.kind)

    def to_body(self) -> dict:
        """Serialize to the outbound error body."""
        body: dict = {"error": self.message}
        if self.error_type is not None:
            body["type"] = self.error_type
        if self.retry_after_seconds is not None:
            body["retryAfter"] = self.retry_after_seconds
        if self.rate_limit_type is not None:
            body["rateLimitType"] = self.rate_limit_type.value
        if self.suggestion is not None:
            body["suggestion"] = self.suggestion
        return body

    def response_headers(self) -> dict[str, str]:
        """Extra response headers; Retry-After mirrors retryAfter."""
        if self.kind == ErrorKind.RATE_LIMIT and self.retry_after_seconds is not None:
            return {"Retry-After": str(self.retry_after_seconds)}
        return {}


# =============================================================================
# HEALTH MODELS
# =============================================================================


class ComponentHealth(BaseModel):
    """
    Health status of an individual component.

    Used to report which providers have credentials configured.
    """

    name: str = Field(
        ...,
        description="Component name (e.g., 'openai', 'anthropic', 'openrouter')",
    )

    status: Literal["healthy", "degraded", "unhealthy"] = Field(
        ...,
        description="Component health status",
    )

    message: str | None = Field(
        default=None,
        description="Additional status information",
    )


class HealthResponse(BaseModel):
    """
    Response from the /health endpoint.

    Example:
        {
            "status": "degraded",
            "service": "badgescan",
            "version": "0.1.0",
            "components": [
                {"name": "openai", "status": "healthy"},
                {"name": "anthropic", "status": "unhealthy",
                 "message": "API key not configured"}
            ],
            "uptime_seconds": 3600.5
        }
    """

    status: Literal["healthy", "degraded", "unhealthy"] = Field(
        ...,
        description="Overall service health status",
    )

    service: str = Field(
        default="badgescan",
        description="Service identifier",
    )

    version: str = Field(
        ...,
        description="Application version",
    )

    components: list[ComponentHealth] = Field(
        default_factory=list,
        description="Health status of individual components",
    )

    uptime_seconds: float | None = Field(
        default=None,
        ge=0.0,
        description="Time since service start in seconds",
    )
