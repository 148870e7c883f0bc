"""
Schemas module: Pydantic request/result/error models.

This module provides validated data models for the badgescan API:
- AnalysisRequest for the /analyze-image endpoint
- AnalysisResult / NormalizedError, exactly one of which every request yields
- Health check response models

Example usage:
    from badgescan.schemas import AnalysisRequest

    request = AnalysisRequest.model_validate({"imageBase64": "data:image/png;base64,..."})
"""

from badgescan.schemas.analysis import (
    # Enums
    ErrorKind,
    RateLimitType,
    ERROR_TYPES,
    # Request models
    AnalysisRequest,
    # Result models
    AnalysisResult,
    NormalizedError,
    # Health models
    ComponentHealth,
    HealthResponse,
)

__all__ = [
    # Enums
    "ErrorKind",
    "RateLimitType",
    "ERROR_TYPES",
    # Request models
    "AnalysisRequest",
    # Result models
    "AnalysisResult",
    "NormalizedError",
    # Health models
    "ComponentHealth",
    "HealthResponse",
]
