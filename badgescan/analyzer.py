"""
Analysis pipeline shared by every transport.

    Validator -> Provider Selector -> Adapter -> Normalizer

handle_analysis() is the single entry point used by the FastAPI route and
the serverless handler. It always returns exactly one of AnalysisResult or
NormalizedError and never raises.
"""

import json
import logging

from pydantic import ValidationError

from badgescan.config import Settings, get_settings
from badgescan.dispatcher.adapters import get_adapter
from badgescan.dispatcher.prompts import EXTRACTION_PROMPT
from badgescan.exceptions import InvalidRequest
from badgescan.normalizer.classifier import normalize_invalid_request, normalize_outcome
from badgescan.registry.models import resolve_target
from badgescan.schemas.analysis import (
    AnalysisRequest,
    AnalysisResult,
    ErrorKind,
    NormalizedError,
)

logger = logging.getLogger(__name__)


def parse_json_body(raw_body: str | bytes | None) -> object:
    """
    Decode the raw request body.

    An empty body decodes to an empty object so that it is reported as a
    missing image rather than as malformed JSON.

    Raises:
        InvalidRequest: Body is not valid JSON.
    """
    if raw_body is None or not raw_body.strip():
        return {}
    try:
        return json.loads(raw_body)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise InvalidRequest("Request body must be valid JSON") from e


def check_method(method: str) -> None:
    """
    Reject anything but POST before the body is looked at.

    Raises:
        InvalidRequest: 405 for any other method.
    """
    if method.upper() != "POST":
        raise InvalidRequest("Method Not Allowed", status_code=405)


def validate_request(payload: object, settings: Settings | None = None) -> AnalysisRequest:
    """
    Request Validator.

    Args:
        payload: Decoded JSON body of a POST request.
        settings: Supplies the default model.

    Returns:
        AnalysisRequest with filename and selected_model filled in.

    Raises:
        InvalidRequest: Unusable body (400).
    """
    settings = settings or get_settings()

    if not isinstance(payload, dict):
        raise InvalidRequest("Request body must be a JSON object")

    if not payload.get("imageBase64"):
        raise InvalidRequest("No image data provided")

    try:
        request = AnalysisRequest.model_validate(payload)
    except ValidationError as e:
        first_error = e.errors()[0]
        field = ".".join(str(loc) for loc in first_error.get("loc", []))
        raise InvalidRequest(f"Invalid field '{field}': {first_error.get('msg')}") from e

    if request.selected_model is None:
        request = request.model_copy(update={"selected_model": settings.default_model})
    return request


async def analyze_image(
    request: AnalysisRequest, settings: Settings | None = None
) -> AnalysisResult | NormalizedError:
    """
    Run one validated request through selector, adapter and normalizer.

    Args:
        request: Validated request (selected_model already defaulted).
        settings: Settings override (cached instance when omitted).

    Returns:
        AnalysisResult or NormalizedError.
    """
    settings = settings or get_settings()
    logger.info(f"Processing file: {request.filename}")

    try:
        target = resolve_target(request.selected_model, settings)
        if target.aliased:
            logger.info(
                f"Model alias applied: {target.requested_model} -> {target.upstream_model}"
            )
        logger.info(
            f"Dispatching to {target.upstream_model} via {target.provider.value}"
        )

        adapter = get_adapter(target, settings)
        try:
            outcome = await adapter.invoke(request.image_data, EXTRACTION_PROMPT)
        except InvalidRequest as e:
            logger.info(f"Rejected image for {target.provider.value}: {e.message}")
            return normalize_invalid_request(e)

        return normalize_outcome(outcome, target, request.filename, settings)

    except Exception:
        logger.exception("Analysis failed unexpectedly")
        return NormalizedError(
            kind=ErrorKind.SERVER_ERROR,
            http_status=500,
            message="An unexpected error occurred while analyzing the image.",
            suggestion="Try again. If the problem persists, contact support.",
        )


async def handle_analysis(
    method: str,
    raw_body: str | bytes | None,
    settings: Settings | None = None,
) -> AnalysisResult | NormalizedError:
    """
    Full pipeline for one inbound HTTP request.

    Validation failures short-circuit before any provider is contacted.
    """
    settings = settings or get_settings()
    try:
        check_method(method)
        payload = parse_json_body(raw_body)
        request = validate_request(payload, settings)
    except InvalidRequest as e:
        logger.info(f"Invalid request ({e.status_code}): {e.message}")
        return normalize_invalid_request(e)

    return await analyze_image(request, settings)


def to_http_response(
    outcome: AnalysisResult | NormalizedError,
) -> tuple[int, dict, dict[str, str]]:
    """
    Map an outcome to (status_code, body, extra_headers).

    Returns:
        200 with the success body, or the error's status, body and headers.
    """
    if isinstance(outcome, AnalysisResult):
        return 200, outcome.to_body(), {}
    return outcome.http_status, outcome.to_body(), outcome.response_headers()
