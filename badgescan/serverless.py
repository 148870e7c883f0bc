"""
Serverless function entry point.

Adapts a Netlify / AWS Lambda style event
({"httpMethod", "headers", "body", "isBase64Encoded"}) to the shared
analysis pipeline and returns {"statusCode", "headers", "body"}.

The host enforces its own execution ceiling; settings validation keeps
the upstream timeout below it.
"""

import asyncio
import base64
import binascii
import json
import logging

from badgescan.analyzer import handle_analysis, to_http_response
from badgescan.config import Settings, configure_logging, get_settings

logger = logging.getLogger(__name__)

_logging_configured = False


def cors_headers(settings: Settings, request_origin: str | None = None) -> dict[str, str]:
    """
    CORS headers for a response.

    A wildcard configuration answers "*"; otherwise the request origin is
    echoed back only when it is allowed.
    """
    allowed = settings.cors_allow_origins
    if "*" in allowed:
        origin = "*"
    elif request_origin and request_origin in allowed:
        origin = request_origin
    else:
        origin = allowed[0] if allowed else ""

    headers = {
        "Access-Control-Allow-Methods": "POST, OPTIONS",
        "Access-Control-Allow-Headers": "Content-Type",
        "Access-Control-Expose-Headers": "Retry-After",
    }
    if origin:
        headers["Access-Control-Allow-Origin"] = origin
    if origin != "*":
        headers["Vary"] = "Origin"
    return headers


def _event_body(event: dict) -> str | bytes | None:
    body = event.get("body")
    if body is not None and event.get("isBase64Encoded"):
        try:
            return base64.b64decode(body)
        except (binascii.Error, ValueError):
            # Let the JSON decoder report it as a malformed body.
            return body
    return body


def _request_origin(event: dict) -> str | None:
    headers = event.get("headers") or {}
    for name, value in headers.items():
        if name.lower() == "origin":
            return value
    return None


async def async_handler(event: dict, context: object = None) -> dict:
    """
    Handle one serverless invocation.

    Args:
        event: Host event with httpMethod, headers, body.
        context: Host context (unused).

    Returns:
        Host response dict with a JSON string body.
    """
    global _logging_configured
    settings = get_settings()
    if not _logging_configured:
        configure_logging(settings)
        _logging_configured = True

    method = (event.get("httpMethod") or "").upper()
    headers = {"Content-Type": "application/json"}
    headers.update(cors_headers(settings, _request_origin(event)))

    if method == "OPTIONS":
        return {"statusCode": 204, "headers": headers, "body": ""}

    outcome = await handle_analysis(method, _event_body(event), settings)
    status_code, body, extra_headers = to_http_response(outcome)
    headers.update(extra_headers)

    return {
        "statusCode": status_code,
        "headers": headers,
        "body": json.dumps(body),
    }


def handler(event: dict, context: object = None) -> dict:
    """Synchronous entry point for hosts that call a plain function."""
    return asyncio.run(async_handler(event, context))
