"""
Badgescan: FastAPI Application Entry Point

This module initializes the FastAPI application and defines the endpoints:
- /analyze-image: Image analysis endpoint (POST only)
- /health: Health check endpoint
- /config: Non-sensitive configuration values
- /models: Selectable model presets and how they resolve

The application uses a lifespan context manager to:
1. Load and validate configuration at startup
2. Configure logging based on settings
3. Report which provider credentials are present
"""

from contextlib import asynccontextmanager
import logging
import time

from fastapi import FastAPI, Depends, Request
from fastapi.responses import JSONResponse
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException

from badgescan import __version__
from badgescan.analyzer import handle_analysis, to_http_response
from badgescan.config import Settings, get_settings, configure_logging
from badgescan.registry import list_model_presets, resolve_target
from badgescan.schemas.analysis import ComponentHealth, HealthResponse

logger = logging.getLogger(__name__)

_start_time: float = 0.0


def _configured_providers(settings: Settings) -> dict[str, bool]:
    keys = {
        "openai": settings.openai_api_key,
        "anthropic": settings.anthropic_api_key,
        "openrouter": settings.openrouter_api_key,
    }
    return {
        name: bool(key.get_secret_value()) if key is not None else False
        for name, key in keys.items()
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    Application lifespan handler for startup/shutdown events.

    On startup:
    - Loads configuration from environment
    - Configures logging
    - Logs which providers can be served

    On shutdown:
    - Logs shutdown message
    """
    settings = get_settings()
    configure_logging(settings)

    logger.info("=" * 60)
    logger.info("Badgescan starting up...")
    logger.info("=" * 60)
    logger.info(f"Default model: {settings.default_model}")
    logger.info(f"Upstream timeout: {settings.upstream_timeout_seconds}s")
    logger.info(f"Model aliasing: {'enabled' if settings.model_aliasing_enabled else 'disabled'}")
    logger.info(f"Debug mode: {'enabled' if settings.debug else 'disabled'}")

    configured = _configured_providers(settings)
    for provider, present in configured.items():
        logger.info(f"{provider} API key: {'configured' if present else 'not configured'}")
    if not any(configured.values()):
        logger.warning("No provider API keys configured; every analysis will fail")

    global _start_time
    _start_time = time.time()

    logger.info("Badgescan ready to accept requests")

    yield  # Application runs here

    logger.info("Badgescan shutting down...")


app = FastAPI(
    title="Badgescan",
    description="Extract names, companies, roles and credentials from images",
    version=__version__,
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=get_settings().cors_allow_origins,
    allow_credentials=False,
    allow_methods=["POST", "OPTIONS"],
    allow_headers=["*"],
    expose_headers=["Retry-After"],
)


@app.get("/")
async def root():
    """
    Root endpoint with API information.
    """
    return {
        "name": "Badgescan",
        "version": __version__,
        "analyze": "/analyze-image",
        "docs": "/docs",
        "health": "/health",
    }


@app.get(
    "/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Report which upstream providers have credentials configured.",
)
async def health_check(settings: Settings = Depends(get_settings)):
    """
    Health check endpoint for monitoring.

    A provider without an API key is unhealthy; the service is degraded
    when some providers are missing and unhealthy when all are.
    """
    configured = _configured_providers(settings)
    components = [
        ComponentHealth(
            name=provider,
            status="healthy" if present else "unhealthy",
            message=None if present else "API key not configured",
        )
        for provider, present in configured.items()
    ]

    if all(configured.values()):
        overall_status = "healthy"
    elif any(configured.values()):
        overall_status = "degraded"
    else:
        overall_status = "unhealthy"

    uptime = time.time() - _start_time if _start_time > 0 else 0.0

    return HealthResponse(
        status=overall_status,
        version=__version__,
        components=components,
        uptime_seconds=uptime,
    )


@app.get("/config")
async def show_config(settings: Settings = Depends(get_settings)):
    """
    Returns non-sensitive configuration values.

    API keys are SecretStr and are NOT exposed in this endpoint.
    """
    return {
        "models": {
            "default_model": settings.default_model,
            "aliasing_enabled": settings.model_aliasing_enabled,
            "aliases": settings.model_aliases,
            "openai_prefixes": settings.openai_model_prefixes,
        },
        "upstream": {
            "timeout_seconds": settings.upstream_timeout_seconds,
            "host_timeout_ceiling_seconds": settings.host_timeout_ceiling_seconds,
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
        },
        "rate_limits": {
            "default_retry_after_seconds": settings.default_retry_after_seconds,
            "daily_limit_retry_after_seconds": settings.daily_limit_retry_after_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
        "api_keys_configured": _configured_providers(settings),
    }


@app.get("/models")
async def list_models(settings: Settings = Depends(get_settings)):
    """
    List selectable model presets.

    Each entry shows the provider it resolves to and the upstream model
    actually called, so alias substitutions are visible up front.
    """
    models = []
    for preset in list_model_presets():
        target = resolve_target(preset.model_id, settings)
        models.append(
            {
                "model_id": preset.model_id,
                "display_name": preset.display_name,
                "notes": preset.notes,
                "provider": target.provider.value,
                "upstream_model": target.upstream_model,
                "aliased": target.aliased,
            }
        )
    return {
        "models": models,
        "default_model": settings.default_model,
        "total_models": len(models),
    }


@app.api_route(
    "/analyze-image",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    summary="Analyze image",
    description="Extract Name/Company/Role/Credentials records from an image.",
)
async def analyze_image_endpoint(request: Request):
    """
    Main analysis endpoint.

    Accepts {imageBase64, filename?, selectedModel?} and returns either
    {text, filename, model, usage?, processingTime?} or a normalized error.
    Methods other than POST are routed here too so they get the same
    JSON 405 body as the serverless handler.
    """
    raw_body = await request.body()
    outcome = await handle_analysis(request.method, raw_body)
    status_code, body, headers = to_http_response(outcome)
    return JSONResponse(status_code=status_code, content=body, headers=headers)


@app.exception_handler(HTTPException)
async def http_exception_handler(
    request: Request, exc: HTTPException
) -> JSONResponse:
    """
    Handle HTTP exceptions with the same {"error": ...} shape as analysis errors.
    """
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc.detail)},
    )


@app.exception_handler(Exception)
async def general_exception_handler(
    request: Request, exc: Exception
) -> JSONResponse:
    """
    Handle unexpected exceptions.

    Logs the full exception for debugging and returns a generic error
    response to avoid leaking implementation details.
    """
    logger.exception("Unhandled exception")
    return JSONResponse(
        status_code=500,
        content={
            "error": "An unexpected error occurred",
            "type": "server_error",
        },
    )


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "badgescan.main:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
