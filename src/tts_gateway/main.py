"""
FastAPI Application Entry Point.

Creates the tts-gateway application: routers, permissive CORS, the
OpenAI-style error envelope for every failure, and a lifespan that
closes the shared backend HTTP client on shutdown.

Routers:
    - OpenAI-compatible API: /v1/audio/speech, /v1/models (API-key gated)
    - Operational API: /health, /metrics

Usage:
    uvicorn tts_gateway.main:app --host 0.0.0.0 --port 8000
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from tts_gateway import __version__
from tts_gateway.api.openai_compat import router as openai_router
from tts_gateway.api.routes import router
from tts_gateway.core.errors import ClientInputError, ErrorCode, RouteError, TTSError
from tts_gateway.core.logging import configure_logging, fail, get_logger, info, warn
from tts_gateway.services.tts_service import peek_service, reset_service

_LOG = get_logger("tts-gateway.main")

MISSING_INPUT_MESSAGE = "'input' is a required parameter."

CORS_ALLOW_METHODS = ["GET", "POST", "OPTIONS"]
CORS_ALLOW_HEADERS = ["Content-Type", "Authorization"]

# Errors raised past CORSMiddleware still need these
CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": ", ".join(CORS_ALLOW_METHODS),
    "Access-Control-Allow-Headers": ", ".join(CORS_ALLOW_HEADERS),
}


def _validation_message(exc: RequestValidationError) -> str:
    """First validation problem, phrased for API clients."""
    errors = exc.errors()
    for err in errors:
        loc = tuple(err.get("loc", ()))
        if loc == ("body",) and err.get("type") == "missing":
            return MISSING_INPUT_MESSAGE
        if loc[-1:] == ("input",):
            return MISSING_INPUT_MESSAGE
    if not errors:
        return "Invalid request."
    first = errors[0]
    if first.get("type") == "json_invalid":
        return "Request body is not valid JSON."
    field = ".".join(str(part) for part in first.get("loc", ()) if part != "body")
    return f"Invalid value for '{field}': {first.get('msg', 'invalid')}."


async def _tts_error_handler(request: Request, exc: TTSError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


async def _http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code in (404, 405):
        error: TTSError = RouteError(exc.status_code)
    else:
        error = TTSError(str(exc.detail), ErrorCode.INTERNAL_ERROR)
        error.status_code = exc.status_code
    return JSONResponse(status_code=error.status_code, content=error.to_dict(), headers=exc.headers)


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    error = ClientInputError(_validation_message(exc))
    warn(_LOG, "request_invalid", path=request.url.path, error=error.message)
    return JSONResponse(status_code=error.status_code, content=error.to_dict())


async def _unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    fail(_LOG, "unhandled_error", path=request.url.path, error_type=type(exc).__name__, error=str(exc))
    error = TTSError("Internal server error", ErrorCode.INTERNAL_ERROR)
    return JSONResponse(status_code=500, content=error.to_dict(), headers=CORS_HEADERS)


@asynccontextmanager
async def lifespan(app: FastAPI):
    info(_LOG, "startup", version=__version__)
    yield
    service = peek_service()
    if service is not None:
        await service.aclose()
        reset_service()
    info(_LOG, "shutdown")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.

    Returns:
        FastAPI: Configured application instance ready to serve requests.
    """
    # Initialize structured logging (reads TTS_GATEWAY_LOG_LEVEL env var)
    configure_logging()

    app = FastAPI(title="tts-gateway", version=__version__, lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=CORS_ALLOW_METHODS,
        allow_headers=CORS_ALLOW_HEADERS,
        max_age=86400,
    )

    app.add_exception_handler(TTSError, _tts_error_handler)
    app.add_exception_handler(StarletteHTTPException, _http_error_handler)
    app.add_exception_handler(RequestValidationError, _validation_error_handler)
    app.add_exception_handler(Exception, _unexpected_error_handler)

    app.include_router(openai_router)   # /v1/audio/speech, /v1/models
    app.include_router(router)          # /health, /metrics

    return app


# Global application instance for ASGI servers (uvicorn, gunicorn, etc.)
app = create_app()
