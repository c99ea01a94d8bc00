"""markdown-merge HTTP service entrypoint."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from . import __version__
from .config import get_settings
from .observability import RequestMetricsMiddleware, metrics_registry
from .routers import api_router
from .utils.errors import ConfigurationError, ParseError
from .utils.logging import configure_logging

configure_logging()
settings = get_settings()
logger = logging.getLogger("uvicorn.error")

cors_allow_origins = list(settings.cors_allow_origins)
allow_credentials = True
if "*" in cors_allow_origins:
    cors_allow_origins = ["*"]
    allow_credentials = False
if not cors_allow_origins:
    cors_allow_origins = ["http://localhost:8000", "http://127.0.0.1:8000"]


app = FastAPI(title="markdown-merge", version=__version__)
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_allow_origins,
    allow_credentials=allow_credentials,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestMetricsMiddleware)
app.include_router(api_router)


@app.exception_handler(ParseError)
async def handle_parse_error(request: Request, exc: ParseError) -> JSONResponse:
    """Report documents the markdown backend could not parse."""

    logger.info("Parse failure on %s: %s", request.url.path, exc.message)
    metrics_registry.record_failure(exc.code)
    return JSONResponse(status_code=422, content={"detail": exc.to_dict()})


@app.exception_handler(ConfigurationError)
async def handle_configuration_error(
    request: Request, exc: ConfigurationError
) -> JSONResponse:
    metrics_registry.record_failure(exc.code)
    return JSONResponse(status_code=400, content={"detail": exc.to_dict()})


@app.exception_handler(Exception)
async def handle_unexpected_exception(
    request: Request, exc: Exception
) -> JSONResponse:
    """Ensure unexpected exceptions return a JSON payload."""

    logger.exception(
        "Unhandled exception while processing %s %s", request.method, request.url.path
    )
    metrics_registry.record_failure("internal_error")
    return JSONResponse(status_code=500, content={"detail": "Internal Server Error"})


__all__ = ["app"]
