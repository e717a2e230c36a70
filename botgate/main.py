"""botgate FastAPI application factory + lifespan lifecycle.

This module implements:
  - create_app() — testable application factory
  - lifespan     — @asynccontextmanager startup/shutdown sequence
  - app = create_app() — module-level instance for uvicorn

Startup sequence:
  1. load_config()         → app.state.config
  2. create_http_client()  → app.state.http_client (shared by providers + enrichment)
  3. app.state.ready = True

Shutdown (reverse): ready = False → close the HTTP client.

Routing: /health is registered before the catch-all redirect route so it wins.
"""

from __future__ import annotations

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

import httpx
from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse

from botgate import __version__
from botgate.config import Config, load_config
from botgate.health import router as health_router
from botgate.redirect.handler import create_http_client, router as redirect_router
from botgate.utils.logger import configure_logging, get_logger

# ─── Logging Setup ────────────────────────────────────────────────────────────
DEBUG = os.getenv("DEBUG", "false").lower() == "true"
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO" if not DEBUG else "DEBUG")
JSON_LOGS = os.getenv("JSON_LOGS", "true").lower() == "true"

configure_logging(log_level=LOG_LEVEL, json_output=JSON_LOGS)
logger = get_logger(__name__)


async def require_ready(request: Request) -> None:
    """FastAPI dependency: raises HTTP 503 if app.state.ready is not True."""
    if not getattr(request.app.state, "ready", False):
        raise HTTPException(
            status_code=503,
            detail={"status": "starting", "message": "botgate is starting up"},
        )


# ─── Lifespan ─────────────────────────────────────────────────────────────────


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    logger.info("botgate starting up...")

    # load_config() raises SystemExit on an invalid file, before ready is ever set.
    config: Config = load_config()
    app.state.config = config

    http_client: httpx.AsyncClient = create_http_client()
    app.state.http_client = http_client

    app.state.ready = True
    logger.info(
        "botgate ready",
        allow_url=config.redirect.allow_url,
        block_url=config.redirect.block_url,
        provider_timeout_s=config.classifier.provider_timeout_s,
        deadline_s=config.classifier.deadline_s,
    )

    yield

    logger.info("botgate shutting down...")
    app.state.ready = False

    try:
        await http_client.aclose()
    except Exception as exc:  # noqa: BLE001
        logger.warning("HTTP client close error (non-fatal)", error=str(exc))

    logger.info("botgate shutdown complete")


# ─── Application Factory ──────────────────────────────────────────────────────


def create_app() -> FastAPI:
    """Create and configure the botgate FastAPI application.

    Call this directly in tests to get an isolated app instance. The
    module-level ``app`` is used by uvicorn::

        uvicorn botgate.main:app --host 127.0.0.1 --port 8080
    """
    application = FastAPI(
        title="botgate",
        description="Request-time visitor classifier and redirector",
        version=__version__,
        lifespan=lifespan,
        docs_url="/docs" if DEBUG else None,
        redoc_url="/redoc" if DEBUG else None,
        openapi_url="/openapi.json" if DEBUG else None,
    )

    application.state.ready = False

    application.include_router(health_router)
    # Catch-all: must be included last.
    application.include_router(redirect_router, dependencies=[Depends(require_ready)])

    @application.exception_handler(HTTPException)
    async def http_exception_handler(
        request: Request, exc: HTTPException
    ) -> JSONResponse:
        logger.warning(
            "HTTP exception",
            status_code=exc.status_code,
            detail=exc.detail,
            path=str(request.url.path),
        )
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @application.exception_handler(Exception)
    async def unhandled_exception_handler(
        request: Request, exc: Exception
    ) -> JSONResponse:
        logger.error(
            "Unhandled exception",
            error=str(exc),
            error_type=type(exc).__name__,
            path=str(request.url.path),
        )
        return JSONResponse(
            status_code=500, content={"error": "Internal Server Error"}
        )

    return application


app = create_app()
