"""FastAPI application entry point."""

from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from contentsync.api.admin import router as admin_router
from contentsync.api.health import router as health_router
from contentsync.api.sync import router as sync_router
from contentsync.backends.selector import close_backend, init_backend
from contentsync.config import Settings
from contentsync.exceptions import BackendError, BackendUnavailableError
from contentsync.services.schema_service import create_tables
from contentsync.services.sync_service import SyncEngine

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)


def _configure_logging(debug: bool) -> None:
    """Configure application logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.INFO if debug else logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.INFO if debug else logging.WARNING)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Application lifespan: startup and shutdown."""
    settings: Settings = app.state.settings
    settings.validate_backend_config()
    _configure_logging(settings.debug)
    logger.info("Starting ContentSync (debug=%s)", settings.debug)

    try:
        backend = await init_backend(settings)
    except BackendUnavailableError as exc:
        logger.critical("Failed to initialize storage backend: %s", exc)
        raise

    if settings.create_schema_on_startup:
        failed = await create_tables(backend)
        if failed:
            logger.warning("Some tables could not be created; pull may record failures")

    app.state.sync_engine = SyncEngine.from_settings(backend, settings)
    logger.info("Serving content from %s (%s backend)", settings.content_dir, backend.mode)

    yield

    app.state.sync_engine = None
    try:
        await close_backend()
    except Exception as exc:
        logger.error("Error during backend shutdown: %s", exc, exc_info=True)

    logger.info("ContentSync stopped")


def create_app(settings: Settings | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    if settings is None:
        settings = Settings()

    docs_enabled = settings.debug or settings.expose_docs

    app = FastAPI(
        title="ContentSync",
        description="Synchronize a content file tree into relational storage",
        version="0.1.0",
        lifespan=lifespan,
        docs_url="/docs" if docs_enabled else None,
        redoc_url="/redoc" if docs_enabled else None,
        openapi_url="/openapi.json" if docs_enabled else None,
    )
    app.state.settings = settings
    app.state.sync_engine = None

    cors_origins = (
        settings.cors_origins
        if settings.cors_origins
        else (["http://localhost:3000", "http://localhost:8000"] if settings.debug else [])
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(health_router)
    app.include_router(sync_router)
    app.include_router(admin_router)

    # Global exception handlers

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        errors = []
        for err in exc.errors():
            loc = err.get("loc", ())
            field = str(loc[-1]) if loc else "unknown"
            errors.append({"field": field, "message": err.get("msg", "Invalid value")})
        logger.warning(
            "RequestValidationError in %s %s: %s",
            request.method,
            request.url.path,
            errors,
        )
        return JSONResponse(status_code=422, content={"detail": errors})

    @app.exception_handler(BackendUnavailableError)
    async def backend_unavailable_handler(
        request: Request, exc: BackendUnavailableError
    ) -> JSONResponse:
        logger.error(
            "BackendUnavailableError in %s %s: %s", request.method, request.url.path, exc
        )
        return JSONResponse(
            status_code=503,
            content={"detail": "Database temporarily unavailable"},
        )

    @app.exception_handler(BackendError)
    async def backend_error_handler(request: Request, exc: BackendError) -> JSONResponse:
        logger.error(
            "BackendError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc
        )
        return JSONResponse(
            status_code=502,
            content={"detail": str(exc) or "Storage backend error"},
        )

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.error("ValueError in %s %s: %s", request.method, request.url.path, exc, exc_info=exc)
        message = str(exc) or "Invalid value"
        return JSONResponse(
            status_code=422,
            content={"detail": message},
        )

    return app


def cli_entry() -> None:
    """CLI entry point for running the server."""
    import uvicorn

    settings = Settings()
    uvicorn.run(
        "contentsync.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
    )
