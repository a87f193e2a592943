"""
SmartNotes Backend — FastAPI Application Factory
==================================================

What:  Creates and configures the FastAPI application instance.
How:   create_app() registers middleware, exception handlers and routers and
       returns the configured app.
Who:   Called by uvicorn (uvicorn smartnotes.main:app).

Application Architecture:
    ┌──────────────────────────────────────────────────────────┐
    │                      FastAPI App                         │
    │                                                          │
    │  Middleware:  Request ID → Logging → GZip → CORS         │
    │                                                          │
    │  Routes:                                                 │
    │    /api/notes ...  /api/summarize  /api/me  /health      │
    │                                                          │
    │  Exception Handlers:                                     │
    │    Unauthenticated→401  Validation→400  Permission→403   │
    │    NotFound→404  DuplicateTitle/Busy/Stale→409           │
    │    SummarizationFailed→502  CircuitOpen→503  Store→500   │
    └──────────────────────────────────────────────────────────┘

Lifecycle:
    Startup:  configure logging, validate configuration, log readiness.
    Shutdown: dispose the database engine.
"""

import logging
import sys
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from smartnotes import __version__
from smartnotes.config import settings
from smartnotes.database import dispose_engine
from smartnotes.exceptions import (
    CircuitBreakerOpenError,
    DuplicateTitleError,
    NoteBusyError,
    NotFoundError,
    PermissionDeniedError,
    SmartNotesError,
    StaleSummaryError,
    StoreError,
    SummarizationFailedError,
    SummarizationInProgressError,
    UnauthenticatedError,
    ValidationError,
)
from smartnotes.middleware.logging import RequestLoggingMiddleware
from smartnotes.middleware.request_id import RequestIDMiddleware, request_id_var
from smartnotes.routes import health, identity, notes, summarize

logger = logging.getLogger(__name__)


# ══════════════════════════════════════════════════════════════════════════
# Logging Configuration
# ══════════════════════════════════════════════════════════════════════════

def setup_logging() -> None:
    """
    Configure logging for the whole application.

    Format: %(asctime)s [%(levelname)s] %(name)s: %(message)s

    Structured fields (request_id, note_id, event, ...) are attached to
    records through `extra` and can be picked up by a JSON formatter in
    deployments that ship logs to an aggregator.
    """
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%S",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )

    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)


# ══════════════════════════════════════════════════════════════════════════
# Application Lifespan
# ══════════════════════════════════════════════════════════════════════════

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Startup: logging and config validation. Shutdown: close DB connections."""
    setup_logging()
    logger.info("=" * 60)
    logger.info("SmartNotes Backend starting up...")

    try:
        settings.validate_required_for_production()
    except ValueError as e:
        # Keep serving: /health reports the degraded dependencies.
        logger.error("Configuration error: %s", str(e))
        logger.error("Fix the configuration and restart the server.")

    logger.info(
        "Summary stale check: %s, listing cache TTL: %ss",
        "on" if settings.summary_stale_check else "off",
        settings.notes_cache_ttl,
    )
    logger.info("Server ready at http://%s:%d", settings.backend_host, settings.backend_port)
    logger.info("=" * 60)

    yield

    logger.info("SmartNotes Backend shutting down...")
    await dispose_engine()
    logger.info("Shutdown complete.")


# ══════════════════════════════════════════════════════════════════════════
# Exception Handlers
# ══════════════════════════════════════════════════════════════════════════

def _error_response(
    status_code: int,
    error: str,
    message: str,
    details: Optional[dict] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    content = {"error": error, "message": message, "request_id": request_id_var.get("")}
    if details:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content, headers=headers)


def register_exception_handlers(app: FastAPI) -> None:
    """
    Map SmartNotes exceptions to HTTP responses.

    Handler lookup follows the exception's MRO, so the most specific handler
    wins (StaleSummaryError → 409 even though it is a
    SummarizationFailedError).

    Security: upstream payloads (driver errors, Gemini error bodies) are
    logged server-side and never returned to the client.
    """

    @app.exception_handler(UnauthenticatedError)
    async def handle_unauthenticated(request: Request, exc: UnauthenticatedError):
        return _error_response(
            401, "unauthenticated", exc.message, headers={"WWW-Authenticate": "Bearer"}
        )

    @app.exception_handler(ValidationError)
    async def handle_validation_error(request: Request, exc: ValidationError):
        logger.warning("[%s] Validation error: %s", request_id_var.get(""), exc.message)
        return _error_response(400, "validation_error", exc.message, details=exc.context)

    @app.exception_handler(PermissionDeniedError)
    async def handle_permission_denied(request: Request, exc: PermissionDeniedError):
        logger.warning("[%s] Permission denied: %s", request_id_var.get(""), exc.context)
        return _error_response(403, "permission_denied", exc.message)

    @app.exception_handler(NotFoundError)
    async def handle_not_found(request: Request, exc: NotFoundError):
        return _error_response(404, "not_found", exc.message)

    @app.exception_handler(DuplicateTitleError)
    async def handle_duplicate_title(request: Request, exc: DuplicateTitleError):
        details = {"title": exc.title} if exc.title else None
        return _error_response(409, "duplicate_title", exc.message, details=details)

    @app.exception_handler(SummarizationInProgressError)
    async def handle_summarization_in_progress(
        request: Request, exc: SummarizationInProgressError
    ):
        return _error_response(409, "summarization_in_progress", exc.message)

    @app.exception_handler(NoteBusyError)
    async def handle_note_busy(request: Request, exc: NoteBusyError):
        return _error_response(409, "note_busy", exc.message, details={"state": exc.state})

    @app.exception_handler(StaleSummaryError)
    async def handle_stale_summary(request: Request, exc: StaleSummaryError):
        logger.info("[%s] Discarded stale summary: %s", request_id_var.get(""), exc.context)
        return _error_response(409, "stale_summary", exc.message)

    @app.exception_handler(CircuitBreakerOpenError)
    async def handle_circuit_breaker(request: Request, exc: CircuitBreakerOpenError):
        logger.warning("[%s] Circuit breaker open: %s", request_id_var.get(""), exc.message)
        return _error_response(
            503,
            "service_unavailable",
            exc.message,
            details={"recovery_time": exc.recovery_time},
            headers={"Retry-After": str(exc.recovery_time)},
        )

    @app.exception_handler(SummarizationFailedError)
    async def handle_summarization_failed(request: Request, exc: SummarizationFailedError):
        logger.error(
            "[%s] Summarization failed: %s | Context: %s",
            request_id_var.get(""),
            exc.message,
            exc.context,
        )
        return _error_response(502, "summarization_failed", exc.message)

    @app.exception_handler(StoreError)
    async def handle_store_error(request: Request, exc: StoreError):
        logger.error(
            "[%s] Store error: %s | Context: %s", request_id_var.get(""), exc.message, exc.context
        )
        return _error_response(
            500, "server_error", "An internal error occurred. Please try again later."
        )

    @app.exception_handler(SmartNotesError)
    async def handle_smartnotes_error(request: Request, exc: SmartNotesError):
        logger.error("[%s] %s: %s", request_id_var.get(""), type(exc).__name__, exc.message)
        return _error_response(500, "server_error", exc.message)

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception):
        """Generic 500 with the request id; stack trace goes to the log only."""
        logger.error(
            "[%s] Unexpected error: %s", request_id_var.get(""), str(exc), exc_info=True
        )
        return _error_response(
            500,
            "internal_server_error",
            "An unexpected error occurred. Please try again or contact support.",
        )


# ══════════════════════════════════════════════════════════════════════════
# Application Factory
# ══════════════════════════════════════════════════════════════════════════

def create_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    app = FastAPI(
        title="SmartNotes API",
        description=(
            "Personal notes with owner-scoped storage and on-demand summaries "
            "generated by Google Gemini."
        ),
        version=__version__,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Middleware executes in reverse order of addition:
    # RequestID → Logging → GZip → CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["X-Request-ID", "Retry-After"],
    )
    app.add_middleware(GZipMiddleware, minimum_size=500)
    app.add_middleware(RequestLoggingMiddleware)
    app.add_middleware(RequestIDMiddleware)

    register_exception_handlers(app)

    app.include_router(notes.router)
    app.include_router(summarize.router)
    app.include_router(identity.router)
    app.include_router(health.router)

    return app


app = create_app()
