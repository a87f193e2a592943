"""
SmartNotes Backend — Health Check Route
=========================================

What:  Health check endpoint for monitoring and load balancer probes.
How:   Pings the note store and checks the summarizer, returns aggregate status.

Status levels:
    - healthy:   All dependencies operational (HTTP 200)
    - degraded:  Summarizer down; notes still work (HTTP 200)
    - unhealthy: Database down (HTTP 503)
"""

import logging
import time

from fastapi import APIRouter, Depends, Response

from smartnotes import __version__
from smartnotes.routes.deps import get_note_lifecycle
from smartnotes.schemas.note import HealthResponse
from smartnotes.services.note_lifecycle import NoteLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Health"])

_start_time = time.time()


@router.get(
    "/health",
    response_model=HealthResponse,
    summary="Service health check",
)
async def health_check(
    response: Response,
    lifecycle: NoteLifecycleManager = Depends(get_note_lifecycle),
) -> HealthResponse:
    db_status = "connected"
    gemini_status = "available"
    overall = "healthy"

    # ── Check Database ────────────────────────────────────────────────────
    try:
        await lifecycle.store.ping()
    except Exception as e:
        db_status = "disconnected"
        overall = "unhealthy"
        logger.warning("Health check: database unreachable: %s", str(e))

    # ── Check Summarizer ──────────────────────────────────────────────────
    breaker = getattr(lifecycle.summarizer, "circuit_breaker", None)
    if breaker is not None and breaker.state == breaker.OPEN:
        gemini_status = "circuit_open"
    elif not await lifecycle.summarizer.health_check():
        gemini_status = "unavailable"
    if gemini_status != "available" and overall == "healthy":
        overall = "degraded"

    if overall == "unhealthy":
        response.status_code = 503

    return HealthResponse(
        status=overall,
        version=__version__,
        database=db_status,
        gemini=gemini_status,
        uptime_seconds=round(time.time() - _start_time, 2),
    )
