"""
SmartNotes Backend — Standalone Summarize Route
=================================================

What:  POST /api/summarize: summarize arbitrary text without storing it.
Who:   Frontends that want a preview summary before saving a note.

Request:  {"content": "..."}
Response: {"summary": "..."}
Errors:   400 no content, 401 not logged in, 502/503 summarizer failure
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from smartnotes.routes.deps import get_identity, get_note_lifecycle
from smartnotes.schemas.identity import Identity
from smartnotes.schemas.note import ErrorResponse, SummarizeTextRequest, SummaryResponse
from smartnotes.services.note_lifecycle import NoteLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["Summarize"])


@router.post(
    "/summarize",
    response_model=SummaryResponse,
    responses={
        400: {"description": "No content provided", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
        502: {"description": "Summarization failed", "model": ErrorResponse},
        503: {"description": "Summarization service unavailable", "model": ErrorResponse},
    },
    summary="Summarize a piece of text",
)
async def summarize_text(
    payload: SummarizeTextRequest,
    identity: Optional[Identity] = Depends(get_identity),
    lifecycle: NoteLifecycleManager = Depends(get_note_lifecycle),
) -> SummaryResponse:
    summary = await lifecycle.summarize_text(identity, payload.content)
    return SummaryResponse(summary=summary)
