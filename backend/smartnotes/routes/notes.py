"""
SmartNotes Backend — Notes Route Handlers
===========================================

What:  CRUD, edit-mode and summarize endpoints for the caller's notes.
How:   Extracts the identity and body, delegates to NoteLifecycleManager,
       returns JSON. Errors are formatted by the global exception handlers.

Route Inventory:
    GET    /api/notes                       list (anonymous → empty list)
    POST   /api/notes                       create
    GET    /api/notes/{id}                  get one
    PUT    /api/notes/{id}                  save an edit
    DELETE /api/notes/{id}                  delete (idempotent)
    POST   /api/notes/{id}/editing          enter edit mode
    DELETE /api/notes/{id}/editing          leave edit mode without saving
    POST   /api/notes/{id}/summarize        generate and store a summary
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, Response

from smartnotes.routes.deps import get_identity, get_note_lifecycle
from smartnotes.schemas.identity import Identity
from smartnotes.schemas.note import (
    ErrorResponse,
    NoteCreate,
    NoteListResponse,
    NoteResponse,
    NoteUpdate,
    SummarizeNoteRequest,
)
from smartnotes.services.note_lifecycle import NoteLifecycleManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/notes", tags=["Notes"])

NOTE_ERRORS = {
    401: {"description": "Not logged in", "model": ErrorResponse},
    404: {"description": "Note not found", "model": ErrorResponse},
}


@router.get(
    "",
    response_model=NoteListResponse,
    summary="List the caller's notes, newest first",
)
async def list_notes(
    response: Response,
    identity: Optional[Identity] = Depends(get_identity),
    lifecycle: NoteLifecycleManager = Depends(get_note_lifecycle),
) -> NoteListResponse:
    """
    Returns every note of the caller (no pagination).

    Anonymous callers get an empty list. Store failures also yield an empty
    list; they are logged server-side.
    """
    notes = await lifecycle.list_notes(identity)
    response.headers["Cache-Control"] = "private, no-cache"
    return NoteListResponse(notes=notes, total_count=len(notes))


@router.post(
    "",
    status_code=201,
    response_model=NoteResponse,
    responses={
        400: {"description": "Blank content or title too long", "model": ErrorResponse},
        401: {"description": "Not logged in", "model": ErrorResponse},
        409: {"description": "Duplicate title", "model": ErrorResponse},
    },
    summary="Create a note",
)
async def create_note(
    payload: NoteCreate,
    identity: Optional[Identity] = Depends(get_identity),
    lifecycle: NoteLifecycleManager = Depends(get_note_lifecycle),
) -> NoteResponse:
    return await lifecycle.create_note(identity, content=payload.content, title=payload.title)


@router.get(
    "/{note_id}",
    response_model=NoteResponse,
    responses=NOTE_ERRORS,
    summary="Get a single note",
)
async def get_note(
    note_id: UUID,
    identity: Optional[Identity] = Depends(get_identity),
    lifecycle: NoteLifecycleManager = Depends(get_note_lifecycle),
) -> NoteResponse:
    return await lifecycle.get_note(identity, note_id)


@router.put(
    "/{note_id}",
    response_model=NoteResponse,
    responses={**NOTE_ERRORS, 409: {"description": "Duplicate title", "model": ErrorResponse}},
    summary="Save an edit of title/content",
)
async def update_note(
    note_id: UUID,
    payload: NoteUpdate,
    identity: Optional[Identity] = Depends(get_identity),
    lifecycle: NoteLifecycleManager = Depends(get_note_lifecycle),
) -> NoteResponse:
    return await lifecycle.update_note(
        identity, note_id, content=payload.content, title=payload.title
    )


@router.delete(
    "/{note_id}",
    status_code=204,
    responses={
        401: {"description": "Not logged in", "model": ErrorResponse},
        403: {"description": "Note belongs to another user", "model": ErrorResponse},
    },
    summary="Delete a note (succeeds if already gone)",
)
async def delete_note(
    note_id: UUID,
    identity: Optional[Identity] = Depends(get_identity),
    lifecycle: NoteLifecycleManager = Depends(get_note_lifecycle),
) -> Response:
    await lifecycle.delete_note(identity, note_id)
    return Response(status_code=204)


@router.post(
    "/{note_id}/editing",
    response_model=NoteResponse,
    responses={**NOTE_ERRORS, 409: {"description": "Note is being summarized", "model": ErrorResponse}},
    summary="Enter edit mode",
)
async def begin_edit(
    note_id: UUID,
    identity: Optional[Identity] = Depends(get_identity),
    lifecycle: NoteLifecycleManager = Depends(get_note_lifecycle),
) -> NoteResponse:
    return await lifecycle.begin_edit(identity, note_id)


@router.delete(
    "/{note_id}/editing",
    response_model=NoteResponse,
    responses=NOTE_ERRORS,
    summary="Leave edit mode without saving",
)
async def cancel_edit(
    note_id: UUID,
    identity: Optional[Identity] = Depends(get_identity),
    lifecycle: NoteLifecycleManager = Depends(get_note_lifecycle),
) -> NoteResponse:
    return await lifecycle.cancel_edit(identity, note_id)


@router.post(
    "/{note_id}/summarize",
    response_model=NoteResponse,
    responses={
        **NOTE_ERRORS,
        409: {"description": "Already summarizing, editing, or content changed", "model": ErrorResponse},
        502: {"description": "Summarization failed", "model": ErrorResponse},
        503: {"description": "Summarization service unavailable", "model": ErrorResponse},
    },
    summary="Generate and store a summary of the note",
)
async def summarize_note(
    note_id: UUID,
    payload: Optional[SummarizeNoteRequest] = None,
    identity: Optional[Identity] = Depends(get_identity),
    lifecycle: NoteLifecycleManager = Depends(get_note_lifecycle),
) -> NoteResponse:
    """
    Summarize the note and return it with the new summary.

    The optional body carries the content snapshot the client is displaying;
    without it the stored content is summarized. If the note is edited while
    the summary is being generated, the summary is discarded (409
    stale_summary) unless SUMMARY_STALE_CHECK is disabled.
    """
    content = payload.content if payload is not None else None
    return await lifecycle.summarize_note(identity, note_id, content=content)
