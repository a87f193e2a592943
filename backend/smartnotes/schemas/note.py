"""
SmartNotes Backend — Pydantic Request/Response Schemas
=======================================================

What:  Pydantic models defining the API contract between frontend and backend.
How:   FastAPI validates request bodies against these models, serializes
       responses from them, and generates the OpenAPI docs.

Request bodies are typed but otherwise permissive: business rules (non-empty
content, title length) are enforced by the lifecycle manager so that HTTP
and non-HTTP callers get the same ValidationError.
"""

import uuid
from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field


class NoteViewState(str, Enum):
    """Per-note view state tracked by the lifecycle manager."""

    IDLE = "idle"
    EDITING = "editing"
    SUMMARIZING = "summarizing"


# ══════════════════════════════════════════════════════════════════════════
# Request Models
# ══════════════════════════════════════════════════════════════════════════


class NoteCreate(BaseModel):
    title: Optional[str] = Field(default=None, description="Optional note title")
    content: str = Field(description="Note body (must not be blank)")


class NoteUpdate(BaseModel):
    title: Optional[str] = Field(default=None, description="New title (null clears it)")
    content: str = Field(description="New note body (must not be blank)")


class SummarizeNoteRequest(BaseModel):
    """
    Body of POST /api/notes/{id}/summarize.

    content: the snapshot the client is looking at. When omitted, the note's
    stored content at invocation time is summarized.
    """
    content: Optional[str] = Field(
        default=None,
        description="Content snapshot to summarize (defaults to the stored content)",
    )


class SummarizeTextRequest(BaseModel):
    content: Optional[str] = Field(default=None, description="Text to summarize")


# ══════════════════════════════════════════════════════════════════════════
# Response Models
# ══════════════════════════════════════════════════════════════════════════


class NoteResponse(BaseModel):
    """
    What:  Full representation of a note.
    Who:   Returned by every notes endpoint.

    state reflects this server's view of the note: `summarizing` while a
    summary is being generated, `editing` between begin-edit and save/cancel.
    """
    id: uuid.UUID = Field(description="Unique note identifier (UUID)")
    title: Optional[str] = Field(default=None, description="Note title")
    content: str = Field(description="Note body")
    summary: Optional[str] = Field(
        default=None,
        description="AI summary (null until summarized; may predate the latest edit)"
    )
    created_at: datetime = Field(description="When the note was created (UTC ISO 8601)")
    state: NoteViewState = Field(default=NoteViewState.IDLE, description="Current view state")

    model_config = {"from_attributes": True}


class NoteListResponse(BaseModel):
    """Wrapper for GET /api/notes: every note of the caller, newest first."""
    notes: List[NoteResponse] = Field(description="Notes, newest first")
    total_count: int = Field(description="Number of notes returned")


class SummaryResponse(BaseModel):
    summary: str = Field(description="Generated summary")


class IdentityResponse(BaseModel):
    user_id: str
    email: str
    display_name: Optional[str] = None
    greeting_name: str = Field(description="Display name, falling back to the email")


# ══════════════════════════════════════════════════════════════════════════
# Error & Health Models
# ══════════════════════════════════════════════════════════════════════════


class ErrorResponse(BaseModel):
    """
    What:  Standardized error response format for all API errors.

    Example:
        {
            "error": "duplicate_title",
            "message": "This note title already exists. Please use a different title.",
            "request_id": "550e8400"
        }
    """
    error: str = Field(description="Machine-readable error code")
    message: str = Field(description="Human-readable error description")
    details: Optional[dict] = Field(default=None, description="Additional error context")
    request_id: Optional[str] = Field(default=None, description="Request correlation ID")


class HealthResponse(BaseModel):
    status: str = Field(description="Overall service status: healthy, degraded, unhealthy")
    version: str = Field(description="Application version")
    database: str = Field(description="Database connectivity: connected, disconnected")
    gemini: str = Field(description="Gemini API status: available, unavailable, circuit_open")
    uptime_seconds: float = Field(description="Seconds since service started")
