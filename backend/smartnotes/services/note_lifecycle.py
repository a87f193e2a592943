"""
SmartNotes Backend — Note Lifecycle Manager (Business Logic Orchestrator)
==========================================================================

What:  Orchestrates create / list / get / edit / delete / summarize for notes.
How:   Composes a NoteStore, a Summarizer, the per-note state machine and a
       per-owner listing cache. Every operation receives the caller's
       Identity explicitly; nothing is read from ambient session state.
Who:   Called by the notes and summarize routes.

Summarize Flow (POST /api/notes/{id}/summarize):
    ┌───────────┐   ┌──────────────┐   ┌──────────────┐   ┌───────────────┐
    │  Ownership│──▶│ Mark note    │──▶│  Summarizer  │──▶│ Write summary │
    │  check    │   │ summarizing  │   │  (Gemini)    │   │ (stale check) │
    └───────────┘   └──────────────┘   └──────────────┘   └───────────────┘
                           │                                      │
                           └────────── always back to idle ◀──────┘

    On failure at any step after marking:
    - SummarizationFailedError (or StaleSummaryError) propagates
    - the summary field is left untouched
    - the in-flight marker is released in `finally`

Validation Rules (all operations):
    - identity required (UnauthenticatedError), except listing which
      returns an empty list for anonymous callers
    - content must contain non-whitespace text (ValidationError)
    - both are checked before any store or summarizer call
"""

import logging
import time
from typing import Callable, Dict, List, Optional, Tuple
from uuid import UUID

from smartnotes.config import settings
from smartnotes.exceptions import (
    NotFoundError,
    SmartNotesError,
    SummarizationFailedError,
    UnauthenticatedError,
    ValidationError,
)
from smartnotes.models.note import Note, content_digest
from smartnotes.schemas.identity import Identity
from smartnotes.schemas.note import NoteResponse
from smartnotes.services.note_state import NoteStateMachine
from smartnotes.services.note_store import NoteStore
from smartnotes.services.summarizer_base import Summarizer

logger = logging.getLogger(__name__)

ReadFailureHook = Callable[[str, Exception], None]


class NoteListCache:
    """
    Per-owner cache of the note listing.

    Entries expire after `ttl` seconds and are dropped on every mutation for
    that owner, so a read after a write always observes the write.

    Each owner has a generation number, bumped by `invalidate`. A reader
    takes the generation before querying the store and passes it to `put`;
    the result is only cached if no mutation happened in between.
    """

    def __init__(self, ttl: float):
        self.ttl = ttl
        self._entries: Dict[str, Tuple[float, List[Note]]] = {}
        self._generations: Dict[str, int] = {}

    def generation(self, owner_id: str) -> int:
        return self._generations.get(owner_id, 0)

    def get(self, owner_id: str) -> Optional[List[Note]]:
        entry = self._entries.get(owner_id)
        if entry is None:
            return None
        stored_at, notes = entry
        if time.monotonic() - stored_at >= self.ttl:
            del self._entries[owner_id]
            return None
        return notes

    def put(self, owner_id: str, notes: List[Note], generation: int) -> None:
        if self.ttl > 0 and generation == self.generation(owner_id):
            self._entries[owner_id] = (time.monotonic(), notes)

    def invalidate(self, owner_id: str) -> None:
        self._entries.pop(owner_id, None)
        self._generations[owner_id] = self.generation(owner_id) + 1


class NoteLifecycleManager:
    """
    Business logic layer for notes.

    Error Handling Strategy:
        Validation/authentication errors are raised before any I/O.
        Store errors arrive already classified (PermissionDeniedError,
        DuplicateTitleError, StoreError) and propagate unchanged, except on
        the listing path where they are logged and swallowed.
        Anything failing inside a summarization becomes
        SummarizationFailedError with the upstream message attached.
    """

    def __init__(
        self,
        store: NoteStore,
        summarizer: Summarizer,
        stale_check: bool = True,
        cache_ttl: float = 300,
        title_max_length: int = 200,
        on_read_failure: Optional[ReadFailureHook] = None,
    ):
        self.store = store
        self.summarizer = summarizer
        self.stale_check = stale_check
        self.title_max_length = title_max_length
        self.on_read_failure = on_read_failure
        self.states = NoteStateMachine()
        self.cache = NoteListCache(ttl=cache_ttl)

    # ── Validation ────────────────────────────────────────────────────────

    @staticmethod
    def _require_identity(identity: Optional[Identity]) -> str:
        if identity is None:
            raise UnauthenticatedError()
        return identity.user_id

    @staticmethod
    def _clean_content(content: Optional[str]) -> str:
        if content is None or not content.strip():
            raise ValidationError(message="Note content cannot be empty.", field="content")
        return content

    def _clean_title(self, title: Optional[str]) -> Optional[str]:
        if title is None:
            return None
        title = title.strip()
        if not title:
            return None
        if len(title) > self.title_max_length:
            raise ValidationError(
                message=f"Title must be at most {self.title_max_length} characters.",
                field="title",
                context={"max_length": self.title_max_length},
            )
        return title

    def _to_response(self, owner_id: str, note: Note) -> NoteResponse:
        return NoteResponse(
            id=note.id,
            title=note.title,
            content=note.content,
            summary=note.summary,
            created_at=note.created_at,
            state=self.states.state_of(owner_id, note.id),
        )

    async def _get_owned(self, owner_id: str, note_id: UUID) -> Note:
        note = await self.store.get(owner_id, note_id)
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))
        return note

    # ── Read ──────────────────────────────────────────────────────────────

    async def list_notes(self, identity: Optional[Identity]) -> List[NoteResponse]:
        """
        The caller's notes, newest first.

        Anonymous callers and store failures both yield an empty list. A
        failure is logged at ERROR with structured fields and passed to
        `on_read_failure`, so it is never invisible to operators.
        """
        if identity is None:
            return []
        owner_id = identity.user_id

        notes = self.cache.get(owner_id)
        if notes is None:
            generation = self.cache.generation(owner_id)
            try:
                notes = await self.store.list_by_owner(owner_id)
            except Exception as e:
                logger.error(
                    "Failed to list notes for owner %s: %s",
                    owner_id,
                    getattr(e, "message", str(e)),
                    extra={
                        "event": "note_list_failed",
                        "owner_id": owner_id,
                        "error_type": type(e).__name__,
                        "context": getattr(e, "context", {}),
                    },
                )
                if self.on_read_failure is not None:
                    try:
                        self.on_read_failure(owner_id, e)
                    except Exception:
                        logger.exception("on_read_failure hook raised for owner %s", owner_id)
                return []
            self.cache.put(owner_id, notes, generation)

        return [self._to_response(owner_id, note) for note in notes]

    async def get_note(self, identity: Optional[Identity], note_id: UUID) -> NoteResponse:
        owner_id = self._require_identity(identity)
        note = await self._get_owned(owner_id, note_id)
        return self._to_response(owner_id, note)

    # ── Create ────────────────────────────────────────────────────────────

    async def create_note(
        self,
        identity: Optional[Identity],
        content: Optional[str],
        title: Optional[str] = None,
    ) -> NoteResponse:
        """
        Insert a new note for the caller.

        Raises:
            UnauthenticatedError: no identity
            ValidationError: blank content or over-long title (no store write)
            DuplicateTitleError: the caller already has a note with this title
            PermissionDeniedError: the store rejected the insert
        """
        owner_id = self._require_identity(identity)
        content = self._clean_content(content)
        title = self._clean_title(title)

        note = await self.store.insert(owner_id, title, content)
        self.cache.invalidate(owner_id)
        logger.info("Note %s created by %s", note.id, owner_id)
        return self._to_response(owner_id, note)

    # ── Edit ──────────────────────────────────────────────────────────────

    async def begin_edit(self, identity: Optional[Identity], note_id: UUID) -> NoteResponse:
        owner_id = self._require_identity(identity)
        note = await self._get_owned(owner_id, note_id)
        self.states.begin_edit(owner_id, note_id)
        return self._to_response(owner_id, note)

    async def cancel_edit(self, identity: Optional[Identity], note_id: UUID) -> NoteResponse:
        owner_id = self._require_identity(identity)
        note = await self._get_owned(owner_id, note_id)
        self.states.end_edit(owner_id, note_id)
        return self._to_response(owner_id, note)

    async def update_note(
        self,
        identity: Optional[Identity],
        note_id: UUID,
        content: Optional[str],
        title: Optional[str] = None,
    ) -> NoteResponse:
        """
        Overwrite title/content in place. `id`, `created_at` and `summary`
        are kept; an existing summary may now describe older content.

        Raises:
            NotFoundError: no such note for this caller
            DuplicateTitleError / PermissionDeniedError: store rejections
        """
        owner_id = self._require_identity(identity)
        content = self._clean_content(content)
        title = self._clean_title(title)

        note = await self.store.update(owner_id, note_id, title, content)
        if note is None:
            raise NotFoundError(resource="note", resource_id=str(note_id))

        self.states.end_edit(owner_id, note_id)
        self.cache.invalidate(owner_id)
        logger.info("Note %s updated by %s", note_id, owner_id)
        return self._to_response(owner_id, note)

    # ── Delete ────────────────────────────────────────────────────────────

    async def delete_note(self, identity: Optional[Identity], note_id: UUID) -> None:
        """
        Permanently remove the note. Deleting an absent id succeeds; deleting
        another owner's note raises PermissionDeniedError.
        """
        owner_id = self._require_identity(identity)
        removed = await self.store.delete(owner_id, note_id)
        self.states.forget(owner_id, note_id)
        self.cache.invalidate(owner_id)
        if removed:
            logger.info("Note %s deleted by %s", note_id, owner_id)
        else:
            logger.info("Note %s already absent (delete by %s)", note_id, owner_id)

    # ── Summarize ─────────────────────────────────────────────────────────

    async def summarize_note(
        self,
        identity: Optional[Identity],
        note_id: UUID,
        content: Optional[str] = None,
    ) -> NoteResponse:
        """
        Generate and store a summary for one note.

        Args:
            identity: The caller; must own the note.
            note_id: Note to summarize.
            content: Snapshot the caller is looking at. Defaults to the
                stored content at invocation time.

        Raises:
            NotFoundError: the note does not exist for this caller
            SummarizationInProgressError: a summary is already in flight for
                this note (no second service call is made)
            StaleSummaryError: content changed while the summary was being
                generated (only with stale_check enabled)
            SummarizationFailedError: any other failure
        """
        owner_id = self._require_identity(identity)
        if content is not None:
            self._clean_content(content)

        note = await self._get_owned(owner_id, note_id)
        snapshot = content if content is not None else note.content
        expected_hash = content_digest(snapshot) if self.stale_check else None

        self.states.begin_summarize(owner_id, note_id)
        try:
            try:
                summary = await self.summarizer.summarize(snapshot)
            except SummarizationFailedError:
                raise
            except Exception as e:
                raise SummarizationFailedError(
                    upstream_message=str(e) or type(e).__name__,
                    context={"note_id": str(note_id), "error_type": type(e).__name__},
                ) from e

            summary = (summary or "").strip()
            if not summary:
                raise SummarizationFailedError(
                    upstream_message="summarizer returned an empty summary",
                    context={"note_id": str(note_id)},
                )

            try:
                updated = await self.store.set_summary(
                    owner_id, note_id, summary, expected_content_hash=expected_hash
                )
            except SummarizationFailedError:
                raise
            except SmartNotesError as e:
                raise SummarizationFailedError(
                    message="The summary could not be saved. Please try again.",
                    upstream_message=e.message,
                    context={"note_id": str(note_id), "error_type": type(e).__name__},
                ) from e

            logger.info("Note %s summarized (%d chars)", note_id, len(summary))
        except SummarizationFailedError as e:
            logger.warning(
                "Summarization of note %s failed: %s",
                note_id,
                e.upstream_message or e.message,
                extra={"event": "note_summary_failed", "owner_id": owner_id},
            )
            raise
        finally:
            self.states.finish_summarize(owner_id, note_id)
            self.cache.invalidate(owner_id)

        return self._to_response(owner_id, updated)

    async def summarize_text(self, identity: Optional[Identity], content: Optional[str]) -> str:
        """Summarize arbitrary text for a logged-in caller without touching any note."""
        self._require_identity(identity)
        if content is None or not content.strip():
            raise ValidationError(message="No content provided", field="content")
        try:
            return await self.summarizer.summarize(content)
        except SummarizationFailedError:
            raise
        except Exception as e:
            raise SummarizationFailedError(
                upstream_message=str(e) or type(e).__name__,
                context={"error_type": type(e).__name__},
            ) from e


def build_note_lifecycle() -> NoteLifecycleManager:
    """Wire the production store and summarizer from settings."""
    from smartnotes.services.gemini_service import gemini_summarizer
    from smartnotes.services.note_store import SqlAlchemyNoteStore

    return NoteLifecycleManager(
        store=SqlAlchemyNoteStore(),
        summarizer=gemini_summarizer,
        stale_check=settings.summary_stale_check,
        cache_ttl=settings.notes_cache_ttl,
        title_max_length=settings.title_max_length,
    )
