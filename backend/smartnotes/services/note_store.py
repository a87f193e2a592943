"""
SmartNotes Backend — Note Store
=================================

What:  Persistence boundary for notes: an abstract NoteStore and its async
       SQLAlchemy implementation.
How:   Every statement is filtered by owner id, which gives the same
       per-row ownership guarantees a row-level-security policy would.
       Driver errors are classified into application exceptions here, at the
       call site, with the driver message kept in `context` only.
Who:   Used exclusively by NoteLifecycleManager.

Error classification:
    unique violation (SQLSTATE 23505 / "UNIQUE constraint failed") → DuplicateTitleError
    insufficient privilege (SQLSTATE 42501 / "permission denied")   → PermissionDeniedError
    anything else from the driver                                   → StoreError
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional
from uuid import UUID

from sqlalchemy import delete, select, text
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import async_sessionmaker

from smartnotes.database import async_session_factory, session_scope
from smartnotes.exceptions import (
    DuplicateTitleError,
    NotFoundError,
    PermissionDeniedError,
    SmartNotesError,
    StaleSummaryError,
    StoreError,
)
from smartnotes.models.note import Note, content_digest

logger = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
INSUFFICIENT_PRIVILEGE = "42501"


class NoteStore(ABC):
    """
    Abstract note persistence.

    All methods are scoped to `owner_id`: a row owned by someone else behaves
    as if it did not exist, except for delete (see below).
    """

    @abstractmethod
    async def list_by_owner(self, owner_id: str) -> List[Note]:
        """All notes of `owner_id`, newest created first."""

    @abstractmethod
    async def get(self, owner_id: str, note_id: UUID) -> Optional[Note]:
        """The note, or None if it does not exist for this owner."""

    @abstractmethod
    async def insert(self, owner_id: str, title: Optional[str], content: str) -> Note:
        """Insert a new note stamped with the current time."""

    @abstractmethod
    async def update(
        self, owner_id: str, note_id: UUID, title: Optional[str], content: str
    ) -> Optional[Note]:
        """Overwrite title/content. None if no such note for this owner."""

    @abstractmethod
    async def set_summary(
        self,
        owner_id: str,
        note_id: UUID,
        summary: str,
        expected_content_hash: Optional[str] = None,
    ) -> Note:
        """
        Store `summary` on the note.

        When `expected_content_hash` is given, the write only happens if the
        note's current content still hashes to it; otherwise StaleSummaryError.
        Raises NotFoundError if the note is gone.
        """

    @abstractmethod
    async def delete(self, owner_id: str, note_id: UUID) -> bool:
        """
        Delete the note. Returns True if a row was removed, False if it was
        already absent. Raises PermissionDeniedError if the row exists but is
        owned by someone else.
        """

    @abstractmethod
    async def ping(self) -> None:
        """Raise if the store is unreachable."""


def classify_store_error(
    exc: BaseException,
    operation: str,
    title: Optional[str] = None,
) -> SmartNotesError:
    """Translate a driver/SQLAlchemy error into an application exception."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    detail = str(orig if orig is not None else exc)
    lowered = detail.lower()
    context = {"operation": operation, "error_type": type(exc).__name__, "upstream": detail}

    if isinstance(exc, IntegrityError) and (
        code == UNIQUE_VIOLATION or "unique" in lowered
    ):
        return DuplicateTitleError(title=title, context=context)
    if code == INSUFFICIENT_PRIVILEGE or "permission denied" in lowered:
        return PermissionDeniedError(context=context)
    return StoreError(
        message="Could not access your notes. Please try again.",
        context=context,
    )


class SqlAlchemyNoteStore(NoteStore):
    """
    NoteStore backed by the `notes` table.

    Each call runs in its own short transaction (session_scope). Rows are
    returned detached; the session factory uses expire_on_commit=False so
    their attributes stay loaded.
    """

    def __init__(self, session_factory: Optional[async_sessionmaker] = None):
        self._session_factory = session_factory or async_session_factory

    async def list_by_owner(self, owner_id: str) -> List[Note]:
        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(
                    select(Note)
                    .where(Note.owner_id == owner_id)
                    .order_by(Note.created_at.desc())
                )
                return list(result.scalars().all())
        except (SQLAlchemyError, OSError) as e:
            raise classify_store_error(e, "list") from e

    async def get(self, owner_id: str, note_id: UUID) -> Optional[Note]:
        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(
                    select(Note).where(Note.id == note_id, Note.owner_id == owner_id)
                )
                return result.scalar_one_or_none()
        except (SQLAlchemyError, OSError) as e:
            raise classify_store_error(e, "get") from e

    async def insert(self, owner_id: str, title: Optional[str], content: str) -> Note:
        try:
            async with session_scope(self._session_factory) as session:
                note = Note(owner_id=owner_id, title=title, content=content)
                session.add(note)
                await session.flush()
            logger.info("Note %s inserted for owner %s", note.id, owner_id)
            return note
        except (SQLAlchemyError, OSError) as e:
            raise classify_store_error(e, "insert", title=title) from e

    async def update(
        self, owner_id: str, note_id: UUID, title: Optional[str], content: str
    ) -> Optional[Note]:
        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(
                    select(Note)
                    .where(Note.id == note_id, Note.owner_id == owner_id)
                    .with_for_update()
                )
                note = result.scalar_one_or_none()
                if note is None:
                    return None
                note.title = title
                note.content = content
                await session.flush()
            return note
        except (SQLAlchemyError, OSError) as e:
            raise classify_store_error(e, "update", title=title) from e

    async def set_summary(
        self,
        owner_id: str,
        note_id: UUID,
        summary: str,
        expected_content_hash: Optional[str] = None,
    ) -> Note:
        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(
                    select(Note)
                    .where(Note.id == note_id, Note.owner_id == owner_id)
                    .with_for_update()
                )
                note = result.scalar_one_or_none()
                if note is None:
                    raise NotFoundError(resource="note", resource_id=str(note_id))
                if (
                    expected_content_hash is not None
                    and content_digest(note.content) != expected_content_hash
                ):
                    raise StaleSummaryError(note_id=str(note_id))
                note.summary = summary
                await session.flush()
            return note
        except SmartNotesError:
            raise
        except (SQLAlchemyError, OSError) as e:
            raise classify_store_error(e, "set_summary") from e

    async def delete(self, owner_id: str, note_id: UUID) -> bool:
        try:
            async with session_scope(self._session_factory) as session:
                result = await session.execute(
                    delete(Note).where(Note.id == note_id, Note.owner_id == owner_id)
                )
                if result.rowcount:
                    return True
                other_owner = await session.scalar(
                    select(Note.owner_id).where(Note.id == note_id)
                )
                if other_owner is not None:
                    raise PermissionDeniedError(
                        message="You can only delete your own notes.",
                        context={"note_id": str(note_id)},
                    )
                return False
        except SmartNotesError:
            raise
        except (SQLAlchemyError, OSError) as e:
            raise classify_store_error(e, "delete") from e

    async def ping(self) -> None:
        async with session_scope(self._session_factory) as session:
            await session.execute(text("SELECT 1"))
