"""
SmartNotes Backend — Note SQLAlchemy Model
============================================

What:  ORM model representing the `notes` table.
Who:   Used by SqlAlchemyNoteStore for CRUD operations and by Alembic.

Table Design:
    - id: UUID assigned on insert, never changes
    - owner_id: opaque user id from the identity provider; every statement
      the store issues is filtered by it
    - title: optional, unique per owner when present
    - content: required, never empty at rest
    - summary: NULL until a summarization succeeds; may describe an older
      revision of `content`
    - created_at: UTC insertion time, immutable

    Index on (owner_id, created_at DESC) serves the only listing query:
    "this owner's notes, newest first".
"""

import hashlib
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime, Index, String, Text, UniqueConstraint, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column

from smartnotes.database import Base


def content_digest(content: str) -> str:
    """SHA-256 hex digest of note content, used to detect edits mid-summary."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


class Note(Base):
    """
    A personal note owned by exactly one user.

    Lifecycle:
        1. Created by the owner (content required, title optional)
        2. Title/content overwritten in place by edits
        3. `summary` written by a successful summarization
        4. Deleted permanently (no soft delete, no history)
    """

    __tablename__ = "notes"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
        comment="Unique identifier assigned on insert",
    )

    owner_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Identity-provider user id of the note's owner",
    )

    title: Mapped[Optional[str]] = mapped_column(
        String(200),
        nullable=True,
        default=None,
        comment="Optional title, unique per owner",
    )

    content: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        comment="Note body; never empty",
    )

    summary: Mapped[Optional[str]] = mapped_column(
        Text,
        nullable=True,
        default=None,
        comment="AI-generated summary of some revision of the content",
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
        server_default=func.now(),
        comment="When this note was created (UTC)",
    )

    __table_args__ = (
        UniqueConstraint("owner_id", "title", name="uq_notes_owner_title"),
        Index("idx_notes_owner_created_at", "owner_id", created_at.desc()),
    )

    def content_digest(self) -> str:
        return content_digest(self.content)

    def __repr__(self) -> str:
        return (
            f"<Note(id={self.id}, owner_id='{self.owner_id}', "
            f"created_at='{self.created_at}')>"
        )
