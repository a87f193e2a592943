"""Create notes table

Revision ID: 001
Revises: None
Create Date: 2026-10-19 00:00:00.000000+00:00

What:  Creates the `notes` table: one row per personal note, scoped to its
       owner, with an optional stored summary.
How:   UUID primary key, TIMESTAMP WITH TIME ZONE, a per-owner unique title
       and a composite index for the newest-first listing.

Rollback: downgrade() drops the table (all notes are lost).
"""

from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "notes",
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
            comment="Unique note identifier",
        ),
        sa.Column(
            "owner_id",
            sa.String(255),
            nullable=False,
            comment="Identity (JWT sub) that owns the note",
        ),
        sa.Column(
            "title",
            sa.String(200),
            nullable=True,
            comment="Optional title, unique per owner",
        ),
        sa.Column(
            "content",
            sa.Text(),
            nullable=False,
            comment="Note body; never empty or whitespace-only",
        ),
        sa.Column(
            "summary",
            sa.Text(),
            nullable=True,
            comment="Most recent generated summary, absent until summarized",
        ),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
            comment="When the note was created (UTC)",
        ),
        sa.PrimaryKeyConstraint("id"),
        # NULL titles never collide: Postgres treats NULLs as distinct.
        sa.UniqueConstraint("owner_id", "title", name="uq_notes_owner_title"),
    )

    # Listing query: WHERE owner_id = ? ORDER BY created_at DESC
    op.create_index(
        "idx_notes_owner_created_at",
        "notes",
        ["owner_id", sa.text("created_at DESC")],
    )


def downgrade() -> None:
    op.drop_index("idx_notes_owner_created_at", table_name="notes")
    op.drop_table("notes")
