"""
SmartNotes Backend — Application Package
=========================================

What: Personal notes service with on-demand AI summaries.
Who:  Imported by uvicorn (`smartnotes.main:app`), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │           Routes (API Layer)        │  ← HTTP concerns, identity extraction
    ├─────────────────────────────────────┤
    │   Note Lifecycle Manager (core)     │  ← validation, view state, summaries
    ├─────────────────────────────────────┤
    │   NoteStore      │    Summarizer    │  ← SQLAlchemy / Gemini adapters
    ├─────────────────────────────────────┤
    │        Database (Persistence)       │  ← Async SQLAlchemy sessions
    └─────────────────────────────────────┘

    The core never reads ambient session state: every operation receives the
    caller's Identity explicitly, so it can be driven from HTTP handlers,
    scripts or tests alike.
"""

__version__ = "1.0.0"
