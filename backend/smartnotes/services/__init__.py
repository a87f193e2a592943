"""
SmartNotes Backend — Services Layer
=====================================

What:  Business logic between routes (HTTP) and the external collaborators.

Service Inventory:
    - NoteLifecycleManager: create/list/edit/delete/summarize orchestration
    - NoteStateMachine:     per-note idle / editing / summarizing tracking
    - NoteStore (abstract), SqlAlchemyNoteStore: owner-scoped persistence
    - Summarizer (abstract), GeminiSummarizer: text summarization
    - auth_service:         bearer token → Identity
"""
