"""
SmartNotes Backend — Custom Exception Hierarchy
=================================================

What:  Application-specific exceptions for every failure the note lifecycle
       can report.
How:   Each exception carries a user-facing message and an optional context
       dict. Global exception handlers (registered in main.py) translate them
       into structured JSON error responses with the right HTTP status.
Who:   Raised by the lifecycle manager, the note store and the summarizer.

Exception Hierarchy:
    SmartNotesError (base)
    ├── UnauthenticatedError           → 401 (no identity present)
    ├── ValidationError                → 400 (empty content, malformed input)
    ├── PermissionDeniedError          → 403 (row owned by someone else)
    ├── NotFoundError                  → 404
    ├── DuplicateTitleError            → 409
    ├── NoteBusyError                  → 409 (illegal view-state transition)
    │   └── SummarizationInProgressError
    ├── SummarizationFailedError       → 502
    │   ├── StaleSummaryError          → 409 (content changed mid-summary)
    │   └── CircuitBreakerOpenError    → 503
    └── StoreError                     → 500 (generic message only)

The `message` of every exception is safe to show to users. Raw upstream
payloads (driver errors, Gemini error bodies) only ever travel in `context`,
which is logged server-side and never returned verbatim.
"""

from typing import Any, Dict, Optional


class SmartNotesError(Exception):
    """
    Base exception for all SmartNotes application errors.

    Attributes:
        message:  User-facing error description (safe to return in API response)
        context:  Additional debug info (logged, returned only where a handler opts in)
    """

    def __init__(
        self,
        message: str = "An unexpected error occurred",
        context: Optional[Dict[str, Any]] = None,
    ):
        self.message = message
        self.context = context or {}
        super().__init__(self.message)


class UnauthenticatedError(SmartNotesError):
    """Raised when an operation requires an identity and none was supplied."""

    def __init__(
        self,
        message: str = "You must be logged in to manage notes.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class ValidationError(SmartNotesError):
    """
    Raised when client input fails validation.

    When:    Empty or whitespace-only content, over-long titles, empty
             summarization input.
    HTTP:    400 Bad Request

    Detected locally: a request that fails validation never reaches the note
    store or the summarization service.
    """

    def __init__(
        self,
        message: str = "Validation failed",
        field: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if field:
            ctx["field"] = field
        super().__init__(message=message, context=ctx)
        self.field = field


class PermissionDeniedError(SmartNotesError):
    """
    Raised when the store refuses access to a row.

    Two sources:
        - The row exists but belongs to another owner (delete path).
        - The database itself rejected the statement (SQLSTATE 42501,
          row-level security or missing grants).
    """

    def __init__(
        self,
        message: str = "Permission denied for this note.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)


class NotFoundError(SmartNotesError):
    """
    Raised when a requested resource does not exist for the caller.

    Notes owned by other users are reported as not found on read and update
    paths, so their existence is not disclosed.
    """

    def __init__(
        self,
        resource: str = "resource",
        resource_id: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = f"The requested {resource} was not found"
        if resource_id:
            message = f"{resource} with ID '{resource_id}' was not found"
        ctx = context or {}
        ctx["resource"] = resource
        if resource_id:
            ctx["resource_id"] = resource_id
        super().__init__(message=message, context=ctx)


class DuplicateTitleError(SmartNotesError):
    """Raised on a (owner, title) uniqueness conflict."""

    def __init__(
        self,
        title: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = "This note title already exists. Please use a different title."
        ctx = context or {}
        if title:
            ctx["title"] = title
        super().__init__(message=message, context=ctx)
        self.title = title


class NoteBusyError(SmartNotesError):
    """
    Raised when a note's view state forbids the requested transition.

    Example: starting to summarize a note that is currently being edited.
    """

    def __init__(
        self,
        note_id: Optional[str] = None,
        state: Optional[str] = None,
        message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        if message is None:
            message = f"The note is busy ({state or 'unknown state'}). Please try again shortly."
        ctx = context or {}
        if note_id:
            ctx["note_id"] = note_id
        if state:
            ctx["state"] = state
        super().__init__(message=message, context=ctx)
        self.note_id = note_id
        self.state = state


class SummarizationInProgressError(NoteBusyError):
    """Raised when a summary for the same note is already being generated."""

    def __init__(self, note_id: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        super().__init__(
            note_id=note_id,
            state="summarizing",
            message="A summary for this note is already being generated.",
            context=context,
        )


class SummarizationFailedError(SmartNotesError):
    """
    Raised when a summary could not be produced or stored.

    Attributes:
        upstream_message: The original error text (network error, Gemini error
            body, store error). Kept for diagnostics; not used as the
            user-facing message.
    """

    def __init__(
        self,
        message: str = "Could not summarize the note. Please try again later.",
        upstream_message: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        ctx = context or {}
        if upstream_message:
            ctx["upstream_message"] = upstream_message
        super().__init__(message=message, context=ctx)
        self.upstream_message = upstream_message


class StaleSummaryError(SummarizationFailedError):
    """
    Raised when a summary arrives after the note's content has changed.

    The summary describes the old snapshot, so it is discarded instead of
    being attached to the new content.
    """

    def __init__(self, note_id: Optional[str] = None, context: Optional[Dict[str, Any]] = None):
        ctx = context or {}
        if note_id:
            ctx["note_id"] = note_id
        super().__init__(
            message="The note was edited while its summary was being generated. "
                    "Please summarize it again.",
            upstream_message="content changed since the summary snapshot was taken",
            context=ctx,
        )


class CircuitBreakerOpenError(SummarizationFailedError):
    """
    Raised when the circuit breaker is in OPEN state.

    After cb_failure_threshold consecutive Gemini failures, calls fail
    immediately for cb_recovery_timeout seconds.
    """

    def __init__(
        self,
        recovery_time: int = 60,
        context: Optional[Dict[str, Any]] = None,
    ):
        message = (
            f"The summarization service is temporarily unavailable due to repeated failures. "
            f"Please retry in approximately {recovery_time} seconds."
        )
        ctx = context or {}
        ctx["recovery_time"] = recovery_time
        super().__init__(message=message, upstream_message="circuit breaker open", context=ctx)
        self.recovery_time = recovery_time


class StoreError(SmartNotesError):
    """
    Raised when a note store operation fails unexpectedly.

    Security Note:
        The message returned to the client is always generic. Driver errors
        (SQL, constraint names) are logged server-side only.
    """

    def __init__(
        self,
        message: str = "A database error occurred. Please try again later.",
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message=message, context=context)
