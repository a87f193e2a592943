"""
SmartNotes Backend — Per-Note View State
==========================================

What:  Small state machine tracking, per (owner, note), whether the note is
       idle, being edited, or being summarized.
How:   A dict of non-idle states plus an explicit table of legal transitions.
       Idle notes have no entry, so the table never grows beyond the notes
       that are busy right now.
Who:   Owned by NoteLifecycleManager.

State Machine:
    idle ──begin_edit──▶ editing ──end_edit──▶ idle
    idle ──begin_summarize──▶ summarizing ──finish_summarize──▶ idle
    editing ──begin_summarize──▶ summarizing

    Edit mode never blocks a summary: an abandoned edit session would
    otherwise leave the note unsummarizable for every other session.

    Any other transition raises NoteBusyError; a second summarize while one
    is in flight raises SummarizationInProgressError, so at most one summary
    request per note is ever dispatched at a time.

All mutations are synchronous. Under asyncio no other coroutine can run
between the check and the set, so no lock is needed.
"""

import logging
from typing import Dict, FrozenSet, Tuple
from uuid import UUID

from smartnotes.exceptions import NoteBusyError, SummarizationInProgressError
from smartnotes.schemas.note import NoteViewState

logger = logging.getLogger(__name__)

NoteKey = Tuple[str, UUID]

IDLE = NoteViewState.IDLE
EDITING = NoteViewState.EDITING
SUMMARIZING = NoteViewState.SUMMARIZING


class NoteStateMachine:
    """Tracks the view state of every busy note."""

    TRANSITIONS: FrozenSet[Tuple[NoteViewState, NoteViewState]] = frozenset({
        (IDLE, EDITING),
        (EDITING, EDITING),
        (EDITING, IDLE),
        (IDLE, SUMMARIZING),
        (EDITING, SUMMARIZING),
        (SUMMARIZING, IDLE),
    })

    def __init__(self):
        self._states: Dict[NoteKey, NoteViewState] = {}

    def state_of(self, owner_id: str, note_id: UUID) -> NoteViewState:
        return self._states.get((owner_id, note_id), IDLE)

    def _transition(self, owner_id: str, note_id: UUID, target: NoteViewState) -> None:
        key = (owner_id, note_id)
        current = self._states.get(key, IDLE)
        if (current, target) not in self.TRANSITIONS:
            if current is SUMMARIZING:
                raise SummarizationInProgressError(note_id=str(note_id))
            raise NoteBusyError(note_id=str(note_id), state=current.value)
        if target is IDLE:
            self._states.pop(key, None)
        else:
            self._states[key] = target
        if current is not target:
            logger.debug("Note %s: %s -> %s", note_id, current.value, target.value)

    def begin_edit(self, owner_id: str, note_id: UUID) -> None:
        self._transition(owner_id, note_id, EDITING)

    def end_edit(self, owner_id: str, note_id: UUID) -> None:
        """Leave edit mode; a no-op for notes that are not being edited."""
        if self.state_of(owner_id, note_id) is EDITING:
            self._transition(owner_id, note_id, IDLE)

    def begin_summarize(self, owner_id: str, note_id: UUID) -> None:
        self._transition(owner_id, note_id, SUMMARIZING)

    def finish_summarize(self, owner_id: str, note_id: UUID) -> None:
        """Always succeeds: the in-flight marker must be released on every path."""
        if self.state_of(owner_id, note_id) is SUMMARIZING:
            self._transition(owner_id, note_id, IDLE)

    def forget(self, owner_id: str, note_id: UUID) -> None:
        """Drop any tracked state for a deleted note."""
        self._states.pop((owner_id, note_id), None)
