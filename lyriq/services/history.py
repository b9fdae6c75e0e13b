"""Per-note undo/redo history of note snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from lyriq.models.note import NoteState


@dataclass
class NoteHistory:
    """Undo and redo stacks of one note."""

    #: Applied states, oldest first.  The top is the current state.
    undo_stack: list[NoteState] = field(default_factory=list)
    #: Undone states, the most recently undone last.
    redo_stack: list[NoteState] = field(default_factory=list)


class HistoryManager:
    """
    Manages bounded undo/redo stacks of :class:`~lyriq.models.note.NoteState`
    values, one pair of stacks per note id.

    The bottom of each undo stack is the note's seed state: undo never pops
    it.  Operations on a note id that was never initialized do nothing and
    return None or False.

    Keyword Args:
        max_states: Maximum number of states kept on each undo stack

    """

    def __init__(self, max_states: int = 50) -> None:
        #: The maximum number of states to keep on an undo stack.
        self.max_states = max_states
        #: The histories, keyed by note id.
        self.histories: dict[str, NoteHistory] = {}

    def init(self, note_id: str, initial_state: NoteState) -> None:
        """
        Seed the history of a note.  Does nothing if it already has one.

        Args:
            note_id: The note ID
            initial_state: The note's current state

        """
        if note_id not in self.histories:
            self.histories[note_id] = NoteHistory(undo_stack=[initial_state])

    def push(self, note_id: str, state: NoteState) -> bool:
        """
        Record a new state for a note.

        A state equal to the current top of the undo stack is ignored, so
        no-op edits do not create history entries.  Any new state clears the
        redo stack.  When the undo stack grows past :attr:`max_states`, the
        oldest state is dropped.

        Args:
            note_id: The note ID
            state: The state to record

        Returns:
            True if the state was recorded, False otherwise

        """
        history = self.histories.get(note_id)
        if history is None:
            return False
        if history.undo_stack and history.undo_stack[-1] == state:
            return False
        history.undo_stack.append(state)
        if len(history.undo_stack) > self.max_states:
            history.undo_stack.pop(0)
        # No branching redo
        history.redo_stack.clear()
        return True

    def undo(self, note_id: str) -> NoteState | None:
        """
        Step a note back one state.

        Args:
            note_id: The note ID

        Returns:
            The state to apply, or None if there is nothing to undo

        """
        if not self.can_undo(note_id):
            return None
        history = self.histories[note_id]
        history.redo_stack.append(history.undo_stack.pop())
        return history.undo_stack[-1]

    def redo(self, note_id: str) -> NoteState | None:
        """
        Re-apply the most recently undone state of a note.

        Args:
            note_id: The note ID

        Returns:
            The state to apply, or None if there is nothing to redo

        """
        if not self.can_redo(note_id):
            return None
        history = self.histories[note_id]
        state = history.redo_stack.pop()
        history.undo_stack.append(state)
        return state

    def can_undo(self, note_id: str) -> bool:
        """
        Check if undo is possible.

        Returns:
            True if undo is available

        """
        history = self.histories.get(note_id)
        return history is not None and len(history.undo_stack) > 1

    def can_redo(self, note_id: str) -> bool:
        """
        Check if redo is possible.

        Returns:
            True if redo is available

        """
        history = self.histories.get(note_id)
        return history is not None and len(history.redo_stack) > 0

    def current(self, note_id: str) -> NoteState | None:
        """Return the state on top of the undo stack of a note, if any."""
        history = self.histories.get(note_id)
        if history is None or not history.undo_stack:
            return None
        return history.undo_stack[-1]

    def has_history(self, note_id: str) -> bool:
        return note_id in self.histories

    def discard(self, note_id: str) -> None:
        """Forget the history of a note."""
        self.histories.pop(note_id, None)

    def clear(self) -> None:
        """Forget all histories."""
        self.histories.clear()
