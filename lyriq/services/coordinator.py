"""
Edit coordination: the transactional boundary of note editing.

Every structural edit (add, reorder, delete and re-type sections, format
toggle, AI results, new takes) runs as one undo step::

    snapshot before -> mutate -> commit -> snapshot after

The "before" snapshot first commits whatever the user typed, so typing and
the structural edit land in separate steps.  Free-text edits are
snapshotted on blur with :meth:`EditCoordinator.snapshot_now`, or after a
quiet period with :meth:`EditCoordinator.debounced_snapshot`, so a burst of
keystrokes becomes a single undo step.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import QObject, Signal

from lyriq.exc import TranscriptionFailed
from lyriq.models.lyrics import group_words_into_lines
from lyriq.models.note import (
    DEFAULT_SECTION_TYPE,
    OPEN,
    STRUCTURED,
    Section,
    flatten,
    is_empty_equivalent,
    restore,
    snapshot,
    to_open_format,
    to_structured_format,
)
from lyriq.services.debounce import Debouncer
from lyriq.services.restructure import parse_sections, parse_timed_words

if TYPE_CHECKING:
    from collections.abc import Callable

    from lyriq.models.note import AudioTake, Note, NoteState
    from lyriq.services.edit_buffer import EditBuffer, PendingEdits
    from lyriq.services.restructure import SongStructurer
    from lyriq.services.store import NoteStore

logger = logging.getLogger(__name__)


class EditCoordinator(QObject):
    """
    Applies edits to notes and keeps their undo history.

    Args:
        store: The note store
        buffer: Pending edits reported by the view

    Keyword Args:
        structurer: The AI service.  If None, AI calls fail with a status
            message.
        debounce_ms: Quiet period before free-text edits are snapshotted

    """

    #: Emitted with a note id when its content changed and should be redrawn.
    note_changed = Signal(str)
    #: Emitted with a note id when its undo/redo availability may have changed.
    history_changed = Signal(str)
    #: Emitted with a message for the user.
    status_message = Signal(str)

    def __init__(
        self,
        store: NoteStore,
        buffer: EditBuffer,
        structurer: SongStructurer | None = None,
        debounce_ms: int = 900,
    ) -> None:
        super().__init__()
        #: The note store.
        self.store = store
        #: The undo/redo history, shared with the store.
        self.history = store.history
        #: Pending view edits.
        self.buffer = buffer
        #: The AI service.
        self.structurer = structurer
        #: Debounced snapshots, one timer per note.
        self.debouncer = Debouncer(self._debounced_snapshot_fired, debounce_ms)
        self.store.note_deleted.connect(self._forget_note)

    # ------------------------------------------------------------------
    # Free-text edits
    # ------------------------------------------------------------------

    def commit_edit(self, note_id: str) -> bool:
        """
        Write the pending edits of a note into the note.

        In structured format the section edits are applied by position and
        the flattened body is regenerated; in open format the open text
        becomes the body.  The note is marked modified and saved.

        Args:
            note_id: The note ID

        Returns:
            True if the note exists

        """
        note = self.store.get(note_id)
        if note is None:
            self.buffer.discard(note_id)
            return False
        self._apply_pending(note, self.buffer.take(note_id))
        if note.editor_format == STRUCTURED:
            note.polished_note = flatten(note.sections)
        self.store.touch(note)
        self.store.persist()
        self.store.notes_changed.emit()
        return True

    def snapshot_now(self, note_id: str) -> bool:
        """
        Commit the note and record its state in the undo history.

        Cancels any pending debounced snapshot of the note.

        Returns:
            True if the note exists

        """
        self.debouncer.cancel(note_id)
        note = self.store.get(note_id)
        if note is None:
            return False
        # Seed before committing so the pre-edit state stays reachable
        self.history.init(note_id, snapshot(note))
        self.commit_edit(note_id)
        self._push(note)
        return True

    def debounced_snapshot(self, note_id: str) -> None:
        """
        Snapshot the note once the user has stopped typing for a while.

        Each call restarts the note's quiet period.  Other notes' pending
        snapshots are not affected.
        """
        self.debouncer.trigger(note_id)

    def flush_pending(self, note_id: str) -> bool:
        """
        Run the note's pending debounced snapshot now, if there is one.
        """
        return self.debouncer.flush(note_id)

    # ------------------------------------------------------------------
    # Undo/redo
    # ------------------------------------------------------------------

    def undo(self, note_id: str) -> bool:
        """
        Step the note back to its previous state.

        Typing that is still waiting for its debounced snapshot is
        snapshotted first, so it is what gets undone.

        Returns:
            True if a state was applied

        """
        self._snapshot_unsaved(note_id)
        return self._apply_state(note_id, self.history.undo(note_id))

    def redo(self, note_id: str) -> bool:
        """
        Re-apply the state most recently undone.

        Returns:
            True if a state was applied

        """
        self._snapshot_unsaved(note_id)
        return self._apply_state(note_id, self.history.redo(note_id))

    def can_undo(self, note_id: str) -> bool:
        return self.history.can_undo(note_id)

    def can_redo(self, note_id: str) -> bool:
        return self.history.can_redo(note_id)

    # ------------------------------------------------------------------
    # Structural edits
    # ------------------------------------------------------------------

    def add_section(
        self,
        note_id: str,
        section_type: str = DEFAULT_SECTION_TYPE,
        content: str = "",
        index: int | None = None,
    ) -> bool:
        """
        Insert a new section, at the end unless ``index`` is given.

        Returns:
            True if the note exists

        """

        def mutate(note: Note) -> None:
            section = Section(type=section_type, content=content)
            if index is None:
                note.sections.append(section)
            else:
                note.sections.insert(index, section)

        return self._structural_edit(note_id, mutate)

    def rename_note(self, note_id: str, new_title: str) -> bool:
        """
        Rename a note as one undo step.

        Empty or whitespace-only titles are ignored.

        Returns:
            True if the note was renamed

        """
        if note_id not in self.store or not new_title.strip():
            return False
        return self._structural_edit(
            note_id, lambda note: self.store.rename(note.id, new_title)
        )

    def reorder_sections(self, note_id: str, new_order: list[int]) -> bool:
        """
        Reorder the sections of a note.

        Args:
            note_id: The note ID
            new_order: For each new position, the current index of the
                section that goes there.  ``[2, 0, 1]`` turns ``[A, B, C]``
                into ``[C, A, B]``.

        Raises:
            ValueError: ``new_order`` is not a permutation of the section
                indices

        Returns:
            True if the note exists

        """
        note = self.store.get(note_id)
        if note is None:
            return False
        if sorted(new_order) != list(range(len(note.sections))):
            msg = (
                f"{new_order!r} is not a permutation of "
                f"{len(note.sections)} section indices"
            )
            raise ValueError(msg)

        def mutate(note: Note) -> None:
            note.sections = [note.sections[i] for i in new_order]

        return self._structural_edit(note_id, mutate)

    def delete_section(self, note_id: str, index: int) -> bool:
        """
        Delete the section at ``index``.  Later sections move up by one.

        The playback handles of the section's takes are released.

        Returns:
            True if a section was deleted

        """
        note = self.store.get(note_id)
        if note is None or not 0 <= index < len(note.sections):
            return False

        def mutate(note: Note) -> None:
            section = note.sections.pop(index)
            self.store.playback.release_takes(section.takes)

        return self._structural_edit(note_id, mutate)

    def change_section_type(self, note_id: str, index: int, new_type: str) -> bool:
        """
        Change the type label of the section at ``index``.

        Returns:
            True if the section exists

        """
        note = self.store.get(note_id)
        if note is None or not 0 <= index < len(note.sections):
            return False

        def mutate(note: Note) -> None:
            note.sections[index].type = new_type

        return self._structural_edit(note_id, mutate)

    def toggle_format(self, note_id: str) -> bool:
        """
        Switch a note between structured and open format.

        See :func:`~lyriq.models.note.to_structured_format` for why switching
        back to structured format can discard the open text.

        Returns:
            True if the note exists

        """

        def mutate(note: Note) -> None:
            if note.editor_format == STRUCTURED:
                to_open_format(note)
            else:
                to_structured_format(note)

        return self._structural_edit(note_id, mutate)

    def attach_take(self, note_id: str, section_index: int, take: AudioTake) -> bool:
        """
        Attach a recorded take to the section at ``section_index``.

        The take is its own undo step, so undoing later text edits never
        removes it.

        Returns:
            True if the take was attached

        """
        note = self.store.get(note_id)
        if note is None:
            logger.warning("Dropping take %s: note %s is gone", take.id, note_id)
            return False
        if not 0 <= section_index < len(note.sections):
            logger.warning(
                "Dropping take %s: note %s has no section %d",
                take.id,
                note_id,
                section_index,
            )
            return False

        def mutate(note: Note) -> None:
            note.sections[section_index].takes.append(take)

        return self._structural_edit(note_id, mutate)

    # ------------------------------------------------------------------
    # AI results
    # ------------------------------------------------------------------

    def apply_ai_result(self, note_id: str, sections: list[Section]) -> bool:
        """
        Put AI-produced sections into a note, as one undo step.

        A structured note whose sections are empty-equivalent has them
        replaced; otherwise the new sections are appended.  An open-format
        note gets the flattened sections appended to its body.

        A result for a note that has been deleted meanwhile is dropped.

        Returns:
            True if the result was applied

        """
        if note_id not in self.store:
            logger.warning("Dropping AI result for deleted note %s", note_id)
            self.status_message.emit("The note was deleted before the AI finished.")
            return False
        if not sections:
            self.status_message.emit("The AI found no song sections.")
            return False

        def mutate(note: Note) -> None:
            if note.editor_format == OPEN:
                text = flatten(sections)
                note.polished_note = (
                    f"{note.polished_note}\n\n{text}" if note.polished_note else text
                )
            elif is_empty_equivalent(note.sections):
                note.sections = list(sections)
            else:
                note.sections.extend(sections)

        return self._structural_edit(note_id, mutate)

    def apply_ai_response(self, note_id: str, raw: str) -> bool:
        """
        Parse an AI response and apply it.  Malformed responses become a
        single section holding the raw text.
        """
        return self.apply_ai_result(note_id, parse_sections(raw))

    def restructure_note(self, note_id: str, transcription: str) -> bool:
        """
        Ask the AI to structure a transcription and apply the answer.

        If the AI call fails, the transcription itself becomes a single
        section.

        Returns:
            True if the note was updated

        """
        note = self.store.get(note_id)
        if note is None:
            return False
        note.raw_transcription = transcription
        try:
            raw = self._require_structurer().restructure(transcription)
        except TranscriptionFailed as e:
            logger.exception("Restructuring failed for note %s", note_id)
            self.status_message.emit(f"{e} Kept the transcription as-is.")
            return self.apply_ai_result(
                note_id, [Section(type=DEFAULT_SECTION_TYPE, content=transcription)]
            )
        return self.apply_ai_response(note_id, raw)

    def transcribe_into_note(self, note_id: str, audio: bytes, mime_type: str) -> bool:
        """
        Transcribe a whole-note memo and apply the structured answer.

        If the AI call fails, the note is left unchanged.

        Returns:
            True if the note was updated

        """
        try:
            raw = self._require_structurer().transcribe(audio, mime_type)
        except TranscriptionFailed as e:
            logger.exception("Transcription failed for note %s", note_id)
            self.status_message.emit(str(e))
            return False
        return self.apply_ai_response(note_id, raw)

    def sync_lyrics(self, note_id: str, audio: bytes, mime_type: str) -> bool:
        """
        Transcribe sung audio word by word and store the timed lyrics.

        Returns:
            True if the note's timed lyrics were updated

        """
        try:
            raw = self._require_structurer().transcribe_words(audio, mime_type)
            words = parse_timed_words(raw)
        except (TranscriptionFailed, ValueError) as e:
            logger.exception("Lyric sync failed for note %s", note_id)
            self.status_message.emit(str(e))
            return False
        note = self.store.get(note_id)
        if note is None:
            logger.warning("Dropping lyric sync for deleted note %s", note_id)
            return False
        note.synced_words = words
        note.synced_lines = group_words_into_lines(words)
        self.store.persist()
        self.note_changed.emit(note_id)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _require_structurer(self) -> SongStructurer:
        if self.structurer is None:
            msg = "no AI service configured"
            raise TranscriptionFailed(msg)
        return self.structurer

    def _apply_pending(self, note: Note, pending: PendingEdits) -> None:
        if pending.title is not None and pending.title.strip():
            note.title = pending.title.strip()
        if note.editor_format == OPEN:
            if pending.open_text is not None:
                note.polished_note = pending.open_text
            return
        for index, edit in sorted(pending.sections.items()):
            if not 0 <= index < len(note.sections):
                logger.warning(
                    "Ignoring edit to missing section %d of note %s", index, note.id
                )
                continue
            section = note.sections[index]
            if edit.type is not None:
                section.type = edit.type
            if edit.content is not None:
                section.content = edit.content

    def _structural_edit(self, note_id: str, mutate: Callable[[Note], None]) -> bool:
        note = self.store.get(note_id)
        if note is None:
            return False
        self.snapshot_now(note_id)
        mutate(note)
        self.commit_edit(note_id)
        self._push(note)
        self.note_changed.emit(note_id)
        return True

    def _push(self, note: Note) -> None:
        if self.history.push(note.id, snapshot(note)):
            self.history_changed.emit(note.id)

    def _snapshot_unsaved(self, note_id: str) -> None:
        if self.debouncer.is_pending(note_id) or self.buffer.has_pending(note_id):
            self.snapshot_now(note_id)
            return
        # Changes made directly through the store have no history entry yet
        note = self.store.get(note_id)
        current = self.history.current(note_id)
        if note is not None and current is not None and current != snapshot(note):
            self._push(note)

    def _apply_state(self, note_id: str, state: NoteState | None) -> bool:
        note = self.store.get(note_id)
        if state is None or note is None:
            return False
        before = {take.id for take in note.takes}
        restore(note, state)
        after = {take.id for take in note.takes}
        for take_id in before - after:
            self.store.playback.release(take_id)
        self.store.touch(note)
        self.store.persist()
        self.store.notes_changed.emit()
        self.note_changed.emit(note_id)
        self.history_changed.emit(note_id)
        return True

    def _debounced_snapshot_fired(self, note_id: str) -> None:
        self.snapshot_now(note_id)

    def _forget_note(self, note_id: str) -> None:
        self.debouncer.cancel(note_id)
        self.buffer.discard(note_id)
