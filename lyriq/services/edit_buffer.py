"""In-progress edits reported by the view, not yet written to the notes."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass
class SectionEdit:
    """Pending changes to the section at one position."""

    #: The new section type, if edited.
    type: str | None = None
    #: The new section content, if edited.
    content: str | None = None


@dataclass
class PendingEdits:
    """Pending changes to one note."""

    #: The new title, if edited.
    title: str | None = None
    #: Section edits keyed by the section's current position.
    sections: dict[int, SectionEdit] = field(default_factory=dict)
    #: The new open-format body, if edited.
    open_text: str | None = None

    def is_empty(self) -> bool:
        return self.title is None and not self.sections and self.open_text is None


class EditBuffer:
    """
    Holds what the user has typed but the editor has not committed yet.

    The view writes into the buffer as the user types; the
    :class:`~lyriq.services.coordinator.EditCoordinator` takes the pending
    edits of a note when it commits.  Section edits are keyed by position,
    so any structural change must be preceded by a commit.
    """

    def __init__(self) -> None:
        #: Pending edits, keyed by note id.
        self._pending: dict[str, PendingEdits] = {}

    def _entry(self, note_id: str) -> PendingEdits:
        return self._pending.setdefault(note_id, PendingEdits())

    def set_title(self, note_id: str, title: str) -> None:
        self._entry(note_id).title = title

    def set_section(
        self,
        note_id: str,
        index: int,
        type: str | None = None,  # noqa: A002
        content: str | None = None,
    ) -> None:
        """
        Record an edit to the section at ``index``.

        Fields left as None keep any value recorded earlier.
        """
        edit = self._entry(note_id).sections.setdefault(index, SectionEdit())
        if type is not None:
            edit.type = type
        if content is not None:
            edit.content = content

    def set_sections(self, note_id: str, sections: list[tuple[str, str]]) -> None:
        """
        Record the full ``(type, content)`` list of a note's sections, in
        the order the view shows them.
        """
        entry = self._entry(note_id)
        entry.sections = {
            index: SectionEdit(type=section_type, content=content)
            for index, (section_type, content) in enumerate(sections)
        }

    def set_open_text(self, note_id: str, text: str) -> None:
        self._entry(note_id).open_text = text

    def has_pending(self, note_id: str) -> bool:
        entry = self._pending.get(note_id)
        return entry is not None and not entry.is_empty()

    def peek(self, note_id: str) -> PendingEdits | None:
        return self._pending.get(note_id)

    def take(self, note_id: str) -> PendingEdits:
        """
        Remove and return the pending edits of a note.

        Returns:
            The pending edits; empty if there were none

        """
        return self._pending.pop(note_id, None) or PendingEdits()

    def discard(self, note_id: str) -> None:
        self._pending.pop(note_id, None)
