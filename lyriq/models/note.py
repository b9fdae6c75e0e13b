"""
Note model.

A note is a single song idea.  Its body is either a list of sections
(``structured`` format) or a free text body (``open`` format).  Exactly one
of the two is authoritative at any time, chosen by
:attr:`Note.editor_format`:

- In ``structured`` format, :attr:`Note.sections` is authoritative and
  :attr:`Note.polished_note` is a cache regenerated with :func:`flatten`
  after every structural change.
- In ``open`` format, :attr:`Note.polished_note` is the body and
  :attr:`Note.sections` is left as it was when the note was switched to
  open format.

Everything in this module is a plain value transform without side effects.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Final, Literal

from lyriq.models.lyrics import TimedLine, TimedWord

#: The two body formats of a note.
EditorFormat = Literal["structured", "open"]

STRUCTURED: Final[EditorFormat] = "structured"
OPEN: Final[EditorFormat] = "open"

#: Section type given to new sections when none is chosen.
DEFAULT_SECTION_TYPE: Final[str] = "Verse"
#: Section labels offered to the user.  Any other label is allowed too.
SUGGESTED_SECTION_TYPES: Final[tuple[str, ...]] = (
    "Intro",
    "Verse",
    "Pre-Chorus",
    "Chorus",
    "Bridge",
    "Hook",
    "Outro",
)
#: Title given to new notes.
DEFAULT_TITLE: Final[str] = "New Song"


@dataclass
class AudioTake:
    """
    One recorded audio attempt attached to a section.

    The audio is always held in its durable, self-contained form: base64
    text.  Playable handles are derived from it on demand by
    :class:`~lyriq.services.playback.PlaybackHandleRegistry` and are never
    stored here.
    """

    #: The take ID.
    id: str
    #: The encoded audio bytes (base64).
    data: str
    #: The audio MIME type, e.g. ``audio/webm``.
    mime_type: str
    #: The measured duration, or None if it could not be probed.
    duration_ms: int | None
    #: When the take was recorded, in milliseconds since the epoch.
    timestamp: int

    def to_json(self) -> dict[str, Any]:
        """
        Serialize the take.  The transient ``url`` handle is always null.
        """
        return {
            "id": self.id,
            "data": self.data,
            "mimeType": self.mime_type,
            "durationMs": self.duration_ms,
            "timestamp": self.timestamp,
            "url": None,
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> AudioTake:
        return cls(
            id=data["id"],
            data=data["data"],
            mime_type=data["mimeType"],
            duration_ms=data.get("durationMs"),
            timestamp=data["timestamp"],
        )


@dataclass
class Section:
    """
    A named, orderable chunk of a structured note.

    A section does not know its own index; callers resolve sections by their
    current position in :attr:`Note.sections`.
    """

    #: Free-form label, usually one of :data:`SUGGESTED_SECTION_TYPES`.
    type: str = DEFAULT_SECTION_TYPE
    #: The lyric text.
    content: str = ""
    #: Audio takes, oldest first.
    takes: list[AudioTake] = field(default_factory=list)

    def to_json(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "content": self.content,
            "takes": [take.to_json() for take in self.takes],
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Section:
        return cls(
            type=data["type"],
            content=data["content"],
            takes=[AudioTake.from_json(t) for t in data["takes"]],
        )


@dataclass
class Note:
    """
    Represents a song idea.
    """

    #: The note ID.
    id: str
    #: The note title.
    title: str = DEFAULT_TITLE
    #: The verbatim transcription the structure was built from, if any.
    raw_transcription: str = ""
    #: The ordered sections of the song.
    sections: list[Section] = field(default_factory=list)
    #: The flattened body text.
    polished_note: str = ""
    #: Which of :attr:`sections` and :attr:`polished_note` is authoritative.
    editor_format: EditorFormat = STRUCTURED
    #: Last modification time in milliseconds since the epoch.
    timestamp: int = 0
    #: Weak reference to a :class:`~lyriq.models.project.Project`.
    project_id: str | None = None
    #: Words of a lyric sync transcription.
    synced_words: list[TimedWord] | None = None
    #: Lines derived from :attr:`synced_words`.
    synced_lines: list[TimedLine] | None = None

    @property
    def takes(self) -> list[AudioTake]:
        """All takes in the note, in document order."""
        return [take for section in self.sections for take in section.takes]

    def to_json(self) -> dict[str, Any]:
        """
        Serialize note to a JSON-compatible dictionary.

        Returns:
            Dictionary containing note data

        """
        return {
            "id": self.id,
            "title": self.title,
            "rawTranscription": self.raw_transcription,
            "sections": [section.to_json() for section in self.sections],
            "polishedNote": self.polished_note,
            "editorFormat": self.editor_format,
            "timestamp": self.timestamp,
            "projectId": self.project_id,
            "syncedWords": (
                [w.to_json() for w in self.synced_words]
                if self.synced_words is not None
                else None
            ),
            "syncedLines": (
                [line.to_json() for line in self.synced_lines]
                if self.synced_lines is not None
                else None
            ),
        }

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> Note:
        """
        Create a note from a dictionary in the current schema.

        Older stored shapes must go through
        :func:`lyriq.services.migration.migrate_note` first.

        Args:
            data: Note data dictionary

        Returns:
            The note

        """
        synced_words = data.get("syncedWords")
        synced_lines = data.get("syncedLines")
        return cls(
            id=data["id"],
            title=data["title"],
            raw_transcription=data["rawTranscription"],
            sections=[Section.from_json(s) for s in data["sections"]],
            polished_note=data["polishedNote"],
            editor_format=data["editorFormat"],
            timestamp=data["timestamp"],
            project_id=data.get("projectId"),
            synced_words=(
                [TimedWord.from_json(w) for w in synced_words]
                if synced_words is not None
                else None
            ),
            synced_lines=(
                [TimedLine.from_json(line) for line in synced_lines]
                if synced_lines is not None
                else None
            ),
        )


@dataclass
class NoteState:
    """
    A value copy of a note's editable surface, used for undo/redo.

    Two states are equal when all four fields are structurally equal.
    """

    #: The note title.
    title: str
    #: Deep copy of the note's sections (takes included).
    sections: list[Section]
    #: The flattened or open body text.
    polished_note: str
    #: The body format.
    editor_format: EditorFormat


def snapshot(note: Note) -> NoteState:
    """
    Copy the editable surface of a note.

    Args:
        note: The note to copy

    Returns:
        A state that shares no mutable data with ``note``

    """
    return NoteState(
        title=note.title,
        sections=copy.deepcopy(note.sections),
        polished_note=note.polished_note,
        editor_format=note.editor_format,
    )


def restore(note: Note, state: NoteState) -> None:
    """
    Overwrite the editable surface of ``note`` with ``state`` in place.

    ``id``, ``timestamp`` and ``project_id`` are left alone.  The state is
    copied so it can be restored again later.
    """
    note.title = state.title
    note.sections = copy.deepcopy(state.sections)
    note.polished_note = state.polished_note
    note.editor_format = state.editor_format


def flatten(sections: list[Section]) -> str:
    """
    Render sections as text.

    Each section becomes ``[Type]`` followed by its content on the next
    line; sections are separated by a blank line.

    Args:
        sections: Sections in document order

    Returns:
        The flattened text

    """
    return "\n\n".join(f"[{section.type}]\n{section.content}" for section in sections)


def is_empty_equivalent(sections: list[Section]) -> bool:
    """
    Check whether sections hold nothing worth keeping.

    That is the case with no sections at all, or with exactly one section
    whose content is blank and which has no takes.
    """
    if not sections:
        return True
    only = sections[0]
    return len(sections) == 1 and not only.content.strip() and not only.takes


def to_open_format(note: Note) -> None:
    """
    Switch a note to open format.

    The body becomes the flattened sections.  Sections are kept unchanged so
    that switching back restores them.
    """
    note.polished_note = flatten(note.sections)
    note.editor_format = OPEN


def to_structured_format(note: Note) -> None:
    """
    Switch a note to structured format.

    This conversion is lossy: when the note has no sections, the open text
    is wrapped in a single section of the default type; otherwise the
    existing sections win and the open text is discarded.  No attempt is
    made to parse ``[Type]`` tags back out of the text.
    """
    if not note.sections:
        note.sections = [Section(type=DEFAULT_SECTION_TYPE, content=note.polished_note)]
    note.polished_note = flatten(note.sections)
    note.editor_format = STRUCTURED
