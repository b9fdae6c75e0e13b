"""Data models for Lyriq Notes."""

from lyriq.models.lyrics import TimedLine, TimedWord
from lyriq.models.note import AudioTake, Note, NoteState, Section
from lyriq.models.project import Project
from lyriq.models.stored_value import StoredValue

__all__ = [
    "AudioTake",
    "Note",
    "NoteState",
    "Project",
    "Section",
    "StoredValue",
    "TimedLine",
    "TimedWord",
]
