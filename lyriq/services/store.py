"""In-memory collection of notes and projects."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from PySide6.QtCore import QObject, Signal

from lyriq.exc import AlreadyExists, DoesNotExist
from lyriq.models.note import (
    DEFAULT_TITLE,
    STRUCTURED,
    Note,
    Section,
    flatten,
    snapshot,
)
from lyriq.models.project import Project
from lyriq.utils import new_id, now_ms

if TYPE_CHECKING:
    from collections.abc import Callable

    from lyriq.services.history import HistoryManager
    from lyriq.services.playback import PlaybackHandleRegistry
    from lyriq.services.storage import NotePersistence

logger = logging.getLogger(__name__)


class NoteStore(QObject):
    """
    Owns every note and project in memory, and which note is active.

    Every change is written through to the persistence layer right away.

    Args:
        history: Undo/redo history, seeded when a note becomes active
        playback: Registry whose handles are released when notes go away

    Keyword Args:
        persistence: Where notes and projects are saved.  If None, nothing
            is saved.
        clock: Function returning the current time in milliseconds

    """

    #: Emitted when the set of notes or their titles/timestamps change.
    notes_changed = Signal()
    #: Emitted with the note id when a note becomes the active note.
    active_note_changed = Signal(str)
    #: Emitted with the note id after a note is deleted.
    note_deleted = Signal(str)
    #: Emitted when the set of projects or their names change.
    projects_changed = Signal()

    def __init__(
        self,
        history: HistoryManager,
        playback: PlaybackHandleRegistry,
        persistence: NotePersistence | None = None,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__()
        #: The undo/redo history.
        self.history = history
        #: The playback handle registry.
        self.playback = playback
        #: The persistence layer.
        self.persistence = persistence
        #: The clock.
        self.clock = clock
        #: The notes, keyed by ID, in insertion order.
        self._notes: dict[str, Note] = {}
        #: The projects, keyed by ID, in insertion order.
        self._projects: dict[str, Project] = {}
        #: The active note ID.
        self._active_note_id: str | None = None

    # ------------------------------------------------------------------
    # Notes
    # ------------------------------------------------------------------

    @property
    def active_note_id(self) -> str | None:
        return self._active_note_id

    @property
    def active_note(self) -> Note | None:
        if self._active_note_id is None:
            return None
        return self._notes.get(self._active_note_id)

    def __contains__(self, note_id: object) -> bool:
        return note_id in self._notes

    def __len__(self) -> int:
        return len(self._notes)

    def get(self, note_id: str) -> Note | None:
        """
        Get a note by ID.

        Returns:
            The note, or None if not found

        """
        return self._notes.get(note_id)

    def require(self, note_id: str) -> Note:
        """
        Get a note by ID.

        Raises:
            DoesNotExist: No note has this ID

        """
        note = self._notes.get(note_id)
        if note is None:
            raise DoesNotExist("Note", note_id)
        return note

    def add(self, note: Note) -> None:
        """
        Register an existing note without activating it.

        The flattened body of a structured note is regenerated so it agrees
        with the sections.

        Raises:
            AlreadyExists: A note with the same ID is already registered

        """
        if note.id in self._notes:
            raise AlreadyExists("Note", note.id)
        if note.editor_format == STRUCTURED:
            note.polished_note = flatten(note.sections)
        self._notes[note.id] = note

    def create(self, title: str = DEFAULT_TITLE) -> Note:
        """
        Create a new note and make it the active note.

        The note starts in structured format with one empty section of the
        default type.

        Keyword Args:
            title: The note title

        Returns:
            The new note

        """
        note = Note(
            id=new_id("n"),
            title=title,
            sections=[Section()],
            editor_format=STRUCTURED,
            timestamp=self.clock(),
        )
        self.add(note)
        self.history.init(note.id, snapshot(note))
        logger.info("Created note %s", note.id)
        self.persist()
        self.set_active(note.id)
        return note

    def set_active(self, note_id: str) -> Note:
        """
        Make a note the active note.

        Seeds the note's undo history the first time it becomes active.

        Raises:
            DoesNotExist: No note has this ID

        Returns:
            The note

        """
        note = self.require(note_id)
        self.history.init(note_id, snapshot(note))
        self._active_note_id = note_id
        self.active_note_changed.emit(note_id)
        self.notes_changed.emit()
        return note

    def delete(self, note_id: str) -> bool:
        """
        Delete a note, its history and the playback handles of its takes.

        If the note was active, the most recently modified remaining note
        becomes active, or a fresh note is created when none remain.

        Returns:
            True if the note existed

        """
        note = self._notes.pop(note_id, None)
        if note is None:
            return False
        self.playback.release_takes(note.takes)
        self.history.discard(note_id)
        logger.info("Deleted note %s", note_id)
        self.persist()
        self.note_deleted.emit(note_id)
        if self._active_note_id == note_id:
            self._active_note_id = None
            remaining = self.list_by_recency()
            if remaining:
                self.set_active(remaining[0].id)
            else:
                self.create()
        else:
            self.notes_changed.emit()
        return True

    def rename(self, note_id: str, new_title: str) -> bool:
        """
        Rename a note.

        Empty or whitespace-only titles are ignored.

        Returns:
            True if the note was renamed

        """
        note = self._notes.get(note_id)
        if note is None:
            return False
        title = new_title.strip()
        if not title:
            return False
        note.title = title
        self.touch(note)
        self.persist()
        self.notes_changed.emit()
        return True

    def touch(self, note: Note) -> None:
        """Mark a note as modified now."""
        note.timestamp = self.clock()

    def list_by_recency(self) -> list[Note]:
        """
        List all notes, most recently modified first.

        Notes with equal timestamps keep their insertion order.
        """
        return sorted(self._notes.values(), key=lambda n: n.timestamp, reverse=True)

    def list_by_project(self, project_id: str | None) -> list[Note]:
        """List the notes of one project, most recently modified first."""
        return [n for n in self.list_by_recency() if n.project_id == project_id]

    def load(self) -> Note:
        """
        Load notes and projects from persistence and activate a note.

        The most recently modified note becomes active.  With no stored
        notes, a fresh note is created.

        Returns:
            The active note

        """
        if self.persistence is not None:
            for project in self.persistence.load_projects():
                if project.id in self._projects:
                    logger.warning("Skipping duplicate stored project %s", project.id)
                    continue
                self._projects[project.id] = project
            for note in self.persistence.load_notes():
                try:
                    self.add(note)
                except AlreadyExists:
                    logger.warning("Skipping duplicate stored note %s", note.id)
        self.projects_changed.emit()
        notes = self.list_by_recency()
        if not notes:
            return self.create()
        return self.set_active(notes[0].id)

    def persist(self) -> None:
        """Write all notes through to persistence."""
        if self.persistence is not None:
            self.persistence.save_notes(self._notes.values())

    # ------------------------------------------------------------------
    # Projects
    # ------------------------------------------------------------------

    def list_projects(self) -> list[Project]:
        return list(self._projects.values())

    def get_project(self, project_id: str) -> Project | None:
        return self._projects.get(project_id)

    def create_project(self, name: str) -> Project | None:
        """
        Create a project.

        Returns:
            The new project, or None if the name is empty

        """
        name = name.strip()
        if not name:
            return None
        project = Project(id=new_id("p"), name=name)
        self._projects[project.id] = project
        self._persist_projects()
        self.projects_changed.emit()
        return project

    def rename_project(self, project_id: str, name: str) -> bool:
        project = self._projects.get(project_id)
        name = name.strip()
        if project is None or not name:
            return False
        project.name = name
        self._persist_projects()
        self.projects_changed.emit()
        return True

    def delete_project(self, project_id: str) -> bool:
        """
        Delete a project.  Notes that point at it are left as they are.

        Returns:
            True if the project existed

        """
        if self._projects.pop(project_id, None) is None:
            return False
        self._persist_projects()
        self.projects_changed.emit()
        return True

    def assign_project(self, note_id: str, project_id: str | None) -> None:
        """
        Put a note in a project, or take it out of any project.

        Raises:
            DoesNotExist: The note or the project does not exist

        """
        note = self.require(note_id)
        if project_id is not None and project_id not in self._projects:
            raise DoesNotExist("Project", project_id)
        note.project_id = project_id
        self.touch(note)
        self.persist()
        self.notes_changed.emit()

    def _persist_projects(self) -> None:
        if self.persistence is not None:
            self.persistence.save_projects(self._projects.values())
