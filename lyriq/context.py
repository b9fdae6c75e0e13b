"""Application wiring for Lyriq Notes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from lyriq.db import create_session
from lyriq.services.coordinator import EditCoordinator
from lyriq.services.edit_buffer import EditBuffer
from lyriq.services.export_docx import LyricSheetExporter
from lyriq.services.history import HistoryManager
from lyriq.services.playback import PlaybackHandleRegistry
from lyriq.services.recording import RecordingSession
from lyriq.services.restructure import GeminiStructurer
from lyriq.services.storage import KeyValueStorage, NotePersistence
from lyriq.services.store import NoteStore
from lyriq.settings import Preferences

if TYPE_CHECKING:
    from collections.abc import Callable
    from pathlib import Path

    from sqlalchemy.orm import Session

    from lyriq.services.recording import Microphone, Recorder
    from lyriq.services.restructure import SongStructurer

logger = logging.getLogger(__name__)


class AppContext:
    """
    Owns every long-lived component of the application.

    There is exactly one context per running application; the view layer
    talks to the components through it instead of through module globals.

    Args:
        session: SQLAlchemy session on the notes database
        preferences: The user preferences

    Keyword Args:
        structurer: The AI service.  If None, one is built from the
            preferences.
        microphone: Microphone collaborator.  Recording is only available
            when both ``microphone`` and ``recorder`` are given.
        recorder: Recorder collaborator
        duration_probe: Measures the duration of recorded audio

    """

    def __init__(  # noqa: PLR0913
        self,
        session: Session,
        preferences: Preferences,
        structurer: SongStructurer | None = None,
        microphone: Microphone | None = None,
        recorder: Recorder | None = None,
        duration_probe: Callable[[bytes, str], int] | None = None,
    ) -> None:
        #: The SQLAlchemy session.
        self.session = session
        #: The user preferences.
        self.preferences = preferences
        #: Where notes and projects are saved.
        self.persistence = NotePersistence(KeyValueStorage(session))
        #: Undo/redo history of every note.
        self.history = HistoryManager(max_states=preferences.get_max_states())
        #: Playable handles of takes.
        self.playback = PlaybackHandleRegistry()
        #: The notes and projects.
        self.store = NoteStore(self.history, self.playback, self.persistence)
        #: What the user typed and has not been committed yet.
        self.buffer = EditBuffer()
        #: Applies edits and keeps history.
        self.coordinator = EditCoordinator(
            self.store,
            self.buffer,
            structurer=structurer or GeminiStructurer.from_preferences(preferences),
            debounce_ms=preferences.get_snapshot_debounce_ms(),
        )
        #: Lyric sheet export.
        self.exporter = LyricSheetExporter(self.store)
        #: The recording session, if recording is available.
        self.recording: RecordingSession | None = None
        if microphone is not None and recorder is not None:
            self.recording = RecordingSession(
                self.coordinator,
                microphone,
                recorder,
                duration_probe=duration_probe,
                min_capture_bytes=preferences.get_min_capture_bytes(),
            )

    @classmethod
    def create(
        cls,
        db_path: Path | None = None,
        preferences: Preferences | None = None,
        **kwargs,
    ) -> AppContext:
        """
        Open the database, build every component and load the notes.

        Args:
            db_path: Database file.  If None, the platform default is used.
            preferences: The user preferences.  If None, the application's
                QSettings store is used.

        Keyword Args:
            **kwargs: Passed to :class:`AppContext`

        Returns:
            The ready context, with an active note

        """
        context = cls(create_session(db_path), preferences or Preferences(), **kwargs)
        note = context.store.load()
        logger.info("Loaded %d notes; active note %s", len(context.store), note.id)
        return context

    def close(self) -> None:
        """Flush pending edits and release every resource."""
        if self.recording is not None:
            self.recording.cancel()
        for note in self.store.list_by_recency():
            self.coordinator.flush_pending(note.id)
        self.coordinator.debouncer.cancel_all()
        self.playback.release_all()
        self.session.close()
