"""Services package initialization."""

from lyriq.services.coordinator import EditCoordinator
from lyriq.services.debounce import Debouncer
from lyriq.services.edit_buffer import EditBuffer
from lyriq.services.export_docx import LyricSheetExporter
from lyriq.services.history import HistoryManager
from lyriq.services.playback import PlaybackHandleRegistry
from lyriq.services.recording import RecordingSession
from lyriq.services.restructure import GeminiStructurer, SongStructurer
from lyriq.services.storage import KeyValueStorage, NotePersistence
from lyriq.services.store import NoteStore

__all__ = [
    "Debouncer",
    "EditBuffer",
    "EditCoordinator",
    "GeminiStructurer",
    "HistoryManager",
    "KeyValueStorage",
    "LyricSheetExporter",
    "NotePersistence",
    "NoteStore",
    "PlaybackHandleRegistry",
    "RecordingSession",
    "SongStructurer",
]
