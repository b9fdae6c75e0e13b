"""Shared pytest fixtures and test fakes for Lyriq Notes tests."""

import json
import os
import tempfile
import time
from pathlib import Path

import pytest
from PySide6.QtCore import QCoreApplication
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from lyriq.db import Base
from lyriq.models.stored_value import StoredValue  # noqa: F401
from lyriq.services.coordinator import EditCoordinator
from lyriq.services.edit_buffer import EditBuffer
from lyriq.services.history import HistoryManager
from lyriq.services.playback import PlaybackHandleRegistry
from lyriq.services.recording import (
    AudioStream,
    CapturedAudio,
    CaptureSession,
    Microphone,
    Recorder,
)
from lyriq.services.restructure import SongStructurer
from lyriq.services.storage import KeyValueStorage, NotePersistence
from lyriq.services.store import NoteStore


@pytest.fixture(scope="session")
def qapp():
    """Create QCoreApplication instance for signals and timers."""
    app = QCoreApplication.instance()
    if app is None:
        app = QCoreApplication([])
    return app


def process_events(app, seconds):
    """Pump the Qt event loop for ``seconds``."""
    start_time = time.time()
    while time.time() - start_time < seconds:
        app.processEvents()
        time.sleep(0.01)


@pytest.fixture
def db_session():
    """Create a temporary database and session for testing."""
    temp_db = tempfile.NamedTemporaryFile(mode="w", delete=False, suffix=".db")
    temp_db.close()
    db_path = Path(temp_db.name)

    engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    engine.dispose()
    os.unlink(temp_db.name)


class FakeClock:
    """Clock that only moves when told to."""

    def __init__(self, start=1_000_000):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, ms):
        self.now += ms


class FakeStream(AudioStream):
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


class FakeMicrophone(Microphone):
    """Microphone that grants access unless told to fail."""

    def __init__(self, error=None):
        self.error = error
        self.streams = []

    def request_stream(self):
        if self.error is not None:
            raise self.error
        stream = FakeStream()
        self.streams.append(stream)
        return stream


class FakeCapture(CaptureSession):
    def __init__(self, audio, start_error=None, stop_error=None):
        self.audio = audio
        self.start_error = start_error
        self.stop_error = stop_error
        self.started = False
        self.paused = False
        self.resumed = 0
        self.aborted = False
        self.stopped = False

    def start(self):
        if self.start_error is not None:
            raise self.start_error
        self.started = True

    def pause(self):
        self.paused = True

    def resume(self):
        self.paused = False
        self.resumed += 1

    def stop(self):
        if self.stop_error is not None:
            raise self.stop_error
        self.stopped = True
        return self.audio

    def abort(self):
        self.aborted = True


class FakeRecorder(Recorder):
    """Recorder whose captures return ``audio``."""

    def __init__(self, audio=None, start_error=None, stop_error=None):
        self.audio = audio or CapturedAudio(data=b"\x01" * 2000, mime_type="audio/webm")
        self.start_error = start_error
        self.stop_error = stop_error
        self.captures = []

    def open(self, stream):
        capture = FakeCapture(self.audio, self.start_error, self.stop_error)
        self.captures.append(capture)
        return capture


class FakeStructurer(SongStructurer):
    """AI service returning canned responses, or failing."""

    def __init__(self, sections=None, words=None, error=None):
        self.sections = sections if sections is not None else [
            {"type": "Verse", "content": "first line"},
            {"type": "Chorus", "content": "hook line"},
        ]
        self.words = words if words is not None else [
            {"word": "hello", "start": 0.0, "end": 0.4},
            {"word": "there", "start": 0.5, "end": 0.9},
            {"word": "again", "start": 2.0, "end": 2.4},
        ]
        self.error = error
        self.calls = []

    def _answer(self, name, value):
        self.calls.append(name)
        if self.error is not None:
            raise self.error
        return value if isinstance(value, str) else json.dumps(value)

    def transcribe(self, audio, mime_type):
        return self._answer("transcribe", self.sections)

    def restructure(self, transcription):
        return self._answer("restructure", self.sections)

    def transcribe_words(self, audio, mime_type):
        return self._answer("transcribe_words", self.words)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def history():
    return HistoryManager(max_states=50)


@pytest.fixture
def playback():
    return PlaybackHandleRegistry()


@pytest.fixture
def persistence(db_session):
    return NotePersistence(KeyValueStorage(db_session))


@pytest.fixture
def store(qapp, history, playback, persistence, clock):
    """A note store with write-through persistence and a fake clock."""
    return NoteStore(history, playback, persistence, clock=clock)


@pytest.fixture
def buffer():
    return EditBuffer()


@pytest.fixture
def structurer():
    return FakeStructurer()


@pytest.fixture
def coordinator(store, buffer, structurer):
    """An edit coordinator with a short debounce."""
    coordinator = EditCoordinator(store, buffer, structurer, debounce_ms=50)
    yield coordinator
    coordinator.debouncer.cancel_all()


@pytest.fixture
def microphone():
    return FakeMicrophone()


@pytest.fixture
def recorder():
    return FakeRecorder()
