"""Unit tests for RecordingSession."""

import pytest

from lyriq.exc import (
    CaptureFailed,
    InvalidTransition,
    PermissionDenied,
    RecordingInProgress,
    TranscriptionFailed,
)
from lyriq.services.coordinator import EditCoordinator
from lyriq.services.recording import (
    CapturedAudio,
    RecordingOutcome,
    RecordingSession,
    RecordingState,
)
from lyriq.utils import decode_audio
from tests.conftest import FakeMicrophone, FakeRecorder, FakeStructurer


@pytest.fixture
def note(store):
    return store.create()


@pytest.fixture
def session(coordinator, microphone, recorder, clock):
    return RecordingSession(
        coordinator,
        microphone,
        recorder,
        duration_probe=lambda data, mime_type: 2500,
        min_capture_bytes=1000,
        clock=clock,
    )


@pytest.fixture
def states(session):
    seen = []
    session.state_changed.connect(lambda state: seen.append(state))
    return seen


class TestRecordingLifecycle:
    """Test cases for the normal state transitions."""

    def test_start(self, session, note, states, microphone):
        assert session.start(note.id, section_index=0) is True
        assert session.state == RecordingState.RECORDING
        assert session.is_open
        assert states == ["requesting-permission", "recording"]
        assert session.target.note_id == note.id
        assert len(microphone.streams) == 1

    def test_take_attached(self, session, note, recorder, microphone):
        session.start(note.id, section_index=0)

        outcome = session.finish()

        assert outcome == RecordingOutcome.TAKE_ATTACHED
        assert session.state == RecordingState.COMMITTED
        assert not session.is_open
        take = note.sections[0].takes[0]
        assert decode_audio(take.data) == recorder.audio.data
        assert take.mime_type == "audio/webm"
        assert take.duration_ms == 2500
        assert microphone.streams[0].closed

    def test_whole_note_transcription(self, session, note, structurer):
        session.start(note.id)
        assert session.finish() == RecordingOutcome.TRANSCRIBED
        assert [s.content for s in note.sections] == ["first line", "hook line"]
        assert structurer.calls == ["transcribe"]

    def test_lyric_sync(self, session, note):
        session.start(note.id, sync=True)
        assert session.finish() == RecordingOutcome.SYNCED
        assert len(note.synced_lines) == 2

    def test_pause_then_finish(self, session, note, recorder, states):
        session.start(note.id, section_index=0)
        session.pause()
        assert session.state == RecordingState.PAUSED
        assert recorder.captures[0].paused

        assert session.finish() == RecordingOutcome.TAKE_ATTACHED
        assert states[-2:] == ["finishing", "committed"]

    def test_resume_keeps_capture(self, session, note, recorder, states):
        session.start(note.id, section_index=0)
        session.pause()
        session.resume()

        assert session.state == RecordingState.RECORDING
        assert len(recorder.captures) == 1
        assert recorder.captures[0].resumed == 1
        assert not recorder.captures[0].aborted
        assert states[-2:] == ["paused", "recording"]

    def test_retake_discards_paused_capture(self, session, note, recorder, microphone):
        session.start(note.id, section_index=0)
        session.pause()

        assert session.retake() is True

        assert session.state == RecordingState.RECORDING
        assert recorder.captures[0].aborted
        assert len(recorder.captures) == 2
        # The stream stays open across a retake
        assert len(microphone.streams) == 1
        assert not microphone.streams[0].closed

    def test_cancel(self, session, note, recorder, microphone):
        finished = []
        session.finished.connect(lambda outcome: finished.append(outcome))
        session.start(note.id, section_index=0)

        assert session.cancel() is True

        assert session.state == RecordingState.IDLE
        assert recorder.captures[0].aborted
        assert microphone.streams[0].closed
        assert note.sections[0].takes == []
        assert finished == ["cancelled"]

    def test_cancel_when_idle(self, session):
        assert session.cancel() is False

    def test_new_session_after_commit(self, session, note):
        session.start(note.id, section_index=0)
        session.finish()
        assert session.start(note.id, section_index=0) is True


class TestRecordingTimer:
    """Test cases for elapsed_ms()."""

    def test_elapsed_stops_while_paused(self, session, note, clock):
        assert session.elapsed_ms() == 0
        session.start(note.id)
        clock.advance(1500)
        session.pause()
        clock.advance(5000)
        assert session.elapsed_ms() == 1500

    def test_elapsed_excludes_every_pause(self, session, note, recorder, clock):
        session.start(note.id, section_index=0)
        clock.advance(1000)
        session.pause()
        clock.advance(4000)
        session.resume()
        clock.advance(500)
        session.pause()
        clock.advance(3000)
        assert session.elapsed_ms() == 1500

        assert session.finish() == RecordingOutcome.TAKE_ATTACHED
        assert len(recorder.captures) == 1
        assert recorder.captures[0].stopped
        assert len(note.sections[0].takes) == 1

    def test_retake_after_resume_resets_elapsed(self, session, note, clock):
        session.start(note.id)
        clock.advance(1000)
        session.pause()
        clock.advance(700)
        session.resume()
        clock.advance(100)
        session.pause()
        session.retake()
        clock.advance(300)
        assert session.elapsed_ms() == 300

    def test_retake_resets_elapsed(self, session, note, clock):
        session.start(note.id)
        clock.advance(1500)
        session.pause()
        session.retake()
        clock.advance(200)
        assert session.elapsed_ms() == 200


class TestRecordingGuards:
    """Test cases for illegal transitions and failures."""

    def test_start_while_open_raises(self, session, note):
        session.start(note.id)
        with pytest.raises(RecordingInProgress):
            session.start(note.id)
        assert session.state == RecordingState.RECORDING

    def test_start_with_replace_cancels_old(self, session, note, recorder):
        session.start(note.id, section_index=0)
        assert session.start(note.id, replace=True) is True
        assert recorder.captures[0].aborted
        assert session.target.section_index is None

    def test_resume_while_recording_raises(self, session, note):
        session.start(note.id)
        with pytest.raises(InvalidTransition):
            session.resume()

    @pytest.mark.parametrize("action", ["pause", "resume", "retake", "finish"])
    def test_illegal_from_idle(self, session, action):
        with pytest.raises(InvalidTransition):
            getattr(session, action)()

    def test_retake_while_recording_raises(self, session, note):
        session.start(note.id)
        with pytest.raises(InvalidTransition):
            session.retake()

    def test_pause_while_paused_raises(self, session, note):
        session.start(note.id)
        session.pause()
        with pytest.raises(InvalidTransition):
            session.pause()

    def test_permission_denied(self, coordinator, note):
        session = RecordingSession(
            coordinator, FakeMicrophone(error=PermissionDenied("blocked")), FakeRecorder()
        )
        messages = []
        session.status_message.connect(lambda message: messages.append(message))

        assert session.start(note.id) is False

        assert session.state == RecordingState.IDLE
        assert "blocked" in messages[0]

    def test_no_input_device(self, coordinator, note):
        session = RecordingSession(
            coordinator, FakeMicrophone(error=CaptureFailed("no device")), FakeRecorder()
        )
        assert session.start(note.id) is False
        assert session.state == RecordingState.IDLE

    def test_recorder_fails_to_start(self, coordinator, note):
        microphone = FakeMicrophone()
        session = RecordingSession(
            coordinator,
            microphone,
            FakeRecorder(start_error=CaptureFailed("busy")),
        )
        assert session.start(note.id) is False
        assert session.state == RecordingState.IDLE
        assert microphone.streams[0].closed

    def test_recorder_fails_to_stop(self, coordinator, note):
        session = RecordingSession(
            coordinator, FakeMicrophone(), FakeRecorder(stop_error=CaptureFailed("io"))
        )
        session.start(note.id, section_index=0)
        assert session.finish() == RecordingOutcome.FAILED
        assert session.state == RecordingState.DISCARDED
        assert note.sections[0].takes == []


class TestRecordingCommit:
    """Test cases for what happens to finished audio."""

    def test_too_short_is_discarded(self, coordinator, note):
        recorder = FakeRecorder(audio=CapturedAudio(b"\x01" * 999, "audio/webm"))
        session = RecordingSession(coordinator, FakeMicrophone(), recorder)
        messages = []
        session.status_message.connect(lambda message: messages.append(message))
        session.start(note.id, section_index=0)

        assert session.finish() == RecordingOutcome.TOO_SHORT

        assert session.state == RecordingState.DISCARDED
        assert note.sections[0].takes == []
        assert messages == ["Recording too short."]

    def test_exactly_minimum_is_kept(self, coordinator, note):
        recorder = FakeRecorder(audio=CapturedAudio(b"\x01" * 1000, "audio/webm"))
        session = RecordingSession(coordinator, FakeMicrophone(), recorder)
        session.start(note.id, section_index=0)
        assert session.finish() == RecordingOutcome.TAKE_ATTACHED

    def test_duration_probe_failure_keeps_take(self, coordinator, note):
        def probe(data, mime_type):
            raise RuntimeError("unreadable header")

        session = RecordingSession(
            coordinator, FakeMicrophone(), FakeRecorder(), duration_probe=probe
        )
        session.start(note.id, section_index=0)

        assert session.finish() == RecordingOutcome.TAKE_ATTACHED
        assert note.sections[0].takes[0].duration_ms is None

    def test_section_deleted_while_recording(self, session, coordinator, note):
        session.start(note.id, section_index=0)
        coordinator.delete_section(note.id, 0)

        assert session.finish() == RecordingOutcome.FAILED
        assert session.state == RecordingState.DISCARDED

    def test_note_deleted_while_recording(self, session, store, note):
        session.start(note.id, section_index=0)
        store.delete(note.id)

        assert session.finish() == RecordingOutcome.FAILED
        assert note.id not in store

    def test_transcription_failure(self, store, buffer, note):
        coordinator = EditCoordinator(
            store, buffer, FakeStructurer(error=TranscriptionFailed("quota"))
        )
        session = RecordingSession(coordinator, FakeMicrophone(), FakeRecorder())
        session.start(note.id)

        assert session.finish() == RecordingOutcome.FAILED
        assert session.state == RecordingState.DISCARDED
        assert [s.content for s in note.sections] == [""]

    def test_take_is_undoable(self, session, coordinator, note):
        session.start(note.id, section_index=0)
        session.finish()
        coordinator.undo(note.id)
        assert note.sections[0].takes == []

    def test_too_short_never_calls_ai(self, store, buffer, note):
        structurer = FakeStructurer()
        coordinator = EditCoordinator(store, buffer, structurer)
        recorder = FakeRecorder(audio=CapturedAudio(b"\x01" * 10, "audio/webm"))
        session = RecordingSession(coordinator, FakeMicrophone(), recorder)
        session.start(note.id)

        assert session.finish() == RecordingOutcome.TOO_SHORT
        assert structurer.calls == []
