"""
Recording session lifecycle.

One session at a time captures audio for a note::

    IDLE -> REQUESTING_PERMISSION -> RECORDING <-> PAUSED
         -> FINISHING -> COMMITTED | DISCARDED

Pausing freezes the capture without closing the stream.  From PAUSED,
:meth:`RecordingSession.resume` continues the same capture and
:meth:`RecordingSession.retake` throws it away and starts a fresh one.
:meth:`RecordingSession.cancel` closes everything from any open state and
returns to IDLE without committing.

The microphone, the recorder and the duration probe are collaborators
supplied by the platform layer; the session only decides what happens with
their results.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, cast

from PySide6.QtCore import QObject, Signal

from lyriq.exc import (
    CaptureFailed,
    InvalidTransition,
    PermissionDenied,
    RecordingInProgress,
)
from lyriq.models.note import AudioTake
from lyriq.utils import encode_audio, new_id, now_ms

if TYPE_CHECKING:
    from collections.abc import Callable

    from lyriq.services.coordinator import EditCoordinator

logger = logging.getLogger(__name__)


class RecordingState(StrEnum):
    """States of a recording session."""

    IDLE = "idle"
    REQUESTING_PERMISSION = "requesting-permission"
    RECORDING = "recording"
    PAUSED = "paused"
    FINISHING = "finishing"
    COMMITTED = "committed"
    DISCARDED = "discarded"


class RecordingOutcome(StrEnum):
    """How a session ended."""

    #: The audio became a take of the target section.
    TAKE_ATTACHED = "take-attached"
    #: The audio was transcribed into the note's sections.
    TRANSCRIBED = "transcribed"
    #: The audio was transcribed into the note's timed lyrics.
    SYNCED = "synced"
    #: The capture was below the minimum size.
    TOO_SHORT = "too-short"
    #: The user cancelled.
    CANCELLED = "cancelled"
    #: Capture or transcription failed; nothing was committed.
    FAILED = "failed"


#: States in which a session holds the microphone or a capture.
OPEN_STATES = frozenset(
    {
        RecordingState.REQUESTING_PERMISSION,
        RecordingState.RECORDING,
        RecordingState.PAUSED,
        RecordingState.FINISHING,
    }
)


@dataclass
class CapturedAudio:
    """The result of a finished capture."""

    #: The encoded audio bytes as produced by the recorder.
    data: bytes
    #: The audio MIME type.
    mime_type: str


@dataclass
class RecordingTarget:
    """Where the audio of a session goes."""

    #: The note ID captured when the session started.
    note_id: str
    #: The section that gets a new take, or None to transcribe the note.
    section_index: int | None = None
    #: Transcribe into timed lyrics instead of sections.
    sync: bool = False


class AudioStream(ABC):
    """An open microphone input stream."""

    @abstractmethod
    def close(self) -> None:
        """Release the stream and the microphone."""


class Microphone(ABC):
    """Grants access to the microphone."""

    @abstractmethod
    def request_stream(self) -> AudioStream:
        """
        Ask for microphone access and open an input stream.

        Raises:
            PermissionDenied: The user or the platform refused access
            CaptureFailed: No input device could be opened

        """


class CaptureSession(ABC):
    """Encodes audio from a stream."""

    @abstractmethod
    def start(self) -> None:
        """Start capturing."""

    @abstractmethod
    def pause(self) -> None:
        """Stop taking audio in, keeping what was captured so far."""

    @abstractmethod
    def resume(self) -> None:
        """Take audio in again after :meth:`pause`."""

    @abstractmethod
    def stop(self) -> CapturedAudio:
        """
        Stop capturing and return the encoded audio.

        Raises:
            CaptureFailed: The recorder failed

        """

    @abstractmethod
    def abort(self) -> None:
        """Stop capturing and throw the audio away."""


class Recorder(ABC):
    """Opens capture sessions on a stream."""

    @abstractmethod
    def open(self, stream: AudioStream) -> CaptureSession:
        """
        Open a capture session.

        Raises:
            CaptureFailed: The recorder cannot start

        """


class RecordingSession(QObject):
    """
    The application's single recording session.

    Args:
        coordinator: Receives takes and transcriptions
        microphone: Opens the input stream
        recorder: Captures audio from the stream

    Keyword Args:
        duration_probe: Measures audio duration in milliseconds; may raise
        min_capture_bytes: Captures smaller than this are discarded
        clock: Function returning the current time in milliseconds

    """

    #: Emitted with the new state value on every transition.
    state_changed = Signal(str)
    #: Emitted with a message for the user.
    status_message = Signal(str)
    #: Emitted with the outcome value when a session ends.
    finished = Signal(str)

    def __init__(  # noqa: PLR0913
        self,
        coordinator: EditCoordinator,
        microphone: Microphone,
        recorder: Recorder,
        duration_probe: Callable[[bytes, str], int] | None = None,
        min_capture_bytes: int = 1000,
        clock: Callable[[], int] = now_ms,
    ) -> None:
        super().__init__()
        self.coordinator = coordinator
        self.microphone = microphone
        self.recorder = recorder
        self.duration_probe = duration_probe
        self.min_capture_bytes = min_capture_bytes
        self.clock = clock
        self._state = RecordingState.IDLE
        self._target: RecordingTarget | None = None
        self._stream: AudioStream | None = None
        self._capture: CaptureSession | None = None
        #: When the current capture started.
        self._started_at = 0
        #: When the current capture was paused, while paused.
        self._paused_at: int | None = None
        #: Time spent in earlier pauses of the current capture.
        self._paused_total = 0

    @property
    def state(self) -> RecordingState:
        return self._state

    @property
    def target(self) -> RecordingTarget | None:
        return self._target

    @property
    def is_open(self) -> bool:
        return self._state in OPEN_STATES

    def elapsed_ms(self) -> int:
        """
        Captured time of the current take, excluding every paused interval.

        Returns:
            Milliseconds; 0 when no capture is running

        """
        if self._state not in (RecordingState.RECORDING, RecordingState.PAUSED):
            return 0
        end = self._paused_at if self._paused_at is not None else self.clock()
        return end - self._started_at - self._paused_total

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def start(
        self,
        note_id: str,
        section_index: int | None = None,
        sync: bool = False,  # noqa: FBT001, FBT002
        replace: bool = False,  # noqa: FBT001, FBT002
    ) -> bool:
        """
        Start a session for a note.

        Args:
            note_id: The note the audio belongs to
            section_index: Section that gets the take.  If None, the audio is
                transcribed into the note.

        Keyword Args:
            sync: Transcribe into timed lyrics instead of sections
            replace: Cancel an open session instead of refusing to start

        Raises:
            RecordingInProgress: A session is open and ``replace`` is False

        Returns:
            True if recording started

        """
        if self.is_open:
            if not replace:
                raise RecordingInProgress(self._state.value)
            self.cancel()
        self._target = RecordingTarget(
            note_id=note_id, section_index=section_index, sync=sync
        )
        self._set_state(RecordingState.REQUESTING_PERMISSION)
        try:
            self._stream = self.microphone.request_stream()
        except PermissionDenied as e:
            logger.warning("Microphone permission denied: %s", e.reason)
            self._fail(f"Microphone access denied: {e.reason}", RecordingState.IDLE)
            return False
        except CaptureFailed as e:
            logger.exception("Could not open microphone")
            self._fail(str(e), RecordingState.IDLE)
            return False
        return self._begin_capture()

    def pause(self) -> None:
        """
        Pause the capture.  The stream stays open.

        Raises:
            InvalidTransition: Not recording

        """
        if self._state != RecordingState.RECORDING or self._capture is None:
            raise InvalidTransition(self._state.value, "pause")
        self._capture.pause()
        self._paused_at = self.clock()
        self._set_state(RecordingState.PAUSED)

    def resume(self) -> None:
        """
        Continue the paused capture.  Audio captured so far is kept.

        Raises:
            InvalidTransition: Not paused

        """
        if (
            self._state != RecordingState.PAUSED
            or self._capture is None
            or self._paused_at is None
        ):
            raise InvalidTransition(self._state.value, "resume")
        self._capture.resume()
        self._paused_total += self.clock() - self._paused_at
        self._paused_at = None
        self._set_state(RecordingState.RECORDING)

    def retake(self) -> bool:
        """
        Throw the paused capture away and record again from the start.

        Raises:
            InvalidTransition: Not paused

        Returns:
            True if recording restarted

        """
        if self._state != RecordingState.PAUSED or self._capture is None:
            raise InvalidTransition(self._state.value, "retake")
        self._capture.abort()
        self._capture = None
        return self._begin_capture()

    def finish(self) -> RecordingOutcome:
        """
        Stop recording and commit the audio.

        Audio below the minimum size is discarded.  Otherwise it becomes a
        take of the target section, or is transcribed into the note.

        Raises:
            InvalidTransition: Not recording or paused

        Returns:
            The outcome

        """
        if (
            self._state not in (RecordingState.RECORDING, RecordingState.PAUSED)
            or self._capture is None
        ):
            raise InvalidTransition(self._state.value, "finish")
        self._set_state(RecordingState.FINISHING)
        capture = self._capture
        try:
            audio = capture.stop()
        except CaptureFailed as e:
            logger.exception("Recorder failed while stopping")
            self._release()
            return self._end(RecordingOutcome.FAILED, RecordingState.DISCARDED, str(e))
        finally:
            self._capture = None
        self._release()

        if len(audio.data) < self.min_capture_bytes:
            logger.info(
                "Discarding %d-byte capture (minimum %d)",
                len(audio.data),
                self.min_capture_bytes,
            )
            return self._end(
                RecordingOutcome.TOO_SHORT,
                RecordingState.DISCARDED,
                "Recording too short.",
            )
        return self._commit(audio)

    def cancel(self) -> bool:
        """
        Stop everything without committing and return to IDLE.

        Returns:
            True if an open session was cancelled

        """
        if not self.is_open:
            return False
        if self._capture is not None:
            self._capture.abort()
            self._capture = None
        self._release()
        self._end(RecordingOutcome.CANCELLED, RecordingState.IDLE)
        return True

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _begin_capture(self) -> bool:
        if self._stream is None:
            self._fail(str(CaptureFailed("no input stream")), RecordingState.IDLE)
            return False
        try:
            self._capture = self.recorder.open(self._stream)
            self._capture.start()
        except CaptureFailed as e:
            logger.exception("Recorder failed to start")
            self._capture = None
            self._release()
            self._fail(str(e), RecordingState.IDLE)
            return False
        self._started_at = self.clock()
        self._paused_at = None
        self._paused_total = 0
        self._set_state(RecordingState.RECORDING)
        return True

    def _commit(self, audio: CapturedAudio) -> RecordingOutcome:
        target = cast("RecordingTarget", self._target)
        coordinator = self.coordinator
        if target.section_index is not None:
            take = AudioTake(
                id=new_id("t"),
                data=encode_audio(audio.data),
                mime_type=audio.mime_type,
                duration_ms=self._probe_duration(audio),
                timestamp=self.clock(),
            )
            if coordinator.attach_take(target.note_id, target.section_index, take):
                return self._end(
                    RecordingOutcome.TAKE_ATTACHED, RecordingState.COMMITTED
                )
            return self._end(
                RecordingOutcome.FAILED,
                RecordingState.DISCARDED,
                "The section for this take no longer exists.",
            )
        if target.sync:
            if coordinator.sync_lyrics(target.note_id, audio.data, audio.mime_type):
                return self._end(RecordingOutcome.SYNCED, RecordingState.COMMITTED)
            return self._end(RecordingOutcome.FAILED, RecordingState.DISCARDED)
        if coordinator.transcribe_into_note(
            target.note_id, audio.data, audio.mime_type
        ):
            return self._end(RecordingOutcome.TRANSCRIBED, RecordingState.COMMITTED)
        return self._end(RecordingOutcome.FAILED, RecordingState.DISCARDED)

    def _probe_duration(self, audio: CapturedAudio) -> int | None:
        if self.duration_probe is None:
            return None
        try:
            return self.duration_probe(audio.data, audio.mime_type)
        except Exception:
            logger.exception("Could not measure take duration; keeping the take")
            return None

    def _release(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None

    def _fail(self, message: str, state: RecordingState) -> None:
        self._end(RecordingOutcome.FAILED, state, message)

    def _end(
        self,
        outcome: RecordingOutcome,
        state: RecordingState,
        message: str | None = None,
    ) -> RecordingOutcome:
        if message:
            self.status_message.emit(message)
        logger.info("Recording session ended: %s", outcome.value)
        self._paused_at = None
        self._set_state(state)
        self.finished.emit(outcome.value)
        return outcome

    def _set_state(self, state: RecordingState) -> None:
        self._state = state
        self.state_changed.emit(state.value)
