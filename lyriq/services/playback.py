"""Transient playable handles derived from durable take audio."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from lyriq.utils import decode_audio

if TYPE_CHECKING:
    from collections.abc import Iterable

    from lyriq.models.note import AudioTake


@dataclass
class PlaybackHandle:
    """
    A playable resource for one take.  Never persisted.
    """

    #: The handle URL handed to the audio player.
    url: str
    #: The take ID the handle was derived from.
    take_id: str
    #: The audio MIME type.
    mime_type: str
    #: The decoded audio bytes.
    audio: bytes


class PlaybackHandleRegistry:
    """
    Derives and caches playable handles for takes.

    Handles are a bounded external resource: every path that removes a take
    from a note must :meth:`release` its handle.
    """

    def __init__(self) -> None:
        #: The live handles, keyed by take ID.
        self._handles: dict[str, PlaybackHandle] = {}

    def acquire(self, take: AudioTake) -> PlaybackHandle:
        """
        Get the handle of a take, deriving it from the take's data if needed.

        Args:
            take: The take to play

        Returns:
            The take's handle

        """
        handle = self._handles.get(take.id)
        if handle is None:
            handle = PlaybackHandle(
                url=f"lyriq-take://{take.id}",
                take_id=take.id,
                mime_type=take.mime_type,
                audio=decode_audio(take.data),
            )
            self._handles[take.id] = handle
        return handle

    def release(self, take_id: str) -> bool:
        """
        Release the handle of a take.

        Returns:
            True if a handle was released

        """
        return self._handles.pop(take_id, None) is not None

    def release_takes(self, takes: Iterable[AudioTake]) -> int:
        """
        Release the handles of several takes.

        Returns:
            Number of handles released

        """
        return sum(1 for take in takes if self.release(take.id))

    def is_active(self, take_id: str) -> bool:
        return take_id in self._handles

    def active_count(self) -> int:
        return len(self._handles)

    def release_all(self) -> None:
        self._handles.clear()
