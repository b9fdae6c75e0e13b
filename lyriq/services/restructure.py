"""
AI transcription and restructuring.

The core only defines the contract with the AI service: what is sent, and
what shape the answer must have.  A response is expected to be a JSON array
of ``{"type": str, "content": str}`` objects in song order.  A response that
does not have that shape is not an error: its whole text becomes the content
of a single section, so a recording is never thrown away because the
service answered badly.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Final

import requests

from lyriq.exc import TranscriptionFailed
from lyriq.models.lyrics import TimedWord
from lyriq.models.note import DEFAULT_SECTION_TYPE, Section
from lyriq.utils import encode_audio

if TYPE_CHECKING:
    from lyriq.settings import Preferences

logger = logging.getLogger(__name__)

#: Instruction sent with a whole-note audio memo.
STRUCTURE_PROMPT: Final[str] = (
    "Transcribe and structure this songwriting memo into sections "
    "(Verse, Chorus, etc.). JSON array of {type, content}."
)
#: Instruction sent with a text transcription to restructure.
RESTRUCTURE_PROMPT: Final[str] = (
    "Restructure this songwriting transcription into sections "
    "(Verse, Chorus, etc.), keeping the words as sung. "
    "JSON array of {type, content}, in song order.\n\nTranscription:\n"
)
#: Instruction sent with a sung take for lyric sync.
SYNC_PROMPT: Final[str] = (
    "Transcribe this singing precisely. JSON array of {word, start, end}."
)

#: Response schema for section lists.
SECTIONS_SCHEMA: Final[dict[str, Any]] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {"type": {"type": "STRING"}, "content": {"type": "STRING"}},
        "required": ["type", "content"],
    },
}
#: Response schema for timed words.
WORDS_SCHEMA: Final[dict[str, Any]] = {
    "type": "ARRAY",
    "items": {
        "type": "OBJECT",
        "properties": {
            "word": {"type": "STRING"},
            "start": {"type": "NUMBER"},
            "end": {"type": "NUMBER"},
        },
        "required": ["word", "start", "end"],
    },
}

_CODE_FENCE_RE = re.compile(r"^\s*```(?:json)?\s*(.*?)\s*```\s*$", re.DOTALL)


class SongStructurer(ABC):
    """
    Contract of the AI service.

    Every method returns the service's raw response text.  Network and
    service failures raise :class:`~lyriq.exc.TranscriptionFailed`.
    """

    @abstractmethod
    def transcribe(self, audio: bytes, mime_type: str) -> str:
        """
        Transcribe a memo and structure it into sections.

        Args:
            audio: The recorded audio
            mime_type: The audio MIME type

        Returns:
            Raw response, expected to be a JSON array of sections

        """

    @abstractmethod
    def restructure(self, transcription: str) -> str:
        """
        Structure an existing transcription into sections.

        Args:
            transcription: Free-form transcription text

        Returns:
            Raw response, expected to be a JSON array of sections

        """

    @abstractmethod
    def transcribe_words(self, audio: bytes, mime_type: str) -> str:
        """
        Transcribe sung audio word by word with timings.

        Returns:
            Raw response, expected to be a JSON array of timed words

        """


def _load_json(raw: str) -> Any:
    match = _CODE_FENCE_RE.match(raw)
    return json.loads(match.group(1) if match else raw)


def parse_sections(raw: str) -> list[Section]:
    """
    Turn an AI response into sections.

    Args:
        raw: The response text

    Returns:
        The sections in document order.  If ``raw`` is not a JSON array of
        ``{type, content}`` string pairs, a single default-type section
        holding ``raw`` verbatim.

    """
    try:
        data = _load_json(raw)
    except (json.JSONDecodeError, TypeError):
        data = None
    if isinstance(data, list) and all(
        isinstance(item, dict)
        and isinstance(item.get("type"), str)
        and isinstance(item.get("content"), str)
        for item in data
    ):
        return [Section(type=item["type"], content=item["content"]) for item in data]
    logger.warning("AI response is not a section list; keeping it as one section")
    return [Section(type=DEFAULT_SECTION_TYPE, content=raw)]


def parse_timed_words(raw: str) -> list[TimedWord]:
    """
    Turn an AI response into timed words.

    Raises:
        ValueError: The response is not a JSON array of ``{word, start, end}``

    """
    try:
        data = _load_json(raw)
    except json.JSONDecodeError as e:
        msg = f"Lyric sync response is not JSON: {e}"
        raise ValueError(msg) from e
    if not isinstance(data, list):
        msg = "Lyric sync response is not a list"
        raise ValueError(msg)
    try:
        return [TimedWord.from_json(item) for item in data]
    except (KeyError, TypeError) as e:
        msg = f"Malformed lyric sync word: {e}"
        raise ValueError(msg) from e


class GeminiStructurer(SongStructurer):
    """
    :class:`SongStructurer` backed by the Gemini ``generateContent`` REST API.

    Args:
        api_key: The API key
        model: The model name

    Keyword Args:
        timeout: Seconds to wait for each call
        base_url: API root URL

    """

    #: Default API root.
    BASE_URL: Final[str] = "https://generativelanguage.googleapis.com/v1beta"

    def __init__(
        self,
        api_key: str,
        model: str,
        timeout: float = 60,
        base_url: str = BASE_URL,
    ) -> None:
        self.api_key = api_key
        self.model = model
        self.timeout = timeout
        self.base_url = base_url.rstrip("/")

    @classmethod
    def from_preferences(cls, preferences: Preferences) -> GeminiStructurer:
        return cls(
            api_key=preferences.get_ai_api_key(),
            model=preferences.get_ai_model(),
            timeout=preferences.get_ai_timeout_seconds(),
        )

    def transcribe(self, audio: bytes, mime_type: str) -> str:
        return self._generate(
            [
                {"inlineData": {"mimeType": mime_type, "data": encode_audio(audio)}},
                {"text": STRUCTURE_PROMPT},
            ],
            SECTIONS_SCHEMA,
        )

    def restructure(self, transcription: str) -> str:
        return self._generate(
            [{"text": RESTRUCTURE_PROMPT + transcription}], SECTIONS_SCHEMA
        )

    def transcribe_words(self, audio: bytes, mime_type: str) -> str:
        return self._generate(
            [
                {"inlineData": {"mimeType": mime_type, "data": encode_audio(audio)}},
                {"text": SYNC_PROMPT},
            ],
            WORDS_SCHEMA,
        )

    def _generate(self, parts: list[dict[str, Any]], schema: dict[str, Any]) -> str:
        """
        Call ``generateContent`` and return the text of the first candidate.

        Raises:
            TranscriptionFailed: No API key, HTTP failure, or an answer with
                no text

        """
        if not self.api_key:
            msg = "no API key configured"
            raise TranscriptionFailed(msg)
        try:
            response = requests.post(
                f"{self.base_url}/models/{self.model}:generateContent",
                headers={
                    "x-goog-api-key": self.api_key,
                    "Content-Type": "application/json",
                },
                json={
                    "contents": [{"parts": parts}],
                    "generationConfig": {
                        "responseMimeType": "application/json",
                        "responseSchema": schema,
                    },
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            body = response.json()
        except requests.RequestException as e:
            raise TranscriptionFailed(str(e)) from e
        except ValueError as e:
            msg = f"response is not JSON: {e}"
            raise TranscriptionFailed(msg) from e
        try:
            return body["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError) as e:
            msg = "response has no text"
            raise TranscriptionFailed(msg) from e
