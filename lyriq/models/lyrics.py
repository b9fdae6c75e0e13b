"""Timed lyric words and lines."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Final

#: Silence between two words, in seconds, that starts a new lyric line.
LINE_BREAK_GAP_SECONDS: Final[float] = 0.6


@dataclass
class TimedWord:
    """A single sung word with its start and end time in seconds."""

    #: The word text.
    word: str
    #: Start time in seconds.
    start: float
    #: End time in seconds.
    end: float

    def to_json(self) -> dict[str, Any]:
        return {"word": self.word, "start": self.start, "end": self.end}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> TimedWord:
        return cls(
            word=str(data["word"]), start=float(data["start"]), end=float(data["end"])
        )


@dataclass
class TimedLine:
    """A lyric line made of consecutive words."""

    #: The line text (words joined by single spaces).
    text: str
    #: Start time of the first word, in seconds.
    start: float
    #: End time of the last word, in seconds.
    end: float

    def to_json(self) -> dict[str, Any]:
        return {"text": self.text, "start": self.start, "end": self.end}

    @classmethod
    def from_json(cls, data: dict[str, Any]) -> TimedLine:
        return cls(
            text=str(data["text"]), start=float(data["start"]), end=float(data["end"])
        )


def group_words_into_lines(
    words: list[TimedWord], gap: float = LINE_BREAK_GAP_SECONDS
) -> list[TimedLine]:
    """
    Group timed words into lyric lines.

    A new line starts whenever the silence between the end of the previous
    word and the start of the next one is longer than ``gap``.

    Args:
        words: Words in sung order

    Keyword Args:
        gap: Silence in seconds that breaks a line

    Returns:
        The lyric lines, in order

    """
    lines: list[TimedLine] = []
    current: list[TimedWord] = []

    def close_line() -> None:
        lines.append(
            TimedLine(
                text=" ".join(w.word for w in current),
                start=current[0].start,
                end=current[-1].end,
            )
        )

    for word in words:
        if current and word.start - current[-1].end > gap:
            close_line()
            current = [word]
        else:
            current.append(word)
    if current:
        close_line()
    return lines
