"""Unit tests for AI response parsing and the Gemini client."""

import json
from unittest.mock import Mock, patch

import pytest
import requests

from lyriq.exc import TranscriptionFailed
from lyriq.models.lyrics import TimedWord
from lyriq.models.note import Section
from lyriq.services.restructure import (
    GeminiStructurer,
    parse_sections,
    parse_timed_words,
)


def gemini_response(text):
    response = Mock()
    response.raise_for_status.return_value = None
    response.json.return_value = {
        "candidates": [{"content": {"parts": [{"text": text}]}}]
    }
    return response


class TestParseSections:
    """Test cases for parse_sections()."""

    def test_valid_array(self):
        raw = json.dumps([{"type": "Verse", "content": "a"}, {"type": "Hook", "content": "b"}])
        assert parse_sections(raw) == [Section("Verse", "a"), Section("Hook", "b")]

    def test_code_fenced_array(self):
        raw = '```json\n[{"type": "Chorus", "content": "la"}]\n```'
        assert parse_sections(raw) == [Section("Chorus", "la")]

    def test_empty_array(self):
        assert parse_sections("[]") == []

    @pytest.mark.parametrize(
        "raw",
        [
            "plain words",
            '{"type": "Verse", "content": "a"}',
            '[{"type": "Verse"}]',
            '[{"type": 1, "content": "a"}]',
        ],
    )
    def test_fallback_keeps_raw_text(self, raw):
        """Test an unusable response becomes one section with the raw text."""
        assert parse_sections(raw) == [Section("Verse", raw)]


class TestParseTimedWords:
    """Test cases for parse_timed_words()."""

    def test_valid(self):
        raw = '[{"word": "hi", "start": 0, "end": 0.5}]'
        assert parse_timed_words(raw) == [TimedWord("hi", 0.0, 0.5)]

    @pytest.mark.parametrize("raw", ["nope", '{"word": "hi"}', '[{"word": "hi"}]'])
    def test_malformed(self, raw):
        with pytest.raises(ValueError):
            parse_timed_words(raw)


class TestGeminiStructurer:
    """Test cases for GeminiStructurer."""

    def test_restructure_posts_request(self):
        structurer = GeminiStructurer("key123", "test-model", timeout=5)
        with patch("lyriq.services.restructure.requests.post") as post:
            post.return_value = gemini_response('[{"type": "Verse", "content": "a"}]')
            result = structurer.restructure("some words")

        assert result == '[{"type": "Verse", "content": "a"}]'
        args, kwargs = post.call_args
        assert args[0] == (
            "https://generativelanguage.googleapis.com/v1beta/models/"
            "test-model:generateContent"
        )
        assert kwargs["headers"]["x-goog-api-key"] == "key123"
        assert kwargs["timeout"] == 5
        parts = kwargs["json"]["contents"][0]["parts"]
        assert parts[0]["text"].endswith("some words")

    def test_transcribe_sends_inline_audio(self):
        structurer = GeminiStructurer("key", "m")
        with patch("lyriq.services.restructure.requests.post") as post:
            post.return_value = gemini_response("[]")
            structurer.transcribe(b"\x00\x01\x02", "audio/webm")

        parts = post.call_args.kwargs["json"]["contents"][0]["parts"]
        assert parts[0]["inlineData"] == {"mimeType": "audio/webm", "data": "AAEC"}

    def test_transcribe_words_uses_word_schema(self):
        structurer = GeminiStructurer("key", "m")
        with patch("lyriq.services.restructure.requests.post") as post:
            post.return_value = gemini_response("[]")
            structurer.transcribe_words(b"\x00", "audio/webm")

        config = post.call_args.kwargs["json"]["generationConfig"]
        assert "word" in config["responseSchema"]["items"]["properties"]

    def test_missing_key(self):
        structurer = GeminiStructurer("", "m")
        with patch("lyriq.services.restructure.requests.post") as post:
            with pytest.raises(TranscriptionFailed, match="no API key"):
                structurer.restructure("x")
        post.assert_not_called()

    def test_network_error(self):
        structurer = GeminiStructurer("key", "m")
        with patch(
            "lyriq.services.restructure.requests.post",
            side_effect=requests.Timeout("timed out"),
        ):
            with pytest.raises(TranscriptionFailed, match="timed out"):
                structurer.restructure("x")

    def test_http_error(self):
        structurer = GeminiStructurer("key", "m")
        response = Mock()
        response.raise_for_status.side_effect = requests.HTTPError("500 Server Error")
        with patch("lyriq.services.restructure.requests.post", return_value=response):
            with pytest.raises(TranscriptionFailed, match="500"):
                structurer.restructure("x")

    def test_response_without_text(self):
        structurer = GeminiStructurer("key", "m")
        response = Mock()
        response.raise_for_status.return_value = None
        response.json.return_value = {"candidates": []}
        with patch("lyriq.services.restructure.requests.post", return_value=response):
            with pytest.raises(TranscriptionFailed, match="no text"):
                structurer.restructure("x")

    def test_from_preferences(self):
        preferences = Mock()
        preferences.get_ai_api_key.return_value = "k"
        preferences.get_ai_model.return_value = "model-x"
        preferences.get_ai_timeout_seconds.return_value = 12

        structurer = GeminiStructurer.from_preferences(preferences)

        assert (structurer.api_key, structurer.model, structurer.timeout) == (
            "k",
            "model-x",
            12,
        )
