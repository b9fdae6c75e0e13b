"""Unit tests for Preferences."""

import pytest
from PySide6.QtCore import QSettings

from lyriq.settings import Preferences


class TestPreferences:
    """Test cases for Preferences."""

    @pytest.fixture
    def preferences(self, qapp, tmp_path, monkeypatch):
        """Preferences backed by a throwaway INI file."""
        monkeypatch.delenv("GEMINI_API_KEY", raising=False)
        settings = QSettings(str(tmp_path / "lyriq.ini"), QSettings.Format.IniFormat)
        return Preferences(settings)

    def test_defaults(self, preferences):
        assert preferences.get_max_states() == 50
        assert preferences.get_snapshot_debounce_ms() == 900
        assert preferences.get_min_capture_bytes() == 1000
        assert preferences.get_ai_model() == "gemini-3-pro-preview"
        assert preferences.get_ai_timeout_seconds() == 60
        assert preferences.get_ai_api_key() == ""

    def test_set_value(self, preferences):
        preferences.set_value("history/max_states", 20)
        preferences.set_value("ai/model", "other-model")
        assert preferences.get_max_states() == 20
        assert preferences.get_ai_model() == "other-model"

    def test_values_survive_reopen(self, preferences):
        preferences.set_value("recording/min_capture_bytes", 4096)
        reopened = Preferences(
            QSettings(preferences.settings.fileName(), QSettings.Format.IniFormat)
        )
        assert reopened.get_min_capture_bytes() == 4096

    def test_api_key_from_settings(self, preferences):
        preferences.set_value("ai/api_key", "stored-key")
        assert preferences.get_ai_api_key() == "stored-key"

    def test_environment_api_key_wins(self, preferences, monkeypatch):
        preferences.set_value("ai/api_key", "stored-key")
        monkeypatch.setenv("GEMINI_API_KEY", "env-key")
        assert preferences.get_ai_api_key() == "env-key"
