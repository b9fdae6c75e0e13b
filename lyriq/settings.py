"""User preferences backed by QSettings."""

from __future__ import annotations

import os
from typing import Final, cast

from PySide6.QtCore import QCoreApplication, QSettings

#: The organization name used for the QSettings store.
ORGANIZATION_NAME: Final[str] = "Lyriq"
#: The application name used for the QSettings store.
APPLICATION_NAME: Final[str] = "Lyriq Notes"

#: Default maximum number of undo states kept per note.
DEFAULT_MAX_STATES: Final[int] = 50
#: Default quiet period before a free-text edit is snapshotted.
DEFAULT_SNAPSHOT_DEBOUNCE_MS: Final[int] = 900
#: Default minimum size of a capture before it is considered real audio.
DEFAULT_MIN_CAPTURE_BYTES: Final[int] = 1000
#: Default AI model used for transcription and restructuring.
DEFAULT_AI_MODEL: Final[str] = "gemini-3-pro-preview"
#: Default timeout for a single AI call.
DEFAULT_AI_TIMEOUT_SECONDS: Final[int] = 60


class Preferences:
    """
    Typed accessors for the application's persistent preferences.

    Keyword Args:
        settings: The QSettings store to read from.  If not given, the
            application's default store is used.

    """

    def __init__(self, settings: QSettings | None = None) -> None:
        if settings is None:
            if not QCoreApplication.organizationName():
                QCoreApplication.setOrganizationName(ORGANIZATION_NAME)
            if not QCoreApplication.applicationName():
                QCoreApplication.setApplicationName(APPLICATION_NAME)
            settings = QSettings()
        #: The underlying QSettings store.
        self.settings = settings

    def get_max_states(self) -> int:
        """
        Get the undo history cap from settings.

        Returns:
            Maximum undo states per note (default: 50)

        """
        return cast(
            "int",
            self.settings.value("history/max_states", DEFAULT_MAX_STATES, type=int),
        )

    def get_snapshot_debounce_ms(self) -> int:
        """
        Get the free-text snapshot quiet period from settings.

        Returns:
            Debounce delay in milliseconds (default: 900)

        """
        return cast(
            "int",
            self.settings.value(
                "editing/snapshot_debounce_ms", DEFAULT_SNAPSHOT_DEBOUNCE_MS, type=int
            ),
        )

    def get_min_capture_bytes(self) -> int:
        """
        Get the minimum capture size from settings.

        Returns:
            Minimum number of bytes for a capture to be kept (default: 1000)

        """
        return cast(
            "int",
            self.settings.value(
                "recording/min_capture_bytes", DEFAULT_MIN_CAPTURE_BYTES, type=int
            ),
        )

    def get_ai_model(self) -> str:
        """Get the AI model name."""
        return cast("str", self.settings.value("ai/model", DEFAULT_AI_MODEL, type=str))

    def get_ai_timeout_seconds(self) -> int:
        """Get the timeout applied to each AI call."""
        return cast(
            "int",
            self.settings.value(
                "ai/timeout_seconds", DEFAULT_AI_TIMEOUT_SECONDS, type=int
            ),
        )

    def get_ai_api_key(self) -> str:
        """
        Get the AI API key.

        The ``GEMINI_API_KEY`` environment variable wins over the stored value.

        Returns:
            The API key, or an empty string if none is configured

        """
        env_key = os.environ.get("GEMINI_API_KEY")
        if env_key:
            return env_key
        return cast("str", self.settings.value("ai/api_key", "", type=str))

    def set_value(self, key: str, value: int | str) -> None:
        """
        Store a preference value.

        Args:
            key: Settings key, e.g. ``"history/max_states"``
            value: The new value

        """
        self.settings.setValue(key, value)
        self.settings.sync()
