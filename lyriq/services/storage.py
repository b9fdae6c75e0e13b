"""Persistence of notes and projects in the key-value store."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Final

from sqlalchemy.exc import SQLAlchemyError

from lyriq.models.note import Note
from lyriq.models.project import Project
from lyriq.models.stored_value import StoredValue
from lyriq.services.migration import (
    CURRENT_SCHEMA_VERSION,
    SCHEMA_VERSION_KEY,
    migrate_note,
)

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

#: Key holding the serialized ``[id, note]`` pairs.
NOTES_KEY: Final[str] = "voiceNotes"
#: Key holding the serialized ``[id, project]`` pairs.
PROJECTS_KEY: Final[str] = "voiceProjects"


class KeyValueStorage:
    """
    String key-value store in the application database.

    Args:
        session: SQLAlchemy session

    """

    def __init__(self, session: Session) -> None:
        #: The SQLAlchemy session.
        self.session = session

    def get(self, key: str) -> str | None:
        """
        Read a value.

        Args:
            key: The key

        Returns:
            The stored string, or None if the key is not set

        """
        stored = StoredValue.get(self.session, key)
        return stored.value if stored is not None else None

    def set(self, key: str, value: str) -> None:
        """
        Write a value, replacing any previous one.
        """
        stored = StoredValue.get(self.session, key)
        if stored is None:
            stored = StoredValue(key=key, value=value)
        else:
            stored.value = value
        self.session.add(stored)
        self.session.commit()

    def delete(self, key: str) -> None:
        stored = StoredValue.get(self.session, key)
        if stored is not None:
            self.session.delete(stored)
            self.session.commit()


class NotePersistence:
    """
    Serializes notes and projects to the key-value store.

    Writes are fire-and-forget from the editor's point of view: a failed
    write is logged and rolled back, and the in-memory state stays
    committed.

    Args:
        storage: The key-value store

    """

    def __init__(self, storage: KeyValueStorage) -> None:
        #: The key-value store.
        self.storage = storage

    def save_notes(self, notes: Iterable[Note]) -> bool:
        """
        Write all notes.

        Args:
            notes: The notes, in the order to store them

        Returns:
            True if the write succeeded

        """
        payload = []
        for note in notes:
            data = note.to_json()
            data[SCHEMA_VERSION_KEY] = CURRENT_SCHEMA_VERSION
            payload.append([note.id, data])
        return self._write(NOTES_KEY, payload)

    def save_projects(self, projects: Iterable[Project]) -> bool:
        """
        Write all projects.

        Returns:
            True if the write succeeded

        """
        return self._write(
            PROJECTS_KEY, [[project.id, project.to_json()] for project in projects]
        )

    def load_notes(self) -> list[Note]:
        """
        Read all notes, upgrading older stored shapes.

        Entries that cannot be read are skipped with an error in the log.

        Returns:
            The notes, in stored order

        """
        notes: list[Note] = []
        for note_id, raw in self._read(NOTES_KEY):
            try:
                result = migrate_note({**raw, "id": raw.get("id", note_id)})
                notes.append(Note.from_json(result.data))
            except (KeyError, TypeError, ValueError):
                logger.exception("Skipping unreadable stored note %s", note_id)
        return notes

    def load_projects(self) -> list[Project]:
        """
        Read all projects.

        Returns:
            The projects, in stored order

        """
        projects: list[Project] = []
        for project_id, raw in self._read(PROJECTS_KEY):
            try:
                projects.append(Project.from_json({**raw, "id": raw.get("id", project_id)}))
            except (KeyError, TypeError):
                logger.exception("Skipping unreadable stored project %s", project_id)
        return projects

    def _write(self, key: str, payload: list) -> bool:
        try:
            self.storage.set(key, json.dumps(payload))
        except SQLAlchemyError:
            logger.exception("Failed to persist %s", key)
            self.storage.session.rollback()
            return False
        return True

    def _read(self, key: str) -> list[tuple[str, dict]]:
        value = self.storage.get(key)
        if value is None:
            return []
        try:
            entries = json.loads(value)
        except json.JSONDecodeError:
            logger.exception("Stored %s is not valid JSON; ignoring it", key)
            return []
        pairs: list[tuple[str, dict]] = []
        for entry in entries:
            if (
                isinstance(entry, list)
                and len(entry) == 2  # noqa: PLR2004
                and isinstance(entry[1], dict)
            ):
                pairs.append((str(entry[0]), entry[1]))
            else:
                logger.warning("Ignoring malformed %s entry: %r", key, entry)
        return pairs
