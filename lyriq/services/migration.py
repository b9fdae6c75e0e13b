"""Upgrade stored note dictionaries to the current schema."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Final

from lyriq.models.note import DEFAULT_SECTION_TYPE, DEFAULT_TITLE, STRUCTURED

if TYPE_CHECKING:
    from collections.abc import Callable

logger = logging.getLogger(__name__)

#: The schema version written with every stored note.
CURRENT_SCHEMA_VERSION: Final[int] = 2
#: Key of the schema version in a stored note dictionary.
SCHEMA_VERSION_KEY: Final[str] = "schemaVersion"
#: MIME type assumed for legacy takes that did not record one.
LEGACY_MIME_TYPE: Final[str] = "audio/webm"


@dataclass
class MigrationResult:
    """Result of migrating one stored note."""

    #: The note dictionary in the current schema.
    data: dict[str, Any]
    #: The schema version the note was stored with.
    from_version: int
    #: Number of legacy takes that could not be recovered.
    dropped_takes: int = 0


def _to_v1(data: dict[str, Any]) -> int:
    """
    Give a pre-format note an explicit structured body.

    Notes from before the structured editor only had a flattened text body.
    That text becomes the content of a single section.
    """
    data.setdefault("title", DEFAULT_TITLE)
    data.setdefault("rawTranscription", "")
    data.setdefault("polishedNote", "")
    data.setdefault("projectId", None)
    if "editorFormat" not in data:
        data["editorFormat"] = STRUCTURED
        if not data.get("sections"):
            data["sections"] = [
                {
                    "type": DEFAULT_SECTION_TYPE,
                    "content": data["polishedNote"],
                    "takes": [],
                }
            ]
    data.setdefault("sections", [])
    for section in data["sections"]:
        section.setdefault("type", DEFAULT_SECTION_TYPE)
        section.setdefault("content", "")
        section.setdefault("takes", [])
    return 0


def _to_v2(data: dict[str, Any]) -> int:
    """
    Give every take a durable audio payload.

    Legacy takes only kept a transient ``url``, which does not survive a
    reload.  Such takes are dropped.
    """
    dropped = 0
    for section in data.get("sections", []):
        kept = []
        for take in section["takes"]:
            if not take.get("data"):
                logger.warning(
                    "Dropping take %s of note %s: no stored audio",
                    take.get("id"),
                    data.get("id"),
                )
                dropped += 1
                continue
            take.setdefault("mimeType", LEGACY_MIME_TYPE)
            take.setdefault("durationMs", None)
            take["url"] = None
            kept.append(take)
        section["takes"] = kept
    data.setdefault("syncedWords", None)
    data.setdefault("syncedLines", None)
    return dropped


#: Upgrade steps, keyed by the version they upgrade from.
MIGRATIONS: Final[dict[int, Callable[[dict[str, Any]], int]]] = {
    0: _to_v1,
    1: _to_v2,
}


def migrate_note(raw: dict[str, Any]) -> MigrationResult:
    """
    Upgrade one stored note dictionary to :data:`CURRENT_SCHEMA_VERSION`.

    Notes without a version are version 0.  Transient take handles are
    nulled whatever the version.

    Args:
        raw: The stored note dictionary.  It is not modified.

    Returns:
        The migration result

    """
    data: dict[str, Any] = {
        **raw,
        "sections": [
            {**section, "takes": [dict(take) for take in section.get("takes", [])]}
            for section in raw.get("sections") or []
        ],
    }
    if "sections" not in raw:
        del data["sections"]
    from_version = int(data.pop(SCHEMA_VERSION_KEY, 0))
    result = MigrationResult(data=data, from_version=from_version)

    if from_version > CURRENT_SCHEMA_VERSION:
        logger.warning(
            "Note %s has schema version %d, newer than %d; loading as-is",
            data.get("id"),
            from_version,
            CURRENT_SCHEMA_VERSION,
        )
    version = from_version
    while version < CURRENT_SCHEMA_VERSION:
        result.dropped_takes += MIGRATIONS[version](data)
        version += 1
    if version != from_version:
        logger.info(
            "Migrated note %s from schema %d to %d",
            data.get("id"),
            from_version,
            version,
        )

    for section in data.get("sections", []):
        for take in section.get("takes", []):
            take["url"] = None
    return result
