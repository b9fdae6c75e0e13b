"""DOCX lyric sheet export for Lyriq Notes."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from docx import Document
from docx.shared import Pt, RGBColor

from lyriq.models.note import OPEN

if TYPE_CHECKING:
    from pathlib import Path

    from docx.document import Document as DocumentObject

    from lyriq.models.note import Note
    from lyriq.services.store import NoteStore

logger = logging.getLogger(__name__)


class LyricSheetExporter:
    """
    Exports a note as a lyric sheet in DOCX format.

    Args:
        store: The note store

    """

    def __init__(self, store: NoteStore) -> None:
        self.store = store

    def export(self, note_id: str, output_path: Path) -> bool:
        """
        Export a note to a DOCX file.

        Args:
            note_id: Note ID to export
            output_path: Path to output DOCX file

        Returns:
            True if successful, False otherwise

        """
        note = self.store.get(note_id)
        if note is None:
            return False
        doc: DocumentObject = Document()
        doc.add_heading(note.title, level=1)

        project = self.store.get_project(note.project_id) if note.project_id else None
        if project is not None:
            project_para = doc.add_paragraph()
            project_run = project_para.add_run(project.name)
            project_run.italic = True
            project_run.font.color.rgb = RGBColor(0x80, 0x80, 0x80)

        if note.editor_format == OPEN:
            self._add_lines(doc, note.polished_note)
        else:
            self._add_sections(doc, note)

        try:
            doc.save(str(output_path))
        except OSError:
            logger.exception("Export of note %s to %s failed", note_id, output_path)
            return False
        return True

    def _add_sections(self, doc: DocumentObject, note: Note) -> None:
        for section in note.sections:
            label_para = doc.add_paragraph()
            label_run = label_para.add_run(f"[{section.type}]")
            label_run.bold = True
            label_run.font.size = Pt(12)
            self._add_lines(doc, section.content)
            # Blank line between sections
            doc.add_paragraph()

    def _add_lines(self, doc: DocumentObject, text: str) -> None:
        for line in text.splitlines():
            doc.add_paragraph(line)
