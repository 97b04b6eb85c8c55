"""DOCX writer for structured-export manuscripts.

Paragraph text keeps ``{fig:id}`` / ``{tab:id}`` tokens until this writer
replaces each with its label ("Figure 2") and, on first reference, inserts
the figure image or table grid after the paragraph. Tokens with nothing to
embed produce an explicit ``[Missing figure: id]`` / ``[Missing table: id]``.
"""
from __future__ import annotations

import logging
import re
from io import BytesIO
from typing import List, Mapping, Optional, Set, Tuple

from docx import Document
from docx.shared import Inches

from .figures import FigureTableNumbering
from .models import FigureItem, FigureKind

logger = logging.getLogger(__name__)

TOKEN_PATTERN = re.compile(r"\{(fig|tab):([a-z0-9\-_]+)\}", re.IGNORECASE)

MAX_IMAGE_WIDTH_INCHES = 5.5
HEADING_LEVEL = 1


class DocxWriter:
    """Builds a DOCX document from assembled text and a figure/table side table."""

    def __init__(
        self,
        side_table: Mapping[str, FigureItem],
        numbering: Optional[FigureTableNumbering] = None,
    ):
        self.side_table = {key.lower(): item for key, item in side_table.items()}
        self.numbering = numbering or FigureTableNumbering()

    def build(self, text: str) -> bytes:
        document = Document()
        embedded: Set[str] = set()
        for block in re.split(r"\n\s*\n", text or ""):
            block = block.strip("\n")
            if not block.strip():
                continue
            if block.startswith("# "):
                document.add_heading(block[2:].strip(), HEADING_LEVEL)
                continue
            for line in block.split("\n"):
                self._write_paragraph(document, line, embedded)

        buffer = BytesIO()
        document.save(buffer)
        return buffer.getvalue()

    def _write_paragraph(self, document, line: str, embedded: Set[str]) -> None:
        pending: List[Tuple[FigureKind, str]] = []

        def label(match: re.Match) -> str:
            kind = FigureKind.TABLE if match.group(1).lower() == "tab" else FigureKind.FIGURE
            item_id = match.group(2).lower()
            pending.append((kind, item_id))
            return self.numbering.label(kind, item_id)

        document.add_paragraph(TOKEN_PATTERN.sub(label, line))
        for kind, item_id in pending:
            token = f"{'tab' if kind is FigureKind.TABLE else 'fig'}:{item_id}"
            if token in embedded:
                continue
            embedded.add(token)
            if kind is FigureKind.TABLE:
                self._add_table(document, item_id, self.side_table.get(token))
            else:
                self._add_figure(document, item_id, self.side_table.get(token))

    def _caption(self, kind: FigureKind, item_id: str, item: FigureItem) -> str:
        return f"{self.numbering.label(kind, item_id)}. {item.display_caption()}"

    @staticmethod
    def _missing(document, kind: FigureKind, item_id: str) -> None:
        document.add_paragraph().add_run(f"[Missing {kind.value}: {item_id}]").bold = True

    def _add_table(self, document, item_id: str, item: Optional[FigureItem]) -> None:
        if item is None or not item.rows:
            self._missing(document, FigureKind.TABLE, item_id)
            return
        document.add_paragraph().add_run(self._caption(FigureKind.TABLE, item_id, item)).bold = True
        columns = max(len(row) for row in item.rows)
        table = document.add_table(rows=len(item.rows), cols=columns)
        table.style = "Table Grid"
        for row_index, row in enumerate(item.rows):
            for column, value in enumerate(row):
                cell = table.cell(row_index, column)
                cell.text = str(value)
                if row_index == 0:
                    for run in cell.paragraphs[0].runs:
                        run.bold = True

    def _add_figure(self, document, item_id: str, item: Optional[FigureItem]) -> None:
        if item is None or not item.image_data:
            self._missing(document, FigureKind.FIGURE, item_id)
            return
        try:
            document.add_picture(BytesIO(item.image_data), width=Inches(MAX_IMAGE_WIDTH_INCHES))
        except Exception as exc:
            logger.warning("Could not embed image for figure %s: %s", item_id, exc)
            self._missing(document, FigureKind.FIGURE, item_id)
            return
        document.add_paragraph(self._caption(FigureKind.FIGURE, item_id, item))


def build_docx(
    text: str,
    side_table: Mapping[str, FigureItem],
    numbering: Optional[FigureTableNumbering] = None,
) -> bytes:
    return DocxWriter(side_table, numbering).build(text)


def build_manuscript_docx(manuscript) -> bytes:
    """Write an :class:`~manuscript_builder.assembler.AssembledManuscript`."""
    return build_docx(manuscript.text, manuscript.side_table, manuscript.figure_numbering)


__all__ = ["DocxWriter", "build_docx", "build_manuscript_docx"]
