"""Rebuild a DOCX document from classified content blocks."""

import io
import re
from dataclasses import dataclass, field
from typing import Optional, Sequence

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.oxml.ns import qn
from docx.shared import Pt, RGBColor

from contract_engine.classifier import DEFAULT_STYLES
from contract_engine.config import GenerationOptions
from contract_engine.exceptions import EmissionError
from contract_engine.logger import Timer, get_logger
from contract_engine.models import BlockType, ContentBlock, EngineWarning, WarningCode
from contract_engine.text import CELL_SEPARATORS, is_border_row

logger = get_logger(__name__)

HEADING_LEVELS = {
    BlockType.TITLE: 1,
    BlockType.SECTION_HEADER: 2,
    BlockType.SUB_CLAUSE: 3,
}

ALIGNMENTS = {
    "left": WD_ALIGN_PARAGRAPH.LEFT,
    "center": WD_ALIGN_PARAGRAPH.CENTER,
    "right": WD_ALIGN_PARAGRAPH.RIGHT,
    "justify": WD_ALIGN_PARAGRAPH.JUSTIFY,
}

_GAP_RE = re.compile(r"\t+| {2,}|　+")
_BLACK = RGBColor(0, 0, 0)


@dataclass
class EmissionResult:
    binary: bytes
    page_count: int
    warnings: list[EngineWarning] = field(default_factory=list)


def split_table_row(text: str) -> list[str]:
    """Split a row on the strongest delimiter present.

    Vertical-bar glyphs win over tabs, tabs over runs of spaces; plain
    whitespace is the last resort.
    """
    for separator in CELL_SEPARATORS:
        if separator in text:
            cells = [cell.strip() for cell in text.split(separator)]
            return [cell for cell in cells if cell and not is_border_row(cell)]
    if "\t" in text:
        return [cell.strip() for cell in text.split("\t") if cell.strip()]
    if _GAP_RE.search(text):
        return [cell.strip() for cell in _GAP_RE.split(text) if cell.strip()]
    return text.split()


def _set_font(run, family: str, size: float, ascii_family: Optional[str] = None):
    run.font.name = ascii_family or family
    run.font.size = Pt(size)
    run._element.rPr.rFonts.set(qn("w:eastAsia"), family)


class DocumentEmitter:
    """Walks blocks in order and writes headings, body text and tables."""

    def __init__(self, options: Optional[GenerationOptions] = None):
        self.options = options or GenerationOptions()

    def emit(self, blocks: Sequence[ContentBlock]) -> EmissionResult:
        """Emit a DOCX for ``blocks``.

        A single block that fails to render degrades to a plain paragraph
        and is reported as EMISSION_PARTIAL_FAILURE.

        Args:
            blocks: Classified (and usually substituted) blocks

        Returns:
            EmissionResult with DOCX bytes

        Raises:
            EmissionError: If the document itself cannot be built or saved
        """
        with Timer("emission") as timer:
            try:
                binary, page_count, warnings = self._build(blocks)
            except Exception as exc:
                logger.error(
                    "Document emission failed",
                    extra_data={
                        "block_count": len(blocks),
                        "error_type": type(exc).__name__,
                        "error": str(exc),
                    },
                    exc_info=True,
                )
                raise EmissionError(f"Failed to build output document: {exc}") from exc

        logger.info(
            "Document emitted",
            extra_data={
                "block_count": len(blocks),
                "page_count": page_count,
                "degraded_blocks": len(warnings),
                "size_bytes": len(binary),
                "emission_time_ms": timer.get_elapsed_ms(),
            },
        )
        return EmissionResult(binary=binary, page_count=page_count, warnings=warnings)

    def _build(self, blocks: Sequence[ContentBlock]) -> tuple[bytes, int, list[EngineWarning]]:
        document = Document()
        self._configure(document)

        warnings: list[EngineWarning] = []
        pending_rows: list[tuple[int, ContentBlock]] = []
        current_page = blocks[0].page_number if blocks else 1
        page_count = 1

        for index, block in enumerate(blocks):
            if block.page_number > current_page:
                self._flush_rows(document, pending_rows, warnings)
                document.add_page_break()
                page_count += 1
                current_page = block.page_number

            if block.type is BlockType.TABLE_ROW:
                pending_rows.append((index, block))
                continue

            self._flush_rows(document, pending_rows, warnings)
            try:
                self._render_block(document, block)
            except Exception as exc:
                self._degrade(document, index, block, warnings, str(exc))

        self._flush_rows(document, pending_rows, warnings)

        buffer = io.BytesIO()
        document.save(buffer)
        return buffer.getvalue(), page_count, warnings

    def _configure(self, document):
        options = self.options
        section = document.sections[0]
        section.top_margin = Pt(options.page_margins.top)
        section.bottom_margin = Pt(options.page_margins.bottom)
        section.left_margin = Pt(options.page_margins.left)
        section.right_margin = Pt(options.page_margins.right)

        normal = document.styles["Normal"]
        normal.font.name = options.ascii_font_family or options.font_family
        normal.font.size = Pt(options.font_size)
        normal.element.rPr.rFonts.set(qn("w:eastAsia"), options.font_family)

    def _style_for(self, block: ContentBlock) -> tuple[float, bool, str]:
        default = DEFAULT_STYLES[block.type]
        if self.options.preserve_formatting:
            return block.style.font_size, block.style.bold, block.style.alignment
        # Type defaults are relative to a 12pt body
        return self.options.font_size + default.font_size - 12.0, default.bold, default.alignment

    def _render_block(self, document, block: ContentBlock):
        size, bold, alignment = self._style_for(block)
        level = HEADING_LEVELS.get(block.type)

        if level is not None:
            paragraph = document.add_heading(level=level)
            paragraph.paragraph_format.space_before = Pt(12)
            paragraph.paragraph_format.space_after = Pt(6)
        else:
            paragraph = document.add_paragraph()
            paragraph.paragraph_format.first_line_indent = Pt(self.options.font_size * 2)
            paragraph.paragraph_format.line_spacing = self.options.line_spacing
            paragraph.paragraph_format.space_before = Pt(6)
            paragraph.paragraph_format.space_after = Pt(6)

        paragraph.alignment = ALIGNMENTS.get(alignment, WD_ALIGN_PARAGRAPH.LEFT)
        run = paragraph.add_run(block.text)
        _set_font(run, self.options.font_family, size, self.options.ascii_font_family)
        run.bold = bold
        if level is not None:
            run.font.color.rgb = _BLACK

    def _flush_rows(
        self,
        document,
        rows: list[tuple[int, ContentBlock]],
        warnings: list[EngineWarning],
    ):
        """Turn buffered table-row blocks into tables.

        Rows that do not split into at least two cells break the table and
        are written as single-cell paragraphs.
        """
        group: list[tuple[int, ContentBlock, list[str]]] = []

        for index, block in rows:
            if is_border_row(block.text):
                continue
            try:
                cells = split_table_row(block.text)
            except Exception as exc:
                cells = []
                logger.debug("Row split failed", extra_data={"block_index": index, "error": str(exc)})

            if len(cells) >= 2:
                group.append((index, block, cells))
                continue

            self._write_table(document, group, warnings)
            group = []
            self._degrade(document, index, block, warnings, "row has fewer than two cells")

        self._write_table(document, group, warnings)
        rows.clear()

    def _write_table(
        self,
        document,
        group: list[tuple[int, ContentBlock, list[str]]],
        warnings: list[EngineWarning],
    ):
        if not group:
            return
        column_count = max(len(cells) for _, _, cells in group)
        cell_size = self.options.font_size + self.options.table_font_delta

        table = None
        try:
            table = document.add_table(rows=len(group), cols=column_count)
            table.style = "Table Grid"
            for row_index, (_, _, cells) in enumerate(group):
                row = table.rows[row_index]
                for column_index, text in enumerate(cells):
                    paragraph = row.cells[column_index].paragraphs[0]
                    run = paragraph.add_run(text)
                    _set_font(run, self.options.font_family, cell_size, self.options.ascii_font_family)
        except Exception as exc:
            # Drop the partial table and keep the rows as text
            if table is not None:
                table._tbl.getparent().remove(table._tbl)
            for index, block, _ in group:
                self._degrade(document, index, block, warnings, f"table build failed: {exc}")

    def _degrade(
        self,
        document,
        index: int,
        block: ContentBlock,
        warnings: list[EngineWarning],
        reason: str,
    ):
        logger.warning(
            "Block degraded to plain paragraph",
            extra_data={
                "block_index": index,
                "block_type": block.type.value,
                "reason": reason,
            },
        )
        warnings.append(
            EngineWarning(
                WarningCode.EMISSION_PARTIAL_FAILURE,
                reason,
                page_number=block.page_number,
                block_index=index,
            )
        )
        paragraph = document.add_paragraph()
        run = paragraph.add_run(block.text)
        _set_font(run, self.options.font_family, self.options.font_size, self.options.ascii_font_family)


def emit(blocks: Sequence[ContentBlock], options: Optional[GenerationOptions] = None) -> EmissionResult:
    """Convenience wrapper around DocumentEmitter."""
    return DocumentEmitter(options).emit(blocks)
