"""Ingestion adapter for flowed word-processor documents (DOCX, legacy DOC)."""

import io
import shutil
import subprocess
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from docx import Document
from docx.enum.text import WD_ALIGN_PARAGRAPH
from docx.table import Table
from docx.text.paragraph import Paragraph

from contract_engine.config import ExtractorConfig
from contract_engine.detector import OLE_SIGNATURE
from contract_engine.exceptions import CorruptInputError, UnsupportedFormatError
from contract_engine.logger import Timer, get_logger
from contract_engine.models import (
    DocumentMetadata,
    EngineWarning,
    PageData,
    ParsedDocument,
    SourceKind,
    TextFragment,
    WarningCode,
)
from contract_engine.text import count_words

logger = get_logger(__name__)

_ALIGNMENTS = {
    WD_ALIGN_PARAGRAPH.LEFT: "left",
    WD_ALIGN_PARAGRAPH.CENTER: "center",
    WD_ALIGN_PARAGRAPH.RIGHT: "right",
    WD_ALIGN_PARAGRAPH.JUSTIFY: "justify",
}


@dataclass
class _PageBuilder:
    number: int
    parts: list[str] = field(default_factory=list)
    fragments: list[TextFragment] = field(default_factory=list)
    table_count: int = 0

    @property
    def has_content(self) -> bool:
        return bool(self.parts)


class FlowedDocumentAdapter:
    """Reads DOCX templates with python-docx.

    Paragraphs and tables are walked in body order. Explicit page breaks
    split the content into pages; otherwise the whole body is one page.
    """

    def __init__(self, config: Optional[ExtractorConfig] = None):
        self.config = config or ExtractorConfig()

    def parse(self, file_bytes: bytes, file_name: str) -> ParsedDocument:
        """Parse a flowed document.

        Args:
            file_bytes: Raw DOCX (or legacy DOC) bytes
            file_name: Original filename

        Returns:
            ParsedDocument with plain text, markdown-like markup and pages

        Raises:
            UnsupportedFormatError: If a legacy .doc cannot be converted
            CorruptInputError: If the package cannot be read
        """
        log = logger.bind(file_name=file_name)

        if file_bytes[:4].startswith(OLE_SIGNATURE):
            file_bytes = self._convert_doc(file_bytes, file_name)

        with Timer("docx_parse") as timer:
            try:
                document = Document(io.BytesIO(file_bytes))
            except Exception as exc:
                log.error(
                    "Failed to open DOCX package",
                    extra_data={"error_type": type(exc).__name__, "error": str(exc)},
                )
                raise CorruptInputError(f"Unreadable word-processor document: {exc}") from exc

            try:
                pages, markup_parts, first_heading = self._walk_body(document)
                image_count = len(document.inline_shapes)
            except Exception as exc:
                log.error(
                    "Failed to read DOCX body",
                    extra_data={"error_type": type(exc).__name__, "error": str(exc)},
                    exc_info=True,
                )
                raise CorruptInputError(f"Malformed word-processor document: {exc}") from exc

        width, height = self._page_size(document)
        page_data = tuple(
            PageData(
                page_number=page.number,
                text="\n\n".join(page.parts),
                fragments=tuple(page.fragments),
                width=width,
                height=height,
                image_count=image_count if page.number == 1 else 0,
                table_count=page.table_count,
            )
            for page in pages
        )
        raw_text = "\n\n".join(page.text for page in page_data if page.text)

        core = document.core_properties
        metadata = DocumentMetadata(
            file_name=file_name,
            page_count=len(page_data),
            title=(core.title or "").strip() or first_heading,
            author=(core.author or "").strip() or None,
            has_images=image_count > 0,
            has_tables=any(page.table_count for page in pages),
            word_count=count_words(raw_text),
        )

        warnings: list[EngineWarning] = []
        if not raw_text.strip():
            log.warning("No text content extracted from document")
            warnings.append(
                EngineWarning(WarningCode.EMPTY_CONTENT, f"{file_name} contains no text")
            )

        log.info(
            "DOCX ingestion completed",
            extra_data={
                "page_count": metadata.page_count,
                "has_tables": metadata.has_tables,
                "characters_extracted": len(raw_text),
                "extraction_time_ms": timer.get_elapsed_ms(),
            },
        )

        return ParsedDocument(
            source_kind=SourceKind.FLOWED,
            raw_text=raw_text,
            pages=page_data,
            metadata=metadata,
            markup="\n\n".join(markup_parts),
            warnings=tuple(warnings),
        )

    def _walk_body(self, document) -> tuple[list[_PageBuilder], list[str], Optional[str]]:
        pages = [_PageBuilder(number=1)]
        markup_parts: list[str] = []
        first_heading: Optional[str] = None

        def next_page():
            if pages[-1].has_content:
                pages.append(_PageBuilder(number=pages[-1].number + 1))

        for item in document.iter_inner_content():
            if isinstance(item, Paragraph):
                if item.paragraph_format.page_break_before:
                    next_page()

                text = " ".join(item.text.split())
                if text:
                    level = _heading_level(item)
                    if level and first_heading is None:
                        first_heading = text
                    pages[-1].parts.append(text)
                    pages[-1].fragments.append(self._fragment(item, text))
                    markup_parts.append(("#" * level + " " if level else "") + text)

                if item._p.xpath('.//w:br[@w:type="page"]'):
                    next_page()

            elif isinstance(item, Table):
                rows = _table_rows(item)
                if not rows:
                    continue
                page = pages[-1]
                page.parts.append("\n".join(" | ".join(cells) for cells in rows))
                page.fragments.extend(TextFragment(text=" | ".join(cells)) for cells in rows)
                page.table_count += 1
                markup_parts.append(_table_markup(rows))

        return pages, markup_parts, first_heading

    @staticmethod
    def _fragment(paragraph: Paragraph, text: str) -> TextFragment:
        """Collect the style hints the classifier can reuse for this paragraph."""
        style_font = paragraph.style.font if paragraph.style is not None else None

        font_size = None
        font_name = None
        for run in paragraph.runs:
            if run.font.size is not None and font_size is None:
                font_size = run.font.size.pt
            if run.font.name and font_name is None:
                font_name = run.font.name
        if font_size is None and style_font is not None and style_font.size is not None:
            font_size = style_font.size.pt

        text_runs = [run for run in paragraph.runs if run.text.strip()]
        style_bold = bool(style_font is not None and style_font.bold)
        bold = bool(text_runs) and all(
            run.bold or (run.bold is None and style_bold) for run in text_runs
        )

        alignment = paragraph.alignment
        if alignment is None and paragraph.style is not None:
            alignment = paragraph.style.paragraph_format.alignment

        return TextFragment(
            text=text,
            font_size=font_size,
            font_name=font_name,
            bold=bold,
            alignment=_ALIGNMENTS.get(alignment),
        )

    @staticmethod
    def _page_size(document) -> tuple[float, float]:
        width, height = 595.32, 841.92
        if document.sections:
            section = document.sections[0]
            if section.page_width is not None:
                width = section.page_width.pt
            if section.page_height is not None:
                height = section.page_height.pt
        return width, height

    def _convert_doc(self, file_bytes: bytes, file_name: str) -> bytes:
        """Convert legacy .doc to DOCX with LibreOffice, if installed."""
        soffice = shutil.which("soffice") or shutil.which("libreoffice")
        if not soffice:
            raise UnsupportedFormatError(
                "Legacy .doc templates need LibreOffice for conversion; upload DOCX instead."
            )

        with tempfile.TemporaryDirectory() as tmp_dir:
            source = Path(tmp_dir) / "template.doc"
            source.write_bytes(file_bytes)

            with Timer("doc_soffice") as timer:
                try:
                    conversion = subprocess.run(
                        [
                            soffice,
                            "--headless",
                            "--convert-to",
                            "docx",
                            str(source),
                            "--outdir",
                            tmp_dir,
                        ],
                        capture_output=True,
                        text=True,
                        timeout=self.config.soffice_timeout_seconds,
                    )
                except subprocess.TimeoutExpired as exc:
                    raise CorruptInputError(f"Timed out converting {file_name}") from exc

            converted = Path(tmp_dir) / "template.docx"
            if conversion.returncode != 0 or not converted.exists():
                logger.error(
                    "DOC conversion failed",
                    extra_data={
                        "file_name": file_name,
                        "returncode": conversion.returncode,
                        "stderr": conversion.stderr.strip()[:200],
                    },
                )
                raise CorruptInputError(f"Could not convert legacy document {file_name}")

            logger.info(
                "DOC converted via soffice",
                extra_data={
                    "file_name": file_name,
                    "conversion_time_ms": timer.get_elapsed_ms(),
                },
            )
            return converted.read_bytes()


def _heading_level(paragraph: Paragraph) -> int:
    name = paragraph.style.name if paragraph.style is not None else ""
    if name == "Title":
        return 1
    if name.startswith("Heading "):
        suffix = name[len("Heading "):]
        if suffix.isdigit():
            return min(int(suffix), 6)
    return 0


def _table_rows(table: Table) -> list[list[str]]:
    rows = []
    for row in table.rows:
        cells = []
        seen = []
        for cell in row.cells:
            # Merged cells repeat the same underlying element
            if any(cell._tc is tc for tc in seen):
                continue
            seen.append(cell._tc)
            cells.append(" ".join(cell.text.split()))
        if any(cells):
            rows.append(cells)
    return rows


def _table_markup(rows: list[list[str]]) -> str:
    lines = []
    for i, cells in enumerate(rows):
        lines.append("| " + " | ".join(cells) + " |")
        if i == 0:
            lines.append("| " + " | ".join(["---"] * len(cells)) + " |")
    return "\n".join(lines)
