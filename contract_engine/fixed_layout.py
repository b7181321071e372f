"""Ingestion adapter for fixed-layout (PDF) templates."""

import re
from typing import Optional

import fitz  # PyMuPDF
import pymupdf4llm

from contract_engine.config import ExtractorConfig
from contract_engine.exceptions import CorruptInputError
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
from contract_engine.snapshots import SnapshotRenderer
from contract_engine.text import count_words, has_table_glyphs

logger = get_logger(__name__)

PAGE_SEPARATOR = "\f"

_TABLE_CAPTION_RE = re.compile(r"(?:^|\n)\s*(?:表|Table)\s*[\d一二三四五六七八九十]", re.IGNORECASE)
_IMAGE_CAPTION_RE = re.compile(r"(?:^|\n)\s*(?:图|Figure|Image)\s*[\d一二三四五六七八九十]", re.IGNORECASE)

# Pages with little text but this much ink are taken to carry pictures
_IMAGE_INK_COVERAGE = 0.35
_BOLD_FLAG = 1 << 4


class FixedLayoutAdapter:
    """Extracts per-page text, positioned line fragments and layout hints.

    Uses PyMuPDF for text and geometry, pymupdf4llm for semantic markup and
    SnapshotRenderer for page rasters. Everything except opening the file
    is best-effort.
    """

    def __init__(
        self,
        config: Optional[ExtractorConfig] = None,
        renderer: Optional[SnapshotRenderer] = None,
    ):
        self.config = config or ExtractorConfig()
        self.renderer = renderer or SnapshotRenderer(self.config.render_config)

    def parse(self, file_bytes: bytes, file_name: str) -> ParsedDocument:
        """Parse a PDF template.

        Args:
            file_bytes: Raw PDF bytes
            file_name: Original filename

        Returns:
            ParsedDocument with one PageData per page

        Raises:
            CorruptInputError: If the PDF cannot be opened, is encrypted or
                its pages cannot be read
        """
        log = logger.bind(file_name=file_name)
        warnings: list[EngineWarning] = []

        try:
            document = fitz.open(stream=file_bytes, filetype="pdf")
        except Exception as exc:
            log.error(
                "Failed to open PDF",
                extra_data={"error_type": type(exc).__name__, "error": str(exc)},
            )
            raise CorruptInputError(f"Unreadable PDF document: {exc}") from exc

        try:
            if document.needs_pass:
                raise CorruptInputError(f"{file_name} is password protected")

            with Timer("pdf_text_extraction") as timer:
                raw_pages = [self._read_page(page) for page in document]

            log.debug(
                "PDF text extraction completed",
                extra_data={
                    "page_count": len(raw_pages),
                    "extraction_time_ms": timer.get_elapsed_ms(),
                },
            )

            info = document.metadata or {}
            markup = self._markup(document, log, warnings)
        except CorruptInputError:
            raise
        except Exception as exc:
            log.error(
                "Failed to read PDF pages",
                extra_data={"error_type": type(exc).__name__, "error": str(exc)},
                exc_info=True,
            )
            raise CorruptInputError(f"Malformed PDF document: {exc}") from exc
        finally:
            document.close()

        snapshots, render_warnings = self.renderer.render_all(
            file_bytes, len(raw_pages), file_name
        )
        warnings.extend(render_warnings)

        pages = tuple(
            PageData(
                page_number=index + 1,
                text=page["text"],
                fragments=page["fragments"],
                width=page["width"],
                height=page["height"],
                snapshot=snapshots.get(index + 1),
                image_count=page["image_count"],
                table_count=page["table_count"],
            )
            for index, page in enumerate(raw_pages)
        )
        raw_text = PAGE_SEPARATOR.join(page.text for page in pages)

        metadata = DocumentMetadata(
            file_name=file_name,
            page_count=len(pages),
            title=(info.get("title") or "").strip() or None,
            author=(info.get("author") or "").strip() or None,
            has_images=any(self._page_has_images(page) for page in pages),
            has_tables=any(page.table_count for page in pages),
            word_count=count_words(raw_text),
        )

        if not raw_text.strip():
            log.warning(
                "No text layer found; scanned PDFs are not supported",
                extra_data={"page_count": len(pages)},
            )
            warnings.append(
                EngineWarning(WarningCode.EMPTY_CONTENT, f"{file_name} has no extractable text")
            )

        log.info(
            "PDF ingestion completed",
            extra_data={
                "page_count": len(pages),
                "snapshots": len(snapshots),
                "has_tables": metadata.has_tables,
                "has_images": metadata.has_images,
                "characters_extracted": len(raw_text),
            },
        )

        return ParsedDocument(
            source_kind=SourceKind.FIXED_LAYOUT,
            raw_text=raw_text,
            pages=pages,
            metadata=metadata,
            markup=markup,
            warnings=tuple(warnings),
        )

    def _read_page(self, page) -> dict:
        text = page.get_text("text")
        width, height = page.rect.width, page.rect.height
        return {
            "text": text.strip("\n"),
            "fragments": self._fragments(page, width),
            "width": width,
            "height": height,
            "image_count": len(page.get_images()),
            "table_count": self._count_tables(page, text),
        }

    def _fragments(self, page, page_width: float) -> tuple[TextFragment, ...]:
        """One fragment per text line, in reading order."""
        fragments = []
        content = page.get_text("dict", sort=True)
        for block in content.get("blocks", []):
            if block.get("type") != 0:
                continue
            for line in block.get("lines", []):
                spans = [span for span in line.get("spans", []) if span.get("text", "").strip()]
                if not spans:
                    continue
                text = " ".join("".join(span["text"] for span in spans).split())
                if max(span["size"] for span in spans) < self.config.fontsize_limit:
                    continue
                x0, y0, x1, y1 = line["bbox"]
                fragments.append(
                    TextFragment(
                        text=text,
                        x=round(x0, 2),
                        y=round(y0, 2),
                        width=round(x1 - x0, 2),
                        height=round(y1 - y0, 2),
                        font_size=round(max(span["size"] for span in spans), 1),
                        font_name=spans[0].get("font"),
                        bold=all(
                            span.get("flags", 0) & _BOLD_FLAG or "bold" in span.get("font", "").lower()
                            for span in spans
                        ),
                        alignment=_estimate_alignment(x0, x1, page_width),
                    )
                )
        return tuple(fragments)

    def _count_tables(self, page, text: str) -> int:
        """Multi-pattern table detection: ruled tables, drawing glyphs, captions."""
        try:
            found = page.find_tables(strategy=self.config.table_strategy)
            if found.tables:
                return len(found.tables)
        except Exception as exc:
            logger.debug(
                "Ruled table detection unavailable",
                extra_data={"page_number": page.number + 1, "error": str(exc)},
            )
        if has_table_glyphs(text) or _TABLE_CAPTION_RE.search(text):
            return 1
        return 0

    def _markup(self, document, log, warnings: list[EngineWarning]) -> Optional[str]:
        if not self.config.build_markup:
            return None
        try:
            with Timer("pdf_markup") as timer:
                markup = pymupdf4llm.to_markdown(
                    document,
                    table_strategy=self.config.table_strategy,
                    force_text=self.config.force_text,
                    write_images=False,
                    ignore_images=True,
                    ignore_code=False,
                    fontsize_limit=self.config.fontsize_limit,
                    show_progress=False,
                )
        except Exception as exc:
            log.warning(
                "Markdown conversion failed, continuing without markup",
                extra_data={"error_type": type(exc).__name__, "error": str(exc)},
            )
            warnings.append(EngineWarning(WarningCode.MARKUP_UNAVAILABLE, str(exc)))
            return None

        log.debug(
            "PDF markup built",
            extra_data={"characters": len(markup), "markup_time_ms": timer.get_elapsed_ms()},
        )
        return markup.strip() or None

    @staticmethod
    def _page_has_images(page: PageData) -> bool:
        if page.image_count or _IMAGE_CAPTION_RE.search(page.text):
            return True
        snapshot = page.snapshot
        return bool(
            snapshot is not None
            and snapshot.ink_coverage >= _IMAGE_INK_COVERAGE
            and len(page.text.strip()) < 200
        )


def _estimate_alignment(x0: float, x1: float, page_width: float) -> str:
    if page_width <= 0:
        return "left"
    line_width = x1 - x0
    center_offset = abs((x0 + x1) / 2 - page_width / 2)
    if line_width < page_width * 0.6 and center_offset < page_width * 0.04:
        return "center"
    if x0 > page_width * 0.5 and page_width - x1 < page_width * 0.15:
        return "right"
    return "left"
