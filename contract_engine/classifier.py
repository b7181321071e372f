"""Heuristic layout classifier.

Turns a line-oriented text stream into typed ContentBlocks. Each line is
tested against an ordered tuple of ClassificationRules (first match wins);
lines no rule claims accumulate into paragraph blocks until a
sentence-terminal mark, so soft-wrapped lines merge back together.

Misclassification is an accepted outcome. The classifier never raises on
odd input; it logs CLASSIFICATION_DEGRADED and returns what it has.
"""

import re
from collections import defaultdict, deque
from dataclasses import dataclass
from typing import Callable, Iterable, Optional, Sequence

from contract_engine.config import ClassifierConfig
from contract_engine.logger import get_logger
from contract_engine.models import (
    BlockPosition,
    BlockStyle,
    BlockType,
    ContentBlock,
    PageData,
    ParsedDocument,
    SourceKind,
    TextFragment,
    WarningCode,
)
from contract_engine.placeholders import strip_placeholders
from contract_engine.text import has_table_glyphs

logger = get_logger(__name__)

_CJK_NUMERAL = "一二三四五六七八九十百千零〇两"

CHAPTER_RE = re.compile(rf"^第[{_CJK_NUMERAL}\d]+\s*[章节部分篇]")
ARTICLE_RE = re.compile(rf"^第[{_CJK_NUMERAL}\d]+\s*条")
TOP_NUMBER_RE = re.compile(r"^\d+\s*[.．、](?!\d)")
CJK_ORDINAL_RE = re.compile(rf"^[{_CJK_NUMERAL}]+\s*[、．.]")
NESTED_NUMBER_RE = re.compile(r"^\d+(?:\.\d+)+\.?(?!\d)")
PAREN_NUMBER_RE = re.compile(rf"^[（(]\s*(?:\d+|[{_CJK_NUMERAL}]+|[a-zA-Z])\s*[）)]")
LETTER_ITEM_RE = re.compile(r"^[a-zA-Z][.)）]\s")
CIRCLED_NUMBER_RE = re.compile(r"^[①-⑳]")

FIELD_LINE_RE = re.compile(r"^([^:：]+)[:：]")
TERMINAL_RE = re.compile(r"[。！？；.!?;]$")
COLUMN_GAP_RE = re.compile(r"\t+| {2,}|　+")

_PAGE_NUMBER_RES = (
    re.compile(r"^[-–—]?\s*\d{1,4}\s*[-–—]?$"),
    re.compile(r"^第\s*\d+\s*页(?:\s*[,，/]?\s*共\s*\d+\s*页)?$"),
    re.compile(r"^共\s*\d+\s*页\s*第\s*\d+\s*页$"),
    re.compile(r"^page\s+\d+(?:\s*(?:of|/)\s*\d+)?$", re.IGNORECASE),
    re.compile(r"^\d+\s*/\s*\d+$"),
)
_MARKDOWN_SEPARATOR_RE = re.compile(r"^\|?\s*:?-{3,}:?\s*(?:\|\s*:?-{3,}:?\s*)*\|?$")
_HEADING_MARK_RE = re.compile(r"^#{1,6}\s+")
_QUOTE_MARK_RE = re.compile(r"^>\s*")
_BR_TAG_RE = re.compile(r"<br\s*/?>", re.IGNORECASE)

DEFAULT_STYLES = {
    BlockType.TITLE: BlockStyle(font_size=16.0, bold=True, alignment="center"),
    BlockType.SECTION_HEADER: BlockStyle(font_size=14.0, bold=True, alignment="center"),
    BlockType.SUB_CLAUSE: BlockStyle(font_size=13.0, bold=True, alignment="left"),
    BlockType.CLAUSE: BlockStyle(font_size=12.0, bold=True, alignment="left"),
    BlockType.PARAGRAPH: BlockStyle(font_size=12.0, bold=False, alignment="left"),
    BlockType.TABLE_ROW: BlockStyle(font_size=11.0, bold=False, alignment="left"),
}


@dataclass(frozen=True)
class Line:
    """A normalized source line.

    ``text`` has whitespace collapsed; ``raw`` keeps the original interior
    spacing so table column gaps survive.
    """

    text: str
    raw: str
    index: int


@dataclass(frozen=True)
class Placement:
    page_number: int
    y: float
    hint: Optional[TextFragment] = None


BlockBuilder = Callable[[Line, Placement], ContentBlock]


@dataclass(frozen=True)
class ClassificationRule:
    name: str
    predicate: Callable[[Line, ClassifierConfig], bool]
    build: BlockBuilder


# ---------------------------------------------------------------------------
# Normalization
# ---------------------------------------------------------------------------


def _clean_annotations(line: str) -> str:
    line = _BR_TAG_RE.sub(" ", line)
    line = _HEADING_MARK_RE.sub("", line)
    line = _QUOTE_MARK_RE.sub("", line)
    line = line.replace("**", "")
    if line.startswith("|") and line.endswith("|") and len(line) > 1:
        line = line[1:-1]
    return line.strip()


def is_page_number_line(text: str) -> bool:
    return any(pattern.match(text) for pattern in _PAGE_NUMBER_RES)


def normalize_lines(text: str) -> list[Optional[Line]]:
    """Split text into normalized lines; ``None`` marks a blank-line boundary.

    Page-number boilerplate and markup separator rows are dropped entirely
    and do not act as boundaries.
    """
    text = text.replace("\r\n", "\n").replace("\r", "\n").replace("\f", "\n")
    lines: list[Optional[Line]] = []
    index = 0
    for source in text.split("\n"):
        stripped = source.strip()
        if not stripped:
            if lines and lines[-1] is not None:
                lines.append(None)
            continue
        if _MARKDOWN_SEPARATOR_RE.match(stripped):
            continue

        raw = _clean_annotations(stripped)
        collapsed = " ".join(raw.split())
        if not collapsed or is_page_number_line(collapsed):
            continue

        lines.append(Line(text=collapsed, raw=raw, index=index))
        index += 1
    return lines


# ---------------------------------------------------------------------------
# Predicates
# ---------------------------------------------------------------------------


def _starts_with_enumeration(text: str) -> bool:
    return any(
        pattern.match(text)
        for pattern in (
            CHAPTER_RE,
            ARTICLE_RE,
            TOP_NUMBER_RE,
            CJK_ORDINAL_RE,
            NESTED_NUMBER_RE,
            PAREN_NUMBER_RE,
            LETTER_ITEM_RE,
            CIRCLED_NUMBER_RE,
        )
    )


def is_field_line(text: str, config: ClassifierConfig) -> bool:
    """``label：value`` lines such as ``甲方：[甲方名称]``."""
    match = FIELD_LINE_RE.match(text)
    if not match:
        return False
    label = match.group(1).strip()
    return 0 < len(label) <= config.field_label_max_length and not TERMINAL_RE.search(label)


def _literal_lower(text: str) -> str:
    return strip_placeholders(text).lower()


def looks_tabular(line: Line) -> bool:
    """Rows carrying cell separators or at least two column gaps."""
    if has_table_glyphs(line.raw):
        return True
    cells = [cell for cell in COLUMN_GAP_RE.split(line.raw) if cell.strip()]
    return len(cells) >= 3


def is_title(line: Line, config: ClassifierConfig) -> bool:
    text = line.text
    if len(text) >= config.title_max_length or looks_tabular(line):
        return False
    if _starts_with_enumeration(text) or is_field_line(text, config) or TERMINAL_RE.search(text):
        return False
    literal = _literal_lower(text)
    return any(keyword in literal for keyword in config.title_keywords)


def is_section_header(line: Line, config: ClassifierConfig) -> bool:
    text = line.text
    if len(text) >= config.header_max_length or looks_tabular(line):
        return False
    if CHAPTER_RE.match(text) or ARTICLE_RE.match(text):
        return True
    if TOP_NUMBER_RE.match(text) or CJK_ORDINAL_RE.match(text):
        return True
    if is_field_line(text, config) and not text.rstrip().endswith((":", "：")):
        return False
    literal = _literal_lower(text)
    return any(keyword in literal for keyword in config.clause_keywords)


def is_sub_clause(line: Line, config: ClassifierConfig) -> bool:
    text = line.text
    if looks_tabular(line):
        return False
    return bool(
        NESTED_NUMBER_RE.match(text)
        or PAREN_NUMBER_RE.match(text)
        or LETTER_ITEM_RE.match(text)
        or CIRCLED_NUMBER_RE.match(text)
    )


def is_clause(line: Line, config: ClassifierConfig) -> bool:
    text = line.text
    if looks_tabular(line):
        return False
    return bool(ARTICLE_RE.match(text) or TOP_NUMBER_RE.match(text) or CJK_ORDINAL_RE.match(text))


def is_table_row(line: Line, config: ClassifierConfig) -> bool:
    if looks_tabular(line):
        return True
    # Placeholder names may contain spaces; only literal tokens count
    tokens = strip_placeholders(line.text).split()
    return (
        len(tokens) >= 3
        and is_field_line(line.text, config)
        and not TERMINAL_RE.search(line.text)
    )


# ---------------------------------------------------------------------------
# Block construction
# ---------------------------------------------------------------------------


def make_block(block_type: BlockType, text: str, placement: Placement) -> ContentBlock:
    """Build a block with the type's default style, refined by a source hint."""
    style = DEFAULT_STYLES[block_type]
    position = BlockPosition(y=placement.y, height=style.font_size + 4)

    hint = placement.hint
    if hint is not None:
        style = BlockStyle(
            font_size=hint.font_size or style.font_size,
            bold=hint.bold or style.bold,
            alignment=hint.alignment or style.alignment,
        )
        if hint.x is not None and hint.width is not None:
            position = BlockPosition(
                x=hint.x,
                y=placement.y,
                width=hint.width,
                height=hint.height or position.height,
            )

    return ContentBlock(
        type=block_type,
        text=text,
        style=style,
        position=position,
        page_number=placement.page_number,
    )


def _builder(block_type: BlockType, keep_raw: bool = False) -> BlockBuilder:
    def build(line: Line, placement: Placement) -> ContentBlock:
        return make_block(block_type, line.raw if keep_raw else line.text, placement)

    return build


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    ClassificationRule("title", is_title, _builder(BlockType.TITLE)),
    ClassificationRule("section_header", is_section_header, _builder(BlockType.SECTION_HEADER)),
    ClassificationRule("sub_clause", is_sub_clause, _builder(BlockType.SUB_CLAUSE)),
    ClassificationRule("clause", is_clause, _builder(BlockType.CLAUSE)),
    ClassificationRule("table_row", is_table_row, _builder(BlockType.TABLE_ROW, keep_raw=True)),
)


def match_rule(
    line: Line,
    config: ClassifierConfig,
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> Optional[ClassificationRule]:
    for rule in rules:
        if rule.predicate(line, config):
            return rule
    return None


def _join_wrapped(lines: Sequence[Line]) -> str:
    text = lines[0].text
    for line in lines[1:]:
        # Soft-wrapped CJK text has no space at the wrap point
        if text[-1].isascii() and line.text[0].isascii():
            text += " " + line.text
        else:
            text += line.text
    return text


class _HintIndex:
    """Fragments of one page, looked up by their collapsed text in order."""

    def __init__(self, fragments: Iterable[TextFragment]):
        self._by_text: dict[str, deque] = defaultdict(deque)
        for fragment in fragments:
            self._by_text[" ".join(fragment.text.split())].append(fragment)

    def take(self, text: str) -> Optional[TextFragment]:
        queue = self._by_text.get(text)
        return queue.popleft() if queue else None


# ---------------------------------------------------------------------------
# Classification
# ---------------------------------------------------------------------------


def _classify_lines(
    lines: Sequence[Optional[Line]],
    config: ClassifierConfig,
    rules: Sequence[ClassificationRule],
    page_number: Optional[int],
    hints: Optional[_HintIndex],
    y: float,
) -> tuple[list[ContentBlock], float]:
    blocks: list[ContentBlock] = []
    buffer: list[Line] = []

    def page_of(line: Line) -> int:
        if page_number is not None:
            return page_number
        return line.index // config.lines_per_page + 1

    def place(line: Line) -> Placement:
        hint = hints.take(line.text) if hints is not None else None
        return Placement(page_number=page_of(line), y=y, hint=hint)

    def append(block: ContentBlock):
        nonlocal y
        blocks.append(block)
        y += block.style.font_size + 8

    def flush():
        if not buffer:
            return
        placement = place(buffer[0])
        if hints is not None:
            for line in buffer[1:]:
                hints.take(line.text)
        append(make_block(BlockType.PARAGRAPH, _join_wrapped(buffer), placement))
        buffer.clear()

    for line in lines:
        if line is None:
            flush()
            continue

        rule = match_rule(line, config, rules)
        if rule is not None:
            flush()
            append(rule.build(line, place(line)))
            continue

        if is_field_line(line.text, config):
            flush()
            append(make_block(BlockType.PARAGRAPH, line.text, place(line)))
            continue

        buffer.append(line)
        if TERMINAL_RE.search(line.text):
            flush()
        elif len(buffer) >= config.max_paragraph_lines:
            logger.debug(
                "Forced paragraph flush without terminal punctuation",
                extra_data={
                    "code": WarningCode.CLASSIFICATION_DEGRADED.value,
                    "line_index": line.index,
                    "lines": len(buffer),
                },
            )
            flush()

    flush()
    return blocks, y


def _log_if_degraded(lines: Sequence[Optional[Line]], blocks: Sequence[ContentBlock], source: str):
    if any(line is not None for line in lines) and not blocks:
        logger.warning(
            "Classifier produced no blocks from non-empty input",
            extra_data={"code": WarningCode.CLASSIFICATION_DEGRADED.value, "source": source},
        )


def classify_text(
    text: str,
    config: Optional[ClassifierConfig] = None,
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> list[ContentBlock]:
    """Classify an unpaginated text stream.

    Page numbers are estimated from the cumulative line count and
    ``config.lines_per_page``.
    """
    config = config or ClassifierConfig()
    lines = normalize_lines(text)
    blocks, _ = _classify_lines(lines, config, rules, None, None, 0.0)
    _log_if_degraded(lines, blocks, "text")
    return blocks


def classify_pages(
    pages: Sequence[PageData],
    config: Optional[ClassifierConfig] = None,
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> list[ContentBlock]:
    """Classify paginated content; blocks keep their true page numbers."""
    config = config or ClassifierConfig()
    blocks: list[ContentBlock] = []
    y = 0.0
    for page in pages:
        lines = normalize_lines(page.text)
        hints = _HintIndex(page.fragments) if page.fragments else None
        page_blocks, y = _classify_lines(lines, config, rules, page.page_number, hints, y)
        _log_if_degraded(lines, page_blocks, f"page {page.page_number}")
        blocks.extend(page_blocks)
    return blocks


def classify_document(
    document: ParsedDocument,
    config: Optional[ClassifierConfig] = None,
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> list[ContentBlock]:
    """Classify a parsed document.

    Documents with real pagination are classified page by page. A single
    page (or a flowed document without breaks) is treated as one stream
    with estimated pagination, keeping the adapter's style hints.
    """
    config = config or ClassifierConfig()
    if len(document.pages) > 1:
        return classify_pages(document.pages, config, rules)

    if document.pages:
        page = document.pages[0]
        lines = normalize_lines(page.text)
        hints = _HintIndex(page.fragments) if page.fragments else None
        # Estimated pagination only makes sense when the source had none
        page_number = 1 if document.source_kind is SourceKind.FIXED_LAYOUT else None
        blocks, _ = _classify_lines(lines, config, rules, page_number, hints, 0.0)
        _log_if_degraded(lines, blocks, "document")
        return blocks

    return classify_text(document.raw_text, config, rules)
