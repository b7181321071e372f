"""Data models for the contract template engine."""

import json
from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Optional


class SourceKind(str, Enum):
    FLOWED = "flowed"
    FIXED_LAYOUT = "fixed_layout"


class BlockType(str, Enum):
    TITLE = "title"
    SECTION_HEADER = "section_header"
    CLAUSE = "clause"
    SUB_CLAUSE = "sub_clause"
    PARAGRAPH = "paragraph"
    TABLE_ROW = "table_row"


class VariableType(str, Enum):
    TEXT = "text"
    CURRENCY = "currency"
    DATE = "date"
    PERCENTAGE = "percentage"


class WarningCode(str, Enum):
    """Soft failures recorded next to a best-effort result."""

    EMPTY_CONTENT = "empty_content"
    CLASSIFICATION_DEGRADED = "classification_degraded"
    MISSING_REQUIRED_VALUE = "missing_required_value"
    EMISSION_PARTIAL_FAILURE = "emission_partial_failure"
    PAGE_RENDER_TIMEOUT = "page_render_timeout"
    PAGE_RENDER_FAILED = "page_render_failed"
    MARKUP_UNAVAILABLE = "markup_unavailable"
    FALLBACK_USED = "fallback_used"


@dataclass(frozen=True)
class EngineWarning:
    code: WarningCode
    message: str
    page_number: Optional[int] = None
    block_index: Optional[int] = None


@dataclass(frozen=True)
class TextFragment:
    """A line of text as laid out by the source document.

    Coordinates are PDF points from the top-left corner. Flowed sources have
    no coordinates and leave them unset.
    """

    text: str
    x: Optional[float] = None
    y: Optional[float] = None
    width: Optional[float] = None
    height: Optional[float] = None
    font_size: Optional[float] = None
    font_name: Optional[str] = None
    bold: bool = False
    alignment: Optional[str] = None


@dataclass(frozen=True)
class PageSnapshot:
    page_number: int
    width_px: int
    height_px: int
    png: bytes = field(repr=False)
    ink_coverage: float


@dataclass(frozen=True)
class PageData:
    page_number: int
    text: str
    fragments: tuple[TextFragment, ...] = ()
    width: float = 595.32  # A4 in points
    height: float = 841.92
    snapshot: Optional[PageSnapshot] = None
    image_count: int = 0
    table_count: int = 0


@dataclass(frozen=True)
class DocumentMetadata:
    file_name: str
    page_count: int
    title: Optional[str] = None
    author: Optional[str] = None
    has_images: bool = False
    has_tables: bool = False
    word_count: int = 0


@dataclass(frozen=True)
class ParsedDocument:
    """Normalized output of an ingestion adapter."""

    source_kind: SourceKind
    raw_text: str
    pages: tuple[PageData, ...]
    metadata: DocumentMetadata
    markup: Optional[str] = None
    warnings: tuple[EngineWarning, ...] = ()


@dataclass(frozen=True)
class BlockStyle:
    font_size: float = 12.0
    bold: bool = False
    alignment: str = "left"


@dataclass(frozen=True)
class BlockPosition:
    x: float = 50.0
    y: float = 0.0
    width: float = 500.0
    height: float = 16.0


@dataclass(frozen=True)
class ContentBlock:
    type: BlockType
    text: str
    style: BlockStyle = field(default_factory=BlockStyle)
    position: BlockPosition = field(default_factory=BlockPosition)
    page_number: int = 1

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["type"] = self.type.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ContentBlock":
        return cls(
            type=BlockType(data["type"]),
            text=data.get("text", ""),
            style=BlockStyle(**data.get("style", {})),
            position=BlockPosition(**data.get("position", {})),
            page_number=int(data.get("page_number", 1)),
        )


@dataclass(frozen=True)
class VariablePlaceholder:
    placeholder_text: str  # exact token, e.g. "[甲方名称]"
    logical_name: str
    inferred_type: VariableType
    position: int
    context: str
    required: bool = True
    block_index: Optional[int] = None
    page_number: Optional[int] = None


@dataclass(frozen=True)
class LogicalVariable:
    """One caller-facing variable, whatever bracket syntaxes mark it."""

    name: str
    inferred_type: VariableType
    placeholders: tuple[str, ...]
    context: str
    required: bool = True


@dataclass(frozen=True)
class VariableValue:
    value: str
    type: VariableType = VariableType.TEXT


@dataclass(frozen=True)
class GenerationMetadata:
    page_count: int = 0
    word_count: int = 0
    variable_count: int = 0


@dataclass
class GenerationResult:
    """Result of contract generation."""

    success: bool
    binary: Optional[bytes] = None
    metadata: GenerationMetadata = field(default_factory=GenerationMetadata)
    error: Optional[str] = None
    warnings: list[EngineWarning] = field(default_factory=list)
    missing_variables: list[str] = field(default_factory=list)
    fallback_used: bool = False


@dataclass(frozen=True)
class TemplateRecord:
    """Serializable template state, stored by an external record store.

    Holds everything needed to run the generate phase without re-parsing
    the uploaded binary. Page snapshots are not persisted.
    """

    source_kind: SourceKind
    raw_text: str
    blocks: tuple[ContentBlock, ...] = ()
    markup: Optional[str] = None
    metadata: dict[str, Any] = field(default_factory=dict)

    @property
    def has_structure(self) -> bool:
        return bool(self.blocks) or bool(self.raw_text.strip()) or bool((self.markup or "").strip())

    def to_dict(self) -> dict[str, Any]:
        return {
            "source_kind": self.source_kind.value,
            "raw_text": self.raw_text,
            "markup": self.markup,
            "blocks": [block.to_dict() for block in self.blocks],
            "metadata": dict(self.metadata),
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "TemplateRecord":
        return cls(
            source_kind=SourceKind(data["source_kind"]),
            raw_text=data.get("raw_text") or "",
            markup=data.get("markup"),
            blocks=tuple(ContentBlock.from_dict(item) for item in data.get("blocks") or ()),
            metadata=dict(data.get("metadata") or {}),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_json(cls, payload: str) -> "TemplateRecord":
        return cls.from_dict(json.loads(payload))


@dataclass(frozen=True)
class TemplateAnalysis:
    """Parse-phase result handed to the variable collection flow."""

    document: ParsedDocument
    blocks: tuple[ContentBlock, ...]
    placeholders: tuple[VariablePlaceholder, ...]
    variables: tuple[LogicalVariable, ...]
    warnings: tuple[EngineWarning, ...] = ()

    def to_record(self) -> TemplateRecord:
        metadata = asdict(self.document.metadata)
        return TemplateRecord(
            source_kind=self.document.source_kind,
            raw_text=self.document.raw_text,
            blocks=self.blocks,
            markup=self.document.markup,
            metadata=metadata,
        )
