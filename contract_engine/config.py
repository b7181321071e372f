"""Configuration classes for the contract template engine."""

from dataclasses import dataclass, field
from typing import Optional


@dataclass
class RenderConfig:
    """Configuration for page snapshot rendering of fixed-layout documents.

    Snapshots are only used as a layout-analysis aid and are never emitted,
    so the defaults favour low memory use over image quality.

    Examples:
        >>> # Default configuration (3 workers, 30s per page)
        >>> config = RenderConfig()

        >>> # Skip rendering entirely for text-only pipelines
        >>> config = RenderConfig(enabled=False)

        >>> # Sharper snapshots on a bigger machine
        >>> config = RenderConfig(dpi=150, max_workers=7)
    """

    enabled: bool = True
    """Render page snapshots at all. Disabling also disables ink coverage hints."""

    dpi: int = 72
    """Snapshot DPI. 72 renders one pixel per PDF point.

    Recommended values:
    - 50: Fastest, enough for coverage estimates
    - 72: Default
    - 150: Only when snapshots are kept for inspection
    """

    max_workers: int = 3
    """Number of pages rendered in parallel.

    Each worker holds one decoded page raster, so memory grows linearly.
    """

    page_timeout_seconds: float = 30.0
    """Wall-clock budget for a single page, counted from when a worker starts
    rendering it. A page that exceeds it is recorded as a PAGE_RENDER_TIMEOUT
    warning and skipped."""

    max_pages: int = 50
    """Pages beyond this index are not rendered."""

    grayscale: bool = True
    """Convert snapshots to grayscale before computing ink coverage."""

    white_threshold: int = 245
    """Grayscale level above which a pixel counts as background."""


@dataclass
class ExtractorConfig:
    """Configuration for document ingestion."""

    render_config: RenderConfig = field(default_factory=RenderConfig)
    table_strategy: str = "lines_strict"
    fontsize_limit: int = 3
    force_text: bool = True
    build_markup: bool = True
    soffice_timeout_seconds: float = 60.0


@dataclass(frozen=True)
class ClassifierConfig:
    """Thresholds and keyword lists for the layout classifier.

    The boundary between titles and section headers is heuristic; both
    length limits are meant to be tuned per template family.
    """

    title_max_length: int = 30
    """Lines at least this long are never titles."""

    header_max_length: int = 50
    """Lines at least this long are never section headers."""

    lines_per_page: int = 35
    """Assumed lines per page when the source carries no pagination."""

    max_paragraph_lines: int = 12
    """Soft-wrapped lines merged into one paragraph before a forced flush."""

    field_label_max_length: int = 20
    """Longest label accepted in a ``label：value`` field line."""

    title_keywords: tuple[str, ...] = (
        "合同",
        "协议",
        "契约",
        "contract",
        "agreement",
    )

    clause_keywords: tuple[str, ...] = (
        "条款",
        "附则",
        "附件",
        "article",
        "section",
        "clause",
        "schedule",
    )


@dataclass(frozen=True)
class PageMargins:
    """Page margins in points (720 twips == 36pt == 0.5in)."""

    top: float = 36.0
    bottom: float = 36.0
    left: float = 36.0
    right: float = 36.0


@dataclass(frozen=True)
class GenerationOptions:
    """Per-request output formatting options.

    Instances are immutable; build a new one per request instead of mutating
    a shared default.
    """

    page_margins: PageMargins = field(default_factory=PageMargins)
    font_family: str = "宋体"
    font_size: float = 12.0
    line_spacing: float = 1.5
    preserve_formatting: bool = True
    """Apply each block's recovered style (size, bold, alignment) instead of
    the per-type defaults."""

    table_font_delta: float = -1.0
    """Added to ``font_size`` for table cell text."""

    ascii_font_family: Optional[str] = None
    """Latin font. Defaults to ``font_family``."""


@dataclass
class EngineConfig:
    """Top-level configuration bundle for ContractEngine."""

    extractor_config: ExtractorConfig = field(default_factory=ExtractorConfig)
    classifier_config: ClassifierConfig = field(default_factory=ClassifierConfig)
    default_options: GenerationOptions = field(default_factory=GenerationOptions)
