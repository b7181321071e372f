"""Contract engine orchestration."""

from pathlib import Path
from typing import Iterable, Mapping, Optional

from contract_engine.boilerplate import render_boilerplate
from contract_engine.classifier import classify_document, classify_pages, classify_text
from contract_engine.config import EngineConfig, GenerationOptions
from contract_engine.detector import SourceDetector
from contract_engine.emitter import DocumentEmitter
from contract_engine.exceptions import (
    ContractEngineError,
    EmissionError,
    EmptyContentError,
    UnsupportedFormatError,
)
from contract_engine.fixed_layout import PAGE_SEPARATOR, FixedLayoutAdapter
from contract_engine.flowed import FlowedDocumentAdapter
from contract_engine.logger import Timer, get_logger, request_scope
from contract_engine.models import (
    ContentBlock,
    EngineWarning,
    GenerationMetadata,
    GenerationResult,
    PageData,
    ParsedDocument,
    SourceKind,
    TemplateAnalysis,
    TemplateRecord,
    WarningCode,
)
from contract_engine.placeholders import extract_from_blocks, group_placeholders
from contract_engine.store import TemplateStore
from contract_engine.substitution import ValueInput, count_substituted, find_missing, substitute
from contract_engine.text import count_words

logger = get_logger(__name__)


class ContractEngine:
    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        detector: Optional[SourceDetector] = None,
        flowed_adapter: Optional[FlowedDocumentAdapter] = None,
        fixed_layout_adapter: Optional[FixedLayoutAdapter] = None,
    ) -> None:
        """Initialize the engine.

        Args:
            config: Engine configuration. If None, defaults are used.
            detector: Source kind detector. If None, creates default.
            flowed_adapter: DOCX adapter. If None, creates default from config.
            fixed_layout_adapter: PDF adapter. If None, creates default from config.
        """
        self.config = config or EngineConfig()
        self.detector = detector or SourceDetector()
        self.adapters = {
            SourceKind.FLOWED: flowed_adapter or FlowedDocumentAdapter(self.config.extractor_config),
            SourceKind.FIXED_LAYOUT: fixed_layout_adapter
            or FixedLayoutAdapter(self.config.extractor_config),
        }

    # ------------------------------------------------------------------
    # Parse phase
    # ------------------------------------------------------------------

    def ingest(self, file_bytes: bytes, file_name: str, mime_type: str = "") -> ParsedDocument:
        """Detect the source kind and run the matching ingestion adapter.

        Raises:
            UnsupportedFormatError: If the upload is not a DOCX, DOC or PDF
            CorruptInputError: If the document cannot be read
        """
        with Timer("detection") as detect_timer:
            try:
                descriptor = self.detector.detect(
                    file_bytes=file_bytes, file_name=file_name, mime_type=mime_type
                )
            except ValueError as exc:
                logger.warning(
                    "Template detection failed - unsupported format",
                    extra_data={
                        "file_name": file_name,
                        "mime_type": mime_type,
                        "error": str(exc),
                    },
                )
                raise UnsupportedFormatError(str(exc)) from exc

        logger.debug(
            "Template detection completed",
            extra_data={
                "file_name": file_name,
                "source_kind": descriptor.source_kind.value,
                "detection_time_ms": detect_timer.get_elapsed_ms(),
            },
        )

        return self.adapters[descriptor.source_kind].parse(file_bytes, file_name)

    def parse_template(
        self,
        file_bytes: bytes,
        file_name: str,
        mime_type: str = "",
        allow_empty: bool = True,
    ) -> TemplateAnalysis:
        """Recover structure and variables from an uploaded template.

        Args:
            file_bytes: Raw document bytes
            file_name: Original filename
            mime_type: MIME type hint (optional, sniffed from the bytes)
            allow_empty: When False, a document without text raises instead
                of returning an EMPTY_CONTENT warning

        Returns:
            TemplateAnalysis with blocks, placeholders and logical variables

        Raises:
            UnsupportedFormatError: If the upload is not a DOCX, DOC or PDF
            CorruptInputError: If the document cannot be read
            EmptyContentError: If no text was found and allow_empty is False
        """
        with request_scope(), Timer("parse_template") as timer:
            document = self.ingest(file_bytes, file_name, mime_type)

            if not document.raw_text.strip() and not allow_empty:
                raise EmptyContentError(f"No text content found in {file_name}")

            blocks = tuple(classify_document(document, self.config.classifier_config))
            placeholders = tuple(extract_from_blocks(blocks))
            variables = tuple(group_placeholders(placeholders))

            logger.info(
                "Template parsed",
                extra_data={
                    "file_name": file_name,
                    "source_kind": document.source_kind.value,
                    "page_count": document.metadata.page_count,
                    "block_count": len(blocks),
                    "placeholder_count": len(placeholders),
                    "variable_count": len(variables),
                    "warning_count": len(document.warnings),
                    "parse_time_ms": timer.get_elapsed_ms(),
                },
            )

        return TemplateAnalysis(
            document=document,
            blocks=blocks,
            placeholders=placeholders,
            variables=variables,
            warnings=document.warnings,
        )

    # ------------------------------------------------------------------
    # Generate phase
    # ------------------------------------------------------------------

    def generate(
        self,
        record: Optional[TemplateRecord],
        values: Mapping[str, ValueInput],
        options: Optional[GenerationOptions] = None,
        template_name: str = "",
        optional: Iterable[str] = (),
        strict: bool = False,
    ) -> GenerationResult:
        """Fill a stored template and emit a DOCX.

        Records without usable structure go through the boilerplate
        fallback. Soft problems end up in ``warnings``; only a failed
        emission or a strict missing-value check yields ``success=False``.

        Args:
            record: Stored template, or None when the template is unknown
            values: Logical variable name to value
            options: Output formatting; engine defaults when None
            template_name: Used to pick a boilerplate template on fallback
            optional: Variable names that may stay unfilled without warning
            strict: Fail instead of warning when required values are missing

        Returns:
            GenerationResult
        """
        with request_scope():
            if record is None:
                reason = "no template record"
            elif not record.has_structure:
                reason = "template record holds no content"
            else:
                blocks = self.recover_blocks(record)
                if blocks:
                    return self._generate_from_blocks(blocks, values, options, optional, strict)
                reason = "template record classifies to no blocks"
            return self._generate_fallback(values, options, template_name, optional, strict, reason)

    def generate_from_upload(
        self,
        file_bytes: bytes,
        file_name: str,
        values: Mapping[str, ValueInput],
        options: Optional[GenerationOptions] = None,
        mime_type: str = "",
        template_name: str = "",
        optional: Iterable[str] = (),
        strict: bool = False,
        fallback_on_failure: bool = False,
    ) -> GenerationResult:
        """Parse and generate in one call.

        Raises:
            ContractEngineError: On hard ingestion errors, unless
                ``fallback_on_failure`` is set
        """
        template_name = template_name or Path(file_name).stem
        with request_scope():
            try:
                analysis = self.parse_template(file_bytes, file_name, mime_type)
            except ContractEngineError as exc:
                if not fallback_on_failure:
                    raise
                result = self._generate_fallback(
                    values, options, template_name, optional, strict, f"ingestion failed: {exc}"
                )
                result.error = str(exc)
                return result

            # An upload without text is a soft failure; it is emitted as-is
            result = self._generate_from_blocks(
                list(analysis.blocks), values, options, optional, strict
            )
            result.warnings = list(analysis.warnings) + result.warnings
            return result

    def generate_for_template(
        self,
        template_id: str,
        store: TemplateStore,
        values: Mapping[str, ValueInput],
        options: Optional[GenerationOptions] = None,
        template_name: str = "",
        optional: Iterable[str] = (),
        strict: bool = False,
    ) -> GenerationResult:
        """Generate from a record held in ``store``; unknown ids use the fallback."""
        record = store.get(template_id)
        if record is None:
            logger.warning("Template record not found", extra_data={"template_id": template_id})
        return self.generate(record, values, options, template_name or template_id, optional, strict)

    def recover_blocks(self, record: TemplateRecord) -> list[ContentBlock]:
        """Blocks stored with the record, or re-classified from its text."""
        if record.blocks:
            return list(record.blocks)

        config = self.config.classifier_config
        if record.source_kind is SourceKind.FIXED_LAYOUT and record.raw_text.strip():
            pages = [
                PageData(page_number=number, text=text)
                for number, text in enumerate(record.raw_text.split(PAGE_SEPARATOR), start=1)
            ]
            return classify_pages(pages, config)
        if record.raw_text.strip():
            return classify_text(record.raw_text, config)
        return classify_text(record.markup or "", config)

    def _generate_fallback(
        self,
        values: Mapping[str, ValueInput],
        options: Optional[GenerationOptions],
        template_name: str,
        optional: Iterable[str],
        strict: bool,
        reason: str,
    ) -> GenerationResult:
        logger.warning(
            "Falling back to boilerplate template",
            extra_data={"template_name": template_name, "reason": reason},
        )
        text = render_boilerplate(template_name)
        blocks = classify_text(text, self.config.classifier_config)
        result = self._generate_from_blocks(blocks, values, options, optional, strict)
        result.fallback_used = True
        result.warnings.insert(0, EngineWarning(WarningCode.FALLBACK_USED, reason))
        return result

    def _generate_from_blocks(
        self,
        blocks: list[ContentBlock],
        values: Mapping[str, ValueInput],
        options: Optional[GenerationOptions],
        optional: Iterable[str],
        strict: bool,
    ) -> GenerationResult:
        options = options or self.config.default_options

        with Timer("generation") as timer:
            filled = substitute(blocks, values)
            variable_count = count_substituted(blocks, values)

            missing = find_missing(filled, optional)
            missing_names = [variable.name for variable in missing]
            warnings = [
                EngineWarning(
                    WarningCode.MISSING_REQUIRED_VALUE,
                    f"No value supplied for {variable.name}",
                )
                for variable in missing
            ]

            if missing and strict:
                logger.warning(
                    "Generation refused - required values missing",
                    extra_data={"missing": ",".join(missing_names)},
                )
                return GenerationResult(
                    success=False,
                    error=f"Missing required values: {', '.join(missing_names)}",
                    warnings=warnings,
                    missing_variables=missing_names,
                )

            try:
                emission = DocumentEmitter(options).emit(filled)
            except EmissionError as exc:
                return GenerationResult(
                    success=False,
                    error=str(exc),
                    warnings=warnings,
                    missing_variables=missing_names,
                )

        metadata = GenerationMetadata(
            page_count=emission.page_count,
            word_count=count_words("\n".join(block.text for block in filled)),
            variable_count=variable_count,
        )

        logger.info(
            "Contract generated",
            extra_data={
                "block_count": len(filled),
                "page_count": metadata.page_count,
                "variable_count": variable_count,
                "missing_count": len(missing_names),
                "generation_time_ms": timer.get_elapsed_ms(),
            },
        )

        return GenerationResult(
            success=True,
            binary=emission.binary,
            metadata=metadata,
            warnings=warnings + emission.warnings,
            missing_variables=missing_names,
        )
