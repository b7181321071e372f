"""High-level API for template parsing and contract generation."""

import mimetypes
from pathlib import Path
from typing import Iterable, Mapping, Optional

from contract_engine.config import EngineConfig, GenerationOptions
from contract_engine.handler import ContractEngine
from contract_engine.models import GenerationResult, TemplateAnalysis
from contract_engine.substitution import ValueInput


def _load(
    file_path: Optional[str],
    file_bytes: Optional[bytes],
    file_name: Optional[str],
    mime_type: Optional[str],
) -> tuple[bytes, str, str]:
    if file_path and file_bytes:
        raise ValueError("Provide either file_path or file_bytes, not both")

    if not file_path and not file_bytes:
        raise ValueError("Must provide either file_path or file_bytes")

    if file_path:
        path = Path(file_path)
        if not path.exists():
            raise ValueError(f"File not found: {file_path}")

        file_bytes = path.read_bytes()
        file_name = path.name

        if not mime_type:
            guessed_type, _ = mimetypes.guess_type(str(path))
            mime_type = guessed_type

    if not file_name:
        raise ValueError("file_name is required when using file_bytes")

    return file_bytes, file_name, mime_type or ""


def parse_template(
    file_path: Optional[str] = None,
    file_bytes: Optional[bytes] = None,
    file_name: Optional[str] = None,
    mime_type: Optional[str] = None,
    config: Optional[EngineConfig] = None,
) -> TemplateAnalysis:
    """Parse a contract template and list its variables.

    Accepts either a file path or raw bytes.

    Args:
        file_path: Path to a DOCX, DOC or PDF template (alternative to file_bytes)
        file_bytes: Raw document bytes (alternative to file_path)
        file_name: Original filename (required if using file_bytes)
        mime_type: MIME type hint (optional, will be detected if not provided)
        config: Engine configuration (optional, uses defaults if not provided)

    Returns:
        TemplateAnalysis with blocks, placeholders and logical variables

    Raises:
        ValueError: If neither file_path nor file_bytes provided, or if
            file_bytes provided without file_name
        UnsupportedFormatError: If the document type is not supported
        CorruptInputError: If the document cannot be read

    Examples:
        >>> analysis = parse_template(file_path="purchase.docx")
        >>> [variable.name for variable in analysis.variables]

        >>> with open("lease.pdf", "rb") as f:
        ...     analysis = parse_template(file_bytes=f.read(), file_name="lease.pdf")
        >>> record = analysis.to_record()
    """
    file_bytes, file_name, mime_type = _load(file_path, file_bytes, file_name, mime_type)
    return ContractEngine(config).parse_template(file_bytes, file_name, mime_type)


def generate_contract(
    values: Mapping[str, ValueInput],
    file_path: Optional[str] = None,
    file_bytes: Optional[bytes] = None,
    file_name: Optional[str] = None,
    mime_type: Optional[str] = None,
    options: Optional[GenerationOptions] = None,
    template_name: str = "",
    optional: Iterable[str] = (),
    strict: bool = False,
    fallback_on_failure: bool = False,
    config: Optional[EngineConfig] = None,
) -> GenerationResult:
    """Fill a template file with values and return the generated DOCX.

    Examples:
        >>> result = generate_contract(
        ...     {"甲方名称": "某某有限公司", "合同金额": {"value": "280000", "type": "currency"}},
        ...     file_path="purchase.docx",
        ... )
        >>> if result.success:
        ...     Path("contract.docx").write_bytes(result.binary)
    """
    file_bytes, file_name, mime_type = _load(file_path, file_bytes, file_name, mime_type)
    return ContractEngine(config).generate_from_upload(
        file_bytes,
        file_name,
        values,
        options=options,
        mime_type=mime_type,
        template_name=template_name,
        optional=optional,
        strict=strict,
        fallback_on_failure=fallback_on_failure,
    )
