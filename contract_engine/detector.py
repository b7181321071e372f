"""Source kind detection for uploaded templates."""

import io
import mimetypes
import zipfile
from dataclasses import dataclass
from typing import Optional

from contract_engine.logger import get_logger
from contract_engine.models import SourceKind

logger = get_logger(__name__)


PDF_SIGNATURE = b"%PDF"
ZIP_SIGNATURE = b"PK\x03\x04"
OLE_SIGNATURE = b"\xd0\xcf\x11\xe0"  # Legacy Office container

DOCX_MIME = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
DOC_MIME = "application/msword"
PDF_MIME = "application/pdf"

SOURCE_KINDS = {
    PDF_MIME: SourceKind.FIXED_LAYOUT,
    DOCX_MIME: SourceKind.FLOWED,
    DOC_MIME: SourceKind.FLOWED,
}

_EXTENSION_MIMES = {
    ".pdf": PDF_MIME,
    ".docx": DOCX_MIME,
    ".doc": DOC_MIME,
}


@dataclass
class SourceDescriptor:
    source_kind: SourceKind
    mime_type: str
    file_name: str

    @property
    def is_legacy(self) -> bool:
        return self.mime_type == DOC_MIME


class SourceDetector:
    """Decides whether an upload is a flowed or a fixed-layout document."""

    def detect(
        self, file_bytes: bytes, file_name: str, mime_type: str = ""
    ) -> SourceDescriptor:
        original_mime_type = mime_type

        logger.debug(
            "Starting source kind detection",
            extra_data={
                "file_name": file_name,
                "provided_mime_type": mime_type,
                "file_size_bytes": len(file_bytes),
            },
        )

        sniffed_type = self._sniff_mime(file_bytes, file_name)
        if sniffed_type:
            mime_type = sniffed_type
        elif mime_type not in SOURCE_KINDS:
            mime_type = self._guess_from_name(file_name) or mime_type

        if mime_type not in SOURCE_KINDS:
            logger.warning(
                "Unsupported template format",
                extra_data={
                    "file_name": file_name,
                    "detected_mime_type": mime_type,
                    "original_mime_type": original_mime_type,
                },
            )
            raise ValueError(f"Unsupported template format: {mime_type or 'unknown'}")

        descriptor = SourceDescriptor(
            source_kind=SOURCE_KINDS[mime_type],
            mime_type=mime_type,
            file_name=file_name,
        )

        logger.info(
            "Template source kind detected",
            extra_data={
                "file_name": file_name,
                "source_kind": descriptor.source_kind.value,
                "final_mime_type": mime_type,
                "mime_type_changed": mime_type != original_mime_type,
            },
        )
        return descriptor

    @staticmethod
    def _guess_from_name(file_name: str) -> Optional[str]:
        lowered = file_name.lower()
        for extension, mime in _EXTENSION_MIMES.items():
            if lowered.endswith(extension):
                return mime
        guessed, _ = mimetypes.guess_type(file_name)
        return guessed

    @staticmethod
    def _sniff_mime(file_bytes: bytes, file_name: str) -> Optional[str]:
        """Detect MIME type from file signature/magic bytes."""
        head = file_bytes[:4]
        if head.startswith(PDF_SIGNATURE):
            return PDF_MIME
        if head.startswith(ZIP_SIGNATURE):
            # DOCX is a ZIP package; other OOXML packages are not templates
            try:
                with zipfile.ZipFile(io.BytesIO(file_bytes)) as archive:
                    names = set(archive.namelist())
            except zipfile.BadZipFile:
                return None
            if "word/document.xml" in names:
                return DOCX_MIME
            return "application/zip"
        if head.startswith(OLE_SIGNATURE):
            # .doc, .xls and .ppt share the container; trust only the extension
            if file_name.lower().endswith(".doc"):
                return DOC_MIME
            return "application/x-ole-storage"
        return None
