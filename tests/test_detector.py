"""Tests for source kind detection."""

import io
import zipfile

import pytest

from conftest import build_docx, build_pdf
from contract_engine.detector import DOC_MIME, DOCX_MIME, PDF_MIME, SourceDetector
from contract_engine.models import SourceKind

OLE_HEADER = b"\xd0\xcf\x11\xe0\xa1\xb1\x1a\xe1" + b"\x00" * 64


@pytest.fixture
def detector():
    return SourceDetector()


class TestDetect:
    def test_pdf_is_fixed_layout(self, detector):
        descriptor = detector.detect(build_pdf([["x"]]), "upload.bin")

        assert descriptor.source_kind is SourceKind.FIXED_LAYOUT
        assert descriptor.mime_type == PDF_MIME

    def test_docx_is_flowed_whatever_the_hint(self, detector):
        descriptor = detector.detect(build_docx(["正文"]), "template", mime_type="application/pdf")

        assert descriptor.source_kind is SourceKind.FLOWED
        assert descriptor.mime_type == DOCX_MIME

    def test_legacy_doc_needs_extension(self, detector):
        descriptor = detector.detect(OLE_HEADER, "old.DOC")

        assert descriptor.mime_type == DOC_MIME
        assert descriptor.is_legacy is True
        with pytest.raises(ValueError):
            detector.detect(OLE_HEADER, "sheet.xls")

    def test_other_zip_packages_are_rejected(self, detector):
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            archive.writestr("xl/workbook.xml", "<workbook/>")

        with pytest.raises(ValueError):
            detector.detect(buffer.getvalue(), "book.docx")

    def test_plain_text_is_rejected(self, detector):
        with pytest.raises(ValueError, match="Unsupported template format"):
            detector.detect("甲方：[甲方名称]".encode("utf-8"), "notes.txt", mime_type="text/plain")

    def test_unknown_bytes_fall_back_to_extension(self, detector):
        descriptor = detector.detect(b"\x00\x01\x02", "contract.pdf")

        assert descriptor.source_kind is SourceKind.FIXED_LAYOUT
