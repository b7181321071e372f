"""Tests for the high-level API."""

import pytest

from contract_engine import generate_contract, parse_template
from contract_engine.models import VariableType


class TestParseTemplate:
    def test_from_path(self, tmp_path, purchase_docx):
        path = tmp_path / "采购合同.docx"
        path.write_bytes(purchase_docx)

        analysis = parse_template(file_path=str(path))

        assert analysis.document.metadata.file_name == "采购合同.docx"
        assert len(analysis.variables) == 8

    def test_from_bytes(self, lease_pdf):
        analysis = parse_template(file_bytes=lease_pdf, file_name="lease.pdf")

        assert analysis.variables[2].inferred_type is VariableType.CURRENCY

    @pytest.mark.parametrize(
        "kwargs, message",
        [
            ({}, "Must provide"),
            ({"file_path": "a.docx", "file_bytes": b"x"}, "not both"),
            ({"file_bytes": b"x"}, "file_name is required"),
            ({"file_path": "/nonexistent/template.docx"}, "File not found"),
        ],
    )
    def test_invalid_arguments(self, kwargs, message):
        with pytest.raises(ValueError, match=message):
            parse_template(**kwargs)


def test_generate_contract(purchase_docx):
    result = generate_contract(
        {"甲方名称": "广州A公司", "合同金额": {"value": "280000", "type": "currency"}},
        file_bytes=purchase_docx,
        file_name="purchase.docx",
    )

    assert result.success is True
    assert result.binary.startswith(b"PK")
    assert result.metadata.variable_count == 2
