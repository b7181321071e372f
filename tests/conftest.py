"""Shared fixtures: in-memory DOCX and PDF templates."""

import io
from typing import Sequence, Union

import fitz
import pytest
from docx import Document
from docx.enum.text import WD_BREAK

from contract_engine.config import EngineConfig, ExtractorConfig, RenderConfig
from contract_engine.handler import ContractEngine

# A paragraph entry is text, ("heading", text, level), ("table", rows) or ("page_break",)
DocxItem = Union[str, tuple]


def build_docx(items: Sequence[DocxItem]) -> bytes:
    document = Document()
    for item in items:
        if isinstance(item, str):
            document.add_paragraph(item)
        elif item[0] == "heading":
            document.add_heading(item[1], level=item[2])
        elif item[0] == "table":
            rows = item[1]
            table = document.add_table(rows=len(rows), cols=len(rows[0]))
            for row, values in zip(table.rows, rows):
                for cell, value in zip(row.cells, values):
                    cell.text = value
        elif item[0] == "page_break":
            document.add_paragraph().add_run().add_break(WD_BREAK.PAGE)
    buffer = io.BytesIO()
    document.save(buffer)
    return buffer.getvalue()


def build_pdf(pages: Sequence[Sequence[str]], font_size: float = 11) -> bytes:
    document = fitz.open()
    for lines in pages:
        page = document.new_page()
        for index, line in enumerate(lines):
            page.insert_text((72, 72 + index * (font_size + 9)), line, fontsize=font_size)
    payload = document.tobytes()
    document.close()
    return payload


def read_docx(binary: bytes):
    return Document(io.BytesIO(binary))


def docx_body_texts(binary: bytes) -> list[str]:
    """Non-empty paragraph texts, with table rows rendered as `` | `` joined cells."""
    document = read_docx(binary)
    texts = []
    for item in document.iter_inner_content():
        if hasattr(item, "rows"):
            for row in item.rows:
                texts.append(" | ".join(cell.text for cell in row.cells))
        elif item.text.strip():
            texts.append(item.text)
    return texts


@pytest.fixture
def engine() -> ContractEngine:
    config = EngineConfig(
        extractor_config=ExtractorConfig(render_config=RenderConfig(max_workers=2, page_timeout_seconds=20.0))
    )
    return ContractEngine(config)


@pytest.fixture
def purchase_docx() -> bytes:
    return build_docx(
        [
            ("heading", "采购合同", 1),
            "甲方：[甲方名称]",
            "乙方：{{乙方名称}}",
            "一、货物及价款",
            "本合同总价款为人民币{{合同金额}}元，乙方应于【交货日期】前交付全部货物。",
            ("table", [["货物名称", "数量", "单价"], ["[货物名称]", "[数量]", "[单价]"]]),
            ("page_break",),
            "二、违约责任",
            "逾期交货的，每日按合同金额的${违约金比例}支付违约金。",
            "甲方签字：_____________",
        ]
    )


@pytest.fixture
def lease_pdf() -> bytes:
    return build_pdf(
        [
            [
                "LEASE AGREEMENT",
                "Landlord: [Landlord Name]",
                "Tenant: {{Tenant Name}}",
                "1. Rent",
                "The monthly rent is {{Rent Amount}} payable in advance.",
            ],
            [
                "2. Term",
                "The lease starts on [Start Date] and runs for twelve months.",
            ],
        ]
    )
