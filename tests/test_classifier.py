"""Tests for the heuristic layout classifier."""

from conftest import build_docx
from contract_engine.classifier import (
    DEFAULT_RULES,
    ClassificationRule,
    Line,
    classify_document,
    classify_pages,
    classify_text,
    make_block,
    normalize_lines,
)
from contract_engine.config import ClassifierConfig
from contract_engine.flowed import FlowedDocumentAdapter
from contract_engine.models import (
    BlockType,
    DocumentMetadata,
    PageData,
    ParsedDocument,
    SourceKind,
    TextFragment,
)


def types_of(blocks):
    return [block.type for block in blocks]


class TestRules:
    """Tests for single-line classification."""

    def test_contract_structure(self):
        text = "\n".join(
            [
                "房屋租赁合同",
                "第一章 总则",
                "第一条 租赁物",
                "1.1 房屋位于[房屋地址]。",
                "（一）面积以产权证为准。",
                "租金为每月{{月租金}}元，按季度支付。",
            ]
        )

        blocks = classify_text(text)

        assert types_of(blocks) == [
            BlockType.TITLE,
            BlockType.SECTION_HEADER,
            BlockType.SECTION_HEADER,
            BlockType.SUB_CLAUSE,
            BlockType.SUB_CLAUSE,
            BlockType.PARAGRAPH,
        ]

    def test_long_numbered_line_is_a_clause(self):
        """Test that a numbered line too long for a header becomes a clause."""
        line = (
            "3. 乙方应当按照本合同约定的时间、地点和方式交付货物，"
            "并保证货物符合国家标准、行业标准及双方约定的质量要求和技术规范。"
        )

        assert types_of(classify_text(line)) == [BlockType.CLAUSE]

    def test_nested_number_is_not_top_level(self):
        assert types_of(classify_text("2.3 付款方式")) == [BlockType.SUB_CLAUSE]

    def test_keyword_inside_placeholder_is_not_a_title(self):
        """Test that field lines carrying 合同 in a placeholder stay paragraphs."""
        blocks = classify_text("金额：{{合同金额}}\n编号：[合同编号]")

        assert types_of(blocks) == [BlockType.PARAGRAPH, BlockType.PARAGRAPH]

    def test_short_sentence_with_keyword_is_not_a_title(self):
        assert types_of(classify_text("本合同一式两份。")) == [BlockType.PARAGRAPH]

    def test_table_rows(self):
        text = "┌────┬────┐\n│ 名称 │ 数量 │\n品名\t规格\t数量\n名称：螺丝  数量：100  单价：2"

        blocks = classify_text(text)

        assert types_of(blocks) == [BlockType.TABLE_ROW] * 4
        assert blocks[2].text == "品名\t规格\t数量"

    def test_page_numbers_are_discarded(self):
        blocks = classify_text("- 1 -\n第 2 页 共 5 页\nPage 3 of 5\n正文内容。")

        assert [block.text for block in blocks] == ["正文内容。"]

    def test_soft_wrapped_lines_merge(self):
        blocks = classify_text("乙方应于收到货款后\n七日内开具发票。\nThe buyer shall\npay on delivery.")

        assert [block.text for block in blocks] == [
            "乙方应于收到货款后七日内开具发票。",
            "The buyer shall pay on delivery.",
        ]

    def test_runaway_paragraph_is_flushed(self):
        config = ClassifierConfig(max_paragraph_lines=3)
        text = "\n".join(f"没有句号的第{n}行" for n in range(7))

        blocks = classify_text(text, config)

        assert len(blocks) == 3
        assert all(block.type is BlockType.PARAGRAPH for block in blocks)

    def test_keyword_cells_stay_table_rows(self):
        text = "合同编号 | [合同编号]\n付款条款 | [付款方式]\n1. 货物\t数量\t单价"

        blocks = classify_text(text)

        assert types_of(blocks) == [BlockType.TABLE_ROW] * 3

    def test_docx_table_under_title(self):
        """Test that DOCX table rows with heading keywords are not promoted to headings."""
        binary = build_docx(
            [
                "采购合同",
                ("table", [["合同编号", "[合同编号]"], ["付款条款", "[付款方式]"], ["货物", "[货物名称]"]]),
            ]
        )

        blocks = classify_document(FlowedDocumentAdapter().parse(binary, "purchase.docx"))

        assert types_of(blocks) == [BlockType.TITLE] + [BlockType.TABLE_ROW] * 3
        assert blocks[1].text == "合同编号 | [合同编号]"

    def test_never_raises_on_odd_input(self):
        assert classify_text("") == []
        assert classify_text("\n\n\f\r\n") == []
        assert classify_text("|---|---|") == []


class TestStylesAndPlacement:
    def test_default_styles(self):
        title, header, paragraph = classify_text("买卖合同\n第一条 标的\n内容。")

        assert (title.style.font_size, title.style.bold, title.style.alignment) == (16.0, True, "center")
        assert (header.style.font_size, header.style.alignment) == (14.0, "center")
        assert (paragraph.style.font_size, paragraph.style.bold) == (12.0, False)

    def test_y_increases_in_block_order(self):
        blocks = classify_text("买卖合同\n第一条 标的\n内容。")

        ys = [block.position.y for block in blocks]
        assert ys == sorted(ys) and len(set(ys)) == 3

    def test_estimated_pagination(self):
        config = ClassifierConfig(lines_per_page=2)

        blocks = classify_text("一。\n二。\n三。\n四。\n五。", config)

        assert [block.page_number for block in blocks] == [1, 1, 2, 2, 3]

    def test_fragment_hints_override_defaults(self):
        page = PageData(
            page_number=1,
            text="LEASE AGREEMENT\nThe rent is due monthly.",
            fragments=(
                TextFragment(text="LEASE AGREEMENT", x=200.0, y=72.0, width=180.0, height=14.0, font_size=18.0, bold=True, alignment="center"),
                TextFragment(text="The rent is due monthly.", x=72.0, y=100.0, width=150.0, height=12.0, font_size=11.0),
            ),
        )

        title, paragraph = classify_pages([page])

        assert title.type is BlockType.TITLE
        assert title.style.font_size == 18.0
        assert title.position.x == 200.0
        assert paragraph.style.font_size == 11.0


class TestPagination:
    def _document(self, source_kind, pages):
        return ParsedDocument(
            source_kind=source_kind,
            raw_text="\n\n".join(page.text for page in pages),
            pages=tuple(pages),
            metadata=DocumentMetadata(file_name="t", page_count=len(pages)),
        )

    def test_real_pages_are_kept(self):
        document = self._document(
            SourceKind.FIXED_LAYOUT,
            [PageData(page_number=1, text="第一条 标的"), PageData(page_number=2, text="第二条 价款")],
        )

        assert [block.page_number for block in classify_document(document)] == [1, 2]

    def test_single_fixed_layout_page_is_not_estimated(self):
        text = "\n".join(f"第{n}句。" for n in range(50))
        document = self._document(SourceKind.FIXED_LAYOUT, [PageData(page_number=1, text=text)])

        assert {block.page_number for block in classify_document(document)} == {1}

    def test_single_flowed_page_is_estimated(self):
        text = "\n".join(f"第{n}句。" for n in range(50))
        document = self._document(SourceKind.FLOWED, [PageData(page_number=1, text=text)])

        assert max(block.page_number for block in classify_document(document)) == 2


class TestCustomRules:
    def test_rules_are_pluggable(self):
        """Test that a caller-supplied rule ahead of the defaults wins."""
        signature = ClassificationRule(
            "signature",
            lambda line, config: line.text.startswith("签字"),
            lambda line, placement: make_block(BlockType.PARAGRAPH, line.text.upper(), placement),
        )

        blocks = classify_text("签字 abc", rules=(signature,) + DEFAULT_RULES)

        assert blocks[0].text == "签字 ABC"


def test_normalize_lines_marks_boundaries():
    lines = normalize_lines("# 标题\n\n\n**正文**  内容\n| a | b |\n|---|---|")

    assert lines[0] == Line(text="标题", raw="标题", index=0)
    assert lines[1] is None
    assert lines[2].text == "正文 内容"
    assert lines[2].raw == "正文  内容"
    assert lines[3].raw == "a | b"
