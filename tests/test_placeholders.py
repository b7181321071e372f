"""Tests for placeholder extraction and type inference."""

from contract_engine.models import BlockType, ContentBlock, VariableType
from contract_engine.placeholders import (
    extract_from_blocks,
    extract_placeholders,
    group_placeholders,
    infer_type,
    strip_placeholders,
)


class TestExtractPlaceholders:
    """Tests for scanning text across every bracket syntax."""

    def test_finds_each_syntax_once(self):
        """Test that N distinct placeholders across all syntaxes yield N entries."""
        text = "甲方：[甲方名称]，乙方：{{乙方名称}}，金额：${合同金额}，签订于【签订日期】。"

        placeholders = extract_placeholders(text)

        assert [p.logical_name for p in placeholders] == ["甲方名称", "乙方名称", "合同金额", "签订日期"]
        assert [p.placeholder_text for p in placeholders] == [
            "[甲方名称]",
            "{{乙方名称}}",
            "${合同金额}",
            "【签订日期】",
        ]
        assert all(p.required for p in placeholders)

    def test_duplicate_tokens_collapse_to_first_occurrence(self):
        """Test that a repeated token is reported once at its first position."""
        text = "[甲方名称] 与 [甲方名称] 签订"

        placeholders = extract_placeholders(text)

        assert len(placeholders) == 1
        assert placeholders[0].position == 0

    def test_logical_name_is_trimmed(self):
        """Test that whitespace inside brackets is not part of the name."""
        placeholders = extract_placeholders("{{  Tenant Name  }}")

        assert placeholders[0].logical_name == "Tenant Name"
        assert placeholders[0].placeholder_text == "{{  Tenant Name  }}"

    def test_context_is_clamped_to_text_bounds(self):
        """Test that context windows never run past either end of the text."""
        text = "x" * 80 + "[名称]" + "y" * 10

        placeholder = extract_placeholders(text)[0]

        assert placeholder.context == "x" * 50 + "[名称]" + "y" * 10
        assert extract_placeholders("[名称]")[0].context == "[名称]"

    def test_empty_brackets_are_ignored(self):
        """Test that bracket pairs with only whitespace are not variables."""
        assert extract_placeholders("[ ] 和 {{ }}") == []

    def test_placeholders_do_not_span_lines(self):
        """Test that a bracket opened on one line and closed on another is not a match."""
        assert extract_placeholders("[甲方\n名称]") == []


class TestInferType:
    """Tests for keyword-based type inference."""

    def test_currency_keywords(self):
        assert infer_type("合同金额") is VariableType.CURRENCY
        assert infer_type("Total Amount") is VariableType.CURRENCY
        assert infer_type("单价") is VariableType.CURRENCY

    def test_date_keywords(self):
        assert infer_type("签订日期") is VariableType.DATE
        assert infer_type("Start Date") is VariableType.DATE

    def test_percentage_keywords(self):
        assert infer_type("违约金比例") is VariableType.PERCENTAGE
        assert infer_type("interest rate") is VariableType.PERCENTAGE

    def test_everything_else_is_text(self):
        assert infer_type("甲方名称") is VariableType.TEXT
        assert infer_type("Tenant Name") is VariableType.TEXT

    def test_latin_keyword_must_start_a_word(self):
        """Test that 'corporate' is not a rate and 'parent' is not rent."""
        assert infer_type("corporate name") is VariableType.TEXT
        assert infer_type("parent company") is VariableType.TEXT


class TestGrouping:
    """Tests for aliasing bracket syntaxes to one logical variable."""

    def test_syntax_variants_share_a_logical_variable(self):
        """Test that [x], {{x}} and 【x】 are one variable with three literal forms."""
        placeholders = extract_placeholders("[甲方名称]…{{甲方名称}}…【甲方名称】…[乙方名称]")

        variables = group_placeholders(placeholders)

        assert [v.name for v in variables] == ["甲方名称", "乙方名称"]
        assert variables[0].placeholders == ("[甲方名称]", "{{甲方名称}}", "【甲方名称】")
        assert variables[0].inferred_type is VariableType.TEXT


class TestExtractFromBlocks:
    """Tests for block-aware extraction."""

    def test_block_index_and_page_are_tagged(self):
        blocks = [
            ContentBlock(BlockType.TITLE, "采购合同"),
            ContentBlock(BlockType.PARAGRAPH, "甲方：[甲方名称]"),
            ContentBlock(BlockType.PARAGRAPH, "金额：{{合同金额}}", page_number=2),
        ]

        placeholders = extract_from_blocks(blocks)

        assert [(p.logical_name, p.block_index, p.page_number) for p in placeholders] == [
            ("甲方名称", 1, 1),
            ("合同金额", 2, 2),
        ]

    def test_empty_block_list(self):
        assert extract_from_blocks([]) == []


def test_strip_placeholders_keeps_literal_text():
    assert strip_placeholders("金额：{{合同金额}}元").replace(" ", "") == "金额：元"
