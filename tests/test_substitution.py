"""Tests for type-aware substitution."""

from datetime import date

import pytest

from contract_engine.classifier import classify_text
from contract_engine.models import BlockType, ContentBlock, VariableType, VariableValue
from contract_engine.substitution import (
    coerce_value,
    count_substituted,
    find_missing,
    format_currency,
    format_date,
    format_percentage,
    substitute,
    substitute_text,
)

SCENARIO_TEXT = "甲方：[甲方名称]\n乙方：[乙方名称]\n金额：{{合同金额}}"
SCENARIO_VALUES = {
    "甲方名称": "广州A公司",
    "乙方名称": "B公司",
    "合同金额": VariableValue("280000", VariableType.CURRENCY),
}


class TestScenario:
    """The party/amount scenario through text and block paths."""

    def test_substitute_text(self):
        assert substitute_text(SCENARIO_TEXT, SCENARIO_VALUES) == "甲方：广州A公司\n乙方：B公司\n金额：280,000.00"

    def test_classify_then_substitute_blocks(self):
        """Test that the block path yields the same lines as the text path."""
        blocks = classify_text(SCENARIO_TEXT)

        filled = substitute(blocks, SCENARIO_VALUES)

        assert [block.type for block in filled] == [BlockType.PARAGRAPH] * 3
        assert "\n".join(block.text for block in filled) == "甲方：广州A公司\n乙方：B公司\n金额：280,000.00"


class TestFormatting:
    """Tests for the per-type formatters."""

    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("280000", "280,000.00"),
            ("¥1,234.5", "1,234.50"),
            ("RMB 99.995", "100.00"),
            ("0", "0.00"),
        ],
    )
    def test_currency(self, raw, expected):
        assert format_currency(raw) == expected

    def test_currency_unparsable_is_unchanged(self):
        assert format_currency("贰拾万元整") == "贰拾万元整"

    @pytest.mark.parametrize("raw", ["2024-03-05", "2024/03/05", "2024.3.5", "2024年3月5日", "2024-03-05T10:30:00"])
    def test_date(self, raw):
        assert format_date(raw) == "2024年3月5日"

    def test_date_unparsable_is_unchanged(self):
        assert format_date("next Tuesday") == "next Tuesday"
        assert substitute_text("签订日期：[签订日期]", {"签订日期": {"value": "下周二", "type": "date"}}) == (
            "签订日期：下周二"
        )

    def test_percentage(self):
        assert format_percentage("5") == "5%"
        assert format_percentage("12.50%") == "12.5%"
        assert format_percentage("三成") == "三成"


class TestSubstitute:
    """Tests for block substitution invariants."""

    @pytest.fixture
    def blocks(self):
        return [
            ContentBlock(BlockType.TITLE, "采购合同"),
            ContentBlock(BlockType.PARAGRAPH, "甲方：[甲方名称]，签约方{{甲方名称}}"),
            ContentBlock(BlockType.PARAGRAPH, "总价：【 合同金额 】元", page_number=2),
            ContentBlock(BlockType.PARAGRAPH, "交货日期：${交货日期}", page_number=2),
        ]

    def test_all_syntax_variants_are_replaced(self, blocks):
        filled = substitute(blocks, {"甲方名称": "A公司", "合同金额": {"value": "1000", "type": "currency"}})

        assert filled[1].text == "甲方：A公司，签约方A公司"
        assert filled[2].text == "总价：1,000.00元"

    def test_only_text_changes(self, blocks):
        filled = substitute(blocks, {"甲方名称": "A公司"})

        assert len(filled) == len(blocks)
        for before, after in zip(blocks, filled):
            assert (before.type, before.style, before.position, before.page_number) == (
                after.type,
                after.style,
                after.position,
                after.page_number,
            )

    def test_idempotent(self, blocks):
        values = {"甲方名称": "A公司", "交货日期": date(2024, 6, 1)}

        once = substitute(blocks, values)

        assert substitute(once, values) == once

    @pytest.mark.parametrize(
        "values",
        [{"乙方名称": "B公司", "甲方名称": "[乙方名称]"}, {"甲方名称": "[乙方名称]", "乙方名称": "B公司"}],
    )
    def test_value_naming_another_variable(self, values):
        """Test that a value holding another supplied placeholder is resolved once, in any order."""
        once = substitute_text("甲方：[甲方名称]", values)

        assert once == "甲方：B公司"
        assert substitute_text(once, values) == once

    def test_circular_values_stay_literal(self):
        values = {"A": "[B]", "B": "[A]"}

        once = substitute_text("[A] / {{B}}", values)

        assert once == "[A] / [B]"
        assert substitute_text(once, values) == once

    def test_missing_values_leave_placeholders(self, blocks):
        filled = substitute(blocks, {"甲方名称": "A公司"})

        assert filled[3].text == "交货日期：${交货日期}"
        assert [variable.name for variable in find_missing(filled)] == ["合同金额", "交货日期"]
        assert [variable.name for variable in find_missing(filled, optional=["交货日期"])] == ["合同金额"]

    def test_count_substituted(self, blocks):
        assert count_substituted(blocks, {"甲方名称": "A", "合同金额": "1", "无关变量": "x"}) == 2


class TestCoerceValue:
    def test_plain_string_is_text(self):
        assert coerce_value("280000") == VariableValue("280000", VariableType.TEXT)

    def test_mapping_with_type(self):
        assert coerce_value({"value": "5", "type": "percentage"}) == VariableValue("5", VariableType.PERCENTAGE)

    def test_date_object(self):
        assert coerce_value(date(2024, 1, 2)) == VariableValue("2024-01-02", VariableType.DATE)
