"""Tests for boilerplate template selection."""

from datetime import date

import pytest

from contract_engine.boilerplate import render_boilerplate, select_template
from contract_engine.classifier import classify_text
from contract_engine.models import BlockType


@pytest.mark.parametrize(
    "template_name, key",
    [
        ("办公用品采购合同", "purchase"),
        ("Purchase Order", "purchase"),
        ("年度销售协议", "sales"),
        ("Export contract", "foreign_trade"),
        ("外贸合同", "foreign_trade"),
        ("租赁合同", "general"),
        ("", "general"),
    ],
)
def test_select_template(template_name, key):
    assert select_template(template_name).key == key


def test_footer_records_date_and_name():
    text = render_boilerplate("设备采购", generated_on=date(2024, 3, 5))

    assert text.startswith("采购合同")
    assert text.rstrip().endswith("生成日期：2024年3月5日\n模板：设备采购")


def test_footer_can_be_left_out():
    assert "生成信息" not in render_boilerplate("sales", include_footer=False)


@pytest.mark.parametrize("template_name", ["purchase", "sales", "foreign", "general"])
def test_every_template_classifies_cleanly(template_name):
    """Test that each boilerplate has one title and numbered section headers."""
    blocks = classify_text(render_boilerplate(template_name, include_footer=False))

    types = [block.type for block in blocks]
    assert types[0] is BlockType.TITLE
    assert types.count(BlockType.TITLE) == 1
    assert types.count(BlockType.SECTION_HEADER) >= 3
    assert BlockType.TABLE_ROW not in types
