"""Variable placeholder extraction and type inference."""

import bisect
import re
from dataclasses import dataclass, replace
from typing import Iterable, Sequence

from contract_engine.models import (
    ContentBlock,
    LogicalVariable,
    VariablePlaceholder,
    VariableType,
)

CONTEXT_WINDOW = 50


@dataclass(frozen=True)
class PlaceholderSyntax:
    """One bracket style that can mark a variable."""

    name: str
    opening: str
    closing: str
    pattern: re.Pattern


SYNTAXES: tuple[PlaceholderSyntax, ...] = (
    PlaceholderSyntax("square", "[", "]", re.compile(r"\[([^\[\]\n]+)\]")),
    PlaceholderSyntax("double_curly", "{{", "}}", re.compile(r"\{\{([^{}\n]+)\}\}")),
    PlaceholderSyntax("dollar_curly", "${", "}", re.compile(r"\$\{([^{}\n]+)\}")),
    PlaceholderSyntax("cjk", "【", "】", re.compile(r"【([^【】\n]+)】")),
)


def variants_pattern(logical_names: Iterable[str]) -> re.Pattern:
    """One pattern matching any syntax variant of any of ``logical_names``.

    Whitespace inside the brackets is tolerated. Exactly one group takes
    part in each match; see :func:`matched_name`.
    """
    names = "|".join(re.escape(name) for name in sorted(set(logical_names), key=len, reverse=True))
    return re.compile(
        "|".join(
            re.escape(syntax.opening) + r"\s*(" + names + r")\s*" + re.escape(syntax.closing)
            for syntax in SYNTAXES
        )
    )


def matched_name(match: re.Match) -> str:
    return next(group for group in match.groups() if group is not None)


# Checked in order; the first matching family wins
TYPE_KEYWORDS: tuple[tuple[VariableType, tuple[str, ...]], ...] = (
    (
        VariableType.CURRENCY,
        ("金额", "价格", "价款", "单价", "总价", "费用", "租金", "款项", "amount", "price", "fee", "cost", "rent"),
    ),
    (
        VariableType.DATE,
        ("日期", "时间", "年月日", "date", "time", "deadline"),
    ),
    (
        VariableType.PERCENTAGE,
        ("比例", "比率", "率", "百分", "percent", "ratio", "rate", "%"),
    ),
)


def _keyword_pattern(keyword: str) -> re.Pattern:
    # Latin keywords must start a word so "corporate" is not a rate
    if keyword.isascii() and keyword.isalpha():
        return re.compile(r"(?<![a-z])" + re.escape(keyword))
    return re.compile(re.escape(keyword))


_TYPE_PATTERNS = tuple(
    (variable_type, tuple(_keyword_pattern(keyword) for keyword in keywords))
    for variable_type, keywords in TYPE_KEYWORDS
)


def infer_type(logical_name: str) -> VariableType:
    """Infer the value type from keywords in the variable name.

    Names matching no keyword family are plain text.
    """
    name = logical_name.lower()
    for variable_type, patterns in _TYPE_PATTERNS:
        if any(pattern.search(name) for pattern in patterns):
            return variable_type
    return VariableType.TEXT


def _iter_matches(text: str):
    for syntax in SYNTAXES:
        for match in syntax.pattern.finditer(text):
            logical_name = match.group(1).strip()
            if logical_name:
                yield match.start(), match.group(0), logical_name


def extract_placeholders(text: str, context_window: int = CONTEXT_WINDOW) -> list[VariablePlaceholder]:
    """Find every placeholder in ``text``.

    Results are ordered by position and deduplicated by exact placeholder
    string; the first occurrence supplies position and context.

    Args:
        text: Text to scan
        context_window: Characters kept on each side of a match

    Returns:
        List of VariablePlaceholder
    """
    placeholders: list[VariablePlaceholder] = []
    seen: set[str] = set()

    for position, token, logical_name in sorted(_iter_matches(text), key=lambda item: item[0]):
        if token in seen:
            continue
        seen.add(token)

        start = max(0, position - context_window)
        end = min(len(text), position + len(token) + context_window)
        placeholders.append(
            VariablePlaceholder(
                placeholder_text=token,
                logical_name=logical_name,
                inferred_type=infer_type(logical_name),
                position=position,
                context=text[start:end],
            )
        )

    return placeholders


def extract_from_blocks(
    blocks: Sequence[ContentBlock], context_window: int = CONTEXT_WINDOW
) -> list[VariablePlaceholder]:
    """Extract placeholders from a block sequence, tagging block index and page."""
    starts = []
    offset = 0
    for block in blocks:
        starts.append(offset)
        offset += len(block.text) + 1

    joined = "\n".join(block.text for block in blocks)
    tagged = []
    for placeholder in extract_placeholders(joined, context_window):
        index = bisect.bisect_right(starts, placeholder.position) - 1
        tagged.append(
            replace(
                placeholder,
                block_index=index,
                page_number=blocks[index].page_number,
            )
        )
    return tagged


def group_placeholders(placeholders: Iterable[VariablePlaceholder]) -> list[LogicalVariable]:
    """Alias every bracket syntax of one name to a single logical variable."""
    grouped: dict[str, list[VariablePlaceholder]] = {}
    for placeholder in placeholders:
        grouped.setdefault(placeholder.logical_name, []).append(placeholder)

    return [
        LogicalVariable(
            name=name,
            inferred_type=members[0].inferred_type,
            placeholders=tuple(member.placeholder_text for member in members),
            context=members[0].context,
            required=all(member.required for member in members),
        )
        for name, members in grouped.items()
    ]


def strip_placeholders(text: str) -> str:
    """Blank out placeholder spans so keyword checks only see literal text."""
    for syntax in SYNTAXES:
        text = syntax.pattern.sub(" ", text)
    return text
