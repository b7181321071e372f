"""Type-aware placeholder substitution."""

import re
from dataclasses import replace
from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable, Mapping, Optional, Sequence, Union

from contract_engine.logger import get_logger
from contract_engine.models import ContentBlock, LogicalVariable, VariableType, VariableValue
from contract_engine.placeholders import (
    extract_from_blocks,
    group_placeholders,
    matched_name,
    variants_pattern,
)

logger = get_logger(__name__)

ValueInput = Union[VariableValue, str, Mapping[str, Any]]

_CURRENCY_NOISE_RE = re.compile(r"RMB|CNY|USD|[,，\s¥￥$€£元]")
_PERCENT_SUFFIX_RE = re.compile(r"\s*[%％]$")
_DATE_FORMATS = ("%Y-%m-%d", "%Y/%m/%d", "%Y.%m.%d", "%Y年%m月%d日", "%Y%m%d")
_CENTS = Decimal("0.01")


def coerce_value(value: ValueInput) -> VariableValue:
    """Accept VariableValue, ``{"value": ..., "type": ...}`` or a plain string.

    Plain strings and dates are passed as text and date respectively.
    """
    if isinstance(value, VariableValue):
        return value
    if isinstance(value, Mapping):
        return VariableValue(
            value=str(value.get("value", "")),
            type=VariableType(value.get("type") or VariableType.TEXT),
        )
    if isinstance(value, (date, datetime)):
        return VariableValue(value=value.isoformat(), type=VariableType.DATE)
    return VariableValue(value=str(value))


def _parse_decimal(raw: str) -> Optional[Decimal]:
    try:
        number = Decimal(raw)
    except (InvalidOperation, ValueError):
        return None
    return number if number.is_finite() else None


def parse_date(raw: str) -> Optional[date]:
    raw = raw.strip()
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(raw, fmt).date()
        except ValueError:
            continue
    try:
        return datetime.fromisoformat(raw).date()
    except ValueError:
        return None


def format_currency(raw: str) -> str:
    number = _parse_decimal(_CURRENCY_NOISE_RE.sub("", raw))
    if number is None:
        return raw
    return f"{number.quantize(_CENTS, rounding=ROUND_HALF_UP):,.2f}"


def format_date(raw: str) -> str:
    parsed = parse_date(raw)
    if parsed is None:
        return raw
    return f"{parsed.year}年{parsed.month}月{parsed.day}日"


def format_percentage(raw: str) -> str:
    number = _parse_decimal(_PERCENT_SUFFIX_RE.sub("", raw.strip()))
    if number is None:
        return raw
    return f"{format(number.normalize(), 'f')}%"


_FORMATTERS = {
    VariableType.CURRENCY: format_currency,
    VariableType.DATE: format_date,
    VariableType.PERCENTAGE: format_percentage,
}


def format_value(value: str, variable_type: VariableType) -> str:
    """Render a value for its type; unparsable values come back unchanged."""
    formatter = _FORMATTERS.get(variable_type)
    return formatter(value) if formatter else value


class _Replacements:
    """Formatted values for one request, applied in a single regex pass."""

    def __init__(self, values: Mapping[str, ValueInput]):
        formatted = {}
        for name, value in values.items():
            if not name.strip():
                continue
            variable = coerce_value(value)
            formatted[name.strip()] = format_value(variable.value, variable.type)

        self.pattern = variants_pattern(formatted) if formatted else None
        self.resolved = {name: self._expand(formatted, name, frozenset({name})) for name in formatted}

    def _expand(self, formatted: dict[str, str], name: str, active: frozenset) -> str:
        """Resolve placeholders of other supplied names inside a value.

        A value that refers back to a name already being expanded keeps
        that placeholder literally.
        """

        def expand_match(match: re.Match) -> str:
            other = matched_name(match)
            if other in active:
                logger.warning(
                    "Circular placeholder reference in values",
                    extra_data={"name": name, "reference": other},
                )
                return match.group(0)
            return self._expand(formatted, other, active | {other})

        return self.pattern.sub(expand_match, formatted[name])

    def apply(self, text: str) -> str:
        if self.pattern is None:
            return text
        return self.pattern.sub(lambda match: self.resolved[matched_name(match)], text)


def substitute_text(text: str, values: Mapping[str, ValueInput]) -> str:
    """Replace every syntax variant of each supplied variable in ``text``.

    Variables without a supplied value are left untouched. Inserted values
    are not rescanned, so the result does not depend on the order of
    ``values``.
    """
    return _Replacements(values).apply(text)


def substitute(
    blocks: Sequence[ContentBlock], values: Mapping[str, ValueInput]
) -> list[ContentBlock]:
    """Rewrite block text with formatted values.

    Only ``text`` changes: the result has the same blocks in the same order.
    """
    replacements = _Replacements(values)
    result = []
    for block in blocks:
        text = replacements.apply(block.text)
        result.append(block if text == block.text else replace(block, text=text))
    return result


def substituted_names(
    blocks: Sequence[ContentBlock], values: Mapping[str, ValueInput]
) -> list[str]:
    """Names from ``values`` that occur in ``blocks`` and will be replaced."""
    present = {placeholder.logical_name for placeholder in extract_from_blocks(blocks)}
    return [name.strip() for name in values if name.strip() in present]


def count_substituted(blocks: Sequence[ContentBlock], values: Mapping[str, ValueInput]) -> int:
    return len(set(substituted_names(blocks, values)))


def find_missing(
    blocks: Sequence[ContentBlock], optional: Iterable[str] = ()
) -> list[LogicalVariable]:
    """Residual placeholders after substitution, minus caller-optional names."""
    skip = set(optional)
    missing = [
        variable
        for variable in group_placeholders(extract_from_blocks(blocks))
        if variable.required and variable.name not in skip
    ]
    if missing:
        logger.debug(
            "Placeholders left without values",
            extra_data={"names": ",".join(variable.name for variable in missing)},
        )
    return missing
