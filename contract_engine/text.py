"""Small text helpers shared by the classifier, emitter and adapters."""

import re

# Box-drawing glyphs plus ASCII and full-width vertical bars
TABLE_GLYPHS = frozenset("│┃┌┐└┘├┤┬┴┼─━═║╔╗╚╝╠╣╦╩╬|｜")
CELL_SEPARATORS = ("│", "┃", "║", "｜", "|")
BORDER_GLYPHS = frozenset("┌┐└┘├┤┬┴┼─━═║╔╗╚╝╠╣╦╩╬-+=_ ")

_WORD_RE = re.compile(r"[㐀-䶿一-鿿豈-﫿]|[A-Za-z0-9]+(?:[.,'][A-Za-z0-9]+)*")


def count_words(text: str) -> int:
    """Count words, treating every CJK ideograph as one word."""
    return len(_WORD_RE.findall(text or ""))


def has_table_glyphs(line: str) -> bool:
    return any(char in TABLE_GLYPHS for char in line)


def is_border_row(line: str) -> bool:
    """True for rows made only of drawing glyphs, e.g. ``┌────┬────┐``."""
    stripped = line.strip()
    return bool(stripped) and all(char in BORDER_GLYPHS for char in stripped)
