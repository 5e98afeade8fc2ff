"""Relative character widths for runs without per-character geometry."""

from typing import Protocol

NARROW = frozenset("il1|'!.:;,")
MEDIUM_NARROW = frozenset("ftjrIJ()[]{}/-")
WIDE = frozenset("mwMW@&")

# CJK, Hangul, fullwidth forms, em-dash
_EXTRA_WIDE_RANGES = (
    (0x2E80, 0x9FFF),
    (0xAC00, 0xD7AF),
    (0xF900, 0xFAFF),
    (0xFF00, 0xFFEF),
)


class WidthModel(Protocol):
    def weight(self, char: str) -> float:
        ...


def _is_extra_wide(char: str) -> bool:
    if char == "—":
        return True
    code = ord(char)
    return any(lo <= code <= hi for lo, hi in _EXTRA_WIDE_RANGES)


class HeuristicWidthModel:
    """Character-class widths relative to an average Latin glyph (1.0)."""

    def weight(self, char: str) -> float:
        if char in NARROW:
            return 0.35
        if char in MEDIUM_NARROW:
            return 0.55
        if char in WIDE:
            return 1.3
        if _is_extra_wide(char):
            return 1.7
        if char.isspace():
            return 0.5
        if char.isdigit():
            return 0.85
        if char.isupper():
            return 1.1
        return 1.0


class UniformWidthModel:
    """Every character equally wide."""

    def weight(self, char: str) -> float:
        return 1.0
