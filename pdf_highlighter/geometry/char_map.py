"""
Page-wide character positions and snippet alignment.

A page's text runs are flattened into one CharPosition per character
(plus "\\n" placeholders after line ends), the selected snippet is located in
the resulting transcript, and an entity's snippet-relative offsets are mapped
to merged rects. When the snippet cannot be located, the selection's own
rects are interpolated instead.
"""

import logging
import re
from bisect import bisect_left
from typing import Dict, List, Optional, Protocol, Sequence, Tuple

from pdf_highlighter.core.bbox import merge_rects, rect_width
from pdf_highlighter.core.types import CharPosition, Rect, TextRun
from pdf_highlighter.geometry import interpolate
from pdf_highlighter.geometry.char_widths import HeuristicWidthModel, WidthModel
from pdf_highlighter.ner.errors import SnippetNotLocated

logger = logging.getLogger(__name__)

# Rects narrower than this are line-break placeholders
MIN_RECT_WIDTH = 0.1

# Glyph box sits 25% of the font height below the baseline
DESCENT_RATIO = 0.25

PREFIX_LENGTHS = (50, 30, 20)
MIN_PREFIX_LENGTH = 10

_QUOTES = str.maketrans({
    "‘": "'", "’": "'", "‚": "'", "‛": "'",
    "“": '"', "”": '"', "„": '"', "‟": '"',
})


# --- Per-character rects ---

def estimate_char_rects(run: TextRun, model: Optional[WidthModel] = None) -> List[Rect]:
    """Split a run's width across its characters by relative glyph weight.

    The widths sum to the run width exactly; the last rect ends at x + width.
    """
    text = run["text"]
    if not text:
        return []
    model = model or HeuristicWidthModel()
    weights = [model.weight(c) for c in text]
    total = sum(weights)
    x0 = float(run["x"])
    width = float(run["width"])
    height = float(run["height"])
    y1 = float(run["y"]) - DESCENT_RATIO * height
    y2 = y1 + height

    rects: List[Rect] = []
    cursor = 0.0
    for i, w in enumerate(weights):
        left = x0 + (cursor / total) * width if total > 0 else x0
        cursor += w
        right = x0 + width if i == len(weights) - 1 else x0 + (cursor / total) * width
        rects.append([left, y1, right, y2])
    return rects


def build_char_positions(
    runs: Sequence[TextRun],
    page_index: int,
    model: Optional[WidthModel] = None,
) -> List[CharPosition]:
    positions: List[CharPosition] = []
    for run in runs:
        rects = run.get("char_rects")
        if not rects or len(rects) != len(run["text"]):
            rects = estimate_char_rects(run, model)
        for char, rect in zip(run["text"], rects):
            positions.append(CharPosition(char=char, rect=list(rect), page_index=page_index))
        if run.get("eol"):
            right = float(run["x"]) + float(run["width"])
            y1 = float(run["y"]) - DESCENT_RATIO * float(run["height"])
            positions.append(CharPosition(
                char="\n", rect=[right, y1, right, y1 + float(run["height"])], page_index=page_index,
            ))
    return positions


def page_text(positions: Sequence[CharPosition]) -> str:
    return "".join(p["char"] for p in positions)


# --- Snippet localization ---

def normalize_with_map(text: str) -> Tuple[str, List[int]]:
    """Collapse whitespace, straighten quotes and trim.

    Returns the normalized string and, for each of its characters, the index
    of the raw character it came from.
    """
    out: List[str] = []
    index_map: List[int] = []
    prev_space = False
    for i, char in enumerate(text.translate(_QUOTES)):
        if char.isspace():
            if prev_space:
                continue
            prev_space = True
            out.append(" ")
        else:
            prev_space = False
            out.append(char)
        index_map.append(i)

    # trim, keeping the map aligned
    start = 0
    end = len(out)
    while start < end and out[start] == " ":
        start += 1
    while end > start and out[end - 1] == " ":
        end -= 1
    return "".join(out[start:end]), index_map[start:end]


def normalize_text(text: str) -> str:
    return re.sub(r"\s+", " ", text.translate(_QUOTES)).strip()


class TextLocator(Protocol):
    def locate(self, snippet: str, page: str) -> int:
        """Offset of `snippet`'s start in `page`; raises SnippetNotLocated."""
        ...


class MultiStrategyLocator:
    """Exact, then normalized, then normalized-prefix match. First occurrence wins."""

    def __init__(self, prefix_lengths: Sequence[int] = PREFIX_LENGTHS, min_prefix: int = MIN_PREFIX_LENGTH):
        self.prefix_lengths = tuple(prefix_lengths)
        self.min_prefix = min_prefix

    def locate(self, snippet: str, page: str) -> int:
        if not snippet or not page:
            raise SnippetNotLocated("empty snippet or page text")

        idx = page.find(snippet)
        if idx != -1:
            return idx

        norm_page, page_map = normalize_with_map(page)
        norm_snippet = normalize_text(snippet)
        if norm_snippet:
            idx = norm_page.find(norm_snippet)
            if idx != -1:
                return page_map[idx]

        for length in self.prefix_lengths:
            prefix = norm_snippet[:length]
            if len(prefix) < self.min_prefix:
                continue
            idx = norm_page.find(prefix)
            if idx != -1:
                logger.debug(f"Snippet anchored by {len(prefix)}-char prefix at {page_map[idx]}")
                return page_map[idx]

        raise SnippetNotLocated(f"snippet not found on page: {snippet[:60]!r}")


# --- Entity -> rects ---

def align_entity_span(
    snippet: str,
    page: str,
    anchor: int,
    entity_start: int,
    entity_end: int,
) -> Tuple[int, int]:
    """Page offsets of `snippet[entity_start:entity_end]` given the snippet's anchor.

    When the page copy differs from the snippet in whitespace or quotes, the
    offsets are carried through the normalized forms of both texts.
    """
    if page.startswith(snippet, anchor):
        return anchor + entity_start, anchor + entity_end

    _, snippet_map = normalize_with_map(snippet)
    _, page_map = normalize_with_map(page[anchor:])
    if not snippet_map or not page_map:
        return anchor + entity_start, anchor + entity_end

    first = min(bisect_left(snippet_map, entity_start), len(page_map) - 1)
    last = bisect_left(snippet_map, entity_end) - 1
    if last < first:
        # entity covers only whitespace
        return anchor + page_map[first], anchor + page_map[first]
    last = min(last, len(page_map) - 1)
    return anchor + page_map[first], anchor + page_map[last] + 1


def rects_for_span(positions: Sequence[CharPosition], start: int, end: int) -> List[Rect]:
    start = max(0, start)
    end = min(len(positions), end)
    rects = [p["rect"] for p in positions[start:end] if rect_width(p["rect"]) >= MIN_RECT_WIDTH]
    return merge_rects(rects)


def map_entity_to_rects(
    positions: Sequence[CharPosition],
    anchor: int,
    entity_start: int,
    entity_end: int,
) -> List[Rect]:
    return rects_for_span(positions, anchor + entity_start, anchor + entity_end)


class PageCharMapper:
    """Maps snippet-relative entity offsets onto one page's character positions."""

    def __init__(self, positions: Sequence[CharPosition], locator: Optional[TextLocator] = None):
        self.positions = list(positions)
        self.text = page_text(self.positions)
        self.locator = locator or MultiStrategyLocator()
        self._anchors: Dict[str, Optional[int]] = {}

    def anchor(self, snippet: str) -> Optional[int]:
        if snippet not in self._anchors:
            try:
                self._anchors[snippet] = self.locator.locate(snippet, self.text)
            except SnippetNotLocated as e:
                logger.info(f"Falling back to selection rects: {e}")
                self._anchors[snippet] = None
        return self._anchors[snippet]

    def entity_rects(
        self,
        snippet: str,
        selection_rects: Sequence[Sequence[float]],
        entity_start: int,
        entity_end: int,
    ) -> List[Rect]:
        anchor = self.anchor(snippet)
        if anchor is not None:
            start, end = align_entity_span(snippet, self.text, anchor, entity_start, entity_end)
            rects = rects_for_span(self.positions, start, end)
            if rects:
                return rects
            logger.debug(f"No page geometry for [{entity_start}, {entity_end}); interpolating selection")
        return merge_rects(interpolate.entity_rects(snippet, selection_rects, entity_start, entity_end))
