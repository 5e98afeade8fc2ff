from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Sequence
import logging
import re
import pdfplumber

from pdf_highlighter.core.bbox import plumber_to_pdf_y
from pdf_highlighter.core.types import CharPosition, Rect, TextRun
from pdf_highlighter.geometry.char_map import build_char_positions, page_text
from pdf_highlighter.geometry.char_widths import WidthModel

logger = logging.getLogger(__name__)

LINE_TOLERANCE = 3.0

_SINGLE_QUOTES = "'‘’‚‛"
_DOUBLE_QUOTES = "\"“”„‟"


@dataclass
class PageLayout:
    page_index: int
    height: float
    runs: List[TextRun] = field(default_factory=list)
    positions: List[CharPosition] = field(default_factory=list)

    @property
    def text(self) -> str:
        return page_text(self.positions)


# --- Lines ---

def _group_lines(items: Sequence[Dict], line_tol: float = LINE_TOLERANCE) -> List[List[Dict]]:
    """Group word/char dicts into lines by `top`, preserving reading order within a line."""
    lines: List[List[Dict]] = []
    for item in sorted(items, key=lambda w: (float(w["top"]), float(w["x0"]))):
        if lines and abs(float(item["top"]) - float(lines[-1][0]["top"])) <= line_tol:
            lines[-1].append(item)
        else:
            lines.append([item])
    for line in lines:
        line.sort(key=lambda w: float(w["x0"]))
    return lines


def _to_pdf_rect(page_height: float, item: Dict) -> Rect:
    # pdfplumber: top-left origin; PDF user space: bottom-left origin
    return [
        float(item["x0"]),
        plumber_to_pdf_y(page_height, item["bottom"]),
        float(item["x1"]),
        plumber_to_pdf_y(page_height, item["top"]),
    ]


def _word_run(page_height: float, word: Dict, chars: Optional[List[Dict]]) -> TextRun:
    height = float(word["bottom"]) - float(word["top"])
    run = TextRun(
        text=word["text"],
        x=float(word["x0"]),
        # baseline sits a quarter of the height above the box bottom
        y=plumber_to_pdf_y(page_height, word["bottom"]) + 0.25 * height,
        width=float(word["x1"]) - float(word["x0"]),
        height=height,
    )
    if chars is not None and len(chars) == len(word["text"]):
        run["char_rects"] = [_to_pdf_rect(page_height, c) for c in chars]
    return run


def _chars_of_word(word: Dict, chars: Sequence[Dict]) -> List[Dict]:
    return [
        c for c in chars
        if float(word["x0"]) - 0.5 <= (float(c["x0"]) + float(c["x1"])) / 2 <= float(word["x1"]) + 0.5
        and float(word["top"]) - 0.5 <= (float(c["top"]) + float(c["bottom"])) / 2 <= float(word["bottom"]) + 0.5
        and not str(c.get("text", "")).isspace()
    ]


def runs_from_words(
    words: Sequence[Dict],
    page_height: float,
    chars: Optional[Sequence[Dict]] = None,
) -> List[TextRun]:
    """Build baseline runs (PDF user space) from pdfplumber words.

    Consecutive words on a line are separated by a one-space run spanning
    the gap; the last word of each line carries `eol`. With `chars`, each
    word run also carries exact per-character rects.
    """
    runs: List[TextRun] = []
    for line in _group_lines(words):
        for i, word in enumerate(line):
            word_chars = _chars_of_word(word, chars) if chars is not None else None
            run = _word_run(page_height, word, word_chars)
            runs.append(run)
            if i == len(line) - 1:
                run["eol"] = True
                continue
            gap_end = float(line[i + 1]["x0"])
            runs.append(TextRun(
                text=" ",
                x=run["x"] + run["width"],
                y=run["y"],
                width=max(0.0, gap_end - (run["x"] + run["width"])),
                height=run["height"],
            ))
    return runs


# --- Selection ---

def _token_pattern(token: str) -> str:
    """Escaped regex for one word; any quote style matches any other."""
    parts = []
    for char in token:
        if char in _SINGLE_QUOTES:
            parts.append(f"[{_SINGLE_QUOTES}]")
        elif char in _DOUBLE_QUOTES:
            parts.append(f"[{_DOUBLE_QUOTES}]")
        else:
            parts.append(re.escape(char))
    return "".join(parts)


def selection_rects(pl_page, snippet: str) -> List[Rect]:
    """Per-line rects (PDF user space) of the first occurrence of `snippet`."""
    tokens = snippet.split()
    if not tokens:
        return []
    # line breaks in the page text may sit where the snippet has spaces
    pattern = r"\s+".join(_token_pattern(t) for t in tokens)
    page_h = float(pl_page.height)
    try:
        matches = pl_page.search(pattern, regex=True, case=True)
    except Exception as e:
        logger.warning(f"pdfplumber search failed: {e}")
        return []
    if not matches:
        return []

    chars = [c for c in matches[0].get("chars", []) if not str(c.get("text", "")).isspace()]
    if not chars:
        m = matches[0]
        return [_to_pdf_rect(page_h, m)]
    rects: List[Rect] = []
    for line in _group_lines(chars):
        rects.append([
            min(float(c["x0"]) for c in line),
            plumber_to_pdf_y(page_h, max(float(c["bottom"]) for c in line)),
            max(float(c["x1"]) for c in line),
            plumber_to_pdf_y(page_h, min(float(c["top"]) for c in line)),
        ])
    return rects


# --- Page layout ---

def layout_from_page(pl_page, page_index: int, exact: bool = False,
                     model: Optional[WidthModel] = None) -> PageLayout:
    page_h = float(pl_page.height)
    words = pl_page.extract_words() or []
    chars = pl_page.chars if exact else None
    runs = runs_from_words(words, page_h, chars)
    positions = build_char_positions(runs, page_index, model)
    return PageLayout(page_index=page_index, height=page_h, runs=runs, positions=positions)


def load_page_layout(pdf_path: Path, page_index: int, snippet: str = "", exact: bool = False):
    """Return (PageLayout, selection rects for `snippet`) for one page."""
    try:
        with pdfplumber.open(pdf_path) as pdf:
            total = len(pdf.pages)
            if page_index < 0 or page_index >= total:
                raise ValueError(f"Page {page_index + 1} out of range (1-{total})")
            pl_page = pdf.pages[page_index]
            layout = layout_from_page(pl_page, page_index, exact=exact)
            rects = selection_rects(pl_page, snippet) if snippet else []
    except ValueError:
        raise
    except Exception as e:
        logger.error(f"pdfplumber layout extraction failed for {pdf_path}: {e}")
        raise
    logger.info(f"Page {page_index + 1}: {len(layout.runs)} runs, {len(layout.positions)} chars, "
                f"{len(rects)} selection rects")
    return layout, rects
