from typing import List, Sequence

from pdf_highlighter.core.types import Rect

# Rect Merger tolerances (page units)
SAME_LINE_TOLERANCE = 5.0
ADJACENT_GAP = 10.0

# --- Coordinate helpers ---

def plumber_to_pdf_y(page_height: float, y_plumber: float) -> float:
    """pdfplumber Y (origin top-left, y down) to PDF user-space Y (origin bottom-left)."""
    return float(page_height) - float(y_plumber)


def normalize_rect(rect: Sequence[float]) -> Rect:
    """Swap x1/x2 when rounding left them reversed. Y order is kept as-is."""
    x1, y1, x2, y2 = (float(v) for v in rect[:4])
    if x1 > x2:
        return [x2, y1, x1, y2]
    return [x1, y1, x2, y2]


def rect_width(rect: Sequence[float]) -> float:
    return abs(float(rect[2]) - float(rect[0]))


def union_boxes(boxes: List[List[float]]) -> List[float]:
    x0 = min(min(b[0], b[2]) for b in boxes)
    y0 = min(min(b[1], b[3]) for b in boxes)
    x1 = max(max(b[0], b[2]) for b in boxes)
    y1 = max(max(b[1], b[3]) for b in boxes)
    return [x0, y0, x1, y1]


# --- Rect merging ---

def _same_line(a: Rect, b: Rect, tol: float) -> bool:
    return abs(a[1] - b[1]) <= tol and abs(a[3] - b[3]) <= tol


def merge_rects(
    rects: Sequence[Sequence[float]],
    y_tolerance: float = SAME_LINE_TOLERANCE,
    gap_tolerance: float = ADJACENT_GAP,
) -> List[Rect]:
    """Coalesce consecutive same-line, horizontally adjacent rects.

    Input must already be in reading order; nothing is sorted here.
    """
    merged: List[Rect] = []
    current: List[float] = []
    for raw in rects:
        rect = normalize_rect(raw)
        if not current:
            current = rect
            continue
        gap = rect[0] - current[2]
        if _same_line(current, rect, y_tolerance) and gap < gap_tolerance:
            current[2] = max(current[2], rect[2])
            continue
        merged.append(current)
        current = rect
    if current:
        merged.append(current)
    return merged
