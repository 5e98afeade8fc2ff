"""
Proportional sub-rect interpolation for an entity inside a selected span.

Only the selection's own rects are known (one per visual line), so
characters are spread across lines in proportion to line width and x is
interpolated linearly by character position.
"""

import math
from typing import List, Sequence

from pdf_highlighter.core.bbox import normalize_rect, rect_width
from pdf_highlighter.core.types import LineAllocation, Rect


def allocate_chars_to_lines(total_chars: int, rects: Sequence[Sequence[float]]) -> List[LineAllocation]:
    """Partition `total_chars` across `rects`, contiguous and exhaustive."""
    if not rects or total_chars <= 0:
        return []

    widths = [rect_width(r) for r in rects]
    total_width = sum(widths)

    if total_width <= 0:
        per_line = math.ceil(total_chars / len(rects))
        return [
            LineAllocation(
                rect_index=i,
                char_start=min(i * per_line, total_chars),
                char_end=min((i + 1) * per_line, total_chars) if i < len(rects) - 1 else total_chars,
                rect=list(rect),
            )
            for i, rect in enumerate(rects)
        ]

    allocations: List[LineAllocation] = []
    cursor = 0
    for i, rect in enumerate(rects):
        if i == len(rects) - 1:
            count = total_chars - cursor
        else:
            count = int(math.floor(widths[i] / total_width * total_chars + 0.5))
        char_end = min(cursor + count, total_chars)
        allocations.append(LineAllocation(rect_index=i, char_start=cursor, char_end=char_end, rect=list(rect)))
        cursor = char_end
    return allocations


def interpolate_x(
    rect: Sequence[float],
    line_start: int,
    line_end: int,
    target_start: int,
    target_end: int,
) -> Rect:
    """Cut the x-range of `rect` down to [target_start, target_end) of its line."""
    x1, y1, x2, y2 = (float(v) for v in rect[:4])
    line_len = line_end - line_start
    if line_len <= 0:
        return normalize_rect([x1, y1, x2, y2])

    width = x2 - x1
    new_x1 = x1 + width * (target_start - line_start) / line_len
    new_x2 = x1 + width * (target_end - line_start) / line_len
    return normalize_rect([new_x1, y1, new_x2, y2])


def entity_rects(
    full_text: str,
    full_rects: Sequence[Sequence[float]],
    entity_start: int,
    entity_end: int,
) -> List[Rect]:
    """Rects covering [entity_start, entity_end) of `full_text`.

    `full_rects` covers the whole of `full_text`, one rect per line.
    """
    if not full_rects:
        return []
    total = len(full_text)
    if entity_start < 0 or entity_end <= entity_start or entity_start >= total:
        return []
    end = min(entity_end, total)

    if len(full_rects) == 1:
        return [interpolate_x(full_rects[0], 0, total, entity_start, end)]

    out: List[Rect] = []
    for line in allocate_chars_to_lines(total, full_rects):
        if line["char_end"] <= entity_start or line["char_start"] >= end:
            continue
        overlap_start = max(entity_start, line["char_start"])
        overlap_end = min(end, line["char_end"])
        if overlap_start == line["char_start"] and overlap_end == line["char_end"]:
            out.append(normalize_rect(line["rect"]))
            continue
        out.append(interpolate_x(line["rect"], line["char_start"], line["char_end"], overlap_start, overlap_end))
    return out
