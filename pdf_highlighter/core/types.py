from typing import TypedDict, List

Rect = List[float]  # [x1, y1, x2, y2]; x1 <= x2 after normalize_rect


class Entity(TypedDict):
    text: str
    type: str            # uppercased tag, e.g. "METHOD"
    start: int           # 0-based char offset into the source text
    end: int             # exclusive


class ChatMessage(TypedDict):
    role: str            # "system" | "user" | "assistant"
    content: str


class _TextRunBase(TypedDict):
    text: str
    x: float
    y: float             # baseline, PDF user space (y up)
    width: float
    height: float


class TextRun(_TextRunBase, total=False):
    char_rects: List[Rect]   # exact per-character geometry, when the layout source has it
    eol: bool                # a line break follows this run


class CharPosition(TypedDict):
    char: str
    rect: Rect
    page_index: int


class LineAllocation(TypedDict):
    rect_index: int
    char_start: int
    char_end: int        # exclusive
    rect: Rect


class HighlightPosition(TypedDict):
    page_index: int
    rects: List[Rect]


class _HighlightAnnotationBase(TypedDict):
    type: str            # always "highlight"
    color: str           # "#rrggbb"
    text: str
    position: HighlightPosition


class HighlightAnnotation(_HighlightAnnotationBase, total=False):
    comment: str
    author: str
