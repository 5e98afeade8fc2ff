from pathlib import Path
from typing import List, Protocol, Sequence
import logging
import PyPDF2
from PyPDF2.generic import (
    ArrayObject,
    DictionaryObject,
    FloatObject,
    NameObject,
    NumberObject,
    TextStringObject,
)

from pdf_highlighter.core.bbox import normalize_rect, union_boxes
from pdf_highlighter.core.colors import hex_to_rgb
from pdf_highlighter.core.types import HighlightAnnotation

logger = logging.getLogger(__name__)

DEFAULT_AUTHOR = "PDF Entity Highlighter"
PRINT_FLAG = 4


class AnnotationWriter(Protocol):
    name: str

    def write(self, annotation: HighlightAnnotation) -> bool:
        ...


def write_with_fallback(writers: Sequence[AnnotationWriter], annotation: HighlightAnnotation) -> bool:
    """Try writers in priority order; the first success is enough."""
    for writer in writers:
        try:
            if writer.write(annotation):
                logger.debug(f"Annotation {annotation['text']!r} written via {writer.name}")
                return True
            logger.debug(f"Writer {writer.name} declined {annotation['text']!r}")
        except Exception as e:
            logger.debug(f"Writer {writer.name} failed for {annotation['text']!r}: {e}")
    return False


# --- Annotation dictionary ---

def _quad_points(rects: Sequence[Sequence[float]]) -> List[float]:
    """Four corners per rect: upper-left, upper-right, lower-left, lower-right."""
    points: List[float] = []
    for r in rects:
        x1, y1, x2, y2 = normalize_rect(r)
        top, bottom = max(y1, y2), min(y1, y2)
        points.extend([x1, top, x2, top, x1, bottom, x2, bottom])
    return points


def build_highlight_dict(annotation: HighlightAnnotation) -> DictionaryObject:
    rects = annotation["position"]["rects"]
    if not rects:
        raise ValueError("highlight annotation needs at least one rect")
    rgb = hex_to_rgb(annotation["color"])
    contents = annotation.get("comment") or annotation["text"]
    return DictionaryObject({
        NameObject("/Type"): NameObject("/Annot"),
        NameObject("/Subtype"): NameObject("/Highlight"),
        NameObject("/Rect"): ArrayObject([FloatObject(v) for v in union_boxes(rects)]),
        NameObject("/QuadPoints"): ArrayObject([FloatObject(v) for v in _quad_points(rects)]),
        NameObject("/C"): ArrayObject([FloatObject(v) for v in rgb]),
        NameObject("/Contents"): TextStringObject(contents),
        NameObject("/T"): TextStringObject(annotation.get("author") or DEFAULT_AUTHOR),
        NameObject("/F"): NumberObject(PRINT_FLAG),
    })


# --- Writer strategies over one PdfWriter ---

class AddAnnotationWriter:
    """PyPDF2's own PdfWriter.add_annotation."""

    name = "pdfwriter.add_annotation"

    def __init__(self, writer: PyPDF2.PdfWriter):
        self.writer = writer

    def write(self, annotation: HighlightAnnotation) -> bool:
        page_index = annotation["position"]["page_index"]
        if page_index < 0 or page_index >= len(self.writer.pages):
            return False
        self.writer.add_annotation(page_index, build_highlight_dict(annotation))
        return True


class PageAnnotsWriter:
    """Append an indirect annotation object to the page's /Annots array."""

    name = "page./Annots"

    def __init__(self, writer: PyPDF2.PdfWriter):
        self.writer = writer

    def write(self, annotation: HighlightAnnotation) -> bool:
        page_index = annotation["position"]["page_index"]
        if page_index < 0 or page_index >= len(self.writer.pages):
            return False
        page = self.writer.pages[page_index]
        annot = build_highlight_dict(annotation)
        ref = self.writer._add_object(annot)
        if "/Annots" in page:
            annots = page["/Annots"].get_object()
            annots.append(ref)
        else:
            page[NameObject("/Annots")] = ArrayObject([ref])
        return True


class HighlightDocument:
    """A PDF opened for writing highlight annotations."""

    def __init__(self, pdf_path: Path):
        self.pdf_path = Path(pdf_path)
        self.writer = PyPDF2.PdfWriter()
        reader = PyPDF2.PdfReader(str(self.pdf_path))
        for page in reader.pages:
            self.writer.add_page(page)

    def writers(self) -> List[AnnotationWriter]:
        return [AddAnnotationWriter(self.writer), PageAnnotsWriter(self.writer)]

    def save(self, output_path: Path) -> Path:
        output_path = Path(output_path)
        with open(output_path, "wb") as f:
            self.writer.write(f)
        logger.info(f"Saved highlighted PDF: {output_path}")
        return output_path
