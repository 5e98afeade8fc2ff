"""
One extraction-and-highlight request.

text -> entities -> rects per entity -> annotation -> writer cascade.
Network and parse errors propagate; per-entity geometry or write problems
only lower the written count.
"""

import asyncio
import logging
import random
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Sequence

import requests

from pdf_highlighter.backends.pypdf2_backend import AnnotationWriter, write_with_fallback
from pdf_highlighter.core.bbox import merge_rects
from pdf_highlighter.core.colors import color_for_entity_type
from pdf_highlighter.core.config import LLMConfig
from pdf_highlighter.core.types import CharPosition, Entity, HighlightAnnotation, HighlightPosition, Rect
from pdf_highlighter.geometry import interpolate
from pdf_highlighter.geometry.char_map import PageCharMapper, TextLocator
from pdf_highlighter.ner.client import Sleep, extract_entities
from pdf_highlighter.ner.errors import NoGeometryOverlap

logger = logging.getLogger(__name__)


@dataclass
class HighlightResult:
    entities: List[Entity] = field(default_factory=list)
    annotations: List[HighlightAnnotation] = field(default_factory=list)
    written: int = 0
    failed: int = 0

    @property
    def extracted(self) -> int:
        return len(self.entities)


def build_annotation(entity: Entity, page_index: int, rects: List[Rect]) -> HighlightAnnotation:
    return HighlightAnnotation(
        type="highlight",
        color=color_for_entity_type(entity["type"]),
        text=entity["text"],
        position=HighlightPosition(page_index=page_index, rects=rects),
        comment=entity["type"],
    )


def rects_for_entity(
    entity: Entity,
    text: str,
    selection_rects: Sequence[Sequence[float]],
    mapper: Optional[PageCharMapper] = None,
) -> List[Rect]:
    if mapper is not None:
        rects = mapper.entity_rects(text, selection_rects, entity["start"], entity["end"])
    else:
        rects = merge_rects(interpolate.entity_rects(text, selection_rects, entity["start"], entity["end"]))
    if not rects:
        raise NoGeometryOverlap(f"no rects for {entity['text']!r} [{entity['start']}, {entity['end']})")
    return rects


def highlight_from_entities(
    entities: Sequence[Entity],
    text: str,
    page_index: int,
    selection_rects: Sequence[Sequence[float]],
    writers: Sequence[AnnotationWriter] = (),
    positions: Optional[Sequence[CharPosition]] = None,
    locator: Optional[TextLocator] = None,
) -> HighlightResult:
    """Compute rects and write annotations for entities, in the given order."""
    result = HighlightResult(entities=list(entities))
    mapper = PageCharMapper(positions, locator) if positions else None

    for entity in entities:
        try:
            rects = rects_for_entity(entity, text, selection_rects, mapper)
        except NoGeometryOverlap as e:
            logger.debug(f"Skipping entity: {e}")
            result.failed += 1
            continue

        annotation = build_annotation(entity, page_index, rects)
        if not writers or write_with_fallback(writers, annotation):
            result.annotations.append(annotation)
            result.written += 1
        else:
            logger.warning(f"No writer accepted annotation for {entity['text']!r}")
            result.failed += 1

    logger.info(f"Highlighted {result.written}/{result.extracted} entities on page {page_index + 1}")
    return result


async def highlight_entities(
    text: str,
    page_index: int,
    selection_rects: Sequence[Sequence[float]],
    config: LLMConfig,
    writers: Sequence[AnnotationWriter] = (),
    positions: Optional[Sequence[CharPosition]] = None,
    locator: Optional[TextLocator] = None,
    session: Optional[requests.Session] = None,
    sleep: Sleep = asyncio.sleep,
    jitter: Callable[[], float] = random.random,
) -> HighlightResult:
    """Extract entities from a selected snippet and highlight each one.

    With `positions` (the page's CharPositions) entities are placed by
    page-wide alignment; otherwise, or when the snippet cannot be found on
    the page, the selection rects are interpolated.
    """
    entities = await extract_entities(text, config, session=session, sleep=sleep, jitter=jitter)
    return highlight_from_entities(
        entities, text, page_index, selection_rects, writers=writers, positions=positions, locator=locator,
    )
