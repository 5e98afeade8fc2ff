import asyncio
import json
from typing import List

import pytest

from pdf_highlighter.core.config import LLMConfig
from pdf_highlighter.core.types import Entity, HighlightAnnotation, TextRun
from pdf_highlighter.geometry.char_map import build_char_positions
from pdf_highlighter.geometry.char_widths import UniformWidthModel
from pdf_highlighter.ner.errors import ServerError
from pdf_highlighter.pipeline import highlight_entities, highlight_from_entities

SNIPPET = "BERT beats ELMo"


class FakeResponse:
    def __init__(self, status_code: int, text: str) -> None:
        self.status_code = status_code
        self.text = text


class FakeSession:
    def __init__(self, *responses: FakeResponse) -> None:
        self.responses = list(responses)

    def post(self, url: str, **kwargs: object) -> FakeResponse:
        return self.responses.pop(0)

    def close(self) -> None:
        pass


async def no_sleep(delay: float) -> None:
    return None


class RecordingWriter:
    def __init__(self, name: str, succeed: bool, raises: bool = False) -> None:
        self.name = name
        self.succeed = succeed
        self.raises = raises
        self.seen: List[HighlightAnnotation] = []

    def write(self, annotation: HighlightAnnotation) -> bool:
        self.seen.append(annotation)
        if self.raises:
            raise RuntimeError("host method missing")
        return self.succeed


def completion(entities: List[dict]) -> FakeResponse:
    content = json.dumps({"entities": entities})
    return FakeResponse(200, json.dumps({"choices": [{"message": {"content": content}}]}))


def entity(text: str, etype: str, start: int) -> Entity:
    return Entity(text=text, type=etype, start=start, end=start + len(text))


def test_pipeline_writes_one_annotation_per_entity_in_order() -> None:
    session = FakeSession(completion([
        {"text": "ELMo", "type": "method", "start": 11, "end": 15},
        {"text": "BERT", "type": "method", "start": 0, "end": 4},
        {"text": "GPT-7", "type": "method", "start": 0, "end": 5},
    ]))
    writer = RecordingWriter("primary", succeed=True)
    result = asyncio.run(highlight_entities(
        SNIPPET, 2, [[0, 0, 150, 10]], LLMConfig(), writers=[writer], session=session, sleep=no_sleep,
    ))

    assert result.extracted == 2
    assert result.written == 2
    assert result.failed == 0
    assert [a["text"] for a in writer.seen] == ["ELMo", "BERT"]
    first = writer.seen[0]
    assert first["type"] == "highlight"
    assert first["color"] == "#2ea8e5"
    assert first["position"]["page_index"] == 2
    assert first["position"]["rects"] == [[110.0, 0.0, 150.0, 10.0]]


def test_writer_cascade_stops_at_first_success() -> None:
    broken = RecordingWriter("broken", succeed=False, raises=True)
    declining = RecordingWriter("declining", succeed=False)
    working = RecordingWriter("working", succeed=True)
    never = RecordingWriter("never", succeed=True)

    result = highlight_from_entities(
        [entity("BERT", "METHOD", 0), entity("ELMo", "METHOD", 11)],
        SNIPPET, 0, [[0, 0, 150, 10]], writers=[broken, declining, working, never],
    )
    assert result.written == 2
    assert len(broken.seen) == len(declining.seen) == len(working.seen) == 2
    assert never.seen == []


def test_failed_writes_and_missing_geometry_reduce_yield_only() -> None:
    failing = RecordingWriter("failing", succeed=False)
    result = highlight_from_entities(
        [entity("BERT", "METHOD", 0), entity("ELMo", "METHOD", 11)],
        SNIPPET, 0, [], writers=[failing],
    )
    # no selection rects -> no geometry for either entity
    assert result.written == 0
    assert result.failed == 2
    assert failing.seen == []

    result = highlight_from_entities([entity("BERT", "METHOD", 0)], SNIPPET, 0, [[0, 0, 150, 10]], writers=[failing])
    assert result.failed == 1


def test_page_positions_are_used_when_snippet_is_on_page() -> None:
    runs = [TextRun(text="Results: " + SNIPPET, x=100, y=500, width=240, height=10)]
    positions = build_char_positions(runs, 0, UniformWidthModel())
    result = highlight_from_entities(
        [entity("ELMo", "METHOD", 11)], SNIPPET, 0, [[0, 0, 1, 1]], positions=positions,
    )
    rect = result.annotations[0]["position"]["rects"][0]
    # 24 chars over 240 units; "ELMo" starts at page offset 9 + 11
    assert rect[0] == pytest.approx(300)
    assert rect[2] == pytest.approx(340)
    assert rect[1] == pytest.approx(497.5)


def test_unknown_entity_type_gets_fallback_color() -> None:
    result = highlight_from_entities([entity("BERT", "ARCHITECTURE", 0)], SNIPPET, 0, [[0, 0, 150, 10]])
    assert result.annotations[0]["color"] == "#ffd400"
    assert result.annotations[0]["comment"] == "ARCHITECTURE"


def test_request_level_errors_propagate() -> None:
    session = FakeSession(FakeResponse(500, "x"), FakeResponse(500, "x"), FakeResponse(500, "x"))
    with pytest.raises(ServerError):
        asyncio.run(highlight_entities(SNIPPET, 0, [[0, 0, 1, 1]], LLMConfig(), session=session, sleep=no_sleep))
