import json
import logging
import re
from typing import Any, Dict, Iterator, List

from pdf_highlighter.core.types import Entity
from pdf_highlighter.ner.errors import MalformedResponse, MissingEntitiesField, UnverifiableEntity

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"```(?:json)?\s*\n?([\s\S]*?)\n?\s*```", re.IGNORECASE)

# Slack on each side of the declared range for the nearby search
NEARBY_WINDOW = 30


# --- JSON extraction ---

def _json_candidates(raw: str) -> Iterator[str]:
    trimmed = (raw or "").strip()
    # 1) already JSON
    if trimmed.startswith("{") or trimmed.startswith("["):
        yield trimmed
    # 2) fenced code block
    m = _FENCE_RE.search(trimmed)
    if m:
        yield m.group(1).strip()
    # 3) first "{" .. last "}"
    first = trimmed.find("{")
    last = trimmed.rfind("}")
    if first != -1 and last > first:
        yield trimmed[first:last + 1]


def extract_json_candidate(raw: str) -> str:
    """Return the first candidate JSON string found in a model response."""
    for candidate in _json_candidates(raw):
        return candidate
    return (raw or "").strip()


def parse_json_payload(raw: str) -> Any:
    """Parse the first candidate that json.loads accepts."""
    for candidate in _json_candidates(raw):
        try:
            return json.loads(candidate)
        except ValueError:
            continue
    raise MalformedResponse(f"Failed to parse LLM JSON response: {(raw or '').strip()[:200]}")


# --- Offset validation & repair ---

def _as_offset(value: Any) -> int:
    # bool is an int subclass; "true" is not an offset
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise TypeError(f"offset must be numeric, got {type(value).__name__}")
    if isinstance(value, float) and not value.is_integer():
        raise TypeError(f"offset must be integral, got {value}")
    return int(value)


def repair_entity(candidate: Dict[str, Any], source_text: str) -> Entity:
    """Verify a raw entity against the source text, repairing its offsets.

    Raises UnverifiableEntity when the candidate is incomplete or its text
    does not occur in the source.
    """
    if not isinstance(candidate, dict):
        raise UnverifiableEntity(str(candidate), "candidate is not an object")
    text = candidate.get("text")
    etype = candidate.get("type")
    if not text or not isinstance(text, str) or not etype or not isinstance(etype, str):
        raise UnverifiableEntity(str(text or ""), "missing text or type")
    try:
        start = _as_offset(candidate.get("start"))
        end = _as_offset(candidate.get("end"))
    except TypeError as e:
        raise UnverifiableEntity(text, str(e))

    etype = etype.upper()
    length = len(text)

    # 1) exact at declared offsets
    if 0 <= start < end <= len(source_text) and source_text[start:end] == text:
        return Entity(text=text, type=etype, start=start, end=end)

    # 2) nearby window
    win_start = max(0, start - NEARBY_WINDOW)
    win_end = min(len(source_text), max(end, start + length) + NEARBY_WINDOW)
    if win_start < win_end:
        idx = source_text.find(text, win_start, win_end)
        if idx != -1:
            return Entity(text=text, type=etype, start=idx, end=idx + length)

    # 3) first occurrence anywhere
    idx = source_text.find(text)
    if idx != -1:
        return Entity(text=text, type=etype, start=idx, end=idx + length)

    raise UnverifiableEntity(text)


def validate_entities(candidates: List[Any], source_text: str) -> List[Entity]:
    validated: List[Entity] = []
    for candidate in candidates:
        try:
            validated.append(repair_entity(candidate, source_text))
        except UnverifiableEntity as e:
            logger.debug(f"Discarding entity: {e}")
    return validated


def parse_entities(raw: str, source_text: str) -> List[Entity]:
    """Turn a raw model response into verified entities, in model order."""
    parsed = parse_json_payload(raw)
    candidates = parsed.get("entities") if isinstance(parsed, dict) else None
    if not isinstance(candidates, list):
        raise MissingEntitiesField('LLM response missing "entities" array')

    validated = validate_entities(candidates, source_text)
    logger.debug(f"Extracted {len(validated)} valid entities from {len(candidates)} raw")
    return validated
