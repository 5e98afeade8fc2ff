"""
Chat-completions client for entity extraction.

Requests go through a requests.Session in a worker thread so the caller's
pipeline stays asynchronous; backoff delays use the injected async sleep.
"""

import asyncio
import json
import logging
import random
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

import requests

from pdf_highlighter.core.config import LLMConfig
from pdf_highlighter.core.types import ChatMessage, Entity
from pdf_highlighter.ner.errors import (
    ClientError,
    EmptyModelOutput,
    ExtractionError,
    NetworkFailure,
    RateLimited,
    RequestTimeout,
    ServerError,
)
from pdf_highlighter.ner.repair import parse_entities

logger = logging.getLogger(__name__)

MAX_JITTER = 0.5  # seconds

Sleep = Callable[[float], Awaitable[Any]]


def classify_http_status(status: int) -> Tuple[str, bool]:
    """Return (kind, retryable) for a non-2xx status."""
    if status == 429:
        return "rate_limit", True
    if status >= 500:
        return "server_error", True
    return "client_error", False


def http_error(status: int, body: str) -> ExtractionError:
    kind, _ = classify_http_status(status)
    if kind == "rate_limit":
        return RateLimited(status, body)
    if kind == "server_error":
        return ServerError(status, body)
    return ClientError(status, body)


def backoff_delay(attempt: int, base: float, jitter: Callable[[], float] = random.random) -> float:
    """base * 2**attempt plus up to 500ms of jitter."""
    return base * (2 ** attempt) + jitter() * MAX_JITTER


def build_messages(text: str, system_prompt: str) -> List[ChatMessage]:
    return [
        ChatMessage(role="system", content=system_prompt),
        ChatMessage(role="user", content=text),
    ]


def build_request(messages: List[ChatMessage], config: LLMConfig) -> Tuple[str, Dict[str, str], Dict[str, Any]]:
    headers = {"Content-Type": "application/json"}
    if config.api_key:
        headers["Authorization"] = f"Bearer {config.api_key}"
    payload = {
        "model": config.model,
        "messages": messages,
        "temperature": 0,
    }
    return config.completions_url, headers, payload


def _message_content(body: str) -> str:
    try:
        data = json.loads(body)
    except ValueError:
        raise EmptyModelOutput(f"LLM returned a non-JSON body: {body[:200]}")
    try:
        content = data["choices"][0]["message"]["content"]
    except (KeyError, IndexError, TypeError):
        content = ""
    if not content or not isinstance(content, str):
        raise EmptyModelOutput("LLM returned empty content")
    return content


def _post_once(session: requests.Session, url: str, headers: Dict[str, str],
               payload: Dict[str, Any], timeout: float) -> str:
    try:
        resp = session.post(url, headers=headers, json=payload, timeout=timeout)
    except requests.exceptions.Timeout as e:
        raise RequestTimeout(f"LLM request timed out after {timeout}s") from e
    except requests.exceptions.RequestException as e:
        raise NetworkFailure(f"LLM request failed: {e}") from e

    if resp.status_code < 200 or resp.status_code >= 300:
        raise http_error(resp.status_code, resp.text or "")
    return _message_content(resp.text or "")


async def chat_completion(
    messages: List[ChatMessage],
    config: LLMConfig,
    session: Optional[requests.Session] = None,
    sleep: Sleep = asyncio.sleep,
    jitter: Callable[[], float] = random.random,
) -> str:
    """POST the messages and return the model's message content.

    Retries rate limits, server errors, timeouts, transport failures and empty
    output up to config.max_retries attempts; client errors are raised at once.
    """
    url, headers, payload = build_request(messages, config)
    own_session = session is None
    session = session or requests.Session()
    last_error: Optional[ExtractionError] = None
    try:
        for attempt in range(config.max_retries):
            try:
                return await asyncio.to_thread(_post_once, session, url, headers, payload, config.timeout)
            except ExtractionError as e:
                last_error = e
                logger.warning(f"LLM attempt {attempt + 1}/{config.max_retries} failed ({e.kind}): {e}")
                if not e.retryable:
                    raise
            if attempt < config.max_retries - 1:
                await sleep(backoff_delay(attempt, config.backoff_base, jitter))
    finally:
        if own_session:
            session.close()

    raise last_error or ExtractionError("LLM API failed after all retries")


async def extract_entities(
    text: str,
    config: LLMConfig,
    session: Optional[requests.Session] = None,
    sleep: Sleep = asyncio.sleep,
    jitter: Callable[[], float] = random.random,
) -> List[Entity]:
    """Extract verified, offset-anchored entities from `text`."""
    if not text or not text.strip():
        return []

    raw = await chat_completion(
        build_messages(text, config.system_prompt), config, session=session, sleep=sleep, jitter=jitter
    )
    logger.debug(f"Raw LLM response ({len(raw)} chars): {raw[:300]}")
    return parse_entities(raw, text)
