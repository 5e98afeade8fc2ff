import asyncio
import json
from typing import Any, Dict, List, Tuple

import pytest
import requests

from pdf_highlighter.core.config import LLMConfig
from pdf_highlighter.ner.client import backoff_delay, chat_completion, classify_http_status, extract_entities
from pdf_highlighter.ner.errors import (
    ClientError,
    EmptyModelOutput,
    MalformedResponse,
    NetworkFailure,
    RateLimited,
    RequestTimeout,
    ServerError,
)

CONFIG = LLMConfig(api_key="sk-test", base_url="https://llm.example/v1/", model="test-model")

SOURCE = "BERT is a model"
CONTENT = '```json\n{"entities":[{"text":"BERT","type":"method","start":0,"end":4}]}\n```'


class FakeResponse:
    def __init__(self, status_code: int, text: str) -> None:
        self.status_code = status_code
        self.text = text


def ok(content: str) -> FakeResponse:
    return FakeResponse(200, json.dumps({"choices": [{"message": {"role": "assistant", "content": content}}]}))


class FakeSession:
    def __init__(self, *responses: Any) -> None:
        self.responses = list(responses)
        self.calls: List[Dict[str, Any]] = []
        self.closed = False

    def post(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"url": url, **kwargs})
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item

    def close(self) -> None:
        self.closed = True


class SleepRecorder:
    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


def run_extract(session: FakeSession, sleep: SleepRecorder, text: str = SOURCE, config: LLMConfig = CONFIG):
    return asyncio.run(extract_entities(text, config, session=session, sleep=sleep, jitter=lambda: 0.0))


def test_request_shape() -> None:
    session = FakeSession(ok(CONTENT))
    entities = run_extract(session, SleepRecorder())

    assert entities == [{"text": "BERT", "type": "METHOD", "start": 0, "end": 4}]
    call = session.calls[0]
    assert call["url"] == "https://llm.example/v1/chat/completions"
    assert call["headers"]["Authorization"] == "Bearer sk-test"
    assert call["headers"]["Content-Type"] == "application/json"
    assert call["json"]["model"] == "test-model"
    assert call["json"]["temperature"] == 0
    assert [m["role"] for m in call["json"]["messages"]] == ["system", "user"]
    assert call["json"]["messages"][1]["content"] == SOURCE
    assert call["timeout"] == 30.0


def test_no_authorization_header_without_key() -> None:
    session = FakeSession(ok(CONTENT))
    run_extract(session, SleepRecorder(), config=LLMConfig())
    assert "Authorization" not in session.calls[0]["headers"]


def test_blank_text_makes_no_request() -> None:
    session = FakeSession()
    assert run_extract(session, SleepRecorder(), text="   \n\t") == []
    assert session.calls == []


def test_rate_limited_twice_then_success_sleeps_twice() -> None:
    session = FakeSession(FakeResponse(429, "slow down"), FakeResponse(429, "slow down"), ok(CONTENT))
    sleep = SleepRecorder()
    entities = run_extract(session, sleep)

    assert len(entities) == 1
    assert len(session.calls) == 3
    assert sleep.delays == [1.0, 2.0]


def test_client_error_is_not_retried() -> None:
    session = FakeSession(FakeResponse(401, "bad key"), ok(CONTENT))
    sleep = SleepRecorder()
    with pytest.raises(ClientError) as excinfo:
        run_extract(session, sleep)
    assert excinfo.value.status == 401
    assert len(session.calls) == 1
    assert sleep.delays == []


def test_server_errors_exhaust_retries_and_raise_last() -> None:
    session = FakeSession(FakeResponse(500, "a"), FakeResponse(502, "b"), FakeResponse(503, "c"))
    sleep = SleepRecorder()
    with pytest.raises(ServerError) as excinfo:
        run_extract(session, sleep)
    assert excinfo.value.status == 503
    assert len(session.calls) == 3
    assert len(sleep.delays) == 2


def test_timeouts_and_transport_errors_are_retried() -> None:
    session = FakeSession(requests.exceptions.Timeout("t"), requests.exceptions.ConnectionError("c"), ok(CONTENT))
    assert len(run_extract(session, SleepRecorder())) == 1


def test_persistent_timeout_raises_request_timeout() -> None:
    session = FakeSession(*(requests.exceptions.Timeout("t") for _ in range(3)))
    with pytest.raises(RequestTimeout):
        run_extract(session, SleepRecorder())


def test_persistent_connection_error_raises_network_failure() -> None:
    session = FakeSession(*(requests.exceptions.ConnectionError("c") for _ in range(3)))
    with pytest.raises(NetworkFailure):
        run_extract(session, SleepRecorder())


def test_empty_content_is_retried_then_raised() -> None:
    session = FakeSession(ok(""), ok(""), ok(""))
    with pytest.raises(EmptyModelOutput):
        run_extract(session, SleepRecorder())
    assert len(session.calls) == 3


def test_malformed_model_output_is_terminal() -> None:
    session = FakeSession(ok("no json here"))
    with pytest.raises(MalformedResponse):
        run_extract(session, SleepRecorder())
    assert len(session.calls) == 1


def test_rate_limit_error_carries_body() -> None:
    session = FakeSession(FakeResponse(429, "x" * 500))
    config = LLMConfig(max_retries=1)
    with pytest.raises(RateLimited) as excinfo:
        asyncio.run(chat_completion([], config, session=session, sleep=SleepRecorder()))
    assert len(str(excinfo.value)) < 250


@pytest.mark.parametrize(
    "status,expected",
    [(429, ("rate_limit", True)), (500, ("server_error", True)), (503, ("server_error", True)),
     (400, ("client_error", False)), (404, ("client_error", False))],
)
def test_classify_http_status(status: int, expected: Tuple[str, bool]) -> None:
    assert classify_http_status(status) == expected


@pytest.mark.parametrize("attempt", [0, 1, 2])
@pytest.mark.parametrize("jitter", [0.0, 0.5, 0.999])
def test_backoff_delay_bounds(attempt: int, jitter: float) -> None:
    delay = backoff_delay(attempt, 1.0, lambda: jitter)
    assert 2 ** attempt <= delay < 2 ** attempt + 0.5
