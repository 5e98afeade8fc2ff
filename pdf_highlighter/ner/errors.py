"""Failure taxonomy for one extraction-and-highlight request.

Request-level errors (HTTP, timeout, parse) abort the extraction call.
Per-entity errors (UnverifiableEntity, NoGeometryOverlap) and SnippetNotLocated
are raised and caught inside the core; they only reduce the yield.
"""

from typing import Optional


class ExtractionError(Exception):
    """Base class for errors surfaced by the extraction client."""

    kind = "extraction_error"
    retryable = False


class LLMHTTPError(ExtractionError):
    """Non-2xx response from the chat-completions endpoint."""

    def __init__(self, status: int, body: str = ""):
        self.status = status
        self.body = body
        super().__init__(f"LLM API {status}: {body[:200]}")


class RateLimited(LLMHTTPError):
    kind = "rate_limit"
    retryable = True


class ServerError(LLMHTTPError):
    kind = "server_error"
    retryable = True


class ClientError(LLMHTTPError):
    kind = "client_error"
    retryable = False


class RequestTimeout(ExtractionError):
    kind = "timeout"
    retryable = True


class NetworkFailure(ExtractionError):
    kind = "network"
    retryable = True


class EmptyModelOutput(ExtractionError):
    kind = "empty_output"
    retryable = True


class MalformedResponse(ExtractionError):
    """No parseable JSON could be located in the model output."""

    kind = "malformed_response"


class MissingEntitiesField(ExtractionError):
    kind = "missing_entities"


class UnverifiableEntity(ValueError):
    """Entity text could not be found in the source text."""

    def __init__(self, text: str, reason: Optional[str] = None):
        self.text = text
        super().__init__(reason or f"entity {text!r} not found in source text")


class NoGeometryOverlap(ValueError):
    """No rectangle could be produced for an entity's character range."""


class SnippetNotLocated(LookupError):
    """Selected snippet not found in the page transcript."""
