"""Response handling: status mapping, text extraction and SSE parsing."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterator

from gemini_craft.errors import ErrorKind, GeminiCraftError
from gemini_craft.types import FunctionCall, FunctionCallResult

_logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# HTTP status -> result or typed error
# ---------------------------------------------------------------------------

_STATUS_ERRORS: dict[int, tuple[ErrorKind, str]] = {
    400: (ErrorKind.CLIENT, "API client error"),
    401: (ErrorKind.AUTHENTICATION, "Authentication failed"),
    403: (ErrorKind.AUTHORIZATION, "Permission denied"),
    404: (ErrorKind.NOT_FOUND, "Resource not found"),
    429: (ErrorKind.RATE_LIMIT, "Rate limit exceeded"),
}


def _error_message(body: str) -> str:
    """Pull ``error.message`` out of a JSON error body, else the raw text."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, ValueError):
        return body
    if isinstance(data, dict):
        err = data.get("error")
        if isinstance(err, dict) and isinstance(err.get("message"), str):
            return err["message"]
        if isinstance(err, str):
            return err
    return body


class ResponseHandler:
    """Translate an HTTP status and body into parsed JSON or an error."""

    def handle(self, status: int, body: str | bytes) -> dict[str, Any]:
        if isinstance(body, bytes):
            body = body.decode("utf-8", errors="replace")

        if status == 200:
            try:
                data = json.loads(body)
            except (json.JSONDecodeError, ValueError) as e:
                raise GeminiCraftError(
                    ErrorKind.RESPONSE, f"Invalid JSON in API response: {e}",
                ) from e
            if not isinstance(data, dict):
                raise GeminiCraftError(
                    ErrorKind.RESPONSE,
                    f"Expected a JSON object, got {type(data).__name__}",
                )
            return data

        message = _error_message(body) or "Unknown error"
        if status in _STATUS_ERRORS:
            kind, prefix = _STATUS_ERRORS[status]
            raise GeminiCraftError(kind, f"{prefix} ({status}): {message}", status=status)
        if 500 <= status <= 599:
            raise GeminiCraftError(
                ErrorKind.SERVER, f"API server error ({status}): {message}", status=status,
            )
        raise GeminiCraftError(
            ErrorKind.API, f"Unexpected API status ({status}): {message}", status=status,
        )


# ---------------------------------------------------------------------------
# Candidate text extraction
# ---------------------------------------------------------------------------

class ContentExtractor:
    """First candidate's first text part, or ``""`` when any level is absent.

    Only structurally wrong JSON (a list where an object belongs, a non-string
    text, ...) raises a RESPONSE error.
    """

    def extract(self, response: dict[str, Any]) -> str:
        try:
            candidates = response.get("candidates")
            if not candidates:
                return ""
            content = candidates[0].get("content")
            if not content:
                return ""
            parts = content.get("parts")
            if not parts:
                return ""
            text = parts[0].get("text")
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            raise GeminiCraftError(
                ErrorKind.RESPONSE, f"Failed to extract content from response: {e}",
            ) from e
        if text is None:
            return ""
        if not isinstance(text, str):
            raise GeminiCraftError(
                ErrorKind.RESPONSE,
                f"Failed to extract content from response: text is {type(text).__name__}",
            )
        return text


class FunctionResponseProcessor:
    """Split a tool-use response into text and function calls."""

    def process(self, response: dict[str, Any]) -> FunctionCallResult:
        try:
            candidates = response.get("candidates")
            if not candidates:
                return FunctionCallResult()
            content = candidates[0].get("content") or {}
            parts = content.get("parts") or []

            texts: list[str] = []
            calls: list[FunctionCall] = []
            for part in parts:
                text = part.get("text")
                if text:
                    texts.append(str(text))
                fc = part.get("functionCall")
                if fc is not None:
                    calls.append(FunctionCall(
                        name=fc.get("name", ""),
                        args=fc.get("args") or {},
                    ))
        except (AttributeError, TypeError, KeyError, IndexError) as e:
            raise GeminiCraftError(
                ErrorKind.RESPONSE, f"Failed to process function response: {e}",
            ) from e

        return FunctionCallResult(content=" ".join(texts), function_calls=calls)


# ---------------------------------------------------------------------------
# SSE stream processing
# ---------------------------------------------------------------------------

_DATA_PREFIX = "data: "
_DONE_SENTINEL = "[DONE]"


class StreamingProcessor:
    """Turn raw SSE text into text deltas.

    Feed it whole lines or multi-line chunks.  Malformed frames are logged
    and skipped; they never end the stream.  ``done`` flips once the
    ``[DONE]`` sentinel has been seen.
    """

    def __init__(self) -> None:
        self._extractor = ContentExtractor()
        self.done = False
        self.skipped_frames = 0

    def process(self, chunk: str) -> Iterator[str]:
        for line in chunk.splitlines():
            if not line.startswith(_DATA_PREFIX):
                continue
            data_str = line[len(_DATA_PREFIX):].strip()
            if not data_str:
                continue
            if data_str == _DONE_SENTINEL:
                self.done = True
                return

            try:
                data = json.loads(data_str)
                text = self._extractor.extract(data)
            except (json.JSONDecodeError, ValueError, GeminiCraftError) as e:
                self.skipped_frames += 1
                _logger.debug("Skipping malformed stream frame: %s", e)
                continue

            if text:
                yield text
