"""Gemini generateContent client with response caching and SSE streaming."""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Any, Iterator

import httpx

from gemini_craft.cache import Cache, CacheKeyGenerator
from gemini_craft.config import GeminiConfig
from gemini_craft.errors import ErrorKind, GeminiCraftError
from gemini_craft.types import CacheStats, FunctionCallResult

from .connection import ConnectionBuilder, StreamingConnectionBuilder
from .payload import PayloadBuilder
from .response_parser import (
    ContentExtractor,
    FunctionResponseProcessor,
    ResponseHandler,
    StreamingProcessor,
)

_logger = logging.getLogger(__name__)

# Retry configuration (unary only): 0.5, 1, 2, 4 ... seconds plus jitter
_BACKOFF_BASE = 0.5
_BACKOFF_FACTOR = 2
_BACKOFF_JITTER = 0.5  # fraction of the base delay added at random


# Transient transport failures.  Other TransportErrors (UnsupportedProtocol,
# LocalProtocolError, ProxyError) fail the same way on every attempt.
_RETRYABLE_ERRORS = (
    httpx.TimeoutException,
    httpx.NetworkError,
    httpx.RemoteProtocolError,
)


def _backoff_delay(attempt: int) -> float:
    delay = _BACKOFF_BASE * (_BACKOFF_FACTOR ** attempt)
    return delay + random.uniform(0, delay * _BACKOFF_JITTER)


def _transport_error(e: httpx.TransportError) -> GeminiCraftError:
    if isinstance(e, httpx.TimeoutException):
        return GeminiCraftError(ErrorKind.TIMEOUT, f"Request timed out: {e}")
    return GeminiCraftError(ErrorKind.CONNECTION, f"Connection failed: {e}")


class GeminiClient:
    """Client for the Gemini ``generateContent`` API.

    Unary ``generate`` calls go through the cache (when enabled) and retry
    transient transport failures.  Streaming calls bypass the cache and are
    never retried, so a half-delivered stream is never replayed.
    """

    def __init__(self, config: GeminiConfig | None = None) -> None:
        self.config = config if config is not None else GeminiConfig()
        self.config.validate_required()
        self._logger = self.config.logger or _logger

        self.cache = Cache(
            self.config.cache_ttl,
            auto_cleanup=self.config.cache_enabled,
            logger=self._logger,
        )
        self._key_generator = CacheKeyGenerator()
        self._payload_builder = PayloadBuilder()
        self._response_handler = ResponseHandler()
        self._extractor = ContentExtractor()
        self._function_processor = FunctionResponseProcessor()

        self._connection: httpx.Client | None = None
        self._stream_connection: httpx.Client | None = None
        self._connection_lock = threading.Lock()

    # ------------------------------------------------------------------
    # Sessions (built lazily, reused)
    # ------------------------------------------------------------------

    @property
    def connection(self) -> httpx.Client:
        with self._connection_lock:
            if self._connection is None:
                self._connection = ConnectionBuilder(self.config).build()
            return self._connection

    @property
    def streaming_connection(self) -> httpx.Client:
        with self._connection_lock:
            if self._stream_connection is None:
                self._stream_connection = StreamingConnectionBuilder(self.config).build()
            return self._stream_connection

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def generate(
        self,
        prompt: str,
        system_instruction: str | None = None,
        options: dict[str, Any] | None = None,
        stream: bool = False,
    ) -> str | Iterator[str]:
        """Generate text for *prompt*.

        Returns the full text, or with ``stream=True`` an iterator of text
        deltas.  The iterator is lazy: nothing is sent until the first
        ``next()``, and closing it releases the connection.
        """
        if stream:
            return self._generate_stream(prompt, system_instruction, options)
        return self._generate_unary(prompt, system_instruction, options)

    def generate_with_functions(
        self,
        prompt: str,
        functions: list[dict[str, Any]],
        system_instruction: str | None = None,
        options: dict[str, Any] | None = None,
    ) -> FunctionCallResult:
        """Send *functions* as tool declarations.  Never cached."""
        payload = self._payload_builder.build(
            prompt, system_instruction, options, tools=functions,
        )
        response = self._request(payload)
        return self._function_processor.process(response)

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()

    def close(self) -> None:
        """Stop the cache reaper and close underlying HTTP clients."""
        self.cache.stop_cleanup()
        with self._connection_lock:
            if self._connection is not None:
                self._connection.close()
                self._connection = None
            if self._stream_connection is not None:
                self._stream_connection.close()
                self._stream_connection = None

    # ------------------------------------------------------------------
    # Unary
    # ------------------------------------------------------------------

    def _generate_unary(
        self,
        prompt: str,
        system_instruction: str | None,
        options: dict[str, Any] | None,
    ) -> str:
        cache_key: str | None = None
        if self.config.cache_enabled:
            cache_key = self._key_generator.generate(
                self.config.model, prompt, system_instruction, options,
            )
            cached = self.cache.get(cache_key)
            if cached is not None:
                self._logger.debug("Cache hit %s", cache_key[:12])
                return cached
            self._logger.debug("Cache miss %s", cache_key[:12])

        payload = self._payload_builder.build(prompt, system_instruction, options)
        response = self._request(payload)
        content = self._extractor.extract(response)

        if cache_key is not None:
            self.cache.set(cache_key, content)
        return content

    def _request(self, payload: dict[str, Any]) -> dict[str, Any]:
        resp = self._post_with_retry(self._endpoint("generateContent"), payload)
        return self._response_handler.handle(resp.status_code, resp.text)

    def _post_with_retry(self, endpoint: str, payload: dict[str, Any]) -> httpx.Response:
        """POST with retries on timeouts and connection failures only.

        Any HTTP response, whatever its status, is returned as-is.
        """
        attempts = self.config.max_retries + 1
        for attempt in range(attempts):
            try:
                return self.connection.post(
                    endpoint, params={"key": self.config.api_key}, json=payload,
                )
            except httpx.TransportError as e:
                error = _transport_error(e)
                if not isinstance(e, _RETRYABLE_ERRORS) or attempt == attempts - 1:
                    raise error from e
                delay = _backoff_delay(attempt)
                self._logger.warning(
                    "Gemini API %s (attempt %d/%d), retrying in %.2fs: %s",
                    error.kind.value, attempt + 1, attempts, delay, e,
                )
                time.sleep(delay)
        raise GeminiCraftError(ErrorKind.CONNECTION, "exhausted retries")

    # ------------------------------------------------------------------
    # Streaming
    # ------------------------------------------------------------------

    def _generate_stream(
        self,
        prompt: str,
        system_instruction: str | None,
        options: dict[str, Any] | None,
    ) -> Iterator[str]:
        payload = self._payload_builder.build(prompt, system_instruction, options)
        processor = StreamingProcessor()
        params = {"key": self.config.api_key, "alt": "sse"}

        try:
            with self.streaming_connection.stream(
                "POST", self._endpoint("streamGenerateContent"),
                params=params, json=payload,
            ) as resp:
                if resp.status_code != 200:
                    # Raises the mapped error for every non-200 status
                    self._response_handler.handle(resp.status_code, resp.read())
                try:
                    for line in resp.iter_lines():
                        yield from processor.process(line)
                        if processor.done:
                            break
                except httpx.TransportError as e:
                    raise GeminiCraftError(
                        ErrorKind.STREAMING, f"Stream interrupted: {e}",
                    ) from e
        except httpx.TransportError as e:
            raise _transport_error(e) from e

        if processor.skipped_frames:
            self._logger.debug(
                "Stream finished with %d malformed frames skipped",
                processor.skipped_frames,
            )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _endpoint(self, method: str) -> str:
        return f"models/{self.config.model}:{method}"
