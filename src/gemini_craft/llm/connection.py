"""HTTP session factories for unary and streaming calls.

The two sessions are configured independently: unary calls use the
configured timeout, streaming calls wait much longer between chunks.
Neither session retries on its own; unary retries live in the client.
"""

from __future__ import annotations

import httpx

from gemini_craft.config import GeminiConfig

# Streaming read timeout = unary timeout * factor
STREAM_TIMEOUT_FACTOR = 5

# Connection setup never needs longer than this, whatever the read timeout
_CONNECT_TIMEOUT = 30


class ConnectionBuilder:
    """Builds the ``httpx.Client`` used for unary requests."""

    def __init__(self, config: GeminiConfig) -> None:
        self.config = config

    def headers(self) -> dict[str, str]:
        return {"Content-Type": "application/json"}

    def timeout(self) -> httpx.Timeout:
        t = self.config.timeout
        return httpx.Timeout(t, connect=min(t, _CONNECT_TIMEOUT))

    def build(self) -> httpx.Client:
        base_url = self.config.api_base_url.rstrip("/") + "/"
        return httpx.Client(
            base_url=base_url,
            headers=self.headers(),
            timeout=self.timeout(),
        )


class StreamingConnectionBuilder(ConnectionBuilder):
    """Builds the ``httpx.Client`` used for SSE streaming requests."""

    def headers(self) -> dict[str, str]:
        headers = super().headers()
        headers["Accept"] = "text/event-stream"
        return headers

    def timeout(self) -> httpx.Timeout:
        t = self.config.timeout
        # Chunks can be far apart while the model is generating
        return httpx.Timeout(
            t * STREAM_TIMEOUT_FACTOR, connect=min(t, _CONNECT_TIMEOUT),
        )
