"""Request body assembly for the generateContent endpoints."""

from __future__ import annotations

import logging
from typing import Any

_logger = logging.getLogger(__name__)

# Overlay keys that never reach the wire.  Streaming is chosen by endpoint.
_DROPPED_OPTION_KEYS = ("stream",)


class PayloadBuilder:
    """Build a ``generateContent`` request body.

    Field precedence: structural fields (``contents``, ``system_instruction``,
    ``tools``) are set first, then the caller's option overlay is merged on
    top.  The overlay may override any top-level key except ``contents``,
    which always carries the prompt.
    """

    def build(
        self,
        prompt: str,
        system_instruction: str | None = None,
        options: dict[str, Any] | None = None,
        tools: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "contents": [
                {"role": "user", "parts": [{"text": prompt}]},
            ],
        }
        if system_instruction is not None:
            payload["system_instruction"] = {"parts": [{"text": system_instruction}]}
        if tools:
            payload["tools"] = [{"function_declarations": list(tools)}]

        for key, value in (options or {}).items():
            if key in _DROPPED_OPTION_KEYS:
                continue
            if key == "contents":
                _logger.debug("Ignoring 'contents' in request options")
                continue
            payload[key] = value
        return payload
