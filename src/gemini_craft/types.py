"""Shared data types for gemini-craft."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


# ---------------------------------------------------------------------------
# Function calling
# ---------------------------------------------------------------------------

@dataclass
class FunctionCall:
    """A function invocation requested by the model."""

    name: str
    args: dict[str, Any] = field(default_factory=dict)


@dataclass
class FunctionCallResult:
    """Result of ``generate_with_functions``."""

    content: str = ""
    function_calls: list[FunctionCall] = field(default_factory=list)

    @property
    def has_function_calls(self) -> bool:
        return len(self.function_calls) > 0


# ---------------------------------------------------------------------------
# Cache
# ---------------------------------------------------------------------------

@dataclass
class CacheStats:
    """Snapshot of cache state.  Entry times are epoch seconds."""

    size: int = 0
    oldest_entry_time: float | None = None
    newest_entry_time: float | None = None
    all_keys: list[str] = field(default_factory=list)
