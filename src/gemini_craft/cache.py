"""In-memory response cache with TTL expiry and LRU pressure relief.

Only unary ``generate`` results are cached.  Entries expire ``ttl`` seconds
after they were written; once the cache reaches its high-water mark, expired
entries are purged and then the least-recently-read half is evicted.
"""

from __future__ import annotations

import hashlib
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any

from gemini_craft.errors import ErrorKind, GeminiCraftError
from gemini_craft.types import CacheStats

_logger = logging.getLogger(__name__)

# Size at which ``set`` triggers a sweep and, if needed, LRU eviction
_HIGH_WATER_MARK = 100


@dataclass
class CacheEntry:
    """One cached response.  Times are ``time.time()`` epoch seconds."""

    key: str
    value: str
    created_at: float
    last_accessed: float


class Cache:
    """Thread-safe TTL cache.

    Parameters
    ----------
    ttl:
        Seconds an entry stays valid after it was written.
    max_size:
        High-water mark that triggers cleanup on ``set``.
    auto_cleanup:
        Start a daemon thread that calls ``cleanup()`` every ``ttl / 2``
        seconds.  Stop it with ``stop_cleanup()``.
    logger:
        Where reaper failures are reported.  Defaults to the module logger.
    """

    def __init__(
        self,
        ttl: float,
        max_size: int = _HIGH_WATER_MARK,
        auto_cleanup: bool = False,
        logger: logging.Logger | None = None,
    ) -> None:
        if ttl <= 0:
            raise ValueError(f"ttl must be positive, got {ttl}")
        self.ttl = ttl
        self.max_size = max_size
        self._logger = logger or _logger
        self._entries: dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._cleanup_thread: threading.Thread | None = None
        if auto_cleanup:
            self._start_cleanup_thread()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def get(self, key: str) -> str | None:
        """Return the cached value, or ``None`` if missing or expired."""
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            now = time.time()
            if self._is_expired(entry, now):
                del self._entries[key]
                return None
            entry.last_accessed = now
            return entry.value

    def set(self, key: str, value: str) -> None:
        """Store *value*, resetting its creation and access times."""
        with self._lock:
            now = time.time()
            # Re-insert so dict order tracks write order for eviction ties
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(
                key=key, value=value, created_at=now, last_accessed=now,
            )
            self._relieve_pressure()

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()

    def cleanup(self) -> int:
        """Remove expired entries.  Returns how many were removed."""
        with self._lock:
            return self._remove_expired()

    def stats(self) -> CacheStats:
        with self._lock:
            created = [e.created_at for e in self._entries.values()]
            return CacheStats(
                size=len(self._entries),
                oldest_entry_time=min(created) if created else None,
                newest_entry_time=max(created) if created else None,
                all_keys=list(self._entries),
            )

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    # ------------------------------------------------------------------
    # Background reaper
    # ------------------------------------------------------------------

    @property
    def cleanup_running(self) -> bool:
        return self._cleanup_thread is not None and self._cleanup_thread.is_alive()

    def stop_cleanup(self, timeout: float | None = 5.0) -> None:
        """Stop the reaper thread and wait for it to exit.  Idempotent."""
        thread = self._cleanup_thread
        if thread is None:
            return
        self._stop_event.set()
        thread.join(timeout)
        self._cleanup_thread = None

    def _start_cleanup_thread(self) -> None:
        self._stop_event.clear()
        self._cleanup_thread = threading.Thread(
            target=self._cleanup_loop,
            name="gemini-craft-cache-reaper",
            daemon=True,
        )
        self._cleanup_thread.start()

    def _cleanup_loop(self) -> None:
        interval = self.ttl / 2
        while not self._stop_event.wait(interval):
            try:
                removed = self.cleanup()
                if removed:
                    self._logger.debug("Cache reaper removed %d expired entries", removed)
            except Exception as e:
                self._logger.warning("Cache cleanup error: %s", e)

    # ------------------------------------------------------------------
    # Internals (caller holds the lock)
    # ------------------------------------------------------------------

    def _is_expired(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.created_at > self.ttl

    def _remove_expired(self) -> int:
        now = time.time()
        expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for k in expired:
            del self._entries[k]
        return len(expired)

    def _relieve_pressure(self) -> None:
        if len(self._entries) < self.max_size:
            return
        self._remove_expired()
        if len(self._entries) < self.max_size:
            return
        evict_count = len(self._entries) // 2
        # sorted() is stable, so ties keep write order
        by_access = sorted(self._entries.values(), key=lambda e: e.last_accessed)
        for entry in by_access[:evict_count]:
            del self._entries[entry.key]
        self._logger.debug("Cache evicted %d least-recently-used entries", evict_count)


class CacheKeyGenerator:
    """Deterministic SHA-256 fingerprint of a unary request.

    Options must be plain JSON (string keys, no arbitrary objects); anything
    else has no stable fingerprint and raises a CONFIGURATION error.
    """

    @staticmethod
    def generate(
        model: str,
        prompt: str,
        system_instruction: str | None,
        options: dict[str, Any] | None,
    ) -> str:
        try:
            # ASCII output keeps lone surrogates encodable
            canonical = json.dumps(
                [model, prompt, system_instruction, options or {}],
                sort_keys=True,
                separators=(",", ":"),
            )
        except (TypeError, ValueError) as e:
            raise GeminiCraftError(
                ErrorKind.CONFIGURATION,
                f"Request options must be JSON-serializable with string keys: {e}",
            ) from e
        return hashlib.sha256(canonical.encode("ascii")).hexdigest()
