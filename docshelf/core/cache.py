"""Lightweight in-memory TTL cache with an explicit lifetime.

One instance lives for the duration of a workspace session (the FastAPI
app holds it on ``app.state``) and is handed to the context engine by
reference. Used to keep resolved document source text around between
chat turns so repeated context bundles skip the version lookups.
"""

import time
from collections.abc import Hashable
from typing import Any

# Default TTL in seconds
DEFAULT_TTL = 300.0


class TTLCache:
    """Dictionary-backed cache whose entries expire after ``ttl`` seconds."""

    def __init__(self, ttl: float = DEFAULT_TTL, max_entries: int = 512) -> None:
        self.ttl = ttl
        self.max_entries = max_entries
        self._entries: dict[Hashable, tuple[float, Any]] = {}

    def get(self, key: Hashable) -> Any | None:
        """Return cached value if present and not expired, else None."""
        entry = self._entries.get(key)
        if entry is None:
            return None
        stored_at, value = entry
        if time.monotonic() - stored_at > self.ttl:
            self._entries.pop(key, None)
            return None
        return value

    def put(self, key: Hashable, value: Any) -> None:
        """Store a value, evicting the oldest entry when full."""
        if key not in self._entries and len(self._entries) >= self.max_entries:
            oldest = min(self._entries, key=lambda k: self._entries[k][0])
            self._entries.pop(oldest, None)
        self._entries[key] = (time.monotonic(), value)

    def clear(self) -> None:
        """Clear all cached entries."""
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)
