"""
TTL CACHE
In-process key -> value store with per-entry expiry.

Best effort only: entries live as long as the process does, expired
entries are dropped lazily when read, nothing is swept in the background.
Safe to lose at any time; losing it only costs recomputation.
"""

import time
from typing import Any, Callable, Hashable

# Returned by get() when the caller needs to tell "absent" from "cached None".
MISSING = object()

# Default lifetimes (seconds)
SCORE_TTL = 120
DEEP_TTL = 120
DISCOVERY_TTL = 7 * 60
LEDGER_TTL = 60
HOLDERS_FINAL_TTL = 15 * 60


class TTLCache:
    def __init__(self, clock: Callable[[], float] = time.monotonic):
        self._clock = clock
        self._entries: dict[Hashable, tuple[Any, float]] = {}

    def get(self, key: Hashable, default: Any = None) -> Any:
        entry = self._entries.get(key)
        if entry is None:
            return default
        value, expires_at = entry
        if expires_at <= self._clock():
            # lazy eviction
            del self._entries[key]
            return default
        return value

    def set(self, key: Hashable, value: Any, ttl: float) -> None:
        self._entries[key] = (value, self._clock() + ttl)

    def delete(self, key: Hashable) -> None:
        self._entries.pop(key, None)

    def __len__(self) -> int:
        return len(self._entries)


def cache_key(source: str, subject: str, *params) -> str:
    """Build a key from (source, subject, parameters)."""
    parts = [source, subject] + [str(p) for p in params if p is not None]
    return ":".join(parts)
