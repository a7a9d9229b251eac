"""In-memory cache with TTL for remote catalog documents."""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable


def _monotonic_ms() -> float:
    return time.monotonic() * 1000.0


@dataclass
class CacheEntry:
    value: Any
    inserted_at: float  # ms, same clock as the owning cache


class TTLCache:
    """Key/value cache whose entries go stale ``timeout_ms`` after insertion.

    Expiry is lazy: stale entries stay in the map until overwritten,
    invalidated or cleared, but ``get`` treats them as absent.
    """

    def __init__(
        self,
        timeout_ms: int = 5 * 60 * 1000,
        max_size: int | None = None,
        clock: Callable[[], float] = _monotonic_ms,
    ) -> None:
        self._timeout_ms = timeout_ms
        self._max_size = max_size
        self._clock = clock
        self._entries: dict[str, CacheEntry] = {}

    @property
    def timeout_ms(self) -> int:
        return self._timeout_ms

    def _is_valid(self, entry: CacheEntry, now: float) -> bool:
        return now - entry.inserted_at < self._timeout_ms

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is not None and self._is_valid(entry, self._clock()):
            return entry.value
        return None

    def set(self, key: str, value: Any) -> None:
        # Re-insert so dict order tracks insertion time for eviction.
        self._entries.pop(key, None)
        self._entries[key] = CacheEntry(value=value, inserted_at=self._clock())
        if self._max_size and len(self._entries) > self._max_size:
            oldest = next(iter(self._entries))
            del self._entries[oldest]

    def invalidate(self, key: str) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict[str, int]:
        now = self._clock()
        valid = sum(1 for e in self._entries.values() if self._is_valid(e, now))
        return {
            "totalEntries": len(self._entries),
            "validEntries": valid,
            "expiredEntries": len(self._entries) - valid,
            "cacheTimeout": self._timeout_ms,
        }
