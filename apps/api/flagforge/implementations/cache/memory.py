"""
In-process payload cache for development and testing.
"""

from __future__ import annotations

import copy
import fnmatch
from time import monotonic
from typing import Any, NamedTuple


class _Entry(NamedTuple):
    value: Any
    deadline: float | None  # monotonic() value, None = no expiry


class MemoryCacheBackend:
    """
    Dict-backed payload cache.

    Each process keeps its own copy, so invalidation only reaches the
    process that made the change; use the Redis backend when running
    more than one worker. Values are deep-copied in and out so callers
    can't mutate what is cached.

    Usage:
        cache = MemoryCacheBackend(default_ttl=60)
        await cache.set("sdk-payload:org:production:*", payload)
        await cache.delete_pattern("sdk-payload:org:*")
    """

    def __init__(self, default_ttl: int = 60):
        self.default_ttl = default_ttl
        self._entries: dict[str, _Entry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    async def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.deadline is not None and monotonic() >= entry.deadline:
            self._entries.pop(key, None)
            return None
        return copy.deepcopy(entry.value)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        seconds = self.default_ttl if ttl is None else ttl
        deadline = monotonic() + seconds if seconds else None
        self._entries[key] = _Entry(copy.deepcopy(value), deadline)

    async def delete_pattern(self, pattern: str) -> int:
        doomed = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
        for key in doomed:
            del self._entries[key]
        return len(doomed)

    async def clear(self) -> None:
        self._entries.clear()
