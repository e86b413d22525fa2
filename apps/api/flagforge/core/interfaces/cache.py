"""
Payload cache protocol.
Implementations: RedisCacheBackend, MemoryCacheBackend
"""
from __future__ import annotations

from typing import Any, Protocol


class CacheBackend(Protocol):
    """
    Store for compiled SDK payloads.

    Values are JSON documents. Keys look like
    "sdk-payload:{org}:{environment}:{projects}", so a single glob
    ("sdk-payload:{org}:*") drops everything an organization has cached.
    """

    async def get(self, key: str) -> Any | None:
        """Return the cached document, or None when absent or expired."""
        ...

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        """Store a document for ttl seconds (backend default when None, forever when 0)."""
        ...

    async def delete_pattern(self, pattern: str) -> int:
        """Drop every key matching a glob; returns how many were removed."""
        ...
