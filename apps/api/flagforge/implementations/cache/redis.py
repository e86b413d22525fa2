"""
Redis payload cache, shared by every API process.
"""

from __future__ import annotations

import json
from typing import Any

import redis.asyncio as redis
import structlog

logger = structlog.get_logger()

# Keys removed per DEL call during pattern invalidation
_DELETE_BATCH = 500


class RedisCacheBackend:
    """
    Payload cache on Redis.

    Documents are stored as compact JSON strings with a per-key expiry.
    Organization-wide invalidation walks matching keys with SCAN rather
    than KEYS, so it never blocks the server on a large keyspace.

    Usage:
        cache = RedisCacheBackend(redis_url="redis://localhost:6379/0")
        await cache.connect()
        await cache.set("sdk-payload:org:production:*", payload, ttl=60)
        await cache.delete_pattern("sdk-payload:org:*")
        await cache.disconnect()
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        prefix: str = "flagforge:",
        default_ttl: int = 60,
        max_connections: int = 10,
    ):
        self.redis_url = redis_url
        self.prefix = prefix
        self.default_ttl = default_ttl
        self.max_connections = max_connections
        self._client: redis.Redis | None = None

    async def connect(self) -> None:
        if self._client is not None:
            return
        self._client = redis.from_url(
            self.redis_url,
            encoding="utf-8",
            decode_responses=True,
            max_connections=self.max_connections,
        )
        logger.info("Payload cache connected", backend="redis", prefix=self.prefix)

    async def disconnect(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    @property
    def client(self) -> redis.Redis:
        if self._client is None:
            raise RuntimeError("Payload cache not connected. Call connect() first.")
        return self._client

    async def get(self, key: str) -> Any | None:
        raw = await self.client.get(self.prefix + key)
        return None if raw is None else json.loads(raw)

    async def set(self, key: str, value: Any, ttl: int | None = None) -> None:
        seconds = self.default_ttl if ttl is None else ttl
        await self.client.set(
            self.prefix + key,
            json.dumps(value, separators=(",", ":"), allow_nan=False),
            ex=seconds or None,
        )

    async def delete_pattern(self, pattern: str) -> int:
        removed = 0
        batch: list[str] = []
        async for key in self.client.scan_iter(match=self.prefix + pattern):
            batch.append(key)
            if len(batch) >= _DELETE_BATCH:
                removed += await self.client.delete(*batch)
                batch.clear()
        if batch:
            removed += await self.client.delete(*batch)
        return removed
