"""
Tests for payload cache backends and their configuration.
"""

import pytest
from pydantic import ValidationError

from flagforge.core.config import FeatureSettings, Settings
from flagforge.implementations.cache import (
    MemoryCacheBackend,
    RedisCacheBackend,
    create_cache,
)


@pytest.mark.asyncio
async def test_memory_cache_copies_values():
    cache = MemoryCacheBackend()
    payload = {"features": {"a": {"defaultValue": True}}}

    await cache.set("sdk-payload:o:production:*", payload)
    payload["features"].clear()
    cached = await cache.get("sdk-payload:o:production:*")
    cached["features"].clear()

    assert await cache.get("sdk-payload:o:production:*") == {
        "features": {"a": {"defaultValue": True}}
    }


@pytest.mark.asyncio
async def test_memory_cache_expiry(monkeypatch):
    clock = [1000.0]
    monkeypatch.setattr("flagforge.implementations.cache.memory.monotonic", lambda: clock[0])
    cache = MemoryCacheBackend(default_ttl=60)

    await cache.set("short", 1)
    await cache.set("forever", 2, ttl=0)
    clock[0] += 61

    assert await cache.get("short") is None
    assert await cache.get("forever") == 2
    assert len(cache) == 1


@pytest.mark.asyncio
async def test_memory_cache_delete_pattern():
    cache = MemoryCacheBackend()
    await cache.set("sdk-payload:org1:production:*", 1)
    await cache.set("sdk-payload:org1:staging:prj_web", 2)
    await cache.set("sdk-payload:org10:production:*", 3)

    assert await cache.delete_pattern("sdk-payload:org1:*") == 2
    assert await cache.get("sdk-payload:org10:production:*") == 3


def test_create_cache_selects_backend():
    memory = create_cache(Settings(features=FeatureSettings(cache_ttl=5)))
    assert isinstance(memory, MemoryCacheBackend)
    assert memory.default_ttl == 5

    redis_cache = create_cache(Settings(features=FeatureSettings(cache_backend="redis")))
    assert isinstance(redis_cache, RedisCacheBackend)
    assert redis_cache.prefix == "flagforge:"


def test_redis_cache_requires_connect():
    with pytest.raises(RuntimeError, match="not connected"):
        RedisCacheBackend().client


@pytest.mark.parametrize("field,value", [
    ("backend", "mongo"),
    ("cache_backend", "memcached"),
    ("cache_ttl", -1),
])
def test_feature_settings_validation(field, value):
    with pytest.raises(ValidationError):
        FeatureSettings(**{field: value})
