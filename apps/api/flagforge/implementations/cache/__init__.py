"""Cache backend implementations."""

from flagforge.core.config import Settings
from flagforge.core.interfaces import CacheBackend
from flagforge.implementations.cache.redis import RedisCacheBackend
from flagforge.implementations.cache.memory import MemoryCacheBackend


def create_cache(settings: Settings) -> CacheBackend:
    """Build the payload cache selected by FEATURE_CACHE_BACKEND (not yet connected)."""
    if settings.features.cache_backend == "redis":
        return RedisCacheBackend(
            redis_url=str(settings.redis.url),
            prefix=settings.redis.key_prefix,
            default_ttl=settings.features.cache_ttl,
            max_connections=settings.redis.max_connections,
        )
    return MemoryCacheBackend(default_ttl=settings.features.cache_ttl)


__all__ = ["RedisCacheBackend", "MemoryCacheBackend", "create_cache"]
