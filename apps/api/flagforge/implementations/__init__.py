"""
Backend implementations for core interfaces.
"""

from flagforge.implementations.cache import (
    MemoryCacheBackend,
    RedisCacheBackend,
    create_cache,
)

__all__ = [
    "RedisCacheBackend",
    "MemoryCacheBackend",
    "create_cache",
]
