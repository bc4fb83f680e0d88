"""Local result cache used by cache policies."""

from datakit.cache.memory import MemoryCache
from datakit.cache.protocol import ResultCache, cache_key

__all__ = [
    "ResultCache",
    "MemoryCache",
    "cache_key",
]
