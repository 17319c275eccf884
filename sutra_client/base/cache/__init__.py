"""Response cache: key derivation and the in-memory LRU store."""

from .cache_key import cache_key_payload, derive_cache_key
from .memory_cache import CacheEntry, CacheStats, MemoryCache, estimate_size

__all__ = [
    "CacheEntry",
    "CacheStats",
    "MemoryCache",
    "cache_key_payload",
    "derive_cache_key",
    "estimate_size",
]
