"""In-memory LRU response cache with TTL and a byte budget.

Entries are kept in an ``OrderedDict`` in recency order. A hit moves the
entry to the end; inserts evict from the front until both ``max_entries``
and ``max_size_bytes`` hold. Sizes are estimated as twice the length of the
value's JSON form (UTF-16 code units), so the budget is approximate.

The cache is touched only from the event loop thread and takes no lock.
"""
from __future__ import annotations

import json
import time
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Optional

from ..logging import get_logger, log_event

_logger = get_logger("sutra.cache")

DEFAULT_MAX_ENTRIES = 100
DEFAULT_MAX_SIZE_BYTES = 50 * 1024 * 1024


@dataclass
class CacheEntry:
    """A single cache entry with metadata."""

    key: str
    value: Any
    created_at: float
    expires_at: Optional[float]
    size: int
    hits: int = 0

    def is_expired(self, now: float) -> bool:
        return self.expires_at is not None and now >= self.expires_at


@dataclass
class CacheStats:
    entries: int
    size_bytes: int
    max_entries: int
    max_size_bytes: int
    hits: int
    misses: int
    evictions: int

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        data = asdict(self)
        data["hit_rate"] = self.hit_rate
        return data


def estimate_size(value: Any) -> int:
    to_dict = getattr(value, "to_dict", None)
    document = to_dict() if callable(to_dict) else value
    try:
        return len(json.dumps(document, default=str)) * 2
    except (TypeError, ValueError):
        return len(repr(document)) * 2


class MemoryCache:
    """LRU cache with optional per-entry TTL.

    Args:
        max_entries: Entry count bound.
        max_size_bytes: Approximate byte budget across entries.
        default_ttl: TTL in seconds applied when ``set`` gets none; ``None`` never expires.
        clock: Monotonic time source in seconds.
    """

    def __init__(
        self,
        *,
        max_entries: int = DEFAULT_MAX_ENTRIES,
        max_size_bytes: int = DEFAULT_MAX_SIZE_BYTES,
        default_ttl: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._entries: "OrderedDict[str, CacheEntry]" = OrderedDict()
        self._max_entries = max_entries
        self._max_size_bytes = max_size_bytes
        self._default_ttl = default_ttl
        self._clock = clock
        self._size = 0
        self._hits = 0
        self._misses = 0
        self._evictions = 0

    def get(self, key: str) -> Optional[Any]:
        entry = self._entries.get(key)
        if entry is None:
            self._misses += 1
            return None
        if entry.is_expired(self._clock()):
            self._drop(key)
            self._misses += 1
            return None
        entry.hits += 1
        self._hits += 1
        self._entries.move_to_end(key)
        return entry.value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        now = self._clock()
        ttl = ttl if ttl is not None else self._default_ttl
        size = estimate_size(value)
        if size > self._max_size_bytes:
            log_event(_logger, "cache.entry_too_large", size=size, limit=self._max_size_bytes)
            return
        if key in self._entries:
            self._drop(key)
        self._entries[key] = CacheEntry(
            key=key,
            value=value,
            created_at=now,
            expires_at=(now + ttl) if ttl is not None else None,
            size=size,
        )
        self._size += size
        self._evict()

    def has(self, key: str) -> bool:
        entry = self._entries.get(key)
        if entry is None:
            return False
        if entry.is_expired(self._clock()):
            self._drop(key)
            return False
        return True

    def delete(self, key: str) -> bool:
        if key not in self._entries:
            return False
        self._drop(key)
        return True

    def clear(self) -> None:
        self._entries.clear()
        self._size = 0

    def prune_expired(self) -> int:
        """Remove expired entries and return how many were removed."""
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            self._drop(key)
        return len(expired)

    def stats(self) -> CacheStats:
        return CacheStats(
            entries=len(self._entries),
            size_bytes=self._size,
            max_entries=self._max_entries,
            max_size_bytes=self._max_size_bytes,
            hits=self._hits,
            misses=self._misses,
            evictions=self._evictions,
        )

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and self.has(key)

    def _drop(self, key: str) -> None:
        entry = self._entries.pop(key)
        self._size -= entry.size

    def _evict(self) -> None:
        while self._entries and (
            len(self._entries) > self._max_entries or self._size > self._max_size_bytes
        ):
            key, entry = self._entries.popitem(last=False)
            self._size -= entry.size
            self._evictions += 1


__all__ = ["CacheEntry", "CacheStats", "MemoryCache", "estimate_size"]
