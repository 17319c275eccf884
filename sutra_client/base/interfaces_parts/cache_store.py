"""CacheStore Protocol (single-class module).

The executor only needs ``get`` and ``set``; anything implementing them
(the bundled :class:`MemoryCache`, or a caller's own store) can back the
response cache.
"""

from __future__ import annotations

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class CacheStore(Protocol):
    def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or ``None`` when absent or expired."""
        ...

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        """Store ``value``; ``ttl`` in seconds overrides the store default."""
        ...


__all__ = ["CacheStore"]
