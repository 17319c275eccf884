"""Boundary interfaces (public API facade).

- ``ProviderAdapter``: capability protocol implemented by every adapter.
- ``ProviderConstructor`` / ``CredentialAccessor``: how the registry builds adapters.
- ``ProviderPlugin``: constructor plus defaults for third-party registration.
- ``CacheStore``: response cache contract used by the executor.
"""

from .interfaces_parts.cache_store import CacheStore
from .interfaces_parts.provider_adapter import (
    FEATURES,
    CredentialAccessor,
    ProviderAdapter,
    ProviderConstructor,
)
from .interfaces_parts.provider_plugin import ProviderPlugin

__all__ = [
    "CacheStore",
    "CredentialAccessor",
    "FEATURES",
    "ProviderAdapter",
    "ProviderConstructor",
    "ProviderPlugin",
]
