"""
Keys Repository

Purpose
- Resolve provider credentials for the registry's lazy credential accessor.
- Keys set explicitly at runtime win over environment variables.

Design
- Non-throwing ``get_api_key`` returning None when unresolved; the async
  ``require_key`` raises ``KeyNotSetError`` and is what adapters call.
- Keys live in process memory only; durable/encrypted storage is left to
  the caller.

Usage
- repo = KeysRepository()
- repo.set_key("openai", "sk-...")
- key = await repo.require_key("openai")
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from ...config.env import resolve_provider_key
from ..errors import KeyNotSetError


@dataclass
class KeyResolution:
    provider: str
    api_key: Optional[str]
    source: str  # "memory", "env", "none"
    extra: Dict[str, Any] = field(default_factory=dict)


class KeysRepository:
    """Resolve provider credentials: runtime keys first, then environment."""

    def __init__(self, *, use_env: bool = True) -> None:
        self._keys: Dict[str, str] = {}
        self._use_env = use_env

    @staticmethod
    def _normalize(provider: str) -> str:
        return (provider or "").lower().strip()

    def set_key(self, provider: str, api_key: str) -> None:
        if not api_key or not api_key.strip():
            raise ValueError("api_key must be a non-empty string")
        self._keys[self._normalize(provider)] = api_key.strip()

    def remove_key(self, provider: str) -> bool:
        return self._keys.pop(self._normalize(provider), None) is not None

    def clear(self) -> None:
        self._keys.clear()

    def has_key(self, provider: str) -> bool:
        return self.get_resolution(provider).api_key is not None

    def get_api_key(self, provider: str) -> Optional[str]:
        return self.get_resolution(provider).api_key

    def get_resolution(self, provider: str) -> KeyResolution:
        p = self._normalize(provider)
        if p in self._keys:
            return KeyResolution(provider=p, api_key=self._keys[p], source="memory")
        if self._use_env:
            val, used = resolve_provider_key(p)
            if val:
                return KeyResolution(provider=p, api_key=val, source="env", extra={"env_var": used})
        return KeyResolution(provider=p, api_key=None, source="none")

    async def require_key(self, provider: str) -> str:
        """Return the key or raise ``KeyNotSetError`` (the credential accessor contract)."""
        key = self.get_api_key(provider)
        if key is None:
            raise KeyNotSetError(self._normalize(provider))
        return key


__all__ = ["KeyResolution", "KeysRepository"]
