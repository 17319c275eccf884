"""Deterministic cache keys for chat requests.

The key covers exactly the fields that influence the completion: provider,
model, temperature, max_tokens, top_p and the ordered messages. It is the
SHA-256 hex digest of a canonical JSON document (sorted keys, compact
separators). When ``hashlib.new`` rejects sha256 (restricted builds raise
``ValueError``) a double 32-bit FNV-1a hash is used instead.
"""
from __future__ import annotations

import hashlib
import json
from typing import Any, Dict

from ..errors import CacheKeyError
from ..models import ChatRequest

_FNV_OFFSET = 0x811C9DC5
_FNV_PRIME = 0x01000193
_FNV_SECOND_SEED = 0x5BD1E995


def _fnv1a(data: bytes, seed: int = _FNV_OFFSET) -> int:
    h = seed
    for byte in data:
        h ^= byte
        h = (h * _FNV_PRIME) & 0xFFFFFFFF
    return h


def _fallback_digest(payload: str) -> str:
    data = payload.encode("utf-8")
    return f"{_fnv1a(data):08x}{_fnv1a(data, _FNV_OFFSET ^ _FNV_SECOND_SEED):08x}"


def cache_key_payload(request: ChatRequest) -> Dict[str, Any]:
    return {
        "provider": request.provider,
        "model": request.model,
        "temperature": request.temperature,
        "max_tokens": request.max_tokens,
        "top_p": request.top_p,
        "messages": [m.to_dict() for m in request.messages],
    }


def derive_cache_key(request: ChatRequest) -> str:
    """Return the cache key for ``request``.

    Raises
    ------
    CacheKeyError
        The request holds values that cannot be serialized.
    """
    try:
        payload = json.dumps(cache_key_payload(request), sort_keys=True, separators=(",", ":"), ensure_ascii=False)
    except (TypeError, ValueError) as exc:
        raise CacheKeyError(
            f"Cannot derive cache key: {exc}", provider=request.provider, model=request.model
        ) from exc
    try:
        hasher = hashlib.new("sha256")
    except ValueError:
        return _fallback_digest(payload)
    hasher.update(payload.encode("utf-8"))
    return hasher.hexdigest()


__all__ = ["cache_key_payload", "derive_cache_key"]
