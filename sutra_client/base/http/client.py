"""Shared async HTTP client pool for adapters.

Purpose:
    Provide reusable ``httpx.AsyncClient`` instances so adapters do not
    allocate a connection pool per call. Timeouts derive from
    :func:`get_timeout_config` unless the caller passes one.

Lifecycle & cleanup:
    - Clients are cached by ``(base_url, purpose, event loop)``. An async
      client's connections belong to the loop that opened them, so each
      running loop gets its own instance.
    - :func:`aclose_all_clients` closes every pooled client; the client
      facade calls it from ``aclose``.
"""

from __future__ import annotations

import asyncio
from typing import Dict, Optional, Tuple

import httpx

from ..logging import get_logger
from ..timeouts import get_timeout_config

_logger = get_logger("sutra.http")

_CLIENTS: Dict[Tuple[Optional[str], str, int], httpx.AsyncClient] = {}


def default_timeout(seconds: Optional[float] = None) -> httpx.Timeout:
    cfg = get_timeout_config()
    return httpx.Timeout(seconds or cfg.http_timeout_seconds, connect=cfg.connect_timeout_seconds)


def get_async_client(
    base_url: Optional[str],
    purpose: str = "chat",
    *,
    timeout: Optional[float] = None,
) -> httpx.AsyncClient:
    """Return a pooled ``httpx.AsyncClient`` for ``base_url`` and ``purpose``.

    Must be called from a running event loop.
    """
    loop = asyncio.get_running_loop()
    key = (base_url, purpose, id(loop))
    client = _CLIENTS.get(key)
    if client is not None and not client.is_closed:
        return client
    kwargs = {"timeout": default_timeout(timeout)}
    client = httpx.AsyncClient(base_url=base_url, **kwargs) if base_url else httpx.AsyncClient(**kwargs)
    _CLIENTS[key] = client
    return client


async def aclose_all_clients() -> None:
    """Close and forget every pooled client owned by the running loop."""
    loop_id = id(asyncio.get_running_loop())
    for key in [k for k in _CLIENTS if k[2] == loop_id]:
        client = _CLIENTS.pop(key)
        try:
            await client.aclose()
        except (httpx.HTTPError, RuntimeError):
            _logger.warning("failed to close pooled client for %s", key[0], exc_info=True)


__all__ = ["aclose_all_clients", "default_timeout", "get_async_client"]
