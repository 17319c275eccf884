"""Pooled async HTTP clients."""

from .client import aclose_all_clients, default_timeout, get_async_client

__all__ = ["aclose_all_clients", "default_timeout", "get_async_client"]
