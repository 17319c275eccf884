"""Mock provider package for offline tests."""

from .client import DEFAULT_MODEL, DEFAULT_REPLY, MockProvider, mock_factory

__all__ = ["DEFAULT_MODEL", "DEFAULT_REPLY", "MockProvider", "mock_factory"]
