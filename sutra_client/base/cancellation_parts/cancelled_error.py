"""Cancellation error type.

Defines the public ``CancelledError`` used to signal cooperative cancellation
in client operations. It is distinct from ``asyncio.CancelledError``: the
latter tears down a task, this one reports that a token was fired.
"""

from __future__ import annotations


class CancelledError(RuntimeError):
    """Raised when an operation is cancelled cooperatively.

    This specialized error distinguishes cooperative cancellation from other
    runtime failures, enabling targeted handling (e.g., keep it out of
    circuit-breaker failure counts, avoid retry logic).
    """

__all__ = ["CancelledError"]
