"""Bridge a cancellation token onto an awaitable.

Adapters use :func:`run_cancellable` so that firing the request's token
abandons the in-flight network read instead of waiting for it to finish.
"""

from __future__ import annotations

import asyncio
from typing import Awaitable, Optional, TypeVar

from .cancellation_token import CancellationToken
from .cancelled_error import CancelledError

T = TypeVar("T")


async def run_cancellable(awaitable: Awaitable[T], token: Optional[CancellationToken]) -> T:
    """Await ``awaitable`` and abandon it when ``token`` fires.

    Raises:
        CancelledError: the token fired before or while the awaitable ran.
    """
    if token is None:
        return await awaitable
    token.raise_if_cancelled()
    task = asyncio.ensure_future(awaitable)
    remove = token.add_listener(lambda _reason: task.cancel())
    try:
        return await task
    except asyncio.CancelledError:
        if token.cancelled and task.cancelled():
            raise CancelledError(token.reason or "operation cancelled") from None
        raise
    finally:
        remove()
        if not task.done():
            task.cancel()


__all__ = ["run_cancellable"]
