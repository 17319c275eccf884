"""Cooperative cancellation primitives (public API facade).

Purpose
-------
Expose stable cancellation constructs via the canonical
``sutra_client.base.cancellation`` import path while the concrete
implementations live under ``cancellation_parts``.

Notes
-----
- ``CancellationToken`` carries cancellation across the pipeline context,
  adapter calls and stream accumulators.
- ``CancelledError`` is raised by operations that observe a cancellation request.
- ``run_cancellable`` abandons an awaitable as soon as its token fires.
"""

from .cancellation_parts.cancelled_error import CancelledError
from .cancellation_parts.cancellation_token import CancellationToken
from .cancellation_parts.run_cancellable import run_cancellable

__all__ = ["CancellationToken", "CancelledError", "run_cancellable"]
