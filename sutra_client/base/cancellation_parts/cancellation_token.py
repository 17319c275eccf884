"""Cooperative cancellation token implementation.

Exposes the ``CancellationToken`` class threaded through pipeline contexts,
adapter calls and stream accumulators to enable early termination of
in-flight operations. Listener registration returns a remover so callers can
pair registration and deregistration symmetrically.
"""

from __future__ import annotations

from typing import Callable, List, Optional

from ..logging import get_logger
from .cancelled_error import CancelledError
from .state import State

_logger = get_logger("sutra.cancellation")

Listener = Callable[[Optional[str]], None]


class CancellationToken:
    """A cooperative cancellation token with optional cascading semantics.

    All access happens on one event loop, so no locking is performed. Child
    tokens inherit cancellation when the parent is cancelled.
    """

    def __init__(self, *, parent: "CancellationToken | None" = None) -> None:
        self._state = State()
        self._children: List[CancellationToken] = []
        if parent is not None:
            parent.link_child(self)

    @property
    def cancelled(self) -> bool:  # noqa: D401 - short form
        """Whether cancellation has been requested."""
        return self._state.cancelled

    @property
    def reason(self) -> str | None:  # noqa: D401 - short form
        """Reason string supplied at cancel time (if any)."""
        return self._state.reason

    def cancel(self, reason: str | None = None) -> None:
        """Request cooperative cancellation, notify listeners, cascade to children."""
        if self._state.cancelled:
            return
        self._state.cancelled = True
        self._state.reason = reason
        listeners = list(self._state.listeners)
        self._state.listeners.clear()
        for listener in listeners:
            try:
                listener(reason)
            except Exception:  # listener faults must not stop the cascade
                _logger.exception("cancellation listener failed")
        for child in list(self._children):
            child.cancel(reason)

    def add_listener(self, listener: Listener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it.

        When the token is already cancelled the listener fires immediately
        and the returned remover is a no-op.
        """
        if self._state.cancelled:
            listener(self._state.reason)
            return lambda: None
        self._state.listeners.append(listener)

        def _remove() -> None:
            if listener in self._state.listeners:
                self._state.listeners.remove(listener)

        return _remove

    @property
    def listener_count(self) -> int:
        return len(self._state.listeners)

    def link_child(self, token: "CancellationToken") -> "CancellationToken":
        """Link a child token so parent cancellation cascades (returns child)."""
        self._children.append(token)
        if self._state.cancelled:
            token.cancel(self._state.reason)
        return token

    def unlink_child(self, token: "CancellationToken") -> bool:
        """Detach a linked child; returns ``False`` when it was not linked."""
        if token in self._children:
            self._children.remove(token)
            return True
        return False

    def raise_if_cancelled(self) -> None:
        """Raise ``CancelledError`` if token is cancelled."""
        if self._state.cancelled:
            raise CancelledError(self._state.reason or "operation cancelled")

    def child(self) -> "CancellationToken":
        """Create and link a child token (shortcut)."""
        return CancellationToken(parent=self)

    def __repr__(self) -> str:  # pragma: no cover - introspection aid
        return (
            f"CancellationToken(cancelled={self._state.cancelled}, "
            f"reason={self._state.reason!r}, children={len(self._children)})"
        )


__all__ = ["CancellationToken"]
