"""Typed, fire-and-forget event notifications.

The client, registry, accumulator and adapters report lifecycle milestones
(request start/end/error, cache hit/miss, stream progress, retries, provider
registration) through one :class:`EventEmitter`. Emission is synchronous and
never awaited; a listener that raises is logged and skipped so observability
code cannot break a call.
"""
from __future__ import annotations

import time
from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from .logging import get_logger

_logger = get_logger("sutra.events")


class EventType(str, Enum):
    REQUEST_START = "request:start"
    REQUEST_END = "request:end"
    REQUEST_ERROR = "request:error"
    REQUEST_RETRY = "request:retry"
    REQUEST_FALLBACK = "request:fallback"
    STREAM_START = "stream:start"
    STREAM_CHUNK = "stream:chunk"
    STREAM_END = "stream:end"
    STREAM_ERROR = "stream:error"
    STREAM_ABORT = "stream:abort"
    CACHE_HIT = "cache:hit"
    CACHE_MISS = "cache:miss"
    CACHE_SET = "cache:set"
    RATE_LIMITED = "rate:limited"
    PROVIDER_REGISTERED = "provider:registered"
    CIRCUIT_STATE_CHANGE = "circuit:state_change"
    BATCH_PROGRESS = "batch:progress"
    BATCH_COMPLETE = "batch:complete"


@dataclass
class SutraEvent:
    """One notification delivered to listeners."""

    type: EventType
    provider: Optional[str] = None
    model: Optional[str] = None
    request_id: Optional[str] = None
    data: Dict[str, Any] = field(default_factory=dict)
    timestamp: float = field(default_factory=time.time)


EventListener = Callable[[SutraEvent], None]


class EventEmitter:
    """Minimal synchronous emitter keyed by :class:`EventType`.

    ``on`` returns an unsubscribe callable. ``on_all`` listeners receive every
    event. ``max_listeners`` bounds each list to surface accidental leaks
    (registering per request without removing).
    """

    def __init__(self, *, max_listeners: int = 100) -> None:
        self._listeners: Dict[EventType, List[EventListener]] = defaultdict(list)
        self._wildcard: List[EventListener] = []
        self._max_listeners = max_listeners

    def on(self, event_type: EventType, listener: EventListener) -> Callable[[], None]:
        listeners = self._listeners[EventType(event_type)]
        if len(listeners) >= self._max_listeners:
            raise ValueError(f"Too many listeners for {EventType(event_type).value} (max {self._max_listeners})")
        listeners.append(listener)
        return lambda: self.off(event_type, listener)

    def once(self, event_type: EventType, listener: EventListener) -> Callable[[], None]:
        """Register a listener that removes itself after the first delivery."""

        def _wrapper(event: SutraEvent) -> None:
            self.off(event_type, _wrapper)
            listener(event)

        return self.on(event_type, _wrapper)

    def on_all(self, listener: EventListener) -> Callable[[], None]:
        if len(self._wildcard) >= self._max_listeners:
            raise ValueError(f"Too many wildcard listeners (max {self._max_listeners})")
        self._wildcard.append(listener)

        def _remove() -> None:
            if listener in self._wildcard:
                self._wildcard.remove(listener)

        return _remove

    def off(self, event_type: EventType, listener: EventListener) -> bool:
        listeners = self._listeners.get(EventType(event_type))
        if not listeners or listener not in listeners:
            return False
        listeners.remove(listener)
        return True

    def remove_all_listeners(self, event_type: Optional[EventType] = None) -> None:
        if event_type is None:
            self._listeners.clear()
            self._wildcard.clear()
        else:
            self._listeners.pop(EventType(event_type), None)

    def listener_count(self, event_type: Optional[EventType] = None) -> int:
        if event_type is None:
            return sum(len(v) for v in self._listeners.values()) + len(self._wildcard)
        return len(self._listeners.get(EventType(event_type), ()))

    def emit(
        self,
        event_type: EventType,
        *,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        request_id: Optional[str] = None,
        **data: Any,
    ) -> SutraEvent:
        """Deliver an event to typed then wildcard listeners and return it."""
        event = SutraEvent(
            type=EventType(event_type),
            provider=provider,
            model=model,
            request_id=request_id,
            data=data,
        )
        targets = list(self._listeners.get(event.type, ())) + list(self._wildcard)
        for listener in targets:
            try:
                listener(event)
            except Exception:
                _logger.exception("event listener failed for %s", event.type.value)
        return event


__all__ = ["EventType", "SutraEvent", "EventListener", "EventEmitter"]
