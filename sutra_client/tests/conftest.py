"""Shared fixtures for the client test suite.

Provides a controllable clock, structured-log capture on the ``sutra``
logger (which does not propagate to the root logger, so ``caplog`` alone
sees nothing) and small builders for registries and executors backed by
:class:`MockProvider`.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Callable, Dict, Iterator, List, Optional

import pytest

from sutra_client.base.dto.client_config import CircuitBreakerConfig
from sutra_client.base.events import EventEmitter, SutraEvent
from sutra_client.base.logging import ROOT_LOGGER_NAME, get_logger
from sutra_client.base.middleware import MiddlewarePipeline
from sutra_client.base.registry import ProviderRegistry
from sutra_client.base.repositories.keys import KeysRepository
from sutra_client.client.executor import RequestExecutor
from sutra_client.mock import MockProvider


class FakeClock:
    """Monotonic clock advanced explicitly by tests (seconds)."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture()
def fake_clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def log_events() -> Iterator[List[Dict[str, Any]]]:
    """Capture structured events logged anywhere under the ``sutra`` logger."""
    records: List[Dict[str, Any]] = []
    logger = get_logger(ROOT_LOGGER_NAME)
    handler = logging.Handler(level=logging.DEBUG)

    def _emit(record: logging.LogRecord) -> None:
        try:
            payload = json.loads(record.getMessage())
        except ValueError:
            payload = {"msg": record.getMessage()}
        if isinstance(payload, dict):
            payload.setdefault("level", record.levelname)
            records.append(payload)

    handler.emit = _emit  # type: ignore[assignment]
    previous = logger.level
    logger.setLevel(logging.DEBUG)
    logger.addHandler(handler)
    try:
        yield records
    finally:
        logger.removeHandler(handler)
        logger.setLevel(previous)


@pytest.fixture()
def events() -> EventEmitter:
    return EventEmitter()


@pytest.fixture()
def recorded(events: EventEmitter) -> List[SutraEvent]:
    """Every event emitted on the ``events`` fixture."""
    seen: List[SutraEvent] = []
    events.on_all(seen.append)
    return seen


@pytest.fixture()
def make_registry(events: EventEmitter, fake_clock: FakeClock) -> Callable[..., ProviderRegistry]:
    """Build a registry without built-ins; ``providers`` maps names to mock instances."""

    def _make(
        providers: Optional[Dict[str, MockProvider]] = None,
        *,
        breaker: Optional[CircuitBreakerConfig] = None,
        register_builtins: bool = False,
    ) -> ProviderRegistry:
        registry = ProviderRegistry(
            events=events,
            keys=KeysRepository(use_env=False),
            breaker_config=breaker,
            clock=fake_clock,
            register_builtins=register_builtins,
        )
        for name, provider in (providers or {}).items():
            registry.register_provider(name, provider.as_constructor())
        return registry

    return _make


@pytest.fixture()
def make_executor(events: EventEmitter) -> Callable[..., RequestExecutor]:
    def _make(registry: ProviderRegistry, *, middleware=(), cache=None, deduplicate: bool = True) -> RequestExecutor:
        return RequestExecutor(
            registry,
            MiddlewarePipeline(middleware),
            events,
            cache=cache,
            deduplicate=deduplicate,
        )

    return _make
