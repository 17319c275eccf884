"""Event emitter subscription semantics."""
from __future__ import annotations

import pytest

from sutra_client.base.events import EventEmitter, EventType


def test_on_returns_remover_and_off_reports_removal():
    emitter = EventEmitter()
    got = []
    remove = emitter.on(EventType.CACHE_HIT, got.append)
    emitter.emit(EventType.CACHE_HIT, provider="p", key="k")
    remove()
    emitter.emit(EventType.CACHE_HIT, provider="p")
    assert len(got) == 1  # nosec B101 test assertion
    assert got[0].provider == "p" and got[0].data == {"key": "k"}  # nosec B101 test assertion
    assert emitter.off(EventType.CACHE_HIT, got.append) is False  # nosec B101 test assertion


def test_once_delivers_a_single_time():
    emitter = EventEmitter()
    got = []
    emitter.once(EventType.REQUEST_END, got.append)
    emitter.emit(EventType.REQUEST_END)
    emitter.emit(EventType.REQUEST_END)
    assert len(got) == 1  # nosec B101 test assertion
    assert emitter.listener_count(EventType.REQUEST_END) == 0  # nosec B101 test assertion


def test_wildcard_listener_sees_every_type():
    emitter = EventEmitter()
    got = []
    remove = emitter.on_all(got.append)
    emitter.emit(EventType.REQUEST_START)
    emitter.emit("stream:chunk")
    assert [e.type for e in got] == [EventType.REQUEST_START, EventType.STREAM_CHUNK]  # nosec B101
    remove()
    emitter.emit(EventType.REQUEST_START)
    assert len(got) == 2  # nosec B101 test assertion


def test_listener_errors_are_logged_not_raised(log_events):
    emitter = EventEmitter()
    after = []

    def _boom(_event):
        raise RuntimeError("listener bug")

    emitter.on(EventType.REQUEST_ERROR, _boom)
    emitter.on(EventType.REQUEST_ERROR, after.append)
    emitter.emit(EventType.REQUEST_ERROR)
    assert len(after) == 1  # nosec B101 test assertion
    assert any(e.get("level") == "ERROR" for e in log_events)  # nosec B101 test assertion


def test_max_listeners_bounds_registrations():
    emitter = EventEmitter(max_listeners=1)
    emitter.on(EventType.CACHE_SET, lambda e: None)
    with pytest.raises(ValueError):
        emitter.on(EventType.CACHE_SET, lambda e: None)


def test_remove_all_listeners():
    emitter = EventEmitter()
    emitter.on(EventType.CACHE_SET, lambda e: None)
    emitter.on(EventType.CACHE_MISS, lambda e: None)
    emitter.on_all(lambda e: None)
    emitter.remove_all_listeners(EventType.CACHE_SET)
    assert emitter.listener_count() == 2  # nosec B101 test assertion
    emitter.remove_all_listeners()
    assert emitter.listener_count() == 0  # nosec B101 test assertion
