"""Cancellation token and ``run_cancellable`` behavior."""
from __future__ import annotations

import asyncio

import pytest

from sutra_client.base.cancellation import CancellationToken, CancelledError, run_cancellable


def test_cancel_is_idempotent_and_keeps_first_reason():
    token = CancellationToken()
    seen = []
    token.add_listener(seen.append)
    token.cancel("first")
    token.cancel("second")
    assert token.cancelled and token.reason == "first"  # nosec B101 test assertion
    assert seen == ["first"]  # nosec B101 test assertion
    assert token.listener_count == 0  # nosec B101 test assertion


def test_listener_remover_and_late_registration():
    token = CancellationToken()
    seen = []
    remove = token.add_listener(lambda r: seen.append(("early", r)))
    remove()
    token.cancel("done")
    token.add_listener(lambda r: seen.append(("late", r)))
    assert seen == [("late", "done")]  # nosec B101 test assertion


def test_parent_cancellation_cascades_to_children():
    parent = CancellationToken()
    child = parent.child()
    grandchild = CancellationToken(parent=child)
    parent.cancel("shutdown")
    assert child.cancelled and grandchild.cancelled  # nosec B101 test assertion
    assert grandchild.reason == "shutdown"  # nosec B101 test assertion

    late = parent.link_child(CancellationToken())
    assert late.cancelled  # nosec B101 test assertion


def test_raise_if_cancelled():
    token = CancellationToken()
    token.raise_if_cancelled()
    token.cancel()
    with pytest.raises(CancelledError):
        token.raise_if_cancelled()


def test_failing_listener_does_not_stop_cascade():
    token = CancellationToken()
    child = token.child()

    def _boom(_reason):
        raise RuntimeError("listener fault")

    token.add_listener(_boom)
    token.cancel("x")
    assert child.cancelled  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_run_cancellable_passthrough_without_token():
    async def _value():
        return 42

    assert await run_cancellable(_value(), None) == 42  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_run_cancellable_abandons_inflight_work():
    token = CancellationToken()
    started = asyncio.Event()

    async def _slow():
        started.set()
        await asyncio.sleep(10)

    task = asyncio.ensure_future(run_cancellable(_slow(), token))
    await started.wait()
    token.cancel("user abort")
    with pytest.raises(CancelledError, match="user abort"):
        await task
    assert token.listener_count == 0  # nosec B101 test assertion


@pytest.mark.asyncio
async def test_run_cancellable_rejects_already_cancelled_token():
    token = CancellationToken()
    token.cancel()
    coro = asyncio.sleep(0)
    with pytest.raises(CancelledError):
        await run_cancellable(coro, token)
    coro.close()


def test_unlinked_child_no_longer_follows_parent():
    parent = CancellationToken()
    kept, dropped = parent.child(), parent.child()
    assert parent.unlink_child(dropped) is True  # nosec B101 test assertion
    assert parent.unlink_child(dropped) is False  # nosec B101 test assertion
    parent.cancel("stop")
    assert kept.cancelled and not dropped.cancelled  # nosec B101 test assertion
    assert len(parent._children) == 1  # nosec B101 test assertion
