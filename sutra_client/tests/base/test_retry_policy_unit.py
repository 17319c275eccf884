"""Retry policy decisions and backoff."""
from __future__ import annotations

from sutra_client.base.errors import ErrorCode, SutraError
from sutra_client.base.resilience import RetryConfig


def test_backoff_doubles_and_caps():
    policy = RetryConfig(base_delay=1.0, max_delay=5.0)
    assert [policy.delay_for(n) for n in range(4)] == [1.0, 2.0, 4.0, 5.0]  # nosec B101


def test_server_hint_wins_but_is_capped():
    policy = RetryConfig(max_delay=10.0)
    assert policy.delay_for(0, hint=3.0) == 3.0  # nosec B101 test assertion
    assert policy.delay_for(0, hint=60.0) == 10.0  # nosec B101 test assertion


def test_should_retry_respects_budget_and_codes():
    policy = RetryConfig(max_retries=2)
    transient = SutraError(ErrorCode.SERVER_ERROR, "x")
    assert policy.should_retry(transient, 0) and policy.should_retry(transient, 1)  # nosec B101
    assert not policy.should_retry(transient, 2)  # nosec B101 test assertion
    assert not policy.should_retry(SutraError(ErrorCode.AUTH, "x"), 0)  # nosec B101
