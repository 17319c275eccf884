from __future__ import annotations

import asyncio
import types

import httpx
import pytest

from sutra_client.base.cancellation import CancelledError
from sutra_client.base.errors import (
    ErrorCode,
    PipelineError,
    ProviderNotFoundError,
    ProviderUnavailableError,
    RateLimitedError,
    StreamAbortedError,
    SutraError,
    classify_exception,
    error_from_status,
    to_sutra_error,
)


def test_classify_sutra_error_passthrough():
    e = SutraError(ErrorCode.AUTH, "nope", provider="x")
    assert classify_exception(e) is ErrorCode.AUTH


@pytest.mark.parametrize(
    "status, code",
    [
        (400, ErrorCode.VALIDATION),
        (401, ErrorCode.AUTH),
        (404, ErrorCode.MODEL_NOT_FOUND),
        (429, ErrorCode.RATE_LIMIT),
        (500, ErrorCode.SERVER_ERROR),
        (502, ErrorCode.TRANSIENT),
        (503, ErrorCode.UNAVAILABLE),
        (504, ErrorCode.TIMEOUT),
        (599, ErrorCode.SERVER_ERROR),
    ],
)
def test_classify_http_status_mapping(status, code):
    assert classify_exception(types.SimpleNamespace(status_code=status)) is code
    nested = types.SimpleNamespace(response=types.SimpleNamespace(status_code=status))
    assert classify_exception(nested) is code


def test_classify_timeouts_cancellation_and_transport():
    assert classify_exception(asyncio.TimeoutError()) is ErrorCode.TIMEOUT
    assert classify_exception(httpx.ReadTimeout("slow")) is ErrorCode.TIMEOUT
    assert classify_exception(httpx.ConnectError("refused")) is ErrorCode.NETWORK
    assert classify_exception(CancelledError("stop")) is ErrorCode.CANCELLED


def test_classify_heuristics():
    assert classify_exception(Exception("rate limit exceeded")) is ErrorCode.RATE_LIMIT
    assert classify_exception(Exception("timed out waiting")) is ErrorCode.TIMEOUT
    assert classify_exception(Exception("random")) is ErrorCode.UNKNOWN


def test_to_sutra_error_wraps_and_fills_context():
    wrapped = to_sutra_error(ValueError("server error happened"), provider="p", model="m", request_id="r")
    assert wrapped.code is ErrorCode.SERVER_ERROR
    assert wrapped.retryable is True
    assert (wrapped.provider, wrapped.model, wrapped.request_id) == ("p", "m", "r")
    assert isinstance(wrapped.__cause__, ValueError)

    original = SutraError(ErrorCode.AUTH, "bad key", provider="keep")
    assert to_sutra_error(original, provider="other", model="m") is original
    assert original.provider == "keep" and original.model == "m"


def test_error_from_status_carries_retry_after():
    err = error_from_status(429, "slow down", provider="p", retry_after=2.5)
    assert err.code is ErrorCode.RATE_LIMIT
    assert err.retryable and err.retry_after == 2.5 and err.status_code == 429


def test_specific_errors_pin_kind_and_retryability():
    assert ProviderNotFoundError("x").retryable is False
    unavailable = ProviderUnavailableError("x", retry_after=3.0)
    assert unavailable.retryable and unavailable.retry_after == 3.0
    assert unavailable.kind == "provider_unavailable"
    aborted = StreamAbortedError("limit")
    assert aborted.reason == "limit" and not aborted.retryable


def test_pipeline_error_inherits_structured_cause():
    cause = RateLimitedError("too many", retry_after=12.0)
    err = PipelineError("rate-limit", "before_request", cause)
    assert err.code is ErrorCode.RATE_LIMIT
    assert err.retryable and err.retry_after == 12.0
    assert err.details["middleware"] == "rate-limit"
    assert err.__cause__ is cause

    plain = PipelineError("custom", "after_response", RuntimeError("boom"))
    assert plain.code is ErrorCode.MIDDLEWARE and not plain.retryable


def test_to_dict_is_json_friendly():
    data = SutraError(ErrorCode.TIMEOUT, "slow", provider="p", retry_after=1.0).to_dict()
    assert data["code"] == "timeout"
    assert data["retryable"] is True
    assert data["retry_after"] == 1.0
