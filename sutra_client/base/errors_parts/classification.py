"""
Error classification helpers mapping exceptions to normalized ErrorCode values.

Implements HTTP status extraction, status-to-code mapping, transport error
detection for ``httpx`` and message-based heuristics as a fallback, plus the
wrappers that turn arbitrary exceptions into :class:`SutraError`.
"""
from __future__ import annotations

import asyncio
from typing import Dict, Optional

import httpx

from ..cancellation_parts.cancelled_error import CancelledError
from .error_code import ErrorCode
from .sutra_error import SutraError


def _extract_status(exc: BaseException) -> Optional[int]:
    """Attempt to extract an HTTP status code from a provider exception.

    Supported attribute shapes (checked in order):
    - ``exc.status_code``
    - ``exc.status``
    - ``exc.response.status_code``
    Returns ``None`` if no valid status can be found.
    """
    for attr in ("status_code", "status"):
        val = getattr(exc, attr, None)
        if isinstance(val, int) and 100 <= val < 600:
            return val
    resp = getattr(exc, "response", None)
    if resp is not None:
        sc = getattr(resp, "status_code", None)
        if isinstance(sc, int) and 100 <= sc < 600:
            return sc
    return None


def _extract_retry_after(exc: BaseException) -> Optional[float]:
    """Read a ``Retry-After`` header (seconds form) from an HTTP error response."""
    resp = getattr(exc, "response", None)
    headers = getattr(resp, "headers", None)
    if headers is None:
        return None
    raw = headers.get("retry-after")
    if not raw:
        return None
    try:
        value = float(raw)
    except ValueError:
        return None
    return value if value >= 0 else None


_HTTP_STATUS_MAP: Dict[int, ErrorCode] = {
    400: ErrorCode.VALIDATION,
    401: ErrorCode.AUTH,
    403: ErrorCode.AUTH,
    404: ErrorCode.MODEL_NOT_FOUND,
    408: ErrorCode.TIMEOUT,
    413: ErrorCode.CONTEXT_LENGTH_EXCEEDED,
    422: ErrorCode.VALIDATION,
    429: ErrorCode.RATE_LIMIT,
    451: ErrorCode.CONTENT_FILTERED,
    500: ErrorCode.SERVER_ERROR,
    502: ErrorCode.TRANSIENT,
    503: ErrorCode.UNAVAILABLE,
    504: ErrorCode.TIMEOUT,
}


def code_for_status(status: int) -> ErrorCode:
    """Map an HTTP status to an :class:`ErrorCode` (5xx default to server error)."""
    if status in _HTTP_STATUS_MAP:
        return _HTTP_STATUS_MAP[status]
    if status >= 500:
        return ErrorCode.SERVER_ERROR
    return ErrorCode.UNKNOWN


def _heuristic_from_message(msg: str) -> Optional[ErrorCode]:  # pragma: no cover - simple mapping
    """Substring heuristic mapping for exceptions without structured data."""
    PATTERN_GROUPS = (
        (ErrorCode.QUOTA_EXCEEDED, ("quota",)),
        (ErrorCode.CONTEXT_LENGTH_EXCEEDED, ("context length",)),
        (ErrorCode.CONTEXT_LENGTH_EXCEEDED, ("maximum context",)),
        (ErrorCode.TIMEOUT, ("timeout",)),
        (ErrorCode.TIMEOUT, ("timed out",)),
        (ErrorCode.AUTH, ("api key",)),
        (ErrorCode.AUTH, ("unauthorized",)),
        (ErrorCode.AUTH, ("forbidden",)),
        (ErrorCode.MODEL_NOT_FOUND, ("model not found",)),
        (ErrorCode.MODEL_NOT_FOUND, ("does not exist",)),
        (ErrorCode.NETWORK, ("connection",)),
        (ErrorCode.NETWORK, ("network",)),
        (ErrorCode.UNAVAILABLE, ("unavailable",)),
        (ErrorCode.UNAVAILABLE, ("overloaded",)),
        (ErrorCode.VALIDATION, ("validation",)),
        (ErrorCode.VALIDATION, ("invalid",)),
        (ErrorCode.SERVER_ERROR, ("server error",)),
        (ErrorCode.SERVER_ERROR, ("internal error",)),
    )
    if "rate" in msg and "limit" in msg:
        return ErrorCode.RATE_LIMIT
    for code, patterns in PATTERN_GROUPS:
        if any(p in msg for p in patterns):
            return code
    return None


def classify_exception(exc: BaseException) -> ErrorCode:
    """Classify an exception into a normalized :class:`ErrorCode`.

    Precedence:
        1. SutraError passthrough.
        2. Cooperative cancellation.
        3. Timeout exceptions (builtin, asyncio, httpx).
        4. HTTP status mapping.
        5. httpx transport errors.
        6. Substring heuristics.
        7. ``UNKNOWN`` fallback.
    """
    if isinstance(exc, SutraError):
        return exc.code
    if isinstance(exc, CancelledError):
        return ErrorCode.CANCELLED
    if isinstance(exc, (TimeoutError, asyncio.TimeoutError, httpx.TimeoutException)):
        return ErrorCode.TIMEOUT
    status = _extract_status(exc)
    if status is not None:
        return code_for_status(status)
    if isinstance(exc, httpx.TransportError):
        return ErrorCode.NETWORK
    code = _heuristic_from_message(str(exc).lower())
    return code if code is not None else ErrorCode.UNKNOWN


def to_sutra_error(
    exc: BaseException,
    *,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    request_id: Optional[str] = None,
) -> SutraError:
    """Return ``exc`` unchanged when already structured, else wrap it.

    Missing provider/model/request_id context is filled on structured errors
    without overwriting what the raiser already supplied.
    """
    if isinstance(exc, SutraError):
        exc.provider = exc.provider or provider
        exc.model = exc.model or model
        exc.request_id = exc.request_id or request_id
        return exc
    code = classify_exception(exc)
    wrapped = SutraError(
        code,
        str(exc) or type(exc).__name__,
        provider=provider,
        model=model,
        retry_after=_extract_retry_after(exc),
        status_code=_extract_status(exc),
        request_id=request_id,
        details={"exception": type(exc).__name__},
    )
    wrapped.__cause__ = exc
    return wrapped


def error_from_status(
    status: int,
    message: str,
    *,
    provider: Optional[str] = None,
    model: Optional[str] = None,
    retry_after: Optional[float] = None,
) -> SutraError:
    """Build a :class:`SutraError` from an HTTP status and response message."""
    return SutraError(
        code_for_status(status),
        message or f"HTTP {status}",
        provider=provider,
        model=model,
        retry_after=retry_after,
        status_code=status,
    )


__all__ = [
    "classify_exception",
    "code_for_status",
    "error_from_status",
    "to_sutra_error",
    "_extract_status",
    "_HTTP_STATUS_MAP",
]
