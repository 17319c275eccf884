"""
Concrete error kinds raised by the orchestration core.

Each subclass pins its :class:`ErrorCode` and retryability so call sites only
supply the message and context. Callers can match either on the class or on
``error.code``.
"""
from __future__ import annotations

from typing import Any, Optional

from .error_code import ErrorCode
from .sutra_error import SutraError


class ProviderNotFoundError(SutraError):
    """Raised when a provider name has no registered constructor."""

    def __init__(self, provider: str, **kwargs: Any) -> None:
        super().__init__(
            ErrorCode.PROVIDER_NOT_FOUND,
            f"Provider '{provider}' is not registered",
            provider=provider,
            retryable=False,
            **kwargs,
        )


class ProviderUnavailableError(SutraError):
    """Raised when a provider's circuit is open or its trial quota is spent."""

    def __init__(self, provider: str, *, retry_after: Optional[float] = None, **kwargs: Any) -> None:
        super().__init__(
            ErrorCode.PROVIDER_UNAVAILABLE,
            f"Provider '{provider}' is temporarily unavailable (circuit open)",
            provider=provider,
            retryable=True,
            retry_after=retry_after,
            **kwargs,
        )


class PipelineError(SutraError):
    """A middleware raised while handling one pipeline phase.

    The offending middleware and phase are named in ``details``; the raised
    exception is kept as ``__cause__``. When that exception is itself a
    :class:`SutraError` (e.g. a deliberate rate-limit rejection) its code,
    retryability and delay hint carry over so retry and fallback policies
    still see the underlying kind.
    """

    def __init__(self, middleware: str, phase: str, cause: BaseException, **kwargs: Any) -> None:
        details = {"middleware": middleware, "phase": phase, "cause": repr(cause)}
        if isinstance(cause, SutraError):
            code = cause.code
            kwargs.setdefault("retryable", cause.retryable)
            kwargs.setdefault("retry_after", cause.retry_after)
            kwargs.setdefault("provider", cause.provider)
            kwargs.setdefault("model", cause.model)
        else:
            code = ErrorCode.MIDDLEWARE
            kwargs.setdefault("retryable", False)
        super().__init__(
            code,
            f"Middleware '{middleware}' failed during {phase}: {cause}",
            details=details,
            **kwargs,
        )
        self.middleware = middleware
        self.phase = phase
        self.original = cause
        self.__cause__ = cause


class StreamAbortedError(SutraError):
    """Raised when a stream is abandoned by cancellation, timeout or a limit."""

    def __init__(self, reason: str, **kwargs: Any) -> None:
        kwargs.setdefault("retryable", False)
        super().__init__(ErrorCode.STREAM_ABORTED, f"Stream aborted: {reason}", **kwargs)
        self.reason = reason


class CacheKeyError(SutraError):
    """Cache key derivation failed; callers fall back to an uncached call."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(ErrorCode.CACHE_KEY, message, retryable=False, **kwargs)


class RateLimitedError(SutraError):
    """Client-side or provider-side rate limit hit."""

    def __init__(self, message: str, *, retry_after: Optional[float] = None, **kwargs: Any) -> None:
        super().__init__(
            ErrorCode.RATE_LIMIT, message, retryable=True, retry_after=retry_after, **kwargs
        )


class ContentFilteredError(SutraError):
    """Message content matched a blocked pattern."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(ErrorCode.CONTENT_FILTERED, message, retryable=False, **kwargs)


class KeyNotSetError(SutraError):
    """No credential is available for the requested provider."""

    def __init__(self, provider: str, **kwargs: Any) -> None:
        super().__init__(
            ErrorCode.KEY_NOT_SET,
            f"API key not set for provider '{provider}'",
            provider=provider,
            retryable=False,
            **kwargs,
        )


class TemplateError(SutraError):
    """A prompt template is unknown or was rendered with invalid variables."""

    def __init__(self, message: str, **kwargs: Any) -> None:
        super().__init__(ErrorCode.TEMPLATE, message, retryable=False, **kwargs)


__all__ = [
    "ProviderNotFoundError",
    "ProviderUnavailableError",
    "PipelineError",
    "StreamAbortedError",
    "CacheKeyError",
    "RateLimitedError",
    "ContentFilteredError",
    "KeyNotSetError",
    "TemplateError",
]
