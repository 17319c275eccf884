"""
Structured client error exception type.

Wraps every failure surfaced by the client with a normalized `ErrorCode`,
a retryability flag and (when known) a suggested delay so callers and the
built-in retry/fallback middleware can make decisions without parsing
provider-specific messages.
"""
from __future__ import annotations

from typing import Any, Dict, Optional

from .error_code import RETRYABLE_CODES, ErrorCode


class SutraError(Exception):
    """Represents a structured client error with a normalized error code.

    Attributes:
        code: Normalized :class:`ErrorCode` classification for the failure.
        message: Human-readable error message suitable for logging.
        provider: Provider key where the error originated (e.g., ``"openai"``).
        model: Optional model name associated with the failure.
        retryable: Whether repeating the call may succeed. Defaults to the
            code's membership in ``RETRYABLE_CODES``.
        retry_after: Suggested delay in seconds before retrying, if known.
        status_code: HTTP status returned by the provider, if any.
        request_id: Pipeline request id the failure belongs to.
        details: Free-form diagnostic mapping (never contains secrets).
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        provider: Optional[str] = None,
        model: Optional[str] = None,
        retryable: Optional[bool] = None,
        retry_after: Optional[float] = None,
        status_code: Optional[int] = None,
        request_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.provider = provider
        self.model = model
        self.retryable = code in RETRYABLE_CODES if retryable is None else retryable
        self.retry_after = retry_after
        self.status_code = status_code
        self.request_id = request_id
        self.details: Dict[str, Any] = dict(details or {})

    @property
    def kind(self) -> str:
        """Stable string form of :attr:`code`."""
        return self.code.value

    def to_dict(self) -> Dict[str, Any]:
        """Return a JSON-friendly representation with ``None`` values pruned."""
        data = {
            "code": self.code.value,
            "message": self.message,
            "provider": self.provider,
            "model": self.model,
            "retryable": self.retryable,
            "retry_after": self.retry_after,
            "status_code": self.status_code,
            "request_id": self.request_id,
            "details": self.details or None,
        }
        return {k: v for k, v in data.items() if v is not None}

    def __str__(self) -> str:  # pragma: no cover - trivial
        """Return a compact string combining provider, model, code, and message."""
        if self.provider is None:
            return f"{self.code.value}: {self.message}"
        return f"{self.provider}:{self.model or '-'} {self.code.value}: {self.message}"

    def __repr__(self) -> str:  # pragma: no cover - introspection aid
        return f"{type(self).__name__}(code={self.code.value!r}, message={self.message!r}, retryable={self.retryable})"


__all__ = ["SutraError"]
