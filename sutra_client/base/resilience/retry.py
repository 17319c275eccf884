"""Retry policy shared by the retry middleware and callers that poll.

The policy never sleeps or re-invokes anything itself; it only answers
"may attempt N be retried for this error, and after how long".
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from ..errors import ErrorCode, SutraError


@dataclass(frozen=True)
class RetryConfig:
    """Exponential backoff policy.

    Attributes:
        max_retries: Retries allowed after the first attempt.
        base_delay: Delay in seconds before the first retry.
        max_delay: Upper bound for any computed delay.
        retryable_codes: Error codes that qualify for a retry.
    """

    max_retries: int = 3
    base_delay: float = 1.0
    max_delay: float = 30.0
    retryable_codes: tuple[ErrorCode, ...] = (
        ErrorCode.RATE_LIMIT,
        ErrorCode.TIMEOUT,
        ErrorCode.NETWORK,
        ErrorCode.TRANSIENT,
        ErrorCode.SERVER_ERROR,
        ErrorCode.UNAVAILABLE,
        ErrorCode.PROVIDER_UNAVAILABLE,
    )

    def should_retry(self, error: SutraError, attempt: int) -> bool:
        """Return True when ``attempt`` (0-based count of retries done) may retry."""
        return attempt < self.max_retries and error.code in self.retryable_codes

    def delay_for(self, attempt: int, hint: Optional[float] = None) -> float:
        """Seconds to wait before retry number ``attempt + 1``.

        A server-provided hint wins (capped at ``max_delay``); otherwise
        ``base_delay * 2**attempt`` capped at ``max_delay``.
        """
        if hint is not None and hint >= 0:
            return min(hint, self.max_delay)
        return min(self.base_delay * (2**attempt), self.max_delay)


DEFAULT_RETRY_CONFIG = RetryConfig()


__all__ = ["RetryConfig", "DEFAULT_RETRY_CONFIG"]
